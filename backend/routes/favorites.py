"""Favorite symbols per user."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Response, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

import models
from auth import get_current_user
from database import get_session
from errors import ConflictError, NotFoundError
from schemas import FavoriteCreate, FavoriteOut
from services.quotes import get_quotes, normalize_pair

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/favoritos", tags=["Favoritos"])


async def _user_favorites(db: AsyncSession, user_id: int) -> list[models.Favorite]:
    result = await db.execute(
        select(models.Favorite)
        .where(models.Favorite.user_id == user_id)
        .order_by(models.Favorite.created_at, models.Favorite.id)
    )
    return list(result.scalars().all())


@router.get("", response_model=list[FavoriteOut])
async def list_favorites(
    user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await _user_favorites(db, user.id)


@router.post("", response_model=FavoriteOut, status_code=status.HTTP_201_CREATED)
async def add_favorite(
    payload: FavoriteCreate,
    user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    symbol = normalize_pair(payload.symbol)
    favorite = models.Favorite(user_id=user.id, symbol=symbol)
    db.add(favorite)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError(f"{symbol} is already a favorite") from e
    await db.refresh(favorite)

    logger.info("User %s added favorite %s", user.id, symbol)
    return favorite


@router.delete("/{favorite_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_favorite(
    favorite_id: int,
    user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    favorite = await db.get(models.Favorite, favorite_id)
    if favorite is None or favorite.user_id != user.id:
        raise NotFoundError("Favorite not found")

    await db.delete(favorite)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/cotacoes")
async def favorite_quotes(
    background_tasks: BackgroundTasks,
    user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict:
    """Quotes for every favorite symbol of the current user."""
    symbols = [f.symbol for f in await _user_favorites(db, user.id)]
    if not symbols:
        return {"timestamp": None, "stale": False, "source": "empty", "quotes": [], "missing": []}
    return await get_quotes(symbols, background_tasks)
