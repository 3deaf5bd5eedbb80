"""Account routes — register, login, profile, account deletion."""

import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

import models
from auth import create_access_token, get_current_user, hash_password, is_admin, verify_password
from config import settings
from database import get_session
from errors import AuthenticationError, ConflictError
from schemas import Token, UserCreate, UserLogin, UserOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


def _user_out(user: models.User) -> UserOut:
    out = UserOut.model_validate(user)
    out.is_admin = is_admin(user)
    return out


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register(payload: UserCreate, db: AsyncSession = Depends(get_session)):
    email = payload.email.lower()
    existing = await db.execute(select(models.User).where(models.User.email == email))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Email already registered")

    user = models.User(email=email, password_hash=hash_password(payload.password))
    db.add(user)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("Email already registered") from e
    await db.refresh(user)

    logger.info("User registered: %s", user.id)
    return _user_out(user)


@router.post("/login", response_model=Token)
async def login(creds: UserLogin, db: AsyncSession = Depends(get_session)):
    result = await db.execute(select(models.User).where(models.User.email == creds.email.lower()))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(creds.password, user.password_hash):
        logger.warning("Failed login attempt for %s", creds.email)
        raise AuthenticationError("Incorrect email or password")

    logger.info("User logged in: %s", user.id)
    return Token(
        access_token=create_access_token(user),
        expires_in=settings.access_token_expire_minutes * 60,
    )


@router.get("/me", response_model=UserOut)
async def me(user: models.User = Depends(get_current_user)):
    return _user_out(user)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(
    user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Delete the account. Favorites go with it; past conversions are kept anonymously."""
    await db.delete(user)
    await db.commit()
    logger.info("User deleted: %s", user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
