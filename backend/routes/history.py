"""History routes — the caller's own conversions, plus admin views over all history."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

import models
from auth import get_current_user, require_admin
from database import get_session
from schemas import ConversionPage, QuoteHistoryPage
from services import history
from services.quotes import normalize_pair

router = APIRouter(tags=["Histórico"])

MAX_PAGE = 200


@router.get("/historico/conversoes", response_model=ConversionPage)
async def my_conversions(
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=MAX_PAGE),
    user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await history.list_conversions(db, offset, limit, user_id=user.id)


@router.get("/admin/historico/conversoes", response_model=ConversionPage)
async def all_conversions(
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=MAX_PAGE),
    _admin: models.User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    return await history.list_conversions(db, offset, limit)


@router.get("/admin/historico/cotacoes", response_model=QuoteHistoryPage)
async def quote_history(
    symbol: str | None = Query(None),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=MAX_PAGE),
    _admin: models.User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    return await history.list_quotes(db, offset, limit, symbol=normalize_pair(symbol) if symbol else None)


@router.get("/admin/historico/cotacoes/{symbol}/resumo")
async def quote_summary(
    symbol: str,
    days: int = Query(30, ge=1, le=365),
    _admin: models.User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict:
    """Daily summary of a symbol's recorded quotes over the last ``days`` days."""
    symbol = normalize_pair(symbol)
    records = await history.load_quote_series(db, symbol, days)
    summary = history.summarize_quotes(symbol, records)
    summary["days"] = days
    return summary
