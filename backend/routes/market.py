"""Market context routes — economic indices and financial news."""

import logging

from fastapi import APIRouter, Query

from services.indices import get_indices, parse_codes
from services.news import MAX_LIMIT, get_news

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Mercado"])


@router.get("/indices")
async def indices(
    codes: str | None = Query(None, description="Comma-separated, e.g. SELIC,IPCA"),
) -> dict:
    """Latest value of Brazilian economic indices (Banco Central SGS)."""
    return await get_indices(parse_codes(codes))


@router.get("/noticias")
async def news(
    q: str | None = Query(None, max_length=200),
    offset: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
) -> dict:
    """Financial news, newest first, paginated with offset/limit."""
    return await get_news(q, offset=offset, limit=limit)
