"""Currency routes.

GET /cotacoes   → aggregated quotes for a symbol set (cached QUOTES_TTL_SECONDS)
GET /converter  → amount × latest rate, optionally recorded to history
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from auth import get_optional_user_id
from config import settings
from services.converter import convert
from services.history import record_conversion
from services.quotes import get_quotes, parse_symbols

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Cotações"])


@router.get("/cotacoes")
async def quotes(
    background_tasks: BackgroundTasks,
    symbols: str | None = Query(None, description="Comma-separated pairs, e.g. USD-BRL,EUR-BRL"),
) -> dict:
    """Latest quotes for each pair. Stale values are flagged when providers are down.

    Live fetches are written to quote history after the response is sent.
    """
    return await get_quotes(parse_symbols(symbols), background_tasks)


@router.get("/converter")
async def converter(
    background_tasks: BackgroundTasks,
    source: str = Query(..., alias="from", description="ISO code, e.g. USD"),
    target: str = Query(..., alias="to", description="ISO code, e.g. BRL"),
    amount: float = Query(..., gt=0),
    user_id: int | None = Depends(get_optional_user_id),
) -> dict:
    """Convert ``amount`` from one currency to another using the latest cached rate."""
    result = await convert(amount, source, target, background_tasks)

    if settings.history_enabled:
        background_tasks.add_task(record_conversion, result, user_id)

    logger.info("Converted %s %s → %s", amount, result["from"], result["to"])
    return result
