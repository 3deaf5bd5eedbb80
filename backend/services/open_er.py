"""open.er-api.com client — fallback fiat rates for pairs the primary provider lacks.

Free API, no key required. One request per base currency returns rates for
every supported quote currency. Daily granularity, so no bid/ask spread,
high/low or change.
"""

import asyncio
import logging
from datetime import datetime, timezone

import httpx

from config import settings
from errors import ProviderError

logger = logging.getLogger(__name__)

PROVIDER = "open.er-api"


async def _fetch_base(client: httpx.AsyncClient, base: str) -> dict | None:
    """Fetch all rates for one base currency. Returns None when the base is unsupported."""
    try:
        resp = await client.get(f"{settings.fallback_rates_api_url}/latest/{base}")
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        data = resp.json()
    except httpx.HTTPError as e:
        logger.warning("open.er-api fetch failed for %s: %s", base, e)
        raise ProviderError(PROVIDER, str(e)) from e
    except ValueError as e:
        raise ProviderError(PROVIDER, f"invalid JSON: {e}") from e

    if data.get("result") != "success":
        logger.info("open.er-api has no rates for %s: %s", base, data.get("error-type"))
        return None
    return data


def _quote_from(symbol: str, data: dict) -> dict | None:
    base, quote = symbol.split("-")
    rate = data.get("rates", {}).get(quote)
    if rate is None:
        return None

    updated = data.get("time_last_update_unix")
    ts = (
        datetime.fromtimestamp(int(updated), tz=timezone.utc)
        if updated
        else datetime.now(timezone.utc)
    )
    rate = round(float(rate), 6)
    return {
        "symbol": symbol,
        "base": base,
        "quote": quote,
        "name": None,
        "bid": rate,
        "ask": rate,
        "high": None,
        "low": None,
        "change_pct": None,
        "timestamp": ts.isoformat(),
        "provider": PROVIDER,
    }


async def fetch_quotes(symbols: list[str]) -> dict[str, dict]:
    """Return {symbol: quote} for the pairs this provider can price."""
    bases = sorted({s.split("-")[0] for s in symbols})

    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        results = await asyncio.gather(*[_fetch_base(client, b) for b in bases])

    by_base = dict(zip(bases, results))
    quotes = {}
    for symbol in symbols:
        data = by_base.get(symbol.split("-")[0])
        if data:
            quote = _quote_from(symbol, data)
            if quote:
                quotes[symbol] = quote
    return quotes
