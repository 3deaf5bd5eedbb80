"""AwesomeAPI client — primary source for fiat and crypto quotes.

Free tier works without a key; QUOTES_API_KEY raises the request quota.
Endpoint: GET /json/last/USD-BRL,EUR-BRL → {"USDBRL": {...}, "EURBRL": {...}}
An unknown pair anywhere in the list makes the whole request 404.
"""

import asyncio
import logging
from datetime import datetime, timezone

import httpx

from config import settings
from errors import ProviderError

logger = logging.getLogger(__name__)

PROVIDER = "awesomeapi"


class UnknownPairs(Exception):
    """Raised when the provider answers 404 for the requested pairs."""


def _to_float(value) -> float | None:
    try:
        return round(float(value), 6)
    except (TypeError, ValueError):
        return None


def _normalize(symbol: str, raw: dict) -> dict:
    try:
        ts = datetime.fromtimestamp(int(raw["timestamp"]), tz=timezone.utc).isoformat()
    except (KeyError, TypeError, ValueError):
        ts = datetime.now(timezone.utc).isoformat()

    base, quote = symbol.split("-")
    return {
        "symbol": symbol,
        "base": base,
        "quote": quote,
        "name": raw.get("name"),
        "bid": _to_float(raw.get("bid")),
        "ask": _to_float(raw.get("ask")),
        "high": _to_float(raw.get("high")),
        "low": _to_float(raw.get("low")),
        "change_pct": _to_float(raw.get("pctChange")),
        "timestamp": ts,
        "provider": PROVIDER,
    }


async def _fetch_pairs(client: httpx.AsyncClient, symbols: list[str]) -> dict[str, dict]:
    """Fetch one batch. Raises UnknownPairs on 404, ProviderError on any other failure."""
    params = {"token": settings.quotes_api_key} if settings.quotes_api_key else None
    try:
        resp = await client.get(
            f"{settings.quotes_api_url}/json/last/{','.join(symbols)}",
            params=params,
        )
        if resp.status_code == 404:
            raise UnknownPairs(symbols)
        resp.raise_for_status()
        data = resp.json()
    except httpx.HTTPError as e:
        logger.warning("AwesomeAPI fetch failed for %s: %s", symbols, e)
        raise ProviderError(PROVIDER, str(e)) from e
    except ValueError as e:
        raise ProviderError(PROVIDER, f"invalid JSON: {e}") from e

    quotes = {}
    for symbol in symbols:
        raw = data.get(symbol.replace("-", ""))
        if raw and _to_float(raw.get("bid")) is not None:
            quotes[symbol] = _normalize(symbol, raw)
    return quotes


async def _fetch_each(client: httpx.AsyncClient, symbols: list[str]) -> dict[str, dict]:
    """Request pairs one at a time so a single unknown pair doesn't hide the others."""

    async def one(symbol: str) -> dict[str, dict]:
        try:
            return await _fetch_pairs(client, [symbol])
        except UnknownPairs:
            return {}

    results = await asyncio.gather(*[one(s) for s in symbols])
    merged: dict[str, dict] = {}
    for result in results:
        merged.update(result)
    return merged


async def fetch_quotes(symbols: list[str]) -> dict[str, dict]:
    """Return {symbol: quote} for every pair the provider knows. Unknown pairs are omitted."""
    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        try:
            return await _fetch_pairs(client, symbols)
        except UnknownPairs:
            if len(symbols) == 1:
                return {}
            logger.info("AwesomeAPI rejected batch %s, retrying pair by pair", symbols)
            return await _fetch_each(client, symbols)
