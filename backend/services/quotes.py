"""Quote aggregator — merges providers into one response shape behind the TTL cache.

AwesomeAPI is asked first; pairs it doesn't return go to open.er-api.
Results are cached per requested symbol set and per individual pair, so the
converter can reuse any rate that was fetched recently.
"""

import logging
import re
from datetime import datetime, timezone

from fastapi import BackgroundTasks

from config import settings
from errors import InvalidCurrencyError, InvalidParameterError, ProviderError, UnknownCurrencyError
from services import awesomeapi, open_er
from services.cache import cache
from services.history import record_quotes

logger = logging.getLogger(__name__)

CURRENCY_RE = re.compile(r"^[A-Z]{3}$")
PAIR_RE = re.compile(r"^[A-Z]{3}-[A-Z]{3}$")
MAX_SYMBOLS = 20


def normalize_currency(code: str) -> str:
    code = (code or "").strip().upper()
    if not CURRENCY_RE.match(code):
        raise InvalidCurrencyError(code)
    return code


def normalize_pair(symbol: str) -> str:
    symbol = (symbol or "").strip().upper()
    if not PAIR_RE.match(symbol):
        raise InvalidCurrencyError(symbol)
    return symbol


def parse_symbols(raw: str | None) -> list[str]:
    """Parse a comma-separated symbol list, keeping request order and dropping duplicates."""
    if not raw or not raw.strip():
        return list(settings.default_symbols)

    symbols: list[str] = []
    for part in raw.split(","):
        if not part.strip():
            continue
        symbol = normalize_pair(part)
        if symbol not in symbols:
            symbols.append(symbol)

    if not symbols:
        return list(settings.default_symbols)
    if len(symbols) > MAX_SYMBOLS:
        raise InvalidParameterError(f"At most {MAX_SYMBOLS} symbols per request")
    return symbols


def _set_key(symbols: list[str]) -> str:
    return "quotes:" + ",".join(sorted(symbols))


def _rate_key(symbol: str) -> str:
    return f"rate:{symbol}"


def _compose(symbols: list[str], quotes: dict[str, dict], stale: bool, source: str) -> dict:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "stale": stale,
        "source": source,
        "quotes": [quotes[s] for s in symbols if s in quotes],
        "missing": [s for s in symbols if s not in quotes],
    }


async def _fetch(symbols: list[str]) -> tuple[dict[str, dict], list[ProviderError]]:
    quotes: dict[str, dict] = {}
    errors: list[ProviderError] = []

    try:
        quotes.update(await awesomeapi.fetch_quotes(symbols))
    except ProviderError as e:
        errors.append(e)

    remaining = [s for s in symbols if s not in quotes]
    if remaining:
        try:
            quotes.update(await open_er.fetch_quotes(remaining))
        except ProviderError as e:
            errors.append(e)

    return quotes, errors


async def _stale_pairs(symbols: list[str]) -> dict[str, dict]:
    found = {}
    for symbol in symbols:
        quote = await cache.get_stale(_rate_key(symbol))
        if quote:
            found[symbol] = quote
    return found


def _reorder(symbols: list[str], entry: dict, stale: bool, source: str) -> dict:
    """Lay a cached result out in this request's symbol order."""
    by_symbol = {q["symbol"]: q for q in entry["quotes"]}
    return {**_compose(symbols, by_symbol, stale=stale, source=source), "timestamp": entry["timestamp"]}


def _schedule_history(background_tasks: BackgroundTasks | None, result: dict) -> None:
    if background_tasks is not None and result["source"] == "live" and settings.history_enabled:
        background_tasks.add_task(record_quotes, result["quotes"])


async def get_quotes(symbols: list[str], background_tasks: BackgroundTasks | None = None) -> dict:
    """Get quotes for a symbol set, in the order requested.

    ``source`` is ``cache`` (fresh hit, no upstream call), ``live`` (just
    fetched) or ``stale`` (providers failed, last-known values served).
    Live results are written to quote history through ``background_tasks``.
    Raises UnknownCurrencyError when no provider knows any of the pairs and
    ProviderError when providers failed and nothing was cached before.
    """
    key = _set_key(symbols)
    cached = await cache.get(key)
    if cached:
        return _reorder(symbols, cached, stale=cached["stale"], source="cache")

    quotes, errors = await _fetch(symbols)

    if errors:
        missing = [s for s in symbols if s not in quotes]
        if not quotes:
            stale = await cache.get_stale(key)
            if stale:
                logger.warning("Serving stale quotes for %s: %s", symbols, errors[0])
                return _reorder(symbols, stale, stale=True, source="stale")
        recovered = await _stale_pairs(missing)
        if not quotes and not recovered:
            raise errors[0]
        if recovered:
            logger.warning("Serving stale quotes for %s: %s", sorted(recovered), errors[0])
        for symbol, quote in quotes.items():
            await cache.set(_rate_key(symbol), quote, ttl_seconds=settings.quotes_ttl)
        if recovered:
            if background_tasks is not None and settings.history_enabled:
                background_tasks.add_task(record_quotes, list(quotes.values()))
            quotes.update(recovered)
            return _compose(symbols, quotes, stale=True, source="stale")
        result = _compose(symbols, quotes, stale=False, source="live")
        _schedule_history(background_tasks, result)
        return result

    if not quotes:
        raise UnknownCurrencyError(symbols)

    for symbol, quote in quotes.items():
        await cache.set(_rate_key(symbol), quote, ttl_seconds=settings.quotes_ttl)

    result = _compose(symbols, quotes, stale=False, source="live")
    await cache.set(key, result, ttl_seconds=settings.quotes_ttl)
    _schedule_history(background_tasks, result)
    return result


async def _cached_rate(base: str, target: str) -> dict | None:
    direct = await cache.get(_rate_key(f"{base}-{target}"))
    if direct and direct.get("bid"):
        return {"rate": direct["bid"], "timestamp": direct["timestamp"], "stale": False, "source": "cache"}

    inverse = await cache.get(_rate_key(f"{target}-{base}"))
    if inverse and inverse.get("bid"):
        return {"rate": 1 / inverse["bid"], "timestamp": inverse["timestamp"], "stale": False, "source": "cache"}
    return None


async def get_rate(base: str, target: str, background_tasks: BackgroundTasks | None = None) -> dict:
    """Latest rate for base→target as {rate, timestamp, stale, source}.

    Uses any fresh cached pair (direct or inverse) before asking providers.
    Falls back to the inverse pair when the direct one is unknown.
    """
    if base == target:
        return {"rate": 1.0, "timestamp": datetime.now(timezone.utc).isoformat(), "stale": False, "source": "identity"}

    cached = await _cached_rate(base, target)
    if cached:
        return cached

    pair = f"{base}-{target}"
    inverse_pair = f"{target}-{base}"
    try:
        result = await get_quotes([pair], background_tasks)
        quote = result["quotes"][0]
        rate = quote["bid"]
    except UnknownCurrencyError:
        try:
            result = await get_quotes([inverse_pair], background_tasks)
        except UnknownCurrencyError:
            raise UnknownCurrencyError([pair]) from None
        quote = result["quotes"][0]
        if not quote["bid"]:
            raise ProviderError(quote["provider"], f"zero rate for {inverse_pair}")
        rate = 1 / quote["bid"]

    return {"rate": rate, "timestamp": quote["timestamp"], "stale": result["stale"], "source": result["source"]}
