"""Banco Central do Brasil SGS client for economic indices.

Free API, no key required. Each series is a separate request returning the
latest observation: [{"data": "18/10/2026", "valor": "10.40"}]
"""

import asyncio
import logging
from datetime import datetime, timezone

import httpx

from config import settings
from errors import InvalidParameterError, ProviderError
from services.cache import cache

logger = logging.getLogger(__name__)

PROVIDER = "bcb-sgs"

# code → (SGS series id, display name, unit)
SERIES = {
    "SELIC": (432, "Taxa Selic (meta)", "% a.a."),
    "CDI": (4389, "CDI anualizado", "% a.a."),
    "IPCA": (433, "IPCA mensal", "% a.m."),
    "IGPM": (189, "IGP-M mensal", "% a.m."),
}


def parse_codes(raw: str | None) -> list[str]:
    if not raw or not raw.strip():
        return list(SERIES)
    codes = []
    for part in raw.split(","):
        code = part.strip().upper().replace("-", "")
        if not code:
            continue
        if code not in SERIES:
            raise InvalidParameterError(f"Unknown index: {part.strip()}. Supported: {sorted(SERIES)}")
        if code not in codes:
            codes.append(code)
    return codes or list(SERIES)


async def _fetch_series(client: httpx.AsyncClient, code: str) -> dict | None:
    """Fetch the latest value of one series. Returns detail dict or None on failure."""
    series_id, name, unit = SERIES[code]
    try:
        resp = await client.get(
            f"{settings.indices_api_url}/bcdata.sgs.{series_id}/dados/ultimos/1",
            params={"formato": "json"},
        )
        resp.raise_for_status()
        latest = resp.json()[-1]
        value = float(str(latest["valor"]).replace(",", "."))
        date = datetime.strptime(latest["data"], "%d/%m/%Y").date().isoformat()
    except httpx.HTTPError as e:
        logger.warning("SGS fetch failed for %s: %s", code, e)
        return None
    except (ValueError, KeyError, IndexError, TypeError) as e:
        logger.warning("SGS returned unexpected payload for %s: %s", code, e)
        return None

    return {"code": code, "name": name, "value": value, "unit": unit, "date": date}


async def get_indices(codes: list[str]) -> dict:
    """Latest value of each requested index, cached for INDICES_TTL_SECONDS."""
    key = "indices:" + ",".join(sorted(codes))
    cached = await cache.get(key)
    if cached:
        return {**cached, "source": "cache"}

    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        results = await asyncio.gather(*[_fetch_series(client, code) for code in codes])

    indices = [r for r in results if r is not None]
    if not indices:
        stale = await cache.get_stale(key)
        if stale:
            logger.warning("Serving stale indices for %s", codes)
            return {**stale, "stale": True, "source": "stale"}
        raise ProviderError(PROVIDER, "no series could be fetched")

    result = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "stale": False,
        "source": "live",
        "indices": indices,
        "missing": [code for code in codes if code not in {i["code"] for i in indices}],
    }
    # Partial results get a short TTL so missing series are retried soon
    ttl = settings.indices_ttl if not result["missing"] else settings.quotes_ttl
    await cache.set(key, result, ttl_seconds=ttl)
    return result
