"""NewsAPI client with local offset/limit pagination.

The whole result set for a query is fetched once per TTL window, normalized,
de-duplicated and sorted newest first. Pages are slices of that one list, so
consecutive pages never overlap and together cover every article.
"""

import logging
from datetime import datetime, timezone

import httpx

from config import settings
from errors import InvalidParameterError, NotConfiguredError, ProviderError
from services.cache import cache

logger = logging.getLogger(__name__)

PROVIDER = "newsapi"
PAGE_SIZE = 100
MAX_LIMIT = 100


def _normalize(raw: dict) -> dict | None:
    url = raw.get("url")
    title = (raw.get("title") or "").strip()
    if not url or not title or title == "[Removed]":
        return None
    return {
        "title": title,
        "source": (raw.get("source") or {}).get("name"),
        "url": url,
        "description": raw.get("description"),
        "image_url": raw.get("urlToImage"),
        "published_at": raw.get("publishedAt") or "",
    }


def order_articles(articles: list[dict]) -> list[dict]:
    """Drop duplicate URLs and sort newest first, URL as tie-breaker."""
    unique: dict[str, dict] = {}
    for article in articles:
        unique.setdefault(article["url"], article)
    by_url = sorted(unique.values(), key=lambda a: a["url"])
    return sorted(by_url, key=lambda a: a["published_at"], reverse=True)


async def _fetch_articles(client: httpx.AsyncClient, query: str) -> list[dict]:
    try:
        resp = await client.get(
            f"{settings.news_api_url}/everything",
            params={
                "q": query,
                "language": settings.news_language,
                "sortBy": "publishedAt",
                "pageSize": PAGE_SIZE,
            },
            headers={"X-Api-Key": settings.news_api_key},
        )
        resp.raise_for_status()
        data = resp.json()
    except httpx.HTTPError as e:
        logger.warning("NewsAPI fetch failed for %r: %s", query, e)
        raise ProviderError(PROVIDER, str(e)) from e
    except ValueError as e:
        raise ProviderError(PROVIDER, f"invalid JSON: {e}") from e

    if data.get("status") != "ok":
        raise ProviderError(PROVIDER, data.get("message", "unexpected response"))

    normalized = (_normalize(a) for a in data.get("articles", []))
    return order_articles([a for a in normalized if a])


async def get_articles(query: str | None = None) -> tuple[list[dict], bool]:
    """Return (ordered articles, stale) for a query."""
    query = (query or "").strip() or settings.news_query
    key = f"news:{query.lower()}"

    cached = await cache.get(key)
    if cached is not None:
        return cached, False

    if not settings.news_api_key:
        raise NotConfiguredError("NEWS_API_KEY")

    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
            articles = await _fetch_articles(client, query)
    except ProviderError:
        stale = await cache.get_stale(key)
        if stale is not None:
            logger.warning("Serving stale news for %r", query)
            return stale, True
        raise

    await cache.set(key, articles, ttl_seconds=settings.news_ttl)
    return articles, False


def paginate(articles: list[dict], offset: int, limit: int) -> dict:
    if offset < 0:
        raise InvalidParameterError("offset must be >= 0")
    if not 1 <= limit <= MAX_LIMIT:
        raise InvalidParameterError(f"limit must be between 1 and {MAX_LIMIT}")

    total = len(articles)
    end = offset + limit
    return {
        "total": total,
        "offset": offset,
        "limit": limit,
        "next_offset": end if end < total else None,
        "items": articles[offset:end],
    }


async def get_news(query: str | None = None, offset: int = 0, limit: int = 10) -> dict:
    articles, stale = await get_articles(query)
    page = paginate(articles, offset, limit)
    page["stale"] = stale
    page["timestamp"] = datetime.now(timezone.utc).isoformat()
    return page
