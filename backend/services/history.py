"""Quote and conversion history: background writes, paginated reads, daily summaries.

Writes run after the response is sent, so they open their own session and
never fail the request that triggered them.
"""

import logging
from datetime import datetime, timedelta, timezone

import pandas as pd
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

import models
from database import SessionLocal

logger = logging.getLogger(__name__)


def _page(total: int, offset: int, limit: int, items: list) -> dict:
    end = offset + limit
    return {
        "total": total,
        "offset": offset,
        "limit": limit,
        "next_offset": end if end < total else None,
        "items": items,
    }


async def record_quotes(quotes: list[dict]) -> int:
    """Persist one quotes_history row per quote. Returns number of rows written."""
    rows = [
        models.QuoteHistory(
            symbol=q["symbol"],
            value=q["bid"],
            change_pct=q.get("change_pct"),
            recorded_at=datetime.now(timezone.utc),
        )
        for q in quotes
        if q.get("bid") is not None
    ]
    if not rows:
        return 0
    try:
        async with SessionLocal() as session:
            session.add_all(rows)
            await session.commit()
    except SQLAlchemyError as e:
        logger.error("Failed to record quote history: %s", e)
        return 0
    return len(rows)


async def record_conversion(conversion: dict, user_id: int | None = None) -> None:
    row = models.ConversionHistory(
        user_id=user_id,
        source_currency=conversion["from"],
        target_currency=conversion["to"],
        amount=conversion["amount"],
        rate=conversion["rate"],
        result=conversion["result"],
        created_at=datetime.now(timezone.utc),
    )
    try:
        async with SessionLocal() as session:
            session.add(row)
            await session.commit()
    except SQLAlchemyError as e:
        logger.error("Failed to record conversion: %s", e)


async def list_conversions(
    db: AsyncSession, offset: int, limit: int, user_id: int | None = None
) -> dict:
    query = select(models.ConversionHistory)
    count = select(func.count()).select_from(models.ConversionHistory)
    if user_id is not None:
        query = query.where(models.ConversionHistory.user_id == user_id)
        count = count.where(models.ConversionHistory.user_id == user_id)

    total = (await db.execute(count)).scalar_one()
    result = await db.execute(
        query.order_by(models.ConversionHistory.created_at.desc(), models.ConversionHistory.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return _page(total, offset, limit, list(result.scalars().all()))


async def list_quotes(db: AsyncSession, offset: int, limit: int, symbol: str | None = None) -> dict:
    query = select(models.QuoteHistory)
    count = select(func.count()).select_from(models.QuoteHistory)
    if symbol:
        query = query.where(models.QuoteHistory.symbol == symbol)
        count = count.where(models.QuoteHistory.symbol == symbol)

    total = (await db.execute(count)).scalar_one()
    result = await db.execute(
        query.order_by(models.QuoteHistory.recorded_at.desc(), models.QuoteHistory.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return _page(total, offset, limit, list(result.scalars().all()))


async def load_quote_series(db: AsyncSession, symbol: str, days: int) -> list[dict]:
    since = datetime.now(timezone.utc) - timedelta(days=days)
    result = await db.execute(
        select(models.QuoteHistory)
        .where(models.QuoteHistory.symbol == symbol, models.QuoteHistory.recorded_at >= since)
        .order_by(models.QuoteHistory.recorded_at, models.QuoteHistory.id)
    )
    return [
        {"recorded_at": row.recorded_at, "value": row.value}
        for row in result.scalars().all()
    ]


def summarize_quotes(symbol: str, records: list[dict]) -> dict:
    """Daily open/close/min/max/mean plus overall stats for a quote series.

    ``records`` are {"recorded_at": datetime, "value": float} in any order.
    """
    if not records:
        return {"symbol": symbol, "count": 0, "first": None, "last": None, "daily": []}

    df = pd.DataFrame(records)
    df["recorded_at"] = pd.to_datetime(df["recorded_at"], utc=True)
    df = df.sort_values("recorded_at").set_index("recorded_at")
    values = df["value"]

    daily = values.resample("D").agg(["first", "last", "min", "max", "mean", "count"]).dropna()

    first = float(values.iloc[0])
    last = float(values.iloc[-1])
    change_pct = round((last - first) / first * 100, 4) if first else None

    return {
        "symbol": symbol,
        "count": int(values.count()),
        "first": round(first, 6),
        "last": round(last, 6),
        "min": round(float(values.min()), 6),
        "max": round(float(values.max()), 6),
        "mean": round(float(values.mean()), 6),
        "change_pct": change_pct,
        "daily": [
            {
                "date": day.date().isoformat(),
                "open": round(float(row["first"]), 6),
                "close": round(float(row["last"]), 6),
                "min": round(float(row["min"]), 6),
                "max": round(float(row["max"]), 6),
                "mean": round(float(row["mean"]), 6),
                "samples": int(row["count"]),
            }
            for day, row in daily.iterrows()
        ],
    }
