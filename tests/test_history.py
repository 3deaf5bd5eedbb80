import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

import models
from database import SessionLocal
from services.history import record_quotes, summarize_quotes


def _convert(client, make_quote, headers=None, amount=1):
    with patch("services.awesomeapi.fetch_quotes", AsyncMock(return_value={"USD-BRL": make_quote("USD-BRL", 5.0)})):
        resp = client.get("/converter", params={"from": "USD", "to": "BRL", "amount": amount}, headers=headers)
    assert resp.status_code == 200


async def _insert_quotes(symbol: str, values: list[tuple[datetime, float]]):
    async with SessionLocal() as session:
        session.add_all(models.QuoteHistory(symbol=symbol, value=v, recorded_at=ts) for ts, v in values)
        await session.commit()


def test_own_conversions_only(client, user_headers, make_quote):
    _convert(client, make_quote, user_headers, amount=1)
    _convert(client, make_quote, user_headers, amount=2)
    _convert(client, make_quote, None, amount=3)

    page = client.get("/historico/conversoes", headers=user_headers).json()

    assert page["total"] == 2
    assert [item["amount"] for item in page["items"]] == [2, 1]
    assert page["next_offset"] is None


def test_own_conversions_require_auth(client):
    assert client.get("/historico/conversoes").status_code == 401


def test_admin_endpoints_forbidden_for_regular_users(client, user_headers):
    assert client.get("/admin/historico/conversoes", headers=user_headers).status_code == 403
    assert client.get("/admin/historico/cotacoes", headers=user_headers).status_code == 403
    assert client.get("/admin/historico/cotacoes/USD-BRL/resumo", headers=user_headers).status_code == 403


def test_admin_sees_all_conversions_paginated(client, admin_headers, user_headers, make_quote):
    for amount in range(1, 6):
        _convert(client, make_quote, user_headers if amount % 2 else None, amount=amount)

    first = client.get("/admin/historico/conversoes", params={"limit": 2}, headers=admin_headers).json()
    second = client.get("/admin/historico/conversoes", params={"offset": 2, "limit": 2}, headers=admin_headers).json()

    assert first["total"] == 5
    assert [i["amount"] for i in first["items"]] == [5, 4]
    assert [i["amount"] for i in second["items"]] == [3, 2]
    assert first["next_offset"] == 2
    assert second["next_offset"] == 4


def test_admin_quote_history_filter(client, admin_headers, make_quote):
    asyncio.run(record_quotes([make_quote("USD-BRL", 5.0), make_quote("EUR-BRL", 6.0)]))
    asyncio.run(record_quotes([make_quote("USD-BRL", 5.1)]))

    page = client.get("/admin/historico/cotacoes", params={"symbol": "usd-brl"}, headers=admin_headers).json()

    assert page["total"] == 2
    assert [i["value"] for i in page["items"]] == [5.1, 5.0]


def test_admin_quote_summary(client, admin_headers):
    now = datetime.now(timezone.utc).replace(hour=12, minute=0, second=0, microsecond=0)
    yesterday = now - timedelta(days=1)
    asyncio.run(
        _insert_quotes(
            "USD-BRL",
            [(yesterday, 5.0), (yesterday + timedelta(hours=1), 5.2), (now - timedelta(hours=2), 5.1), (now - timedelta(hours=1), 5.5)],
        )
    )
    asyncio.run(_insert_quotes("USD-BRL", [(now - timedelta(days=90), 9.9)]))

    resp = client.get("/admin/historico/cotacoes/usd-brl/resumo", params={"days": 7}, headers=admin_headers)
    summary = resp.json()

    assert resp.status_code == 200
    assert summary["symbol"] == "USD-BRL"
    assert summary["count"] == 4
    assert summary["first"] == 5.0
    assert summary["last"] == 5.5
    assert summary["max"] == 5.5
    assert summary["change_pct"] == 10.0
    assert [d["samples"] for d in summary["daily"]] == [2, 2]
    assert summary["daily"][0]["open"] == 5.0
    assert summary["daily"][0]["close"] == 5.2


def test_summary_of_empty_series():
    assert summarize_quotes("USD-BRL", []) == {"symbol": "USD-BRL", "count": 0, "first": None, "last": None, "daily": []}


def test_summary_skips_days_without_samples():
    day = datetime(2026, 10, 1, 9, tzinfo=timezone.utc)
    records = [
        {"recorded_at": day + timedelta(days=3), "value": 4.0},
        {"recorded_at": day, "value": 2.0},
    ]

    summary = summarize_quotes("EUR-BRL", records)

    assert [d["date"] for d in summary["daily"]] == ["2026-10-01", "2026-10-04"]
    assert summary["mean"] == pytest.approx(3.0)
    assert summary["change_pct"] == 100.0


def test_record_quotes_ignores_quotes_without_value(make_quote):
    quote = make_quote("USD-BRL", 5.0)
    quote["bid"] = None
    assert asyncio.run(record_quotes([quote])) == 0
