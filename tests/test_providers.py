import asyncio

import httpx
import pytest

from errors import ProviderError
from services import awesomeapi, indices, news, open_er

AWESOME_USD = {
    "code": "USD",
    "codein": "BRL",
    "name": "Dólar Americano/Real Brasileiro",
    "high": "5.4512",
    "low": "5.3987",
    "varBid": "0.0123",
    "pctChange": "0.23",
    "bid": "5.4321",
    "ask": "5.4331",
    "timestamp": "1792411200",
    "create_date": "2026-10-19 12:00:00",
}


def test_awesomeapi_normalizes_quotes(mock_http):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json={"USDBRL": AWESOME_USD})

    mock_http(handler)
    quotes = asyncio.run(awesomeapi.fetch_quotes(["USD-BRL"]))

    assert seen == ["/json/last/USD-BRL"]
    quote = quotes["USD-BRL"]
    assert quote["bid"] == 5.4321
    assert quote["ask"] == 5.4331
    assert quote["change_pct"] == 0.23
    assert quote["base"] == "USD"
    assert quote["quote"] == "BRL"
    assert quote["provider"] == "awesomeapi"
    assert quote["timestamp"].startswith("2026-")


def test_awesomeapi_retries_pair_by_pair_after_batch_404(mock_http):
    def handler(request: httpx.Request) -> httpx.Response:
        pairs = request.url.path.rsplit("/", 1)[-1]
        if pairs == "USD-BRL":
            return httpx.Response(200, json={"USDBRL": AWESOME_USD})
        return httpx.Response(404, json={"status": 404, "code": "CoinNotExists"})

    mock_http(handler)
    quotes = asyncio.run(awesomeapi.fetch_quotes(["USD-BRL", "XYZ-BRL"]))

    assert list(quotes) == ["USD-BRL"]


def test_awesomeapi_single_unknown_pair_is_empty(mock_http):
    mock_http(lambda request: httpx.Response(404, json={"status": 404}))
    assert asyncio.run(awesomeapi.fetch_quotes(["XYZ-BRL"])) == {}


def test_awesomeapi_server_error_raises_provider_error(mock_http):
    mock_http(lambda request: httpx.Response(503, text="maintenance"))
    with pytest.raises(ProviderError):
        asyncio.run(awesomeapi.fetch_quotes(["USD-BRL"]))


def test_open_er_prices_pairs_per_base(mock_http):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        base = request.url.path.rsplit("/", 1)[-1]
        calls.append(base)
        if base == "USD":
            return httpx.Response(
                200,
                json={"result": "success", "base_code": "USD", "time_last_update_unix": 1792368000,
                      "rates": {"BRL": 5.41, "ARS": 980.5}},
            )
        return httpx.Response(404, json={"result": "error", "error-type": "unsupported-code"})

    mock_http(handler)
    quotes = asyncio.run(open_er.fetch_quotes(["USD-BRL", "USD-ARS", "USD-XYZ", "XYZ-BRL"]))

    assert sorted(calls) == ["USD", "XYZ"]
    assert quotes["USD-BRL"]["bid"] == 5.41
    assert quotes["USD-ARS"]["bid"] == 980.5
    assert quotes["USD-BRL"]["change_pct"] is None
    assert "USD-XYZ" not in quotes
    assert "XYZ-BRL" not in quotes


def test_sgs_series_parsed():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["formato"] == "json"
        return httpx.Response(200, json=[{"data": "17/10/2026", "valor": "10.50"}])

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await indices._fetch_series(client, "SELIC")

    result = asyncio.run(run())
    assert result == {"code": "SELIC", "name": "Taxa Selic (meta)", "value": 10.5, "unit": "% a.a.", "date": "2026-10-17"}


@pytest.mark.parametrize(
    "response",
    [httpx.Response(500), httpx.Response(200, json=[]), httpx.Response(200, json=[{"data": "x", "valor": "y"}])],
)
def test_sgs_failures_return_none(response):
    async def run():
        transport = httpx.MockTransport(lambda request: response)
        async with httpx.AsyncClient(transport=transport) as client:
            return await indices._fetch_series(client, "IPCA")

    assert asyncio.run(run()) is None


def test_newsapi_articles_normalized_and_ordered():
    payload = {
        "status": "ok",
        "totalResults": 4,
        "articles": [
            {"source": {"name": "Valor"}, "title": "Dólar cai", "url": "https://a/1", "publishedAt": "2026-10-18T10:00:00Z"},
            {"source": {"name": "InfoMoney"}, "title": "Selic mantida", "url": "https://a/2", "publishedAt": "2026-10-19T09:00:00Z",
             "urlToImage": "https://img/2"},
            {"source": {"name": "Valor"}, "title": "Dólar cai", "url": "https://a/1", "publishedAt": "2026-10-18T10:00:00Z"},
            {"source": {"name": None}, "title": "[Removed]", "url": "https://removed.com", "publishedAt": "2026-10-19T11:00:00Z"},
        ],
    }

    async def run():
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["X-Api-Key"] == "test-key"
            assert request.url.params["sortBy"] == "publishedAt"
            return httpx.Response(200, json=payload)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await news._fetch_articles(client, "selic")

    articles = asyncio.run(run())
    assert [a["url"] for a in articles] == ["https://a/2", "https://a/1"]
    assert articles[0]["source"] == "InfoMoney"
    assert articles[0]["image_url"] == "https://img/2"


def test_newsapi_error_status_raises():
    async def run():
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"status": "error", "message": "apiKeyInvalid"})
        )
        async with httpx.AsyncClient(transport=transport) as client:
            return await news._fetch_articles(client, "selic")

    with pytest.raises(ProviderError, match="apiKeyInvalid"):
        asyncio.run(run())
