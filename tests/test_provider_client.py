from __future__ import annotations

import httpx
import pytest

from hotel_intel.services import (
    InvalidCredential,
    PriceProviderClient,
    QuotaExhausted,
    TransientFetchError,
)
from hotel_intel.services.provider_client import AccountStatus, checkout_for, classify_error


def _client(handler) -> PriceProviderClient:
    transport = httpx.MockTransport(handler)
    return PriceProviderClient(
        base_url="https://provider.test/city",
        account_url="https://provider.test/account",
        params={"cityid": "42424", "cur": "USD", "rooms": "1", "adults": "2", "api_key": "secret"},
        client=httpx.AsyncClient(transport=transport),
    )


def test_checkout_is_next_day():
    assert checkout_for("2026-05-31") == "2026-06-01"
    assert checkout_for("2026-12-31") == "2027-01-01"


def test_classify_error_taxonomy():
    assert isinstance(classify_error(403, "Forbidden"), QuotaExhausted)
    assert isinstance(classify_error(429, "Monthly quota exceeded"), QuotaExhausted)
    assert isinstance(classify_error(401, "Unauthorized"), InvalidCredential)
    assert isinstance(classify_error(404, "Invalid API key"), InvalidCredential)
    assert isinstance(classify_error(404, "Not found"), TransientFetchError)
    assert isinstance(classify_error(500, "boom"), TransientFetchError)
    assert isinstance(classify_error(429, "slow down"), TransientFetchError)


@pytest.mark.asyncio
async def test_fetch_page_sends_query_and_normalises():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json=[
                {"name": "Riviera Motel", "hotelId": 1, "price1": "$92", "vendor1": "Expedia"},
                {"name": "Other Inn", "hotelId": 2, "price1": "$100", "vendor1": "Agoda"},
                [{"totalpageCount": 2}, {"totalHotelCount": 45}],
            ],
        )

    client = _client(handler)
    try:
        result = await client.fetch_page("2026-05-02", page=1)
    finally:
        await client._client.aclose()

    params = seen[0].url.params
    assert params["checkin"] == "2026-05-02"
    assert params["checkout"] == "2026-05-03"
    assert params["pagination"] == "1"
    assert params["cityid"] == "42424"
    assert params["api_key"] == "secret"
    assert [quote.price for quote in result.quotes] == [92.0, 100.0]
    assert result.pagination is not None and result.pagination.total_pages == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "body", "expected"),
    [
        (403, {"error": "Forbidden"}, QuotaExhausted),
        (401, {"message": "bad key"}, InvalidCredential),
        (502, {"error": "upstream"}, TransientFetchError),
    ],
)
async def test_fetch_page_classifies_http_errors(status, body, expected):
    client = _client(lambda request: httpx.Response(status, json=body))
    try:
        with pytest.raises(expected):
            await client.fetch_page("2026-05-01")
    finally:
        await client._client.aclose()


@pytest.mark.asyncio
async def test_fetch_page_classifies_error_bodies():
    client = _client(lambda request: httpx.Response(200, json={"error": "API limit reached for this month"}))
    try:
        with pytest.raises(QuotaExhausted) as excinfo:
            await client.fetch_page("2026-05-01")
    finally:
        await client._client.aclose()
    assert excinfo.value.reason == "quota-reached"


@pytest.mark.asyncio
async def test_transport_failures_are_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    try:
        with pytest.raises(TransientFetchError):
            await client.fetch_page("2026-05-01")
    finally:
        await client._client.aclose()


@pytest.mark.asyncio
async def test_account_status_parses_usage():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/account"
        return httpx.Response(200, json={"planLimit": 500, "used": 494, "plan": "Basic"})

    client = _client(handler)
    try:
        status = await client.fetch_account_status()
    finally:
        await client._client.aclose()

    assert status == AccountStatus(plan_limit=500, used=494, remaining=6, plan_name="Basic")
