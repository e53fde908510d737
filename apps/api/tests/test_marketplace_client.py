from __future__ import annotations

from decimal import Decimal

import httpx
import pytest

from app.business.pricing.marketplace import MarketplaceLookupClient, MarketplaceLookupError, extract_asin
from app.core.errors import InvalidInput


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://www.amazon.com/Echo-Dot/dp/B08N5WRWNW/ref=sr_1_1", "B08N5WRWNW"),
        ("https://www.amazon.com/gp/product/b07xj8c8f5?psc=1", "B07XJ8C8F5"),
        ("https://www.amazon.com/exec/obidos/ASIN/0596007973", "0596007973"),
        ("https://example.com/item?id=1&asin=B01N5IB20Q", "B01N5IB20Q"),
        ("https://example.com/product/B0000000AA", "B0000000AA"),
        ("https://example.com/item/42", None),
    ],
)
def test_extract_asin(url: str, expected: str | None) -> None:
    assert extract_asin(url) == expected


def test_lookup_parses_product_payload() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json={"title": "USB hub", "price": 24.99})

    client = MarketplaceLookupClient("http://lookup.test/", transport=httpx.MockTransport(handler))
    product = client.lookup("https://www.amazon.com/dp/B0000000AA")

    assert seen == ["/products/B0000000AA"]
    assert product is not None
    assert product.title == "USB hub"
    assert product.price == Decimal("24.99")
    assert product.currency == "USD"


def test_lookup_without_price_returns_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"title": "Unavailable item", "price": None})

    client = MarketplaceLookupClient("http://lookup.test", transport=httpx.MockTransport(handler))
    assert client.lookup("https://www.amazon.com/dp/B0000000AA") is None


def test_lookup_rejects_garbage_price() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"title": "Odd", "price": "call us"})

    client = MarketplaceLookupClient("http://lookup.test", transport=httpx.MockTransport(handler))
    with pytest.raises(MarketplaceLookupError):
        client.lookup("https://www.amazon.com/dp/B0000000AA")


def test_lookup_wraps_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = MarketplaceLookupClient("http://lookup.test", transport=httpx.MockTransport(handler))
    with pytest.raises(MarketplaceLookupError):
        client.lookup("https://www.amazon.com/dp/B0000000AA")


def test_unconfigured_client_refuses_lookup(monkeypatch: pytest.MonkeyPatch) -> None:
    from app.core.config import get_settings

    monkeypatch.delenv("MARKETPLACE_LOOKUP_URL", raising=False)
    get_settings.cache_clear()
    try:
        client = MarketplaceLookupClient()
        assert client.configured is False
        with pytest.raises(MarketplaceLookupError):
            client.lookup("https://www.amazon.com/dp/B0000000AA")
    finally:
        get_settings.cache_clear()


def test_url_without_asin_is_invalid_input() -> None:
    client = MarketplaceLookupClient("http://lookup.test")
    with pytest.raises(InvalidInput):
        client.lookup("https://www.amazon.com/best-sellers")
