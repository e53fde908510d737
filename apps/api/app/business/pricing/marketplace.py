"""Product lookup client for marketplace listings."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from app.core.config import get_settings
from app.core.errors import InvalidInput

logger = logging.getLogger("app.pricing")

_ASIN_PATTERNS = (
    re.compile(r"/dp/([A-Z0-9]{10})", re.IGNORECASE),
    re.compile(r"/gp/product/([A-Z0-9]{10})", re.IGNORECASE),
    re.compile(r"/exec/obidos/ASIN/([A-Z0-9]{10})", re.IGNORECASE),
    re.compile(r"/product/([A-Z0-9]{10})", re.IGNORECASE),
    re.compile(r"[?&]asin=([A-Z0-9]{10})", re.IGNORECASE),
)


class MarketplaceLookupError(RuntimeError):
    """Raised when the lookup service cannot be reached or answers garbage."""


@dataclass(frozen=True, slots=True)
class MarketplaceProduct:
    asin: str
    title: str
    price: Decimal
    currency: str


def extract_asin(url: str) -> str | None:
    for pattern in _ASIN_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1).upper()
    return None


class MarketplaceLookupClient:
    """Synchronous client for the product lookup service.

    The service answers ``GET /products/{asin}`` with ``{title, price, currency}``
    and 404 when it does not know the product.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.marketplace_lookup_url or "").rstrip("/")
        self._timeout = timeout if timeout is not None else settings.marketplace_lookup_timeout_seconds
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._base_url)

    def lookup(self, product_url: str) -> MarketplaceProduct | None:
        asin = extract_asin(product_url)
        if asin is None:
            raise InvalidInput("product URL does not contain a recognisable ASIN")
        if not self.configured:
            raise MarketplaceLookupError("marketplace lookup service is not configured")

        try:
            with httpx.Client(base_url=self._base_url, timeout=self._timeout, transport=self._transport) as client:
                response = client.get(f"/products/{asin}")
        except httpx.HTTPError as exc:
            raise MarketplaceLookupError(f"marketplace lookup failed: {exc}") from exc

        if response.status_code == httpx.codes.NOT_FOUND:
            logger.info("pricing.marketplace_lookup_miss", extra={"entity_id": asin})
            return None
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise MarketplaceLookupError(f"marketplace lookup failed: {exc}") from exc

        return self._parse(asin, response.json())

    @staticmethod
    def _parse(asin: str, payload: Any) -> MarketplaceProduct | None:
        if not isinstance(payload, dict) or payload.get("price") in (None, ""):
            return None
        try:
            price = Decimal(str(payload["price"]))
        except InvalidOperation as exc:
            raise MarketplaceLookupError(f"marketplace lookup returned an invalid price for {asin}") from exc
        return MarketplaceProduct(
            asin=asin,
            title=str(payload.get("title") or asin),
            price=price,
            currency=str(payload.get("currency") or "USD"),
        )
