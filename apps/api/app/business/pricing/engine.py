"""Pure price computation.

Every pipeline runs in the same fixed order: convert to the target currency,
apply tax, apply markup, and round once at the very end. Nothing in this
module touches the database or the clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal, InvalidOperation
from enum import StrEnum
from typing import Union

from app.core.errors import InvalidInput

Number = Union[Decimal, int, float, str]

HUNDRED = Decimal("100")
DEFAULT_TAX_RATE_PERCENT = Decimal("15")
MARKETPLACE_SURCHARGE_PERCENT = Decimal("7")
MARKETPLACE_TIER_THRESHOLD = Decimal("100")
MARKETPLACE_LOW_TIER_MARKUP = Decimal("80")
MARKETPLACE_HIGH_TIER_MARKUP = Decimal("120")
MAX_MARKUP_OVERRIDE = Decimal("500")


class RoundingMode(StrEnum):
    NONE = "none"
    NEAREST_INTEGER = "nearest-integer"
    NEAREST_HUNDRED = "nearest-hundred"
    UP_100 = "up-100"
    UP_1000 = "up-1000"
    UP_10000 = "up-10000"


_ROUND_UP_STEPS = {
    RoundingMode.UP_100: Decimal("100"),
    RoundingMode.UP_1000: Decimal("1000"),
    RoundingMode.UP_10000: Decimal("10000"),
}


@dataclass(frozen=True, slots=True)
class PriceBreakdown:
    cost: Decimal
    exchange_rate: Decimal
    tax_rate_percent: Decimal
    markup_percent: Decimal
    rounding_mode: RoundingMode
    converted_cost: Decimal
    cost_with_tax: Decimal
    selling_price: Decimal
    final_price: Decimal


@dataclass(frozen=True, slots=True)
class MarketplaceBreakdown:
    list_price: Decimal
    surcharge_percent: Decimal
    effective_cost: Decimal
    markup_percent: Decimal
    markup_overridden: bool
    selling_price_source: Decimal
    price: PriceBreakdown

    @property
    def final_price(self) -> Decimal:
        return self.price.final_price


def to_decimal(value: Number, field: str) -> Decimal:
    if isinstance(value, bool):
        raise InvalidInput(f"{field} must be a number")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidInput(f"{field} must be a number") from exc
    if not result.is_finite():
        raise InvalidInput(f"{field} must be finite")
    return result


def parse_rounding_mode(value: str | RoundingMode) -> RoundingMode:
    try:
        return RoundingMode(value)
    except ValueError as exc:
        allowed = ", ".join(mode.value for mode in RoundingMode)
        raise InvalidInput(f"unknown rounding mode '{value}' (expected one of: {allowed})") from exc


def apply_rounding(amount: Decimal, mode: str | RoundingMode) -> Decimal:
    rounding_mode = parse_rounding_mode(mode)
    if rounding_mode is RoundingMode.NONE:
        return amount
    if rounding_mode is RoundingMode.NEAREST_INTEGER:
        return amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    if rounding_mode is RoundingMode.NEAREST_HUNDRED:
        return (amount / HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP) * HUNDRED
    step = _ROUND_UP_STEPS[rounding_mode]
    return (amount / step).to_integral_value(rounding=ROUND_CEILING) * step


def price_breakdown(
    cost: Number,
    exchange_rate: Number,
    tax_rate_percent: Number,
    markup_percent: Number,
    rounding_mode: str | RoundingMode = RoundingMode.NONE,
) -> PriceBreakdown:
    cost_value = to_decimal(cost, "cost")
    rate = to_decimal(exchange_rate, "exchange_rate")
    tax = to_decimal(tax_rate_percent, "tax_rate_percent")
    markup = to_decimal(markup_percent, "markup_percent")
    mode = parse_rounding_mode(rounding_mode)

    if cost_value < 0:
        raise InvalidInput("cost must not be negative")
    if rate <= 0:
        raise InvalidInput("exchange_rate must be greater than zero")
    if tax < 0:
        raise InvalidInput("tax_rate_percent must not be negative")
    if markup < 0:
        raise InvalidInput("markup_percent must not be negative")

    converted = cost_value * rate
    with_tax = converted * (1 + tax / HUNDRED)
    selling = with_tax * (1 + markup / HUNDRED)
    return PriceBreakdown(
        cost=cost_value,
        exchange_rate=rate,
        tax_rate_percent=tax,
        markup_percent=markup,
        rounding_mode=mode,
        converted_cost=converted,
        cost_with_tax=with_tax,
        selling_price=selling,
        final_price=apply_rounding(selling, mode),
    )


def compute_price(
    cost: Number,
    exchange_rate: Number,
    tax_rate_percent: Number,
    markup_percent: Number,
    rounding_mode: str | RoundingMode = RoundingMode.NONE,
) -> Decimal:
    return price_breakdown(cost, exchange_rate, tax_rate_percent, markup_percent, rounding_mode).final_price


def local_distributor_price(
    cost: Number,
    exchange_rate: Number,
    category_markup_percent: Number,
    *,
    tax_rate_percent: Number = DEFAULT_TAX_RATE_PERCENT,
    rounding_mode: str | RoundingMode = RoundingMode.NONE,
) -> PriceBreakdown:
    """Price a distributor invoice line using its category's markup."""

    return price_breakdown(cost, exchange_rate, tax_rate_percent, category_markup_percent, rounding_mode)


def marketplace_markup_tier(
    effective_cost: Number,
    *,
    threshold: Number = MARKETPLACE_TIER_THRESHOLD,
    low_tier_markup: Number = MARKETPLACE_LOW_TIER_MARKUP,
    high_tier_markup: Number = MARKETPLACE_HIGH_TIER_MARKUP,
) -> Decimal:
    value = to_decimal(effective_cost, "effective_cost")
    if value < to_decimal(threshold, "threshold"):
        return to_decimal(low_tier_markup, "low_tier_markup")
    return to_decimal(high_tier_markup, "high_tier_markup")


def marketplace_price(
    list_price: Number,
    exchange_rate: Number,
    *,
    tax_rate_percent: Number = Decimal("0"),
    rounding_mode: str | RoundingMode = RoundingMode.NONE,
    markup_override: Number | None = None,
    surcharge_percent: Number = MARKETPLACE_SURCHARGE_PERCENT,
    threshold: Number = MARKETPLACE_TIER_THRESHOLD,
    low_tier_markup: Number = MARKETPLACE_LOW_TIER_MARKUP,
    high_tier_markup: Number = MARKETPLACE_HIGH_TIER_MARKUP,
) -> MarketplaceBreakdown:
    """Price a marketplace listing.

    The surcharge is added to the listed price first; the markup tier is then
    picked from that effective cost before any tax is applied. A manual
    override replaces the tier markup and must lie within 0..500 percent.
    """

    listed = to_decimal(list_price, "list_price")
    if listed < 0:
        raise InvalidInput("list_price must not be negative")
    surcharge = to_decimal(surcharge_percent, "surcharge_percent")
    if surcharge < 0:
        raise InvalidInput("surcharge_percent must not be negative")

    effective_cost = listed * (1 + surcharge / HUNDRED)
    if markup_override is not None:
        markup = to_decimal(markup_override, "markup_override")
        if markup < 0 or markup > MAX_MARKUP_OVERRIDE:
            raise InvalidInput(f"markup_override must be between 0 and {MAX_MARKUP_OVERRIDE}")
    else:
        markup = marketplace_markup_tier(
            effective_cost,
            threshold=threshold,
            low_tier_markup=low_tier_markup,
            high_tier_markup=high_tier_markup,
        )

    price = price_breakdown(effective_cost, exchange_rate, tax_rate_percent, markup, rounding_mode)
    return MarketplaceBreakdown(
        list_price=listed,
        surcharge_percent=surcharge,
        effective_cost=effective_cost,
        markup_percent=markup,
        markup_overridden=markup_override is not None,
        selling_price_source=effective_cost * (1 + markup / HUNDRED),
        price=price,
    )
