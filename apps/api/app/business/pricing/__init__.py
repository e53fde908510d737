from app.business.pricing.api import router
from app.business.pricing.engine import (
    MarketplaceBreakdown,
    PriceBreakdown,
    RoundingMode,
    apply_rounding,
    compute_price,
    local_distributor_price,
    marketplace_markup_tier,
    marketplace_price,
)
from app.business.pricing.models import MarketplacePricingSession, PricingCategory, PricingSession
from app.business.pricing.seed import DEFAULT_CATEGORIES, pricing_seed_helper
from app.business.pricing.service import PricingService, pricing_service

__all__ = [
    "router",
    "MarketplaceBreakdown",
    "PriceBreakdown",
    "RoundingMode",
    "apply_rounding",
    "compute_price",
    "local_distributor_price",
    "marketplace_markup_tier",
    "marketplace_price",
    "PricingCategory",
    "PricingSession",
    "MarketplacePricingSession",
    "DEFAULT_CATEGORIES",
    "pricing_seed_helper",
    "PricingService",
    "pricing_service",
]
