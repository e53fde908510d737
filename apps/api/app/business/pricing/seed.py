from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.business.pricing.models import PricingCategory

logger = logging.getLogger("app.pricing")

DEFAULT_CATEGORIES: tuple[tuple[str, Decimal], ...] = (
    ("Accessories", Decimal("100")),
    ("Ink", Decimal("45")),
    ("Sub Woofers", Decimal("35")),
    ("Speakers", Decimal("45")),
    ("Headphones", Decimal("65")),
    ("UPS", Decimal("50")),
    ("Laptop Bags", Decimal("50")),
    ("Laptops", Decimal("25")),
    ("Desktops", Decimal("25")),
    ("Adaptors", Decimal("65")),
    ("Routers", Decimal("50")),
)


class PricingSeedHelper:
    def ensure_default_categories(self, session: Session) -> int:
        """Insert any default category that is missing; existing markups are left alone."""

        existing = {name.lower() for name in session.scalars(select(PricingCategory.name)).all()}
        created = 0
        for name, markup in DEFAULT_CATEGORIES:
            if name.lower() in existing:
                continue
            session.add(PricingCategory(name=name, markup_percent=markup))
            created += 1
        if created:
            session.commit()
            logger.info("pricing.categories_seeded", extra={"count": created})
        return created


pricing_seed_helper = PricingSeedHelper()
