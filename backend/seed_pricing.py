"""
Database seeding script for pricing master data.

Creates a base tariff, a weeknight surcharge, two zones and a welcome promo
for local development. Run this script after the database is set up.
"""

import asyncio
import sys
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.core.redis_client import redis_client
from backend.app.models.pricing_enums import PricingRuleType, ZoneType, DiscountType
from backend.app.models.pricing_rule import PricingRule
from backend.app.models.zone import Zone
from backend.app.models.promo_code import PromoCode
from backend.app.models.promo_code_usage import PromoCodeUsage  # noqa: F401 (registers table)
from backend.app.models.audit_log import AuditLog  # noqa: F401 (registers table)
from backend.app.services.pricing_catalog import PricingCatalogService
from sqlalchemy import select


async def seed_pricing():
    """
    Seed pricing data.

    Creates:
    - 1 base rule
    - 1 overnight time-based rule (Mon-Fri 22:00-04:00)
    - 1 premium downtown zone and 1 airport zone with a fee
    - 1 percentage promo code
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting pricing seeding...")

        result = await db.execute(
            select(PricingRule).where(PricingRule.rule_type == PricingRuleType.BASE)
        )
        if result.scalars().first():
            print("ℹ️  Base pricing rule already exists, skipping seeding")
            return

        db.add(PricingRule(
            name="Standard tariff",
            rule_type=PricingRuleType.BASE,
            base_fare=Decimal("2.50"),
            booking_fee=Decimal("1.00"),
            per_km_rate=Decimal("1.20"),
            per_minute_rate=Decimal("0.25"),
            minimum_fare=Decimal("7.00"),
            surge_multiplier=Decimal("1.00"),
            is_active=True
        ))
        print("✅ Created base rule")

        db.add(PricingRule(
            name="Weeknight surcharge",
            rule_type=PricingRuleType.TIME_BASED,
            start_time=time(22, 0),
            end_time=time(4, 0),
            days_of_week=[1, 2, 3, 4, 5],
            surge_multiplier=Decimal("1.25"),
            is_active=True
        ))
        print("✅ Created overnight time rule")

        db.add(Zone(
            name="Downtown",
            city="Lagos",
            zone_type=ZoneType.PREMIUM_AREA,
            coordinates=[
                {"lat": 6.440, "lng": 3.380},
                {"lat": 6.440, "lng": 3.440},
                {"lat": 6.470, "lng": 3.440},
                {"lat": 6.470, "lng": 3.380},
            ],
            pricing_multiplier=Decimal("1.50"),
            is_active=True
        ))
        db.add(Zone(
            name="Airport approach",
            city="Lagos",
            zone_type=ZoneType.SERVICE_AREA,
            coordinates=[
                {"lat": 6.560, "lng": 3.300},
                {"lat": 6.560, "lng": 3.350},
                {"lat": 6.600, "lng": 3.350},
                {"lat": 6.600, "lng": 3.300},
            ],
            pricing_multiplier=Decimal("1.00"),
            airport_fee=Decimal("5.00"),
            is_active=True
        ))
        print("✅ Created zones")

        now = datetime.now(timezone.utc)
        db.add(PromoCode(
            code="WELCOME10",
            description="10% off your first rides",
            discount_type=DiscountType.PERCENTAGE,
            discount_value=Decimal("10"),
            max_discount_amount=Decimal("5.00"),
            min_trip_amount=Decimal("10.00"),
            total_usage_limit=1000,
            max_usage_per_user=3,
            valid_from=now,
            valid_to=now + timedelta(days=90),
            is_active=True
        ))
        print("✅ Created promo code (code: WELCOME10)")

        await db.commit()

    await PricingCatalogService.invalidate(redis_client)
    print("🎉 Seeding complete!")


if __name__ == "__main__":
    asyncio.run(seed_pricing())
