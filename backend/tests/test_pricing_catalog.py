"""
Pricing catalog and fare service tests.

Catalog caching, malformed master data, and charge-time promo redemption.
"""

import asyncio
import json
from decimal import Decimal

import pytest
from redis.exceptions import RedisError
from sqlalchemy import func, select

from backend.app.core.config import settings
from backend.app.core.exceptions import PricingConfigurationError, PromoNotFound, PromoReservationTimeout
from backend.app.domain.pricing.entities import BaseRule, TimeBasedRule
from backend.app.domain.pricing.promo_validator import PromoValidator
from backend.app.models.audit_log import AuditLog
from backend.app.models.pricing_enums import PricingRuleType
from backend.app.models.promo_code import PromoCode
from backend.app.models.promo_code_usage import PromoCodeUsage
from backend.app.services.audit import AuditAction, get_audit_trail
from backend.app.services.fare_service import FareService
from backend.app.services.pricing_catalog import PricingCatalogService


@pytest.mark.asyncio
async def test_load_converts_rows(db_session, base_rule_factory, time_rule_factory, zone_factory):
    base = await base_rule_factory()
    night = await time_rule_factory()
    zone = await zone_factory()
    await base_rule_factory(name="Retired tariff", is_active=False)

    catalog = await PricingCatalogService.load(db_session)

    assert [rule.id for rule in catalog.rules] == [base.id, night.id]
    assert isinstance(catalog.rules[0], BaseRule)
    assert isinstance(catalog.rules[1], TimeBasedRule)
    assert catalog.rules[1].days_of_week == frozenset({1, 2, 3, 4, 5})
    assert catalog.zones[0].id == zone.id
    assert catalog.zones[0].coordinates[1] == (0.0, 1.0)


@pytest.mark.asyncio
async def test_catalog_is_cached_until_invalidated(db_session, redis_client_session, base_rule_factory):
    first = await base_rule_factory(base_fare=Decimal("2.50"))

    catalog = await PricingCatalogService.get_catalog(db_session, redis_client_session)
    assert [rule.id for rule in catalog.rules] == [first.id]
    assert await redis_client_session.get(settings.pricing_cache_key) is not None

    second = await base_rule_factory(name="New tariff", base_fare=Decimal("3.00"))

    cached = await PricingCatalogService.get_catalog(db_session, redis_client_session)
    assert [rule.id for rule in cached.rules] == [first.id]

    await PricingCatalogService.invalidate(redis_client_session)

    refreshed = await PricingCatalogService.get_catalog(db_session, redis_client_session)
    assert [rule.id for rule in refreshed.rules] == [first.id, second.id]


@pytest.mark.asyncio
async def test_cached_catalog_round_trips(db_session, redis_client_session, base_rule_factory, time_rule_factory,
                                          zone_factory):
    await base_rule_factory()
    await time_rule_factory()
    await zone_factory()

    loaded = await PricingCatalogService.get_catalog(db_session, redis_client_session)
    cached = await PricingCatalogService.get_catalog(db_session, redis_client_session)

    assert cached.model_dump() == loaded.model_dump()
    payload = json.loads(await redis_client_session.get(settings.pricing_cache_key))
    assert payload["rules"][0]["type"] == "base"


@pytest.mark.asyncio
async def test_redis_outage_falls_back_to_database(db_session, base_rule_factory, mocker):
    rule = await base_rule_factory()
    broken = mocker.AsyncMock()
    broken.get.side_effect = RedisError("connection refused")
    broken.set.side_effect = RedisError("connection refused")

    catalog = await PricingCatalogService.get_catalog(db_session, broken)

    assert [r.id for r in catalog.rules] == [rule.id]


@pytest.mark.asyncio
async def test_malformed_base_rule(db_session, base_rule_factory):
    rule = await base_rule_factory(per_km_rate=None)

    with pytest.raises(PricingConfigurationError) as exc_info:
        await PricingCatalogService.load(db_session)

    assert exc_info.value.error_code == "ERR_PRICING_003"
    assert exc_info.value.details["rule_id"] == rule.id


@pytest.mark.asyncio
async def test_malformed_time_rule(db_session, time_rule_factory):
    await time_rule_factory(days_of_week=[1, 9])

    with pytest.raises(PricingConfigurationError) as exc_info:
        await PricingCatalogService.load(db_session)

    assert exc_info.value.error_code == "ERR_PRICING_003"


@pytest.mark.asyncio
async def test_zone_based_rule_row(db_session, zone_factory, base_rule_factory):
    zone = await zone_factory()
    rule = await base_rule_factory(
        name="Downtown event",
        rule_type=PricingRuleType.ZONE_BASED,
        base_fare=None,
        per_km_rate=None,
        per_minute_rate=None,
        zone_id=zone.id,
        surge_multiplier=Decimal("1.20"),
    )

    catalog = await PricingCatalogService.load(db_session)

    assert catalog.rules[0].id == rule.id
    assert catalog.rules[0].zone_id == zone.id


@pytest.mark.asyncio
async def test_apply_promo_writes_audit_trail(db_session, promo_factory):
    await promo_factory(code="SAVE10")

    usage = await FareService.apply_promo(db_session, "SAVE10", 5, 77, Decimal("30.00"))
    assert usage.discount_applied == Decimal("3.00")

    with pytest.raises(PromoNotFound):
        await FareService.apply_promo(db_session, "MISSING", 5, 78, Decimal("30.00"))

    redeemed = await get_audit_trail(db_session, entity_type="promo_code", entity_id="SAVE10")
    assert [log.action for log in redeemed] == [AuditAction.PROMO_REDEEMED]
    assert redeemed[0].meta_data["trip_id"] == 77

    rejected = await get_audit_trail(db_session, action=AuditAction.PROMO_REJECTED)
    assert rejected[0].entity_id == "MISSING"
    assert rejected[0].meta_data["reason"] == "PROMO_NOT_FOUND"


@pytest.mark.asyncio
async def test_apply_promo_times_out(db_session, mocker):
    async def slow_reserve(*args, **kwargs):
        await asyncio.sleep(1)

    mocker.patch.object(PromoValidator, "reserve", new=slow_reserve)

    with pytest.raises(PromoReservationTimeout) as exc_info:
        await FareService.apply_promo(db_session, "save10", 5, 77, Decimal("30.00"), timeout=0.01)

    assert exc_info.value.status_code == 504
    assert exc_info.value.details["code"] == "SAVE10"

    logs = await db_session.execute(select(AuditLog))
    assert logs.scalars().all() == []


@pytest.mark.asyncio
async def test_apply_promo_timeout_after_counter_update_rolls_back(db_session, session_factory, promo_factory, mocker):
    promo = await promo_factory(code="LAST", total_usage_limit=1)
    promo_id = promo.id
    count_usages = PromoValidator.count_user_usages
    calls = []

    async def stalled_count(db, promo_code_id, user_id):
        calls.append(promo_code_id)
        # Second call runs after the counter UPDATE
        if len(calls) == 2:
            await asyncio.sleep(1)
        return await count_usages(db, promo_code_id, user_id)

    mocker.patch.object(PromoValidator, "count_user_usages", new=stalled_count)

    with pytest.raises(PromoReservationTimeout):
        await FareService.apply_promo(db_session, "LAST", 1, 10, Decimal("20.00"), timeout=0.2)

    assert len(calls) == 2
    assert not db_session.in_transaction()

    async with session_factory() as fresh:
        counter = await fresh.execute(select(PromoCode.current_usage_count).where(PromoCode.id == promo_id))
        assert counter.scalar_one() == 0
        usages = await fresh.execute(select(func.count(PromoCodeUsage.id)))
        assert usages.scalar_one() == 0

    # The single remaining redemption is still available
    mocker.stopall()
    usage = await FareService.apply_promo(db_session, "LAST", 1, 11, Decimal("20.00"))
    assert usage.trip_id == 11
