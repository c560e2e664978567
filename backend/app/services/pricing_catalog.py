"""
Pricing Catalog Service.

Loads active pricing rules and zones from the database into immutable domain
entities. The snapshot is cached in Redis so fare quotes do not hit the
database on every request; a Redis outage only costs the cache.
"""

from decimal import Decimal
from typing import Optional

from pydantic import ValidationError
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import PricingConfigurationError
from backend.app.core.logging_config import get_logger
from backend.app.domain.pricing.entities import (
    BaseRule, GeoPoint, PricingCatalog, TimeBasedRule, ZoneBasedRule, ZoneSpec
)
from backend.app.models.pricing_enums import PricingRuleType
from backend.app.models.pricing_rule import PricingRule
from backend.app.models.zone import Zone

logger = get_logger("rideon.catalog")


def _coordinates(raw) -> tuple:
    # Admin map stores [{"lat": .., "lng": ..}], seeds may use [lat, lng] pairs
    points = []
    for vertex in raw or []:
        if isinstance(vertex, dict):
            points.append(GeoPoint(float(vertex["lat"]), float(vertex["lng"])))
        else:
            lat, lng = vertex
            points.append(GeoPoint(float(lat), float(lng)))
    return tuple(points)


def _enum_value(value) -> Optional[str]:
    return value.value if value is not None and hasattr(value, "value") else value


def rule_to_spec(row: PricingRule):
    """
    Convert a PricingRule row to its domain variant.

    Raises:
        PricingConfigurationError: If the row lacks fields its type requires.
    """
    common = dict(
        id=row.id,
        name=row.name,
        is_active=row.is_active,
        surge_multiplier=row.surge_multiplier if row.surge_multiplier is not None else Decimal("1"),
        vehicle_type=_enum_value(row.vehicle_type),
        effective_from=row.effective_from,
        effective_to=row.effective_to,
    )
    try:
        if row.rule_type == PricingRuleType.BASE:
            return BaseRule(
                **common,
                base_fare=row.base_fare,
                booking_fee=row.booking_fee or Decimal("0"),
                per_km_rate=row.per_km_rate,
                per_minute_rate=row.per_minute_rate,
                minimum_fare=row.minimum_fare or Decimal("0"),
            )
        if row.rule_type == PricingRuleType.TIME_BASED:
            return TimeBasedRule(
                **common,
                start_time=row.start_time,
                end_time=row.end_time,
                days_of_week=frozenset(row.days_of_week or []),
            )
        if row.rule_type == PricingRuleType.ZONE_BASED:
            return ZoneBasedRule(**common, zone_id=row.zone_id)
    except ValidationError as exc:
        raise PricingConfigurationError(
            message=f"Pricing rule {row.id} ('{row.name}') is malformed",
            error_code="ERR_PRICING_003",
            details={"rule_id": row.id, "errors": exc.errors(include_url=False, include_context=False, include_input=False)}
        )

    raise PricingConfigurationError(
        message=f"Pricing rule {row.id} has unknown type {row.rule_type!r}",
        error_code="ERR_PRICING_003",
        details={"rule_id": row.id}
    )


def zone_to_spec(row: Zone) -> ZoneSpec:
    try:
        return ZoneSpec(
            id=row.id,
            name=row.name,
            zone_type=row.zone_type,
            coordinates=_coordinates(row.coordinates),
            pricing_multiplier=row.pricing_multiplier if row.pricing_multiplier is not None else Decimal("1"),
            airport_fee=row.airport_fee or Decimal("0"),
            is_active=row.is_active,
        )
    except (ValidationError, KeyError, TypeError, ValueError):
        raise PricingConfigurationError(
            message=f"Zone {row.id} ('{row.name}') is malformed",
            error_code="ERR_PRICING_004",
            details={"zone_id": row.id}
        )


class PricingCatalogService:

    @staticmethod
    async def load(db: AsyncSession) -> PricingCatalog:
        """Read all active rules and zones from the database."""
        rules = await db.execute(
            select(PricingRule).where(PricingRule.is_active == True).order_by(PricingRule.id)
        )
        zones = await db.execute(
            select(Zone).where(Zone.is_active == True).order_by(Zone.id)
        )
        return PricingCatalog(
            rules=[rule_to_spec(row) for row in rules.scalars().all()],
            zones=[zone_to_spec(row) for row in zones.scalars().all()],
        )

    @staticmethod
    async def get_catalog(db: AsyncSession, redis) -> PricingCatalog:
        """
        Return the pricing catalog, from Redis when cached.

        Args:
            db: Database session
            redis: Redis client (may be None to bypass the cache)
        """
        key = settings.pricing_cache_key

        if redis is not None:
            try:
                cached = await redis.get(key)
            except RedisError as exc:
                logger.warning("Pricing cache read failed", extra={"error": str(exc)})
                cached = None
            if cached:
                return PricingCatalog.model_validate_json(cached)

        catalog = await PricingCatalogService.load(db)

        if redis is not None:
            try:
                await redis.set(key, catalog.model_dump_json(), ex=settings.pricing_cache_ttl_seconds)
            except RedisError as exc:
                logger.warning("Pricing cache write failed", extra={"error": str(exc)})

        return catalog

    @staticmethod
    async def invalidate(redis) -> None:
        """Drop the cached snapshot after admin changes to rules or zones."""
        await redis.delete(settings.pricing_cache_key)
