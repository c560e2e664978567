"""
Fare Service.

The two call contracts exposed to the trip/API layer:
- estimate_fare: read-only and idempotent, safe for repeated quoting
- apply_promo: consumes a promo usage slot, called once per trip at charge time
"""

import asyncio
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import PromoError, PromoReservationTimeout
from backend.app.core.logging_config import get_logger
from backend.app.domain.pricing.clock import localize, utc_now
from backend.app.domain.pricing.entities import FareBreakdown, ReservedUsage
from backend.app.domain.pricing.fare_calculator import FareCalculator
from backend.app.domain.pricing.geo_polygon import to_point
from backend.app.domain.pricing.pricing_resolver import PricingResolver
from backend.app.domain.pricing.promo_validator import PromoValidator, normalize_code
from backend.app.services.audit import AuditAction, log_event
from backend.app.services.pricing_catalog import PricingCatalogService

logger = get_logger("rideon.fares")


class FareService:

    @staticmethod
    async def estimate_fare(
        db: AsyncSession,
        redis,
        origin: Any,
        destination: Any,
        distance_km: Any,
        duration_min: Any,
        timestamp: Optional[datetime] = None,
        vehicle_type: Optional[str] = None,
        promo_code: Optional[str] = None,
        user_id: Optional[int] = None,
        user_type: Optional[str] = None
    ) -> FareBreakdown:
        """
        Quote a fare for a trip context.

        A promo code given here is only previewed; nothing is reserved. If the
        promo is rejected the full fare is returned with the rejection reason.

        Raises:
            InvalidTripInput: Malformed coordinates or negative distance/duration
            NoBaseRuleConfigured / InvalidGeometry: Pricing data needs admin correction
        """
        # Inputs are checked before any pricing work
        origin = to_point(origin, "origin")
        destination = to_point(destination, "destination")
        distance, duration = FareCalculator.validate_inputs(distance_km, duration_min)
        timestamp = localize(timestamp or utc_now())

        catalog = await PricingCatalogService.get_catalog(db, redis)
        resolved = PricingResolver.resolve(
            catalog.rules,
            catalog.zones,
            origin,
            timestamp,
            dropoff=destination,
            vehicle_type=vehicle_type
        )
        breakdown = FareCalculator.calculate(resolved, distance, duration)

        logger.info(
            "Fare estimated",
            extra={
                "base_rule_id": breakdown.base_rule_id,
                "subtotal": str(breakdown.subtotal),
                "surge_multiplier": str(breakdown.surge_multiplier),
                "zone_multiplier": str(breakdown.zone_multiplier),
                "restricted_zone_ids": breakdown.restricted_zone_ids,
            }
        )

        if promo_code:
            try:
                quote = await PromoValidator.validate(
                    db, promo_code, user_id, breakdown.subtotal, timestamp, vehicle_type, user_type
                )
            except PromoError as exc:
                logger.info("Promo preview rejected", extra={"code": promo_code, "reason": exc.reason})
                return breakdown.model_copy(update={
                    "promo_code": normalize_code(promo_code),
                    "promo_rejection": exc.reason
                })
            breakdown = FareCalculator.apply_discount(breakdown, quote.discount, quote.code)

        return breakdown

    @staticmethod
    async def apply_promo(
        db: AsyncSession,
        code: str,
        user_id: int,
        trip_id: int,
        subtotal: Any,
        timestamp: Optional[datetime] = None,
        vehicle_type: Optional[str] = None,
        timeout: Optional[float] = None,
        user_type: Optional[str] = None
    ) -> ReservedUsage:
        """
        Redeem a promo for a trip at charge time.

        The reservation is bounded by `timeout` (default from settings). A
        timeout is reported as a failed redemption and is not retried here.

        Raises:
            PromoError subclass if the promo cannot be redeemed
        """
        timestamp = localize(timestamp or utc_now())
        timeout = timeout if timeout is not None else settings.promo_reservation_timeout_seconds
        normalized = normalize_code(code)

        try:
            usage = await asyncio.wait_for(
                PromoValidator.reserve(db, code, user_id, trip_id, subtotal, timestamp, vehicle_type, user_type),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            await db.rollback()
            logger.warning(
                "Promo reservation timed out",
                extra={"code": normalized, "trip_id": trip_id, "timeout": timeout}
            )
            raise PromoReservationTimeout(normalized)
        except PromoError as exc:
            logger.info(
                "Promo rejected",
                extra={"code": normalized, "user_id": user_id, "trip_id": trip_id, "reason": exc.reason}
            )
            await log_event(
                db=db,
                action=AuditAction.PROMO_REJECTED,
                actor_id=user_id,
                entity_type="promo_code",
                entity_id=normalized,
                metadata={"trip_id": trip_id, "reason": exc.reason}
            )
            raise

        await log_event(
            db=db,
            action=AuditAction.PROMO_REDEEMED,
            actor_id=user_id,
            entity_type="promo_code",
            entity_id=usage.code,
            metadata={
                "trip_id": trip_id,
                "usage_id": usage.usage_id,
                "discount_applied": str(usage.discount_applied)
            }
        )

        return usage
