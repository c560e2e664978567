"""
Promo Validator (Domain Logic).

Validates promo codes and reserves usage slots.

Validation order (first failure wins):
1. Code exists and is active
2. Current time inside [valid_from, valid_to]
3. Subtotal reaches min_trip_amount
4. Vehicle type is eligible, then rider segment (applicable_user_types)
5. Global usage below total_usage_limit
6. Per-user usage below max_usage_per_user

A reservation is one transaction: a conditional compare-and-increment on the
promo row (whose row lock serializes concurrent redemptions of the same
promo), the per-user check under that lock, and the usage insert. Any failure
rolls the whole transaction back, so N racing requests for R remaining slots
yield exactly min(N, R) successes.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import (
    PromoAlreadyApplied, PromoBelowMinimum, PromoExpired, PromoNotApplicable, PromoNotFound,
    PromoNotYetValid, PromoUsageExceeded, PromoUserLimitExceeded
)
from backend.app.core.logging_config import get_logger
from backend.app.domain.pricing.clock import as_utc
from backend.app.domain.pricing.entities import PromoQuote, ReservedUsage
from backend.app.domain.pricing.fare_calculator import ZERO, quantize_money, to_decimal
from backend.app.models.pricing_enums import DiscountType
from backend.app.models.promo_code import PromoCode
from backend.app.models.promo_code_usage import PromoCodeUsage

logger = get_logger("rideon.promo")

ALL_USERS = "all"


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def compute_discount(promo: PromoCode, subtotal: Decimal) -> Decimal:
    """
    Discount for `subtotal`, capped by max_discount_amount and by the subtotal itself.
    """
    value = Decimal(promo.discount_value)
    if promo.discount_type == DiscountType.PERCENTAGE:
        discount = subtotal * value / Decimal("100")
    else:
        discount = value

    if promo.max_discount_amount is not None:
        discount = min(discount, Decimal(promo.max_discount_amount))

    return quantize_money(min(max(discount, ZERO), subtotal))


def allows_user_type(promo: PromoCode, user_type: Optional[str]) -> bool:
    segments = promo.applicable_user_types
    if not segments or ALL_USERS in segments:
        return True
    return user_type in segments


class PromoValidator:

    @staticmethod
    async def find_promo(db: AsyncSession, code: str) -> Optional[PromoCode]:
        result = await db.execute(
            select(PromoCode)
            .where(func.upper(PromoCode.code) == normalize_code(code))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def count_user_usages(db: AsyncSession, promo_code_id: int, user_id: int) -> int:
        result = await db.execute(
            select(func.count(PromoCodeUsage.id)).where(
                PromoCodeUsage.promo_code_id == promo_code_id,
                PromoCodeUsage.user_id == user_id
            )
        )
        return result.scalar() or 0

    @staticmethod
    async def check_eligibility(
        db: AsyncSession,
        code: str,
        user_id: Optional[int],
        subtotal: Decimal,
        now: datetime,
        vehicle_type: Optional[str] = None,
        user_type: Optional[str] = None
    ) -> PromoCode:
        """
        Run the read-only checks in order.

        Per-user limits are skipped when `user_id` is None (anonymous quotes).

        Returns:
            The eligible PromoCode row

        Raises:
            PromoError subclass describing the first failed check
        """
        promo = await PromoValidator.find_promo(db, code)

        # 1. Existence
        if promo is None or not promo.is_active:
            raise PromoNotFound(normalize_code(code))

        # 2. Validity window
        now = as_utc(now)
        if now < as_utc(promo.valid_from):
            raise PromoNotYetValid(promo.code)
        if now > as_utc(promo.valid_to):
            raise PromoExpired(promo.code)

        # 3. Minimum trip amount
        if promo.min_trip_amount is not None and subtotal < Decimal(promo.min_trip_amount):
            raise PromoBelowMinimum(promo.code, promo.min_trip_amount)

        # 4. Vehicle eligibility
        if promo.applicable_vehicle_types and vehicle_type not in promo.applicable_vehicle_types:
            raise PromoNotApplicable(promo.code, vehicle_type)

        # 4b. Rider segment
        if not allows_user_type(promo, user_type):
            raise PromoNotApplicable(promo.code, user_type=user_type or "unspecified")

        # 5. Global usage
        if promo.total_usage_limit is not None and promo.current_usage_count >= promo.total_usage_limit:
            raise PromoUsageExceeded(promo.code)

        # 6. Per-user usage
        if user_id is not None:
            used = await PromoValidator.count_user_usages(db, promo.id, user_id)
            if used >= promo.max_usage_per_user:
                raise PromoUserLimitExceeded(promo.code)

        return promo

    @staticmethod
    async def validate(
        db: AsyncSession,
        code: str,
        user_id: Optional[int],
        subtotal: Any,
        now: datetime,
        vehicle_type: Optional[str] = None,
        user_type: Optional[str] = None
    ) -> PromoQuote:
        """
        Preview the discount a promo would give without consuming a slot.

        Safe for quoting; the result is not a guarantee that a later
        reservation succeeds.
        """
        subtotal = quantize_money(to_decimal(subtotal, "subtotal"))
        promo = await PromoValidator.check_eligibility(db, code, user_id, subtotal, now, vehicle_type, user_type)
        discount = compute_discount(promo, subtotal)

        return PromoQuote(
            promo_code_id=promo.id,
            code=promo.code,
            subtotal=subtotal,
            discount=discount,
            total=subtotal - discount
        )

    @staticmethod
    async def reserve(
        db: AsyncSession,
        code: str,
        user_id: int,
        trip_id: int,
        subtotal: Any,
        now: datetime,
        vehicle_type: Optional[str] = None,
        user_type: Optional[str] = None
    ) -> ReservedUsage:
        """
        Atomically reserve one usage of a promo for a trip.

        Owns its transaction: commits on success, rolls back on any failure.

        Args:
            db: Database session (must not have pending work)
            code: Promo code, any case
            user_id: Redeeming rider
            trip_id: Trip being charged
            subtotal: Fare subtotal before discount
            now: Redemption time
            vehicle_type: Vehicle category of the trip
            user_type: Rider segment, checked against applicable_user_types

        Returns:
            ReservedUsage for the committed PromoCodeUsage row

        Raises:
            PromoError subclass if the promo cannot be redeemed
        """
        subtotal = quantize_money(to_decimal(subtotal, "subtotal"))
        normalized = normalize_code(code)

        try:
            promo = await PromoValidator.check_eligibility(db, code, user_id, subtotal, now, vehicle_type, user_type)

            # Plain values; ORM state is expired by a rollback
            promo_id = promo.id
            promo_code = promo.code
            max_per_user = promo.max_usage_per_user
            discount = compute_discount(promo, subtotal)

            existing = await db.execute(
                select(PromoCodeUsage.id).where(
                    PromoCodeUsage.promo_code_id == promo_id,
                    PromoCodeUsage.trip_id == trip_id
                )
            )
            if existing.scalar_one_or_none() is not None:
                raise PromoAlreadyApplied(promo_code, trip_id)

            # Compare-and-increment; takes the row lock until commit
            result = await db.execute(
                update(PromoCode)
                .where(
                    PromoCode.id == promo_id,
                    or_(
                        PromoCode.total_usage_limit.is_(None),
                        PromoCode.current_usage_count < PromoCode.total_usage_limit
                    )
                )
                .values(current_usage_count=PromoCode.current_usage_count + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise PromoUsageExceeded(promo_code)

            # Per-user cap, re-read under the lock
            if await PromoValidator.count_user_usages(db, promo_id, user_id) >= max_per_user:
                raise PromoUserLimitExceeded(promo_code)

            usage = PromoCodeUsage(
                promo_code_id=promo_id,
                user_id=user_id,
                trip_id=trip_id,
                discount_applied=discount,
                redeemed_at=now
            )
            db.add(usage)
            await db.flush()
            usage_id = usage.id

            await db.commit()

        except IntegrityError:
            await db.rollback()
            logger.warning(
                "Concurrent duplicate promo redemption",
                extra={"code": normalized, "trip_id": trip_id}
            )
            raise PromoAlreadyApplied(normalized, trip_id)
        except BaseException:
            # Includes cancellation from a timeout; the counter UPDATE must not stay open
            await db.rollback()
            raise

        logger.info(
            "Promo reserved",
            extra={"code": promo_code, "user_id": user_id, "trip_id": trip_id, "discount": str(discount)}
        )

        return ReservedUsage(
            usage_id=usage_id,
            promo_code_id=promo_id,
            code=promo_code,
            user_id=user_id,
            trip_id=trip_id,
            subtotal=subtotal,
            discount_applied=discount,
            total=subtotal - discount,
            redeemed_at=now
        )
