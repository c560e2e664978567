"""
Fare Calculator.

Applies a resolved rule set to a trip's distance and duration. The order of
operations is fixed so that fares are reproducible:

    distance_charge = per_km_rate * distance_km
    time_charge     = per_minute_rate * duration_min
    raw_subtotal    = base_fare + booking_fee + distance_charge + time_charge
    surged          = raw_subtotal * surge_multiplier * zone_multiplier
    subtotal        = max(surged + zone_fees, minimum_fare)

Money is Decimal throughout. Intermediates keep full precision; reported
amounts are rounded to cents with banker's rounding at the very end.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from typing import Any, Optional

from backend.app.core.exceptions import InvalidTripInput
from backend.app.domain.pricing.entities import FareBreakdown, ResolvedRuleSet

CENT = Decimal("0.01")
ZERO = Decimal("0")


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_EVEN)


def to_decimal(value: Any, field: str) -> Decimal:
    """
    Convert a non-negative trip quantity to Decimal.

    Floats go through str() so 1.2 stays 1.2 rather than its binary expansion.

    Raises:
        InvalidTripInput: If the value is missing, not numeric, non-finite or negative.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidTripInput(f"{field} must be a number", field=field)
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidTripInput(f"{field} must be a number, got {value!r}", field=field)
    if not number.is_finite():
        raise InvalidTripInput(f"{field} must be finite", field=field)
    if number < 0:
        raise InvalidTripInput(f"{field} cannot be negative", field=field)
    return number


class FareCalculator:

    @staticmethod
    def validate_inputs(distance_km: Any, duration_min: Any) -> tuple:
        """Check trip quantities before any pricing work is done."""
        return to_decimal(distance_km, "distance_km"), to_decimal(duration_min, "duration_min")

    @staticmethod
    def calculate(resolved: ResolvedRuleSet, distance_km: Any, duration_min: Any) -> FareBreakdown:
        """
        Compute the fare breakdown (no discount applied).

        Raises:
            InvalidTripInput: On negative or non-numeric distance/duration.
        """
        distance, duration = FareCalculator.validate_inputs(distance_km, duration_min)
        base = resolved.base

        distance_charge = base.per_km_rate * distance
        time_charge = base.per_minute_rate * duration
        raw_subtotal = base.base_fare + base.booking_fee + distance_charge + time_charge
        surged = raw_subtotal * resolved.surge_multiplier * resolved.zone_multiplier
        subtotal = quantize_money(max(surged + resolved.zone_fees, base.minimum_fare))

        return FareBreakdown(
            base_fare=quantize_money(base.base_fare),
            booking_fee=quantize_money(base.booking_fee),
            distance_charge=quantize_money(distance_charge),
            time_charge=quantize_money(time_charge),
            surge_multiplier=resolved.surge_multiplier,
            zone_multiplier=resolved.zone_multiplier,
            zone_fees=quantize_money(resolved.zone_fees),
            subtotal=subtotal,
            discount=quantize_money(ZERO),
            total=subtotal,
            base_rule_id=base.id,
            applied_rule_ids=(base.id,) + resolved.time_rule_ids + resolved.zone_rule_ids,
            matched_zone_ids=tuple(zone.id for zone in resolved.matched_zones),
            restricted_zone_ids=tuple(zone.id for zone in resolved.restricted_zones),
        )

    @staticmethod
    def apply_discount(breakdown: FareBreakdown, discount: Decimal, promo_code: Optional[str] = None) -> FareBreakdown:
        """Return a copy of `breakdown` with a discount taken off the subtotal (floored at 0)."""
        discount = quantize_money(min(max(discount, ZERO), breakdown.subtotal))
        return breakdown.model_copy(update={
            "discount": discount,
            "total": breakdown.subtotal - discount,
            "promo_code": promo_code,
            "promo_rejection": None,
        })
