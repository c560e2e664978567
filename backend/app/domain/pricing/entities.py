"""
Pricing domain entities.

Immutable snapshots of the admin-managed master data (rules, zones) plus the
values the engine produces (resolved rule set, fare breakdown, reserved usage).
They are detached from the ORM so fare computation stays a pure function of
its inputs and the catalog can be cached as JSON.
"""

from datetime import datetime, time
from decimal import Decimal
from typing import Annotated, FrozenSet, List, Literal, NamedTuple, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.app.domain.pricing.clock import as_utc
from backend.app.models.pricing_enums import ZoneType


class GeoPoint(NamedTuple):
    """A (lat, lng) pair in degrees."""
    lat: float
    lng: float


class _Rule(BaseModel):
    """Fields shared by every pricing rule type."""
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    is_active: bool = True
    surge_multiplier: Decimal = Field(default=Decimal("1"), ge=1)
    vehicle_type: Optional[str] = None  # None = all vehicles
    effective_from: Optional[datetime] = None
    effective_to: Optional[datetime] = None

    def is_effective(self, at: datetime) -> bool:
        """Whether the rule's validity window covers `at` (open ends allowed)."""
        if self.effective_from is not None and as_utc(self.effective_from) > at:
            return False
        if self.effective_to is not None and as_utc(self.effective_to) < at:
            return False
        return True

    def applies_to(self, vehicle_type: Optional[str]) -> bool:
        return self.vehicle_type is None or self.vehicle_type == vehicle_type


class BaseRule(_Rule):
    """The tariff every fare is built from."""
    type: Literal["base"] = "base"

    base_fare: Decimal = Field(ge=0)
    booking_fee: Decimal = Field(default=Decimal("0"), ge=0)
    per_km_rate: Decimal = Field(ge=0)
    per_minute_rate: Decimal = Field(ge=0)
    minimum_fare: Decimal = Field(default=Decimal("0"), ge=0)


class TimeBasedRule(_Rule):
    """Surcharge active inside a daily local-time window on selected weekdays."""
    type: Literal["time_based"] = "time_based"

    start_time: time
    end_time: time
    days_of_week: FrozenSet[int]  # 0 = Sunday ... 6 = Saturday

    @field_validator("days_of_week")
    @classmethod
    def check_days(cls, days: FrozenSet[int]) -> FrozenSet[int]:
        if any(day < 0 or day > 6 for day in days):
            raise ValueError("days_of_week values must be between 0 (Sunday) and 6 (Saturday)")
        return days


class ZoneBasedRule(_Rule):
    """Surcharge active while the trip touches a given zone."""
    type: Literal["zone_based"] = "zone_based"

    zone_id: int


# Closed set of rule variants, discriminated on `type`
PricingRuleSpec = Annotated[Union[BaseRule, TimeBasedRule, ZoneBasedRule], Field(discriminator="type")]


class ZoneSpec(BaseModel):
    """A geofenced area and its pricing effect."""
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    zone_type: ZoneType = ZoneType.SERVICE_AREA
    coordinates: Tuple[GeoPoint, ...]
    pricing_multiplier: Decimal = Field(default=Decimal("1"), ge=0)
    airport_fee: Decimal = Field(default=Decimal("0"), ge=0)
    is_active: bool = True

    @property
    def is_restricted(self) -> bool:
        return self.zone_type == ZoneType.RESTRICTED


class PricingCatalog(BaseModel):
    """Snapshot of all active rules and zones."""
    rules: List[PricingRuleSpec] = Field(default_factory=list)
    zones: List[ZoneSpec] = Field(default_factory=list)


class ResolvedRuleSet(BaseModel):
    """Everything the fare formula needs for one trip context."""
    model_config = ConfigDict(frozen=True)

    base: BaseRule
    surge_multiplier: Decimal
    zone_multiplier: Decimal
    zone_fees: Decimal
    time_rule_ids: Tuple[int, ...] = ()
    zone_rule_ids: Tuple[int, ...] = ()
    matched_zones: Tuple[ZoneSpec, ...] = ()

    @property
    def restricted_zones(self) -> Tuple[ZoneSpec, ...]:
        return tuple(zone for zone in self.matched_zones if zone.is_restricted)


class FareBreakdown(BaseModel):
    """Per-request fare result. Owned by the caller, never persisted here."""
    model_config = ConfigDict(frozen=True)

    base_fare: Decimal
    booking_fee: Decimal
    distance_charge: Decimal
    time_charge: Decimal
    surge_multiplier: Decimal
    zone_multiplier: Decimal
    zone_fees: Decimal
    subtotal: Decimal
    discount: Decimal = Decimal("0.00")
    total: Decimal

    base_rule_id: Optional[int] = None
    applied_rule_ids: Tuple[int, ...] = ()
    matched_zone_ids: Tuple[int, ...] = ()
    restricted_zone_ids: Tuple[int, ...] = ()
    promo_code: Optional[str] = None
    promo_rejection: Optional[str] = None


class PromoQuote(BaseModel):
    """Discount a promo would give, computed without consuming a usage slot."""
    model_config = ConfigDict(frozen=True)

    promo_code_id: int
    code: str
    subtotal: Decimal
    discount: Decimal
    total: Decimal


class ReservedUsage(BaseModel):
    """A committed promo redemption."""
    model_config = ConfigDict(frozen=True)

    usage_id: int
    promo_code_id: int
    code: str
    user_id: int
    trip_id: int
    subtotal: Decimal
    discount_applied: Decimal
    total: Decimal
    redeemed_at: datetime
