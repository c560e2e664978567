"""
Pricing Schemas.

Request/response models for fare estimation and promo redemption.
Range checks on coordinates and trip quantities are done by the pricing
domain so they surface as ERR_INPUT_001.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from backend.app.models.pricing_enums import VehicleType


class Coordinate(BaseModel):
    """A WGS84 coordinate."""
    lat: float
    lng: float


class FareEstimateRequest(BaseModel):
    """Schema for requesting a fare quote."""
    origin: Coordinate
    destination: Coordinate
    distance_km: float
    duration_min: float
    timestamp: Optional[datetime] = None  # Defaults to now
    vehicle_type: Optional[VehicleType] = None
    promo_code: Optional[str] = Field(None, max_length=50)
    user_id: Optional[int] = None
    user_type: Optional[str] = Field(None, max_length=50)


class FareEstimateResponse(BaseModel):
    """Schema for displaying a fare breakdown."""
    base_fare: Decimal
    booking_fee: Decimal
    distance_charge: Decimal
    time_charge: Decimal
    surge_multiplier: Decimal
    zone_multiplier: Decimal
    zone_fees: Decimal
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    base_rule_id: Optional[int]
    applied_rule_ids: List[int]
    matched_zone_ids: List[int]
    restricted_zone_ids: List[int]
    promo_code: Optional[str] = None
    promo_rejection: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PromoApplyRequest(BaseModel):
    """Schema for redeeming a promo at charge time."""
    code: str = Field(..., min_length=1, max_length=50)
    user_id: int
    trip_id: int
    subtotal: Decimal
    timestamp: Optional[datetime] = None
    vehicle_type: Optional[VehicleType] = None
    user_type: Optional[str] = Field(None, max_length=50)


class PromoValidateRequest(BaseModel):
    """Schema for previewing a promo discount."""
    code: str = Field(..., min_length=1, max_length=50)
    subtotal: Decimal
    user_id: Optional[int] = None
    timestamp: Optional[datetime] = None
    vehicle_type: Optional[VehicleType] = None
    user_type: Optional[str] = Field(None, max_length=50)


class PromoQuoteResponse(BaseModel):
    """Schema for a promo discount preview."""
    promo_code_id: int
    code: str
    subtotal: Decimal
    discount: Decimal
    total: Decimal

    model_config = ConfigDict(from_attributes=True)


class PromoRedemptionResponse(BaseModel):
    """Schema for a committed promo redemption."""
    usage_id: int
    promo_code_id: int
    code: str
    user_id: int
    trip_id: int
    subtotal: Decimal
    discount_applied: Decimal
    total: Decimal
    redeemed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PromoUsageSummary(BaseModel):
    """Usage counters of a promo code."""
    code: str
    is_active: bool
    current_usage_count: int
    total_usage_limit: Optional[int]
    remaining: Optional[int]
    max_usage_per_user: int
    valid_from: datetime
    valid_to: datetime
