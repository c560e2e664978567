"""
Pricing Rule database model.

Defines the tariff and surcharge configuration used for fare computation.
Rows are admin-managed master data; the pricing engine only reads them.
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean, Time, JSON, Enum, ForeignKey
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.pricing_enums import PricingRuleType, VehicleType


class PricingRule(Base):
    """
    Pricing Rule model.

    A single table holds all rule types; which columns are meaningful
    depends on `rule_type`:
    - base: base_fare, booking_fee, per_km_rate, per_minute_rate, minimum_fare
    - time_based: start_time, end_time, days_of_week (0 = Sunday)
    - zone_based: zone_id
    Every type carries a surge_multiplier (>= 1.0).
    """
    __tablename__ = "pricing_rules"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Rule details
    name = Column(String(100), nullable=False)
    rule_type = Column(Enum(PricingRuleType), nullable=False, index=True)
    vehicle_type = Column(Enum(VehicleType), nullable=True)  # None = all vehicles
    surge_multiplier = Column(Numeric(5, 2), default=1, nullable=False)

    # Base tariff
    base_fare = Column(Numeric(10, 2), nullable=True)
    booking_fee = Column(Numeric(10, 2), nullable=True)
    per_km_rate = Column(Numeric(10, 2), nullable=True)
    per_minute_rate = Column(Numeric(10, 2), nullable=True)
    minimum_fare = Column(Numeric(10, 2), nullable=True)

    # Time window (local time of day)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    days_of_week = Column(JSON, nullable=True)

    # Zone trigger
    zone_id = Column(Integer, ForeignKey('zones.id'), nullable=True, index=True)

    # Validity
    effective_from = Column(DateTime(timezone=True), nullable=True)
    effective_to = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<PricingRule(id={self.id}, name='{self.name}', type={self.rule_type})>"
