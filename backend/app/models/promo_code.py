"""
Promo Code database model.

`current_usage_count` is the global redemption counter. It is only ever
changed by the conditional increment in the promo validator.
"""

from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, Boolean, JSON, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.pricing_enums import DiscountType


class PromoCode(Base):
    """
    Promo Code model.

    Codes are unique and case-insensitive (stored upper-cased).
    """
    __tablename__ = "promo_codes"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    code = Column(String(50), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)

    # Discount
    discount_type = Column(Enum(DiscountType), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)
    max_discount_amount = Column(Numeric(10, 2), nullable=True)
    min_trip_amount = Column(Numeric(10, 2), nullable=True)

    # Usage caps
    total_usage_limit = Column(Integer, nullable=True)  # None = unlimited
    max_usage_per_user = Column(Integer, default=1, nullable=False)
    current_usage_count = Column(Integer, default=0, nullable=False)

    # Restrictions
    applicable_vehicle_types = Column(JSON, nullable=True)  # Empty = all
    applicable_user_types = Column(JSON, default=lambda: ["all"], nullable=True)  # "all" or empty = everyone

    # Validity
    valid_from = Column(DateTime(timezone=True), nullable=False)
    valid_to = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<PromoCode(id={self.id}, code='{self.code}', used={self.current_usage_count}/{self.total_usage_limit})>"
