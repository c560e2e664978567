"""
Promo Code Usage database model.

One row per successful redemption. Rows are never updated.
"""

from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base


class PromoCodeUsage(Base):
    """
    Promo Code Usage model.

    A promo can be redeemed at most once per trip.
    """
    __tablename__ = "promo_code_usages"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    promo_code_id = Column(Integer, ForeignKey('promo_codes.id'), nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    trip_id = Column(Integer, nullable=False, index=True)

    discount_applied = Column(Numeric(10, 2), nullable=False)
    redeemed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('promo_code_id', 'trip_id', name='uq_promo_code_usages_promo_trip'),
    )

    def __repr__(self):
        return f"<PromoCodeUsage(promo_code_id={self.promo_code_id}, user_id={self.user_id}, trip_id={self.trip_id})>"
