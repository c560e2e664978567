"""
Zone database model.

Geofenced areas that modify fares (multiplier, airport fee) or restrict dispatch.
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean, JSON, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.pricing_enums import ZoneType


class Zone(Base):
    """
    Zone model.

    `coordinates` is an ordered list of [lat, lng] pairs forming a simple
    polygon with at least 3 vertices. The ring need not be closed.
    """
    __tablename__ = "zones"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    name = Column(String(100), nullable=False)
    city = Column(String(100), nullable=True)
    zone_type = Column(Enum(ZoneType), default=ZoneType.SERVICE_AREA, nullable=False)
    coordinates = Column(JSON, nullable=False)

    # Pricing
    pricing_multiplier = Column(Numeric(5, 2), default=1, nullable=False)
    airport_fee = Column(Numeric(10, 2), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Zone(id={self.id}, name='{self.name}', type={self.zone_type})>"
