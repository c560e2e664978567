"""
Audit Log Database Model.

Records promo redemptions and rejections for support and fraud review.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for pricing events.

    Events logged:
    - PROMO_REDEEMED
    - PROMO_REJECTED (with the rejection reason)
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Rider who triggered the event (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)

    # What happened
    action = Column(String(100), nullable=False, index=True)

    # What it happened to
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(String(100), nullable=True, index=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_id}, entity={self.entity_type}:{self.entity_id})>"
