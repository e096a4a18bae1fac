"""Notification database model."""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from bcn.storage.db import Base


class NotificationType(str, Enum):
    """Notification categories."""
    BOOKING = "booking"
    PAYMENT = "payment"
    TEAM = "team"
    ORDER_STATUS = "order_status"
    SYSTEM = "system"  # Fallback for unknown types


class Notification(Base):
    """User-addressed record of a state change.

    Immutable once created except for ``seen``.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    message = Column(Text, nullable=False)
    type = Column(String(32), nullable=False, default=NotificationType.SYSTEM.value)
    seen = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<Notification(id={self.id}, user={self.user_id}, type={self.type}, seen={self.seen})>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "message": self.message,
            "type": self.type,
            "seen": self.seen,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
