"""Booking model.

Only the payment side of a booking is managed here; stops, addresses,
vehicle and timing are kept as an opaque document written by the booking
handlers.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Boolean, Column, DateTime, Enum as SQLEnum, ForeignKey, Integer, String

from bcn.storage.db import Base


class PaymentStatus(str, Enum):
    """Booking payment states."""
    UNPAID = "unpaid"
    PAID = "paid"


class OrderStatus(str, Enum):
    """Delivery order lifecycle."""
    PENDING = "pending"
    PROCESSING = "processing"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Booking(Base):
    """Delivery booking."""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Route, addresses, vehicle, timing, orders
    details = Column(JSON, nullable=True)

    # Payment
    payment_intent_id = Column(String(255), nullable=True, index=True)
    payment_method_id = Column(String(255), nullable=True)
    payment_status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.UNPAID, nullable=False)
    is_paid = Column(Boolean, default=False, nullable=False)
    paid_at = Column(DateTime, nullable=True)
    paid_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    order_status = Column(SQLEnum(OrderStatus), default=OrderStatus.PENDING, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Booking(id={self.id}, user={self.user_id}, paid={self.is_paid})>"

    def mark_paid(self, payment_intent_id: str, payment_method_id: str, payer_user_id: int) -> None:
        """Record a succeeded charge on the booking."""
        self.payment_intent_id = payment_intent_id
        self.payment_method_id = payment_method_id
        self.payment_status = PaymentStatus.PAID
        self.is_paid = True
        self.paid_at = datetime.utcnow()
        self.paid_by_user_id = payer_user_id
        self.order_status = OrderStatus.PROCESSING

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "payment_intent_id": self.payment_intent_id,
            "payment_method_id": self.payment_method_id,
            "payment_status": self.payment_status.value if self.payment_status else None,
            "is_paid": self.is_paid,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "paid_by_user_id": self.paid_by_user_id,
            "order_status": self.order_status.value if self.order_status else None,
        }
