"""Bookings as seen by the payment flow."""

from bcn.bookings.models import Booking, OrderStatus, PaymentStatus

__all__ = ["Booking", "OrderStatus", "PaymentStatus"]
