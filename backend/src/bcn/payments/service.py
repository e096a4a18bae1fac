"""Charge orchestration for bookings."""

from dataclasses import dataclass
from typing import Any

from bcn.auth.models import UserAccount
from bcn.bookings.models import Booking
from bcn.errors import ForbiddenError, InvalidRequestError, NotFoundError, PaymentFailedError
from bcn.logging_config import get_logger
from bcn.notifications.messages import format_amount
from bcn.notifications.models import NotificationType
from bcn.notifications.service import NotificationService, notification_service
from bcn.payments.provider import ChargeOutcome, PaymentProvider, PaymentProviderError, payment_provider
from bcn.payments.resolver import PaymentResolver, ResolvedPaymentMethod, payment_resolver
from bcn.storage.db import Database, db

logger = get_logger(__name__)

SUCCEEDED = "succeeded"


@dataclass
class ChargeResult:
    """What the caller learns about a charge attempt."""
    booking_id: int
    payment_intent_id: str
    status: str
    payer_user_id: int
    source: str

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.succeeded,
            "booking_id": self.booking_id,
            "payment_intent_id": self.payment_intent_id,
            "status": self.status,
            "payer_user_id": self.payer_user_id,
            "source": self.source,
            "message": "Payment processed successfully" if self.succeeded else f"Payment status: {self.status}",
        }


def _validate_charge_request(booking_id: Any, amount: Any, description: Any) -> None:
    """Reject a charge before anything talks to the provider."""
    if not booking_id or not description or not str(description).strip():
        raise InvalidRequestError("Booking ID, amount, and description are required")

    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidRequestError("Amount must be an integer number of cents")

    if amount <= 0:
        raise InvalidRequestError("Amount must be greater than 0")


class ChargeService:
    """Charges a booking using the resolved (possibly delegated) card."""

    def __init__(
        self,
        database: Database | None = None,
        provider: PaymentProvider | None = None,
        resolver: PaymentResolver | None = None,
        notifications: NotificationService | None = None,
    ):
        self.db = database or db
        self.provider = provider or payment_provider
        self.resolver = resolver or payment_resolver
        self.notifications = notifications or notification_service
        self.logger = get_logger(__name__)

    def _get_owned_booking(self, requester_id: int, booking_id: int) -> Booking:
        with self.db.session() as session:
            booking = session.get(Booking, booking_id)
            if not booking:
                raise NotFoundError("Booking not found")

            if booking.user_id != requester_id:
                raise ForbiddenError("Not authorized to pay for this booking")

            return booking

    def _apply_success(self, booking_id: int, outcome: ChargeOutcome, method_id: str, payer_user_id: int) -> None:
        with self.db.session() as session:
            booking = session.query(Booking).filter(Booking.id == booking_id).with_for_update().first()
            if not booking:
                raise NotFoundError("Booking not found")

            booking.mark_paid(outcome.id, method_id, payer_user_id)
            session.commit()

        self.logger.info("booking_paid", booking_id=booking_id, payment_intent=outcome.id)

    async def _notify_success(self, requester_id: int, resolved: ResolvedPaymentMethod, amount: int) -> None:
        amount_text = format_amount(amount)
        await self.notifications.notify(requester_id, "success", NotificationType.PAYMENT, amount=amount_text)
        await self.notifications.notify(requester_id, "processing", NotificationType.ORDER_STATUS)

        if resolved.payer_user_id != requester_id:
            with self.db.session() as session:
                requester = session.get(UserAccount, requester_id)
                member_name = (requester.name or requester.email) if requester else None

            await self.notifications.notify(
                resolved.payer_user_id,
                "delegated",
                NotificationType.PAYMENT,
                amount=amount_text,
                member_name=member_name,
            )

    async def charge(
        self,
        requester_id: int,
        booking_id: int,
        amount: int,
        description: str,
    ) -> ChargeResult:
        """Charge a booking.

        Args:
            requester_id: User paying for the booking
            booking_id: Booking to pay
            amount: Amount in cents, > 0
            description: Free-text charge description

        Raises:
            InvalidRequestError: If the input is invalid (no provider call made)
            NotFoundError: If the booking does not exist
            ForbiddenError: If the booking belongs to someone else
            NoPaymentMethodError: If no card could be resolved
            PaymentFailedError: If the provider rejected the charge
        """
        _validate_charge_request(booking_id, amount, description)
        self._get_owned_booking(requester_id, booking_id)

        resolved = await self.resolver.require_payment_method(requester_id)

        try:
            outcome = await self.provider.create_charge(
                customer_ref=resolved.customer_ref,
                method_id=resolved.method_id,
                amount=amount,
                description=f"Booking ID: {booking_id} - {description}",
                metadata={
                    "booking_id": str(booking_id),
                    "user_id": str(requester_id),
                    "payer_user_id": str(resolved.payer_user_id),
                },
            )
        except PaymentProviderError as e:
            self.logger.error("charge_failed", booking_id=booking_id, user_id=requester_id, error=e.message)
            await self.notifications.notify(
                requester_id, "failed", NotificationType.PAYMENT, amount=format_amount(amount)
            )
            raise PaymentFailedError(e.message)

        if outcome.status == SUCCEEDED:
            self._apply_success(booking_id, outcome, resolved.method_id, resolved.payer_user_id)
            await self._notify_success(requester_id, resolved, amount)
        else:
            self.logger.info("charge_not_succeeded", booking_id=booking_id, status=outcome.status)
            await self.notifications.notify(
                requester_id, "pending", NotificationType.PAYMENT, amount=format_amount(amount)
            )

        return ChargeResult(
            booking_id=booking_id,
            payment_intent_id=outcome.id,
            status=outcome.status,
            payer_user_id=resolved.payer_user_id,
            source=resolved.source,
        )

    async def refresh_charge(self, requester_id: int, booking_id: int, payment_intent_id: str) -> Booking:
        """Re-check a charge that did not succeed immediately.

        Applies the paid update once the provider reports it succeeded.

        Raises:
            InvalidRequestError: If the payment intent was made for another booking
            PaymentFailedError: If the provider cannot be reached
        """
        booking = self._get_owned_booking(requester_id, booking_id)
        if booking.is_paid:
            return booking

        try:
            outcome = await self.provider.retrieve_charge(payment_intent_id)
        except PaymentProviderError as e:
            raise PaymentFailedError(e.message)

        if outcome.metadata.get("booking_id") != str(booking_id):
            raise InvalidRequestError("Payment does not belong to this booking")

        if outcome.status != SUCCEEDED:
            return booking

        payer_user_id = int(outcome.metadata.get("payer_user_id") or requester_id)
        self._apply_success(booking_id, outcome, outcome.payment_method, payer_user_id)
        await self.notifications.notify(requester_id, "processing", NotificationType.ORDER_STATUS)

        return self._get_owned_booking(requester_id, booking_id)


# Singleton instance
charge_service = ChargeService()


def get_charge_service() -> ChargeService:
    """FastAPI dependency returning the charge service."""
    return charge_service
