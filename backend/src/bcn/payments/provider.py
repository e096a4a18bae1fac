"""Stripe payment integration for BCN."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol, TypeVar

import stripe

from bcn.logging_config import get_logger
from bcn.settings import settings

logger = get_logger(__name__)

T = TypeVar("T")


class PaymentProviderError(Exception):
    """Payment provider call failed; ``message`` is safe to show the user."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class CardMethod:
    """A card payment method on file with the provider."""
    id: str
    customer: str | None
    brand: str | None = None
    last4: str | None = None
    exp_month: int | None = None
    exp_year: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customer": self.customer,
            "brand": self.brand,
            "last4": self.last4,
            "exp_month": self.exp_month,
            "exp_year": self.exp_year,
        }


@dataclass(frozen=True)
class ChargeOutcome:
    """Provider view of a charge."""
    id: str
    status: str
    payment_method: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


class PaymentProvider(Protocol):
    """What the resolver and charge orchestrator need from a provider."""

    async def list_methods(self, customer_ref: str) -> list[CardMethod]: ...

    async def create_customer(self, email: str, name: str | None, metadata: dict[str, str]) -> str: ...

    async def create_charge(
        self,
        customer_ref: str,
        method_id: str,
        amount: int,
        description: str,
        metadata: dict[str, str],
    ) -> ChargeOutcome: ...

    async def retrieve_charge(self, charge_id: str) -> ChargeOutcome: ...

    async def create_setup_intent(self, customer_ref: str) -> str: ...

    async def set_default_method(self, customer_ref: str, method_id: str) -> None: ...

    async def retrieve_method(self, method_id: str) -> CardMethod: ...

    async def detach_method(self, method_id: str) -> None: ...


def _outcome_from_stripe(intent: Any) -> ChargeOutcome:
    method = intent.payment_method
    if method is not None and not isinstance(method, str):
        method = method.id
    return ChargeOutcome(
        id=intent.id,
        status=intent.status,
        payment_method=method,
        metadata=dict(intent.metadata or {}),
    )


def _card_from_stripe(pm: Any) -> CardMethod:
    card = getattr(pm, "card", None)
    customer = pm.customer
    if customer is not None and not isinstance(customer, str):
        customer = customer.id  # expanded object
    return CardMethod(
        id=pm.id,
        customer=customer,
        brand=getattr(card, "brand", None),
        last4=getattr(card, "last4", None),
        exp_month=getattr(card, "exp_month", None),
        exp_year=getattr(card, "exp_year", None),
    )


class StripePaymentProvider:
    """Payment provider backed by the Stripe API.

    Every call is bounded by ``timeout``; Stripe errors and timeouts surface
    as ``PaymentProviderError``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        currency: str | None = None,
        timeout: float | None = None,
    ):
        self.api_key = api_key or settings.stripe_secret_key
        self.currency = currency or settings.payment_currency
        self.timeout = timeout or settings.provider_timeout_seconds

        if self.api_key:
            stripe.api_key = self.api_key
        else:
            logger.warning("stripe_disabled", reason="STRIPE_SECRET_KEY not set")

    async def _call(self, operation: str, request: Callable[[], Awaitable[T]]) -> T:
        if not self.api_key:
            raise PaymentProviderError("Stripe is not configured")

        try:
            return await asyncio.wait_for(request(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("stripe_timeout", operation=operation, timeout=self.timeout)
            raise PaymentProviderError("Payment provider timed out")
        except stripe.StripeError as e:
            message = getattr(e, "user_message", None) or str(e)
            logger.error("stripe_error", operation=operation, error=message, code=getattr(e, "code", None))
            raise PaymentProviderError(message)

    async def list_methods(self, customer_ref: str) -> list[CardMethod]:
        """List card methods for a customer, in the order Stripe returns them."""
        result = await self._call(
            "list_methods",
            lambda: stripe.PaymentMethod.list_async(customer=customer_ref, type="card"),
        )
        return [_card_from_stripe(pm) for pm in result.data]

    async def create_customer(self, email: str, name: str | None, metadata: dict[str, str]) -> str:
        customer = await self._call(
            "create_customer",
            lambda: stripe.Customer.create_async(email=email, name=name, metadata=metadata),
        )
        logger.info("stripe_customer_created", customer_id=customer.id)
        return customer.id

    async def create_charge(
        self,
        customer_ref: str,
        method_id: str,
        amount: int,
        description: str,
        metadata: dict[str, str],
    ) -> ChargeOutcome:
        """Create and immediately confirm a payment intent."""
        intent = await self._call(
            "create_charge",
            lambda: stripe.PaymentIntent.create_async(
                amount=amount,  # minor units
                currency=self.currency,
                customer=customer_ref,
                payment_method=method_id,
                description=description,
                metadata=metadata,
                confirm=True,
                automatic_payment_methods={
                    "enabled": True,
                    "allow_redirects": "never",
                },
            ),
        )
        logger.info("stripe_payment_intent_created", payment_intent=intent.id, status=intent.status)
        return _outcome_from_stripe(intent)

    async def retrieve_charge(self, charge_id: str) -> ChargeOutcome:
        intent = await self._call("retrieve_charge", lambda: stripe.PaymentIntent.retrieve_async(charge_id))
        return _outcome_from_stripe(intent)

    async def create_setup_intent(self, customer_ref: str) -> str:
        """Start saving a new card; returns the client secret."""
        intent = await self._call(
            "create_setup_intent",
            lambda: stripe.SetupIntent.create_async(customer=customer_ref, payment_method_types=["card"]),
        )
        return intent.client_secret

    async def set_default_method(self, customer_ref: str, method_id: str) -> None:
        await self._call(
            "set_default_method",
            lambda: stripe.Customer.modify_async(
                customer_ref,
                invoice_settings={"default_payment_method": method_id},
            ),
        )

    async def retrieve_method(self, method_id: str) -> CardMethod:
        pm = await self._call("retrieve_method", lambda: stripe.PaymentMethod.retrieve_async(method_id))
        return _card_from_stripe(pm)

    async def detach_method(self, method_id: str) -> None:
        await self._call("detach_method", lambda: stripe.PaymentMethod.detach_async(method_id))


# Singleton instance
payment_provider = StripePaymentProvider()
