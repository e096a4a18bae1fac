"""Payments module for BCN.

- Stripe-backed payment provider
- Delegation resolver: own card, then team owner, then teammates
- Charge orchestration for bookings
"""

from bcn.payments.provider import CardMethod, ChargeOutcome, PaymentProviderError, StripePaymentProvider
from bcn.payments.resolver import PaymentResolver, ResolvedPaymentMethod
from bcn.payments.service import ChargeResult, ChargeService

__all__ = [
    "CardMethod",
    "ChargeOutcome",
    "ChargeResult",
    "ChargeService",
    "PaymentProviderError",
    "PaymentResolver",
    "ResolvedPaymentMethod",
    "StripePaymentProvider",
]
