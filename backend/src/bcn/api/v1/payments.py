"""Payments API endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from bcn.api.rate_limit import charge_limit, limiter
from bcn.auth.middleware import require_auth
from bcn.auth.models import UserAccount
from bcn.logging_config import get_logger
from bcn.payments.methods import PaymentMethodService, get_payment_method_service
from bcn.payments.service import ChargeService, get_charge_service

router = APIRouter(prefix="/payments", tags=["payments"])
logger = get_logger(__name__)


class ChargeRequest(BaseModel):
    """Charge a booking with the resolved card."""
    booking_id: int
    amount: int = Field(..., description="Amount in cents")
    description: str


class RefreshChargeRequest(BaseModel):
    payment_intent_id: str = Field(..., min_length=1)


class DefaultPaymentMethodRequest(BaseModel):
    payment_method_id: str = Field(..., min_length=1)


@router.post("/create-customer")
async def create_customer(
    current_user: UserAccount = Depends(require_auth),
    methods: PaymentMethodService = Depends(get_payment_method_service),
) -> dict[str, Any]:
    """Create the Stripe customer for the current user if missing."""
    customer_id, created = await methods.ensure_customer(current_user.id)
    return {
        "customer_id": customer_id,
        "message": "Customer created successfully" if created else "Customer already exists",
    }


@router.post("/setup-intent")
async def create_setup_intent(
    current_user: UserAccount = Depends(require_auth),
    methods: PaymentMethodService = Depends(get_payment_method_service),
) -> dict[str, Any]:
    """Start saving a card; the frontend confirms with the client secret."""
    client_secret = await methods.create_setup_intent(current_user.id)
    return {"client_secret": client_secret}


@router.get("/payment-methods")
async def list_payment_methods(
    current_user: UserAccount = Depends(require_auth),
    methods: PaymentMethodService = Depends(get_payment_method_service),
) -> dict[str, Any]:
    cards = await methods.list_payment_methods(current_user.id)
    return {"payment_methods": [card.to_dict() for card in cards]}


@router.get("/team-payment-methods")
async def list_team_payment_methods(
    current_user: UserAccount = Depends(require_auth),
    methods: PaymentMethodService = Depends(get_payment_method_service),
) -> dict[str, Any]:
    """Cards on file for every member of the current user's team."""
    members = await methods.list_team_payment_methods(current_user.id)
    return {"members": members}


@router.get("/check-payment-method")
async def check_payment_method(
    current_user: UserAccount = Depends(require_auth),
    methods: PaymentMethodService = Depends(get_payment_method_service),
) -> dict[str, Any]:
    """Whether a charge would find a card, and whose."""
    return await methods.check_payment_method(current_user.id)


@router.post("/set-default-payment-method")
async def set_default_payment_method(
    request: DefaultPaymentMethodRequest,
    current_user: UserAccount = Depends(require_auth),
    methods: PaymentMethodService = Depends(get_payment_method_service),
) -> dict[str, Any]:
    await methods.set_default_payment_method(current_user.id, request.payment_method_id)
    return {"success": True, "message": "Default payment method updated"}


@router.delete("/payment-methods/{payment_method_id}")
async def delete_payment_method(
    payment_method_id: str,
    current_user: UserAccount = Depends(require_auth),
    methods: PaymentMethodService = Depends(get_payment_method_service),
) -> dict[str, Any]:
    await methods.delete_payment_method(current_user.id, payment_method_id)
    return {"success": True, "message": "Payment method deleted"}


@router.post("/charge")
@limiter.limit(charge_limit)
async def charge(
    request: Request,
    body: ChargeRequest,
    current_user: UserAccount = Depends(require_auth),
    charges: ChargeService = Depends(get_charge_service),
) -> dict[str, Any]:
    """Charge a booking.

    Uses the user's own card, else the team owner's, else a teammate's.
    """
    result = await charges.charge(
        requester_id=current_user.id,
        booking_id=body.booking_id,
        amount=body.amount,
        description=body.description,
    )
    return result.to_dict()


@router.post("/bookings/{booking_id}/refresh")
async def refresh_charge(
    booking_id: int,
    request: RefreshChargeRequest,
    current_user: UserAccount = Depends(require_auth),
    charges: ChargeService = Depends(get_charge_service),
) -> dict[str, Any]:
    """Re-check a charge that was still processing."""
    booking = await charges.refresh_charge(current_user.id, booking_id, request.payment_intent_id)
    return {"booking": booking.to_dict()}
