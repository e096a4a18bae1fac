"""Customer and card management on top of the payment provider."""

from typing import Any

from bcn.auth.models import UserAccount
from bcn.errors import ForbiddenError, InvalidRequestError, NotFoundError, PaymentFailedError
from bcn.logging_config import get_logger
from bcn.payments.provider import CardMethod, PaymentProvider, PaymentProviderError, payment_provider
from bcn.payments.resolver import PaymentResolver, payment_resolver
from bcn.storage.db import Database, db
from bcn.teams.models import Team

logger = get_logger(__name__)


class PaymentMethodService:
    """Manages a user's provider customer and saved cards."""

    def __init__(
        self,
        database: Database | None = None,
        provider: PaymentProvider | None = None,
        resolver: PaymentResolver | None = None,
    ):
        self.db = database or db
        self.provider = provider or payment_provider
        self.resolver = resolver or payment_resolver
        self.logger = get_logger(__name__)

    def _get_user(self, user_id: int) -> UserAccount:
        with self.db.session() as session:
            user = session.get(UserAccount, user_id)
            if not user:
                raise NotFoundError("User not found")
            return user

    def _require_customer(self, user_id: int) -> str:
        user = self._get_user(user_id)
        if not user.stripe_customer_id:
            raise InvalidRequestError("No Stripe customer found")
        return user.stripe_customer_id

    async def ensure_customer(self, user_id: int) -> tuple[str, bool]:
        """Create the provider customer for a user if missing.

        Returns:
            (customer id, created)
        """
        user = self._get_user(user_id)
        if user.stripe_customer_id:
            return user.stripe_customer_id, False

        try:
            customer_id = await self.provider.create_customer(
                email=user.email,
                name=user.name,
                metadata={"user_id": str(user.id)},
            )
        except PaymentProviderError as e:
            raise PaymentFailedError(e.message)

        with self.db.session() as session:
            stored = session.query(UserAccount).filter(UserAccount.id == user_id).with_for_update().first()
            if stored.stripe_customer_id:
                # A concurrent request won; keep its customer
                return stored.stripe_customer_id, False
            stored.stripe_customer_id = customer_id
            session.commit()

        self.logger.info("customer_created", user_id=user_id, customer_id=customer_id)
        return customer_id, True

    async def create_setup_intent(self, user_id: int) -> str:
        customer_id = self._require_customer(user_id)
        try:
            return await self.provider.create_setup_intent(customer_id)
        except PaymentProviderError as e:
            raise PaymentFailedError(e.message)

    async def list_payment_methods(self, user_id: int) -> list[CardMethod]:
        customer_id = self._require_customer(user_id)
        try:
            return await self.provider.list_methods(customer_id)
        except PaymentProviderError as e:
            raise PaymentFailedError(e.message)

    async def list_team_payment_methods(self, user_id: int) -> list[dict[str, Any]]:
        """Cards on file across the user's team, grouped by member.

        Only accepted members are listed, in stored order; members without a
        customer are skipped.

        Raises:
            NotFoundError: If the user has no team
            ForbiddenError: If the user has not accepted the invitation yet
        """
        with self.db.session() as session:
            user = session.get(UserAccount, user_id)
            if not user:
                raise NotFoundError("User not found")
            if user.team_id is None:
                raise NotFoundError("You do not belong to any team")
            team = session.get(Team, user.team_id)
            if not team:
                raise NotFoundError("Team not found")
            if not team.has_joined(user_id):
                raise ForbiddenError("Accept the team invitation to see its payment methods")

        result = []
        for member in team.joined_members:
            if not member.user.stripe_customer_id:
                continue
            try:
                methods = await self.provider.list_methods(member.user.stripe_customer_id)
            except PaymentProviderError as e:
                self.logger.warning("team_member_methods_unavailable", user_id=member.user_id, error=e.message)
                continue
            result.append({
                "user_id": member.user_id,
                "name": member.user.name,
                "email": member.user.email,
                "is_owner": member.user_id == team.owner_id,
                "payment_methods": [m.to_dict() for m in methods],
            })
        return result

    async def check_payment_method(self, user_id: int) -> dict[str, Any]:
        """Report whether a charge for this user would find a card."""
        resolved = await self.resolver.resolve_payment_method(user_id)
        if resolved is None:
            return {"has_payment_method": False, "source": None, "payer_user_id": None}
        return {
            "has_payment_method": True,
            "source": resolved.source,
            "payer_user_id": resolved.payer_user_id,
        }

    async def set_default_payment_method(self, user_id: int, method_id: str) -> None:
        if not method_id:
            raise InvalidRequestError("Payment method ID is required")

        customer_id = self._require_customer(user_id)
        try:
            await self.provider.set_default_method(customer_id, method_id)
        except PaymentProviderError as e:
            raise PaymentFailedError(e.message)

        self.logger.info("default_payment_method_set", user_id=user_id, payment_method=method_id)

    async def delete_payment_method(self, user_id: int, method_id: str) -> None:
        """Detach one of the user's own cards.

        Raises:
            ForbiddenError: If the card belongs to another customer
        """
        if not method_id:
            raise InvalidRequestError("Payment method ID is required")

        customer_id = self._require_customer(user_id)
        try:
            method = await self.provider.retrieve_method(method_id)
            if method.customer != customer_id:
                raise ForbiddenError("Not authorized to delete this payment method")
            await self.provider.detach_method(method_id)
        except PaymentProviderError as e:
            raise PaymentFailedError(e.message)

        self.logger.info("payment_method_deleted", user_id=user_id, payment_method=method_id)


# Singleton instance
payment_method_service = PaymentMethodService()


def get_payment_method_service() -> PaymentMethodService:
    """FastAPI dependency returning the payment method service."""
    return payment_method_service
