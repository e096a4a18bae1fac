"""Payment method delegation resolver.

Finds a card to pay with for a user, trying in a fixed order:

1. the user's own first card
2. the team owner's first card
3. the first teammate (stored member order) with a card

Only accepted memberships count. A pending or declined invitee pays with
their own card or not at all, and their cards are never offered to the
team. The order is a product policy; the first card the provider lists for
a customer is the one used.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from bcn.auth.models import UserAccount
from bcn.errors import NoPaymentMethodError, NotFoundError
from bcn.logging_config import get_logger
from bcn.payments.provider import PaymentProvider, PaymentProviderError, payment_provider
from bcn.storage.db import Database, db
from bcn.teams.models import Team

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResolvedPaymentMethod:
    """Customer and card to charge, and whose they are."""
    customer_ref: str
    method_id: str
    payer_user_id: int
    source: str  # self | team_owner | teammate

    @property
    def delegated(self) -> bool:
        return self.source != "self"


@dataclass
class ResolutionContext:
    requester: UserAccount
    team: Team | None


async def first_card(provider: PaymentProvider, user: UserAccount, source: str) -> ResolvedPaymentMethod | None:
    """The first card the provider lists for a user's customer, if any."""
    if not user.stripe_customer_id:
        return None

    try:
        methods = await provider.list_methods(user.stripe_customer_id)
    except PaymentProviderError as e:
        # One unreachable profile should not block the rest of the chain
        logger.warning("payment_methods_unavailable", user_id=user.id, error=e.message)
        return None

    if not methods:
        return None

    return ResolvedPaymentMethod(
        customer_ref=user.stripe_customer_id,
        method_id=methods[0].id,
        payer_user_id=user.id,
        source=source,
    )


class PaymentCandidate(ABC):
    """One step of the fallback chain."""

    source: str

    @abstractmethod
    def candidates(self, ctx: ResolutionContext) -> list[UserAccount]:
        """Users whose cards this step may use, in order."""

    async def try_resolve(self, ctx: ResolutionContext, provider: PaymentProvider) -> ResolvedPaymentMethod | None:
        for user in self.candidates(ctx):
            found = await first_card(provider, user, self.source)
            if found:
                return found
        return None


class SelfCandidate(PaymentCandidate):
    source = "self"

    def candidates(self, ctx: ResolutionContext) -> list[UserAccount]:
        return [ctx.requester]


class TeamOwnerCandidate(PaymentCandidate):
    source = "team_owner"

    def candidates(self, ctx: ResolutionContext) -> list[UserAccount]:
        if ctx.team is None or ctx.team.owner_id == ctx.requester.id:
            return []
        return [ctx.team.owner]


class TeammateCandidate(PaymentCandidate):
    source = "teammate"

    def candidates(self, ctx: ResolutionContext) -> list[UserAccount]:
        if ctx.team is None:
            return []
        skip = {ctx.requester.id, ctx.team.owner_id}
        return [m.user for m in ctx.team.joined_members if m.user_id not in skip]


DEFAULT_CHAIN: tuple[PaymentCandidate, ...] = (
    SelfCandidate(),
    TeamOwnerCandidate(),
    TeammateCandidate(),
)


class PaymentResolver:
    """Walks the candidate chain and returns the first usable card."""

    def __init__(
        self,
        provider: PaymentProvider | None = None,
        database: Database | None = None,
        chain: tuple[PaymentCandidate, ...] = DEFAULT_CHAIN,
    ):
        self.provider = provider or payment_provider
        self.db = database or db
        self.chain = chain

    def _load_context(self, user_id: int) -> ResolutionContext:
        with self.db.session() as session:
            user = session.get(UserAccount, user_id)
            if not user:
                raise NotFoundError("User not found")

            team = session.get(Team, user.team_id) if user.team_id is not None else None
            if team is not None and not team.has_joined(user.id):
                team = None
            return ResolutionContext(requester=user, team=team)

    async def resolve_payment_method(self, user_id: int) -> ResolvedPaymentMethod | None:
        """Find the card to charge for a user, or None."""
        ctx = self._load_context(user_id)

        for candidate in self.chain:
            resolved = await candidate.try_resolve(ctx, self.provider)
            if resolved:
                logger.info(
                    "payment_method_resolved",
                    user_id=user_id,
                    payer_user_id=resolved.payer_user_id,
                    source=resolved.source,
                )
                return resolved

        logger.info("payment_method_not_found", user_id=user_id, team_id=ctx.team.id if ctx.team else None)
        return None

    async def require_payment_method(self, user_id: int) -> ResolvedPaymentMethod:
        """Like ``resolve_payment_method`` but raises when nothing is usable.

        Raises:
            NoPaymentMethodError: If no card was found anywhere in the chain
        """
        resolved = await self.resolve_payment_method(user_id)
        if resolved is None:
            raise NoPaymentMethodError(
                "No payment method found. Please add a card or ask your team owner to add one."
            )
        return resolved


# Singleton instance
payment_resolver = PaymentResolver()
