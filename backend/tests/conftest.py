"""
Test configuration and fixtures.

Every test gets its own SQLite file and fresh service instances wired to
fakes for the payment provider, email and the live publisher.
"""

import os
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment variables before importing the application.
os.environ.setdefault("ENV", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-the-test-suite-only")

from bcn.auth.models import UserAccount  # noqa: E402
from bcn.bookings.models import Booking  # noqa: E402
from bcn.notifications.models import Notification  # noqa: E402
from bcn.notifications.service import NotificationService  # noqa: E402
from bcn.payments.methods import PaymentMethodService  # noqa: E402
from bcn.payments.provider import CardMethod, ChargeOutcome  # noqa: E402
from bcn.payments.resolver import PaymentResolver  # noqa: E402
from bcn.payments.service import ChargeService  # noqa: E402
from bcn.storage.db import Database  # noqa: E402
from bcn.teams.service import TeamService  # noqa: E402


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "api: API endpoint tests")


# =============================================================================
# DATABASE
# =============================================================================


@pytest.fixture
def database(tmp_path):
    """A fresh database with all tables."""
    database = Database(f"sqlite:///{tmp_path}/bcn_test.db")
    database.create_tables()
    yield database
    database.engine.dispose()


@pytest.fixture
def make_user(database):
    """Create a user account; returns the detached instance."""
    counter = {"n": 0}

    def _make_user(email: str | None = None, name: str | None = None, customer: str | None = None) -> UserAccount:
        counter["n"] += 1
        with database.session() as session:
            user = UserAccount(
                email=email or f"user{counter['n']}@example.com",
                name=name,
                stripe_customer_id=customer,
            )
            session.add(user)
            session.commit()
            return user

    return _make_user


@pytest.fixture
def make_booking(database):
    """Create an unpaid booking owned by a user."""

    def _make_booking(user_id: int) -> Booking:
        with database.session() as session:
            booking = Booking(user_id=user_id, details={"pickup": "Pier 39", "dropoff": "Market St"})
            session.add(booking)
            session.commit()
            return booking

    return _make_booking


@pytest.fixture
def load(database):
    """Re-read a row by primary key."""

    def _load(model, pk):
        with database.session() as session:
            return session.get(model, pk)

    return _load


@pytest.fixture
def notifications_for(database):
    """All stored notifications of a user, oldest first."""

    def _notifications_for(user_id: int) -> list[Notification]:
        with database.session() as session:
            return (
                session.query(Notification)
                .filter(Notification.user_id == user_id)
                .order_by(Notification.id)
                .all()
            )

    return _notifications_for


# =============================================================================
# FAKES
# =============================================================================


@pytest.fixture
def publisher():
    """Live publisher that accepts everything."""
    fake = MagicMock()
    fake.publish = AsyncMock(return_value=1)
    return fake


@pytest.fixture
def email():
    """Email service whose sends succeed."""
    fake = MagicMock()
    fake.send_team_invitation = AsyncMock(return_value=True)
    fake.invitation_link.side_effect = lambda team_id, addr: f"http://localhost:3000/team-invitation?teamId={team_id}"
    return fake


@pytest.fixture
def cards():
    """Cards on file per customer id, in provider order."""
    return {}


@pytest.fixture
def provider(cards):
    """Payment provider backed by the ``cards`` dict."""
    fake = MagicMock()

    async def list_methods(customer_ref):
        return [CardMethod(id=card_id, customer=customer_ref) for card_id in cards.get(customer_ref, [])]

    fake.list_methods = AsyncMock(side_effect=list_methods)
    fake.create_charge = AsyncMock(return_value=ChargeOutcome(id="pi_123", status="succeeded"))
    fake.retrieve_charge = AsyncMock()
    fake.create_customer = AsyncMock(return_value="cus_new")
    fake.create_setup_intent = AsyncMock(return_value="seti_secret")
    fake.set_default_method = AsyncMock(return_value=None)
    fake.retrieve_method = AsyncMock()
    fake.detach_method = AsyncMock(return_value=None)
    return fake


# =============================================================================
# SERVICES
# =============================================================================


@pytest.fixture
def notification_service(database, publisher):
    return NotificationService(database=database, publisher=publisher, publish_timeout=1.0)


@pytest.fixture
def team_service(database, notification_service, email):
    return TeamService(database=database, notifications=notification_service, email=email)


@pytest.fixture
def resolver(database, provider):
    return PaymentResolver(provider=provider, database=database)


@pytest.fixture
def charge_service(database, provider, resolver, notification_service):
    return ChargeService(
        database=database,
        provider=provider,
        resolver=resolver,
        notifications=notification_service,
    )


@pytest.fixture
def payment_method_service(database, provider, resolver):
    return PaymentMethodService(database=database, provider=provider, resolver=resolver)
