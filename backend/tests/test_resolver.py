"""Tests for the payment method delegation chain."""

import pytest
import pytest_asyncio

from bcn.errors import NoPaymentMethodError, NotFoundError
from bcn.payments.provider import CardMethod, PaymentProviderError

pytestmark = pytest.mark.unit


@pytest_asyncio.fixture
async def team(team_service, make_user):
    """Owner with customer cus_owner and accepted members M1, M2 in that order."""
    owner = make_user(email="owner@example.com", customer="cus_owner")
    m1 = make_user(email="m1@example.com", customer="cus_m1")
    m2 = make_user(email="m2@example.com", customer="cus_m2")
    created = await team_service.create_team(owner.id, "Crew")
    await team_service.invite(created.id, owner.id, "m1@example.com")
    await team_service.accept_invitation(created.id, "m1@example.com")
    await team_service.invite(created.id, owner.id, "m2@example.com")
    await team_service.accept_invitation(created.id, "m2@example.com")
    return owner, m1, m2


@pytest.mark.asyncio
async def test_member_without_card_uses_owners_first_card(resolver, team, cards):
    owner, m1, _ = team
    cards["cus_owner"] = ["pm_A", "pm_B"]

    resolved = await resolver.resolve_payment_method(m1.id)

    assert resolved.method_id == "pm_A"
    assert resolved.customer_ref == "cus_owner"
    assert resolved.payer_user_id == owner.id
    assert resolved.source == "team_owner"
    assert resolved.delegated is True


@pytest.mark.asyncio
async def test_own_card_is_preferred(resolver, team, cards):
    _, m1, _ = team
    cards["cus_owner"] = ["pm_A"]
    cards["cus_m1"] = ["pm_mine"]

    resolved = await resolver.resolve_payment_method(m1.id)

    assert resolved.method_id == "pm_mine"
    assert resolved.payer_user_id == m1.id
    assert resolved.source == "self"
    assert resolved.delegated is False


@pytest.mark.asyncio
async def test_falls_back_to_teammates_in_stored_order(resolver, team, cards, provider):
    _, m1, m2 = team
    cards["cus_m2"] = ["pm_m2"]

    resolved = await resolver.resolve_payment_method(m1.id)

    assert resolved.method_id == "pm_m2"
    assert resolved.payer_user_id == m2.id
    assert resolved.source == "teammate"
    listed = [call.args[0] for call in provider.list_methods.await_args_list]
    assert listed == ["cus_m1", "cus_owner", "cus_m2"]


@pytest.mark.asyncio
async def test_owner_is_not_asked_twice(resolver, team, cards, provider):
    owner, _, _ = team
    cards["cus_m1"] = ["pm_m1"]

    resolved = await resolver.resolve_payment_method(owner.id)

    assert resolved.payer_user_id != owner.id
    assert resolved.method_id == "pm_m1"
    listed = [call.args[0] for call in provider.list_methods.await_args_list]
    assert listed.count("cus_owner") == 1


@pytest.mark.asyncio
async def test_user_without_team_or_card(resolver, make_user):
    loner = make_user(customer="cus_loner")

    assert await resolver.resolve_payment_method(loner.id) is None
    with pytest.raises(NoPaymentMethodError):
        await resolver.require_payment_method(loner.id)


@pytest.mark.asyncio
async def test_user_without_customer_is_skipped(resolver, make_user, team_service, cards, provider):
    owner = make_user(email="boss@example.com", customer="cus_boss")
    member = make_user(email="new@example.com")
    created = await team_service.create_team(owner.id, "Crew")
    await team_service.invite(created.id, owner.id, "new@example.com")
    await team_service.accept_invitation(created.id, "new@example.com")
    cards["cus_boss"] = ["pm_boss"]

    resolved = await resolver.resolve_payment_method(member.id)

    assert resolved.method_id == "pm_boss"
    assert provider.list_methods.await_args_list[0].args[0] == "cus_boss"


@pytest.mark.asyncio
async def test_provider_error_skips_candidate(resolver, team, cards, provider):
    _, m1, m2 = team
    cards["cus_m2"] = ["pm_m2"]

    async def flaky(customer_ref):
        if customer_ref == "cus_owner":
            raise PaymentProviderError("Stripe is down")
        return [CardMethod(id=card_id, customer=customer_ref) for card_id in cards.get(customer_ref, [])]

    provider.list_methods.side_effect = flaky

    resolved = await resolver.resolve_payment_method(m1.id)

    assert resolved.payer_user_id == m2.id


@pytest.mark.asyncio
async def test_unknown_user(resolver):
    with pytest.raises(NotFoundError):
        await resolver.resolve_payment_method(9999)


@pytest.mark.asyncio
async def test_pending_invitee_cannot_use_team_cards(resolver, team_service, team, make_user, cards):
    owner, _, _ = team
    invitee = make_user(email="pending@example.com")
    team_id = team_service.get_my_team(owner.id).id
    await team_service.invite(team_id, owner.id, "pending@example.com")
    cards["cus_owner"] = ["pm_owner"]

    assert await resolver.resolve_payment_method(invitee.id) is None


@pytest.mark.asyncio
async def test_declined_invitee_cannot_use_team_cards(resolver, team_service, make_user, cards):
    owner = make_user(email="boss@example.com", customer="cus_owner")
    decliner = make_user(email="decliner@example.com")
    created = await team_service.create_team(owner.id, "Crew")
    await team_service.invite(created.id, owner.id, "decliner@example.com")
    await team_service.reject_invitation(created.id, "decliner@example.com")
    cards["cus_owner"] = ["pm_owner"]

    assert await resolver.resolve_payment_method(decliner.id) is None
    with pytest.raises(NoPaymentMethodError):
        await resolver.require_payment_method(decliner.id)


@pytest.mark.asyncio
async def test_pending_invitee_keeps_own_card(resolver, team_service, team, make_user, cards):
    owner, _, _ = team
    invitee = make_user(email="pending@example.com", customer="cus_pending")
    team_id = team_service.get_my_team(owner.id).id
    await team_service.invite(team_id, owner.id, "pending@example.com")
    cards["cus_owner"] = ["pm_owner"]
    cards["cus_pending"] = ["pm_pending"]

    resolved = await resolver.resolve_payment_method(invitee.id)

    assert resolved.source == "self"
    assert resolved.method_id == "pm_pending"


@pytest.mark.asyncio
async def test_pending_members_cards_are_not_offered(resolver, team_service, team, make_user, cards, provider):
    owner, m1, _ = team
    make_user(email="pending@example.com", customer="cus_pending")
    team_id = team_service.get_my_team(owner.id).id
    await team_service.invite(team_id, owner.id, "pending@example.com")
    cards["cus_pending"] = ["pm_pending"]

    assert await resolver.resolve_payment_method(m1.id) is None
    listed = [call.args[0] for call in provider.list_methods.await_args_list]
    assert "cus_pending" not in listed
