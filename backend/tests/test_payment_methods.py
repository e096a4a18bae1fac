"""Tests for customer and card management."""

import pytest

from bcn.auth.models import UserAccount
from bcn.errors import ForbiddenError, InvalidRequestError, NotFoundError, PaymentFailedError
from bcn.payments.provider import CardMethod, PaymentProviderError

pytestmark = pytest.mark.unit


@pytest.mark.asyncio
async def test_ensure_customer_creates_once(payment_method_service, make_user, provider, load):
    user = make_user(email="ana@example.com", name="Ana")

    customer_id, created = await payment_method_service.ensure_customer(user.id)

    assert (customer_id, created) == ("cus_new", True)
    assert load(UserAccount, user.id).stripe_customer_id == "cus_new"
    provider.create_customer.assert_awaited_once_with(
        email="ana@example.com", name="Ana", metadata={"user_id": str(user.id)}
    )

    assert await payment_method_service.ensure_customer(user.id) == ("cus_new", False)
    provider.create_customer.assert_awaited_once()


@pytest.mark.asyncio
async def test_setup_intent_requires_customer(payment_method_service, make_user):
    user = make_user()

    with pytest.raises(InvalidRequestError):
        await payment_method_service.create_setup_intent(user.id)


@pytest.mark.asyncio
async def test_setup_intent_returns_client_secret(payment_method_service, make_user):
    user = make_user(customer="cus_1")

    assert await payment_method_service.create_setup_intent(user.id) == "seti_secret"


@pytest.mark.asyncio
async def test_list_payment_methods(payment_method_service, make_user, cards):
    user = make_user(customer="cus_1")
    cards["cus_1"] = ["pm_1", "pm_2"]

    methods = await payment_method_service.list_payment_methods(user.id)

    assert [m.id for m in methods] == ["pm_1", "pm_2"]


@pytest.mark.asyncio
async def test_list_team_payment_methods(payment_method_service, team_service, make_user, cards):
    owner = make_user(email="owner@example.com", customer="cus_owner")
    make_user(email="nocard@example.com")
    member = make_user(email="member@example.com", customer="cus_member")
    team = await team_service.create_team(owner.id, "Crew")
    await team_service.invite(team.id, owner.id, "nocard@example.com")
    await team_service.invite(team.id, owner.id, "member@example.com")
    await team_service.accept_invitation(team.id, "member@example.com")
    cards["cus_owner"] = ["pm_owner"]

    result = await payment_method_service.list_team_payment_methods(member.id)

    assert [entry["user_id"] for entry in result] == [owner.id, member.id]
    assert result[0]["is_owner"] is True
    assert [m["id"] for m in result[0]["payment_methods"]] == ["pm_owner"]
    assert result[1]["payment_methods"] == []


@pytest.mark.asyncio
async def test_list_team_payment_methods_requires_accepted_invitation(
    payment_method_service, team_service, make_user, cards
):
    owner = make_user(email="owner@example.com", customer="cus_owner")
    invitee = make_user(email="invitee@example.com")
    team = await team_service.create_team(owner.id, "Crew")
    await team_service.invite(team.id, owner.id, "invitee@example.com")
    cards["cus_owner"] = ["pm_owner"]

    with pytest.raises(ForbiddenError):
        await payment_method_service.list_team_payment_methods(invitee.id)


@pytest.mark.asyncio
async def test_list_team_payment_methods_without_team(payment_method_service, make_user):
    user = make_user()

    with pytest.raises(NotFoundError):
        await payment_method_service.list_team_payment_methods(user.id)


@pytest.mark.asyncio
async def test_check_payment_method(payment_method_service, make_user, cards):
    user = make_user(customer="cus_1")

    assert (await payment_method_service.check_payment_method(user.id))["has_payment_method"] is False

    cards["cus_1"] = ["pm_1"]
    report = await payment_method_service.check_payment_method(user.id)

    assert report == {"has_payment_method": True, "source": "self", "payer_user_id": user.id}


@pytest.mark.asyncio
async def test_set_default_payment_method(payment_method_service, make_user, provider):
    user = make_user(customer="cus_1")

    await payment_method_service.set_default_payment_method(user.id, "pm_1")

    provider.set_default_method.assert_awaited_once_with("cus_1", "pm_1")


@pytest.mark.asyncio
async def test_delete_own_payment_method(payment_method_service, make_user, provider):
    user = make_user(customer="cus_1")
    provider.retrieve_method.return_value = CardMethod(id="pm_1", customer="cus_1")

    await payment_method_service.delete_payment_method(user.id, "pm_1")

    provider.detach_method.assert_awaited_once_with("pm_1")


@pytest.mark.asyncio
async def test_delete_someone_elses_payment_method(payment_method_service, make_user, provider):
    user = make_user(customer="cus_1")
    provider.retrieve_method.return_value = CardMethod(id="pm_9", customer="cus_other")

    with pytest.raises(ForbiddenError):
        await payment_method_service.delete_payment_method(user.id, "pm_9")

    provider.detach_method.assert_not_awaited()


@pytest.mark.asyncio
async def test_provider_error_becomes_payment_failed(payment_method_service, make_user, provider):
    user = make_user(customer="cus_1")
    provider.list_methods.side_effect = PaymentProviderError("Stripe is not configured")

    with pytest.raises(PaymentFailedError):
        await payment_method_service.list_payment_methods(user.id)
