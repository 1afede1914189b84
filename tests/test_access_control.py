import pytest

from fixlink.services.access_control import (
    Caller,
    Role,
    cancellation_party,
    has_role,
    is_owner_or_admin,
    parse_role,
    relationship_to,
    visibility_scope,
)


CUSTOMER = Caller(user_id="customer_1", role=Role.CUSTOMER)
PROVIDER = Caller(user_id="provider_1", role=Role.PROVIDER)
ADMIN = Caller(user_id="admin_1", role=Role.ADMIN)
STRANGER = Caller(user_id="customer_2", role=Role.CUSTOMER)


def test_parse_role_normalizes_and_rejects_unknown():
    assert parse_role(" Provider ") is Role.PROVIDER
    with pytest.raises(ValueError):
        parse_role("superuser")


def test_has_role():
    assert has_role(Role.ADMIN, {Role.CUSTOMER, Role.ADMIN})
    assert not has_role(Role.PROVIDER, {Role.CUSTOMER, Role.ADMIN})


def test_relationship_to_booking_parties():
    assert relationship_to(CUSTOMER, "customer_1", "provider_1") == "customer"
    assert relationship_to(PROVIDER, "customer_1", "provider_1") == "provider"
    assert relationship_to(ADMIN, "customer_1", "provider_1") == "admin"
    assert relationship_to(STRANGER, "customer_1", "provider_1") == "none"


def test_is_owner_or_admin():
    assert is_owner_or_admin(CUSTOMER, "customer_1", "provider_1")
    assert is_owner_or_admin(ADMIN, "customer_1", "provider_1")
    assert not is_owner_or_admin(STRANGER, "customer_1", "provider_1")
    assert not is_owner_or_admin(Caller(user_id="provider_2", role=Role.PROVIDER), "customer_1", "provider_1")


def test_cancellation_party_admin_falls_through_to_provider():
    assert cancellation_party(CUSTOMER, "customer_1") == "customer"
    assert cancellation_party(PROVIDER, "customer_1") == "provider"
    assert cancellation_party(ADMIN, "customer_1") == "provider"


def test_visibility_scope_per_role():
    assert visibility_scope(CUSTOMER) == {"customer_id": "customer_1", "provider_id": None}
    assert visibility_scope(PROVIDER) == {"customer_id": None, "provider_id": "provider_1"}
    assert visibility_scope(ADMIN) == {"customer_id": None, "provider_id": None}
