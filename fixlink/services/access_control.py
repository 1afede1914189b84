from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional


class Role(str, Enum):
    CUSTOMER = "customer"
    PROVIDER = "provider"
    ADMIN = "admin"


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: Role


def parse_role(value: str) -> Role:
    try:
        return Role(str(value).strip().lower())
    except ValueError:
        raise ValueError(f"Unknown role: {value}") from None


def has_role(role: Role, allowed_roles: Iterable[Role]) -> bool:
    return role in set(allowed_roles)


def relationship_to(caller: Caller, customer_id: str, provider_id: str) -> str:
    """Return how the caller relates to a booking: customer, provider, admin or none.

    Direct participation wins over the admin role, so an admin who booked a
    service is treated as that booking's customer.
    """
    if caller.user_id == customer_id:
        return "customer"
    if caller.user_id == provider_id:
        return "provider"
    if caller.role is Role.ADMIN:
        return "admin"
    if caller.role in (Role.CUSTOMER, Role.PROVIDER):
        return "none"
    raise ValueError(f"Unhandled role: {caller.role}")


def is_owner_or_admin(caller: Caller, customer_id: str, provider_id: str) -> bool:
    return relationship_to(caller, customer_id, provider_id) != "none"


def is_booking_customer(caller: Caller, customer_id: str) -> bool:
    return caller.user_id == customer_id


def cancellation_party(caller: Caller, customer_id: str) -> str:
    # Admins are not matched directly and fall through to "provider".
    return "customer" if is_booking_customer(caller, customer_id) else "provider"


def visibility_scope(caller: Caller) -> Dict[str, Optional[str]]:
    """Filters limiting which bookings a caller may list or count."""
    if caller.role is Role.CUSTOMER:
        return {"customer_id": caller.user_id, "provider_id": None}
    if caller.role is Role.PROVIDER:
        return {"customer_id": None, "provider_id": caller.user_id}
    if caller.role is Role.ADMIN:
        return {"customer_id": None, "provider_id": None}
    raise ValueError(f"Unhandled role: {caller.role}")
