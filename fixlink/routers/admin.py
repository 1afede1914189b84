from fastapi import APIRouter, Depends

from fixlink.auth import require_caller
from fixlink.http_errors import raise_http_error
from fixlink.models import ActiveFlagUpdateRequest, AdminStats, ServiceListing, UserProfile
from fixlink.services.access_control import Caller, Role, has_role
from fixlink.services.booking_lifecycle import booking_lifecycle
from fixlink.services.catalog_store import catalog_store
from fixlink.services.errors import FixLinkError, FixLinkPermissionError

router = APIRouter(prefix="/admin", tags=["admin"])


def _require_admin(caller: Caller) -> None:
    if not has_role(caller.role, {Role.ADMIN}):
        raise FixLinkPermissionError("Admin access required")


@router.get("/stats", response_model=AdminStats)
def admin_stats(caller: Caller = Depends(require_caller)):
    try:
        return booking_lifecycle.admin_stats(caller)
    except FixLinkError as exc:
        raise_http_error(exc)


@router.put("/users/{user_id}/status", response_model=UserProfile)
def set_user_status(user_id: str, request: ActiveFlagUpdateRequest, caller: Caller = Depends(require_caller)):
    try:
        _require_admin(caller)
        return catalog_store.set_user_active(user_id, request.is_active)
    except FixLinkError as exc:
        raise_http_error(exc)


@router.put("/services/{service_id}/status", response_model=ServiceListing)
def set_service_status(service_id: str, request: ActiveFlagUpdateRequest, caller: Caller = Depends(require_caller)):
    try:
        _require_admin(caller)
        return catalog_store.set_service_active(service_id, request.is_active)
    except FixLinkError as exc:
        raise_http_error(exc)
