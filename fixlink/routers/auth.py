from fastapi import APIRouter, Depends, HTTPException

from fixlink.auth import DEMO_PASSWORD, create_access_token, require_caller
from fixlink.models import AuthLoginRequest, AuthLoginResponse, AuthMeResponse
from fixlink.services.access_control import Caller
from fixlink.services.catalog_store import catalog_store

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=AuthLoginResponse)
def login(payload: AuthLoginRequest):
    user_id = payload.user_id.strip()
    if not user_id:
        raise HTTPException(status_code=400, detail="user_id is required")
    user = catalog_store.get_user(user_id)
    if user is None or payload.password != DEMO_PASSWORD:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account is deactivated")
    token, expires_at = create_access_token(user_id=user.id, role=user.role)
    return AuthLoginResponse(access_token=token, user_id=user.id, role=user.role, expires_at=expires_at)


@router.get("/me", response_model=AuthMeResponse)
def me(caller: Caller = Depends(require_caller)):
    return AuthMeResponse(user_id=caller.user_id, role=caller.role.value)
