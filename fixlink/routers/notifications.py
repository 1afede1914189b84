from fastapi import APIRouter, Depends, HTTPException, Query

from fixlink.auth import require_caller
from fixlink.models import NotificationRecord
from fixlink.services.access_control import Caller
from fixlink.services.notification_store import notification_store

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationRecord])
def list_notifications(
    unread_only: bool = Query(default=False),
    caller: Caller = Depends(require_caller),
):
    return notification_store.list_for_user(user_id=caller.user_id, unread_only=unread_only)


@router.post("/{notification_id}/read", response_model=NotificationRecord)
def mark_notification_read(notification_id: str, caller: Caller = Depends(require_caller)):
    updated = notification_store.mark_read(user_id=caller.user_id, notification_id=notification_id)
    if not updated:
        raise HTTPException(status_code=404, detail="Notification not found")
    return updated
