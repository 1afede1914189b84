from collections import defaultdict, deque
from datetime import datetime, timezone
from threading import Lock
from typing import Deque, Dict, List, Optional
from uuid import uuid4

from fixlink.models import NotificationRecord


class NotificationStore:
    """In-process inbox standing in for the booking message channel.

    Each user keeps at most ``max_per_user`` notifications; publishing past
    that drops the oldest one.
    """

    def __init__(self, max_per_user: int = 100):
        self._lock = Lock()
        self._max_per_user = max_per_user
        self._inboxes: Dict[str, Deque[NotificationRecord]] = defaultdict(lambda: deque(maxlen=self._max_per_user))

    def publish(
        self,
        user_id: str,
        title: str,
        body: str,
        category: str = "system",
        deep_link: Optional[str] = None,
    ) -> NotificationRecord:
        record = NotificationRecord(
            id=f"ntf_{uuid4().hex[:10]}",
            user_id=user_id,
            title=title,
            body=body,
            category=category,  # type: ignore[arg-type]
            created_at=datetime.now(timezone.utc),
            deep_link=deep_link,
        )
        with self._lock:
            self._inboxes[user_id].appendleft(record)
        return record

    def list_for_user(self, user_id: str, unread_only: bool = False) -> List[NotificationRecord]:
        with self._lock:
            inbox = list(self._inboxes.get(user_id, ()))
        if unread_only:
            return [record for record in inbox if not record.read]
        return inbox

    def mark_read(self, user_id: str, notification_id: str) -> Optional[NotificationRecord]:
        with self._lock:
            inbox = self._inboxes.get(user_id)
            if not inbox:
                return None
            for position, record in enumerate(inbox):
                if record.id == notification_id:
                    inbox[position] = record.model_copy(update={"read": True})
                    return inbox[position]
        return None


notification_store = NotificationStore()
