import json
import logging
import math
from datetime import datetime, timezone
from typing import Callable, Dict, FrozenSet, List, Optional
from uuid import uuid4

from fixlink.models import (
    AdminStats,
    Booking,
    BookingPage,
    BookingStats,
    BookingStatusChange,
    BookingView,
    Location,
    PartySummary,
    ServiceSummary,
)
from fixlink.services.access_control import (
    Caller,
    Role,
    cancellation_party,
    has_role,
    is_booking_customer,
    is_owner_or_admin,
    relationship_to,
    visibility_scope,
)
from fixlink.services.availability import as_utc, hours_until, validate_duration, validate_slot
from fixlink.services.booking_store import BookingStore, booking_store
from fixlink.services.catalog_store import CatalogStore, catalog_store
from fixlink.services.errors import (
    FixLinkConflictError,
    FixLinkNotFoundError,
    FixLinkPermissionError,
    FixLinkStateError,
    FixLinkValidationError,
)
from fixlink.services.notification_store import NotificationStore, notification_store
from fixlink.services.rating import recompute

logger = logging.getLogger(__name__)


BOOKING_STATUSES = ("pending", "confirmed", "in-progress", "completed", "cancelled", "rejected")

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"confirmed", "cancelled", "rejected"}),
    "confirmed": frozenset({"in-progress", "cancelled"}),
    "in-progress": frozenset({"completed", "cancelled"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
    "rejected": frozenset(),
}

CANCELLATION_STATUSES = frozenset({"cancelled", "rejected"})
PAYMENT_METHODS = frozenset({"card", "cash", "bank_transfer"})
BOOKING_CREATOR_ROLES = frozenset({Role.CUSTOMER, Role.ADMIN})

FREE_CANCELLATION_HOURS = 24
MAX_DESCRIPTION_LENGTH = 1000
MAX_INSTRUCTIONS_LENGTH = 500
MAX_REASON_LENGTH = 500
MAX_REVIEW_LENGTH = 1000
MAX_PAGE_SIZE = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def can_transition(current: str, requested: str) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


def can_be_cancelled(booking: Booking, now: datetime) -> bool:
    """Whether the booking can still be cancelled without charge."""
    return booking.status == "pending" or (
        booking.status == "confirmed" and hours_until(booking.scheduled_date, now) > FREE_CANCELLATION_HOURS
    )


def _clean_text(value: Optional[str], *, field: str, max_length: int) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    if len(cleaned) > max_length:
        raise FixLinkValidationError(f"{field} must be at most {max_length} characters")
    return cleaned or None


def _validate_location(location: Location) -> Location:
    address = (location.address or "").strip()
    if not address:
        raise FixLinkValidationError("Location address is required")
    coordinates = list(location.coordinates or [])
    if len(coordinates) != 2:
        raise FixLinkValidationError("Location coordinates must contain exactly 2 numbers")
    for value in coordinates:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise FixLinkValidationError("Location coordinates must contain exactly 2 numbers")
    return Location(address=address, coordinates=[float(value) for value in coordinates])


class BookingLifecycle:
    def __init__(
        self,
        bookings: BookingStore,
        catalog: CatalogStore,
        channel: NotificationStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._bookings = bookings
        self._catalog = catalog
        self._channel = channel
        self._clock = clock

    def _require_booking(self, booking_id: str) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise FixLinkNotFoundError("Booking not found")
        return booking

    def _party(self, user_id: str) -> Optional[PartySummary]:
        user = self._catalog.get_user(user_id)
        if user is None:
            return None
        return PartySummary(id=user.id, first_name=user.first_name, last_name=user.last_name, phone=user.phone)

    def _resolve(self, booking: Booking, now: datetime) -> BookingView:
        service = self._catalog.get_service(booking.service_id)
        return BookingView(
            **booking.model_dump(),
            service=(
                ServiceSummary(id=service.id, name=service.name, category=service.category, price=service.price)
                if service
                else None
            ),
            provider=self._party(booking.provider_id),
            customer=self._party(booking.customer_id),
            can_be_cancelled=can_be_cancelled(booking, now),
        )

    def _log_event(self, event: str, booking: Booking, caller: Caller, **extra: object) -> None:
        payload = {
            "event": event,
            "booking_id": booking.id,
            "status": booking.status,
            "actor": caller.user_id,
            "actor_role": caller.role.value,
        }
        payload.update(extra)
        logger.info("booking_event=%s", json.dumps(payload, sort_keys=True, default=str))

    def _notify(self, user_id: str, title: str, body: str, booking_id: str, category: str = "booking") -> None:
        # Delivery failures never fail the booking operation that triggered them.
        try:
            self._channel.publish(
                user_id=user_id,
                title=title,
                body=body,
                category=category,
                deep_link=f"booking:{booking_id}",
            )
        except Exception:
            logger.exception("Booking notification failed for %s", booking_id)

    def create(
        self,
        caller: Caller,
        *,
        service_id: str,
        scheduled_date: datetime,
        scheduled_time: str,
        duration: float,
        location: Location,
        description: Optional[str] = None,
        special_instructions: Optional[str] = None,
        payment_method: str = "card",
    ) -> BookingView:
        if not has_role(caller.role, BOOKING_CREATOR_ROLES):
            raise FixLinkPermissionError("Only customers can create bookings")

        duration = validate_duration(duration)
        scheduled_time = (scheduled_time or "").strip()
        if not scheduled_time:
            raise FixLinkValidationError("Scheduled time is required")
        location = _validate_location(location)
        description = _clean_text(description, field="Description", max_length=MAX_DESCRIPTION_LENGTH)
        special_instructions = _clean_text(
            special_instructions, field="Special instructions", max_length=MAX_INSTRUCTIONS_LENGTH
        )
        if payment_method not in PAYMENT_METHODS:
            raise FixLinkValidationError(f"Invalid payment method. Allowed: {', '.join(sorted(PAYMENT_METHODS))}")

        service = self._catalog.get_service(service_id)
        if service is None:
            raise FixLinkNotFoundError("Service not found")
        if not service.is_active:
            raise FixLinkStateError("Service is not active")
        provider = self._catalog.get_user(service.provider_id)
        if provider is None or not provider.is_active:
            raise FixLinkStateError("Provider is not available")

        now = self._clock()
        validate_slot(scheduled_date, duration, now)

        booking = Booking(
            id=f"bk_{uuid4().hex[:12]}",
            customer_id=caller.user_id,
            provider_id=service.provider_id,
            service_id=service.id,
            status="pending",
            scheduled_date=as_utc(scheduled_date),
            scheduled_time=scheduled_time,
            duration=duration,
            total_amount=service.price * duration,
            location=location,
            description=description,
            special_instructions=special_instructions,
            payment_method=payment_method,
            created_at=now,
            updated_at=now,
        )
        self._bookings.insert(booking, actor_user_id=caller.user_id)
        self._log_event("created", booking, caller, total_amount=booking.total_amount)
        self._notify(
            service.provider_id,
            "New booking request",
            f"{service.name} on {booking.scheduled_date.date().isoformat()} at {booking.scheduled_time}",
            booking.id,
        )
        return self._resolve(booking, now)

    def list(
        self,
        caller: Caller,
        *,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> BookingPage:
        if status is not None and status not in BOOKING_STATUSES:
            raise FixLinkValidationError(f"Invalid status filter. Allowed: {', '.join(BOOKING_STATUSES)}")
        if page < 1:
            raise FixLinkValidationError("Page must be 1 or greater")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise FixLinkValidationError(f"Page size must be between 1 and {MAX_PAGE_SIZE}")

        scope = visibility_scope(caller)
        bookings, total = self._bookings.query(
            customer_id=scope["customer_id"],
            provider_id=scope["provider_id"],
            status=status,
            offset=(page - 1) * page_size,
            limit=page_size,
        )
        now = self._clock()
        return BookingPage(
            bookings=[self._resolve(booking, now) for booking in bookings],
            total=total,
            total_pages=math.ceil(total / page_size),
            current_page=page,
        )

    def get_by_id(self, caller: Caller, booking_id: str) -> BookingView:
        booking = self._require_booking(booking_id)
        if not is_owner_or_admin(caller, booking.customer_id, booking.provider_id):
            raise FixLinkPermissionError("Not authorized to view this booking")
        return self._resolve(booking, self._clock())

    def history(self, caller: Caller, booking_id: str) -> List[BookingStatusChange]:
        booking = self._require_booking(booking_id)
        if not is_owner_or_admin(caller, booking.customer_id, booking.provider_id):
            raise FixLinkPermissionError("Not authorized to view this booking")
        return self._bookings.history(booking_id)

    def update_status(
        self,
        caller: Caller,
        booking_id: str,
        new_status: str,
        cancellation_reason: Optional[str] = None,
    ) -> BookingView:
        booking = self._require_booking(booking_id)
        relationship = relationship_to(caller, booking.customer_id, booking.provider_id)
        if relationship == "none":
            raise FixLinkPermissionError("Not authorized to update this booking")
        if new_status not in BOOKING_STATUSES:
            raise FixLinkValidationError(f"Unknown booking status: {new_status}")
        reason = _clean_text(cancellation_reason, field="Cancellation reason", max_length=MAX_REASON_LENGTH)
        if not can_transition(booking.status, new_status):
            raise FixLinkStateError(f"Cannot change status from {booking.status} to {new_status}")

        now = self._clock()
        updates: Dict[str, object] = {"status": new_status, "updated_at": now}
        if new_status in CANCELLATION_STATUSES:
            updates["cancelled_by"] = cancellation_party(caller, booking.customer_id)
            if reason:
                updates["cancellation_reason"] = reason

        saved = self._bookings.save(
            booking.model_copy(update=updates),
            expected_version=booking.version,
            actor_user_id=caller.user_id,
            from_status=booking.status,
            note=reason or "",
        )
        self._log_event("status_changed", saved, caller, from_status=booking.status, relationship=relationship)
        counterparty = booking.provider_id if caller.user_id == booking.customer_id else booking.customer_id
        self._notify(
            counterparty,
            "Booking updated",
            f"Booking {booking.id} changed from {booking.status} to {new_status}",
            booking.id,
        )
        return self._resolve(saved, now)

    def add_review(
        self,
        caller: Caller,
        booking_id: str,
        rating: int,
        review: Optional[str] = None,
    ) -> BookingView:
        booking = self._require_booking(booking_id)
        if not is_booking_customer(caller, booking.customer_id):
            raise FixLinkPermissionError("Not authorized to review this booking")
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise FixLinkValidationError("Rating must be an integer between 1 and 5")
        review = _clean_text(review, field="Review", max_length=MAX_REVIEW_LENGTH)
        if booking.status != "completed":
            raise FixLinkStateError("Can only review completed bookings")
        if booking.rating is not None:
            raise FixLinkConflictError("Booking already reviewed")

        now = self._clock()
        saved = self._bookings.save(
            booking.model_copy(update={"rating": rating, "review": review, "review_date": now, "updated_at": now}),
            expected_version=booking.version,
            actor_user_id=caller.user_id,
            from_status=booking.status,
        )
        self._log_event("reviewed", saved, caller, rating=rating)
        # The review is already stored; a failed recompute is caught up by the next review.
        try:
            self.refresh_ratings(provider_id=saved.provider_id, service_id=saved.service_id)
        except Exception:
            logger.exception("Rating recompute failed after review of %s", saved.id)
        self._notify(
            saved.provider_id,
            "New review",
            f"You received a {rating}-star review",
            saved.id,
            category="review",
        )
        return self._resolve(saved, now)

    def refresh_ratings(self, *, provider_id: str, service_id: str) -> None:
        provider_summary = recompute(provider_id, self._bookings.ratings_for("provider_id", provider_id))
        self._catalog.set_provider_rating(provider_summary)
        service_summary = recompute(service_id, self._bookings.ratings_for("service_id", service_id))
        self._catalog.set_service_rating(service_summary)
        logger.info(
            "Ratings recomputed provider=%s mean=%.2f count=%d service=%s mean=%.2f count=%d",
            provider_id,
            provider_summary.mean,
            provider_summary.count,
            service_id,
            service_summary.mean,
            service_summary.count,
        )

    def stats(self, caller: Caller) -> BookingStats:
        scope = visibility_scope(caller)
        found = self._bookings.count_by_status(customer_id=scope["customer_id"], provider_id=scope["provider_id"])
        counts = {status: found.get(status, 0) for status in BOOKING_STATUSES}
        total = sum(counts.values())
        completed = counts["completed"]
        return BookingStats(
            counts=counts,
            total_bookings=total,
            completed_bookings=completed,
            completion_rate=(completed / total) * 100 if total > 0 else 0.0,
        )

    def admin_stats(self, caller: Caller) -> AdminStats:
        if not has_role(caller.role, {Role.ADMIN}):
            raise FixLinkPermissionError("Admin access required")
        total_bookings, revenue = self._bookings.totals()
        return AdminStats(
            total_users=self._catalog.count_users(),
            total_services=self._catalog.count_services(),
            total_bookings=total_bookings,
            total_revenue=revenue,
        )


booking_lifecycle = BookingLifecycle(bookings=booking_store, catalog=catalog_store, channel=notification_store)
