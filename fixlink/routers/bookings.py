from typing import Optional

from fastapi import APIRouter, Depends, Query

from fixlink.auth import require_caller
from fixlink.http_errors import raise_http_error
from fixlink.models import (
    BookingCreateRequest,
    BookingPage,
    BookingStats,
    BookingStatusChange,
    BookingStatusUpdateRequest,
    BookingView,
    ReviewCreateRequest,
)
from fixlink.services.access_control import Caller
from fixlink.services.booking_lifecycle import booking_lifecycle
from fixlink.services.errors import FixLinkError

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingView, status_code=201)
def create_booking(request: BookingCreateRequest, caller: Caller = Depends(require_caller)):
    try:
        return booking_lifecycle.create(
            caller,
            service_id=request.service_id,
            scheduled_date=request.scheduled_date,
            scheduled_time=request.scheduled_time,
            duration=request.duration,
            location=request.location,
            description=request.description,
            special_instructions=request.special_instructions,
            payment_method=request.payment_method,
        )
    except FixLinkError as exc:
        raise_http_error(exc)


@router.get("", response_model=BookingPage)
def list_bookings(
    status: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    caller: Caller = Depends(require_caller),
):
    try:
        return booking_lifecycle.list(caller, status=status, page=page, page_size=limit)
    except FixLinkError as exc:
        raise_http_error(exc)


# Declared before /{booking_id} so "stats" is not taken for an id.
@router.get("/stats", response_model=BookingStats)
def booking_stats(caller: Caller = Depends(require_caller)):
    return booking_lifecycle.stats(caller)


@router.get("/{booking_id}", response_model=BookingView)
def get_booking(booking_id: str, caller: Caller = Depends(require_caller)):
    try:
        return booking_lifecycle.get_by_id(caller, booking_id)
    except FixLinkError as exc:
        raise_http_error(exc)


@router.get("/{booking_id}/history", response_model=list[BookingStatusChange])
def get_booking_history(booking_id: str, caller: Caller = Depends(require_caller)):
    try:
        return booking_lifecycle.history(caller, booking_id)
    except FixLinkError as exc:
        raise_http_error(exc)


@router.put("/{booking_id}/status", response_model=BookingView)
def update_booking_status(
    booking_id: str,
    request: BookingStatusUpdateRequest,
    caller: Caller = Depends(require_caller),
):
    try:
        return booking_lifecycle.update_status(
            caller,
            booking_id,
            request.status,
            cancellation_reason=request.cancellation_reason,
        )
    except FixLinkError as exc:
        raise_http_error(exc)


@router.post("/{booking_id}/review", response_model=BookingView)
def add_review(booking_id: str, request: ReviewCreateRequest, caller: Caller = Depends(require_caller)):
    try:
        return booking_lifecycle.add_review(caller, booking_id, request.rating, review=request.review)
    except FixLinkError as exc:
        raise_http_error(exc)
