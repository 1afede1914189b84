from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


BookingStatus = Literal["pending", "confirmed", "in-progress", "completed", "cancelled", "rejected"]
PaymentStatus = Literal["pending", "paid", "refunded"]
PaymentMethod = Literal["card", "cash", "bank_transfer"]
CancellationParty = Literal["customer", "provider", "admin"]
ServiceCategory = Literal["plumbing", "electrical", "cleaning", "gardening", "painting", "carpentry", "other"]


class Location(BaseModel):
    address: str
    coordinates: List[float] = Field(default_factory=list)


class Booking(BaseModel):
    id: str
    customer_id: str
    provider_id: str
    service_id: str
    status: BookingStatus = "pending"
    scheduled_date: datetime
    scheduled_time: str
    duration: float
    total_amount: float
    location: Location
    description: Optional[str] = None
    special_instructions: Optional[str] = None
    payment_status: PaymentStatus = "pending"
    payment_method: PaymentMethod = "card"
    cancelled_by: Optional[CancellationParty] = None
    cancellation_reason: Optional[str] = None
    rating: Optional[int] = None
    review: Optional[str] = None
    review_date: Optional[datetime] = None
    provider_response: Optional[str] = None
    provider_response_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    version: int = 1


class PartySummary(BaseModel):
    id: str
    first_name: str
    last_name: str
    phone: str = ""


class ServiceSummary(BaseModel):
    id: str
    name: str
    category: ServiceCategory
    price: float


class BookingView(Booking):
    """Booking with its service, provider and customer resolved."""

    service: Optional[ServiceSummary] = None
    provider: Optional[PartySummary] = None
    customer: Optional[PartySummary] = None
    can_be_cancelled: bool = False


class BookingPage(BaseModel):
    bookings: List[BookingView]
    total: int
    total_pages: int
    current_page: int


class BookingStats(BaseModel):
    counts: Dict[str, int]
    total_bookings: int
    completed_bookings: int
    completion_rate: float


class BookingStatusChange(BaseModel):
    id: str
    booking_id: str
    actor_user_id: str
    from_status: str
    to_status: str
    note: str = ""
    created_at: datetime


class AdminStats(BaseModel):
    total_users: int
    total_services: int
    total_bookings: int
    total_revenue: float


class BookingCreateRequest(BaseModel):
    service_id: str
    scheduled_date: datetime
    scheduled_time: str = Field(min_length=1)
    duration: float = Field(ge=0.5, le=24)
    location: Location
    description: Optional[str] = Field(default=None, max_length=1000)
    special_instructions: Optional[str] = Field(default=None, max_length=500)
    payment_method: PaymentMethod = "card"


class BookingStatusUpdateRequest(BaseModel):
    status: Literal["confirmed", "in-progress", "completed", "cancelled", "rejected"]
    cancellation_reason: Optional[str] = Field(default=None, max_length=500)


class ReviewCreateRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    review: Optional[str] = Field(default=None, max_length=1000)


class WeeklySlot(BaseModel):
    start: str
    end: str
    available: bool = True


class UserProfile(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    phone: str = ""
    role: Literal["customer", "provider", "admin"]
    is_active: bool = True
    rating: float = 0.0
    total_reviews: int = 0


class ServiceListing(BaseModel):
    id: str
    name: str
    category: ServiceCategory
    description: str
    price: float
    price_type: Literal["hourly", "fixed", "daily"] = "hourly"
    provider_id: str
    is_active: bool = True
    rating: float = 0.0
    total_reviews: int = 0
    coordinates: List[float] = Field(default_factory=list)
    service_area_km: float = 10.0
    availability: Dict[str, WeeklySlot] = Field(default_factory=dict)


class ActiveFlagUpdateRequest(BaseModel):
    is_active: bool


class AuthLoginRequest(BaseModel):
    user_id: str
    password: str


class AuthLoginResponse(BaseModel):
    access_token: str
    token_type: Literal["bearer"] = "bearer"
    user_id: str
    role: str
    expires_at: str


class AuthMeResponse(BaseModel):
    user_id: str
    role: str


class NotificationRecord(BaseModel):
    id: str
    user_id: str
    title: str
    body: str
    category: Literal["booking", "review", "system"] = "system"
    read: bool = False
    created_at: datetime
    deep_link: Optional[str] = None
