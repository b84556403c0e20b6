"""API Schemas for Rentals app - Pydantic/Ninja schemas for request/response validation."""
import datetime
from typing import Optional, List
from ninja import Schema


# =============================================================================
# Request Schemas
# =============================================================================

class CustomerIn(Schema):
    """Schema for creating a customer."""
    name: str
    phone_number: str = ""


class DumpsterIn(Schema):
    """Schema for registering a dumpster."""
    tong_no: str
    status: str = 'Available'


class DumpsterStatusIn(Schema):
    """Schema for changing a dumpster's operational status."""
    status: str  # Available, Rented or Maintenance


class RentalIn(Schema):
    """Schema for creating or updating a rental. Dates are YYYY-MM-DD."""
    customer_id: int
    tong_no: str
    driver: str
    date_placed: datetime.date
    date_picked: Optional[datetime.date] = None  # Leave empty for ongoing rentals
    location: str = ""
    remarks: str = ""


class RentalCheckIn(RentalIn):
    """Schema for validating a rental before saving it."""
    rental_id: Optional[int] = None  # Set when editing


# =============================================================================
# Response Schemas
# =============================================================================

class CustomerOut(Schema):
    customer_id: int
    name: str
    phone_number: str
    last_activity_date: Optional[datetime.date]


class DumpsterOut(Schema):
    tong_no: str
    status: str


class RentalOut(Schema):
    rental_id: int
    tong_no: str
    customer_id: int
    customer_name: str
    driver: str
    location: str
    date_placed: datetime.date
    date_picked: Optional[datetime.date]
    remarks: str


class BookingRefOut(Schema):
    rental_id: int
    date: datetime.date
    customer: str


class AvailableDumpsterOut(Schema):
    tong_no: str
    status: str
    available_until: Optional[datetime.date] = None
    is_transition_day: bool = False
    transition_from: Optional[BookingRefOut] = None
    next_booking: Optional[BookingRefOut] = None


class UpcomingDumpsterOut(Schema):
    tong_no: str
    status: str
    rental_id: int
    customer: str
    available_after: datetime.date
    has_future_rental: bool
    next_booking: Optional[BookingRefOut] = None


class UnavailableDumpsterOut(Schema):
    tong_no: str
    status: str
    reason: str
    rental_id: Optional[int] = None
    customer: Optional[str] = None


class AvailabilityOut(Schema):
    """All dumpsters classified for one date."""
    date: datetime.date
    available: List[AvailableDumpsterOut]
    upcoming: List[UpcomingDumpsterOut]
    unavailable: List[UnavailableDumpsterOut]


class ValidationOut(Schema):
    valid: bool
    error: Optional[str] = None


class ErrorOut(Schema):
    detail: str
