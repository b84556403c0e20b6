"""DTOs for Rentals app - Data Transfer Objects for cross-app communication."""
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from .intervals import Interval, RentalTerm, ONGOING, pickup_of


@dataclass(frozen=True)
class CustomerDTO:
    """Customer data."""
    customer_id: int
    name: str
    phone_number: str
    last_activity_date: Optional[date]


@dataclass(frozen=True)
class DumpsterDTO:
    """Dumpster identity and its operational flag."""
    tong_no: str
    status: str


@dataclass(frozen=True)
class BookingDTO:
    """
    A rental as seen by the availability and conflict logic.
    The nullable pickup date is carried as a RentalTerm.
    """
    rental_id: int
    dumpster_id: str
    date_placed: date
    term: RentalTerm = ONGOING
    customer_id: Optional[int] = None
    customer_name: str = ""

    @property
    def date_picked(self) -> Optional[date]:
        return pickup_of(self.term)

    @property
    def interval(self) -> Interval:
        return Interval(self.date_placed, self.term)


@dataclass(frozen=True)
class ProposedBooking:
    """A booking being created or edited, before it is persisted."""
    dumpster_id: str
    date_placed: date
    term: RentalTerm = ONGOING

    @property
    def date_picked(self) -> Optional[date]:
        return pickup_of(self.term)


@dataclass(frozen=True)
class RentalDTO:
    """Full rental data."""
    rental_id: int
    tong_no: str
    customer_id: int
    customer_name: str
    driver: str
    location: str
    date_placed: date
    date_picked: Optional[date]
    remarks: str


@dataclass(frozen=True)
class BookingRefDTO:
    """Short reference to another booking, shown next to an availability entry."""
    rental_id: int
    date: date
    customer: str


@dataclass(frozen=True)
class AvailableDumpsterDTO:
    """Free on the query date."""
    tong_no: str
    status: str
    available_until: Optional[date] = None
    is_transition_day: bool = False
    transition_from: Optional[BookingRefDTO] = None
    next_booking: Optional[BookingRefDTO] = None


@dataclass(frozen=True)
class UpcomingDumpsterDTO:
    """Occupied on the query date, free again after a known pickup."""
    tong_no: str
    status: str
    rental_id: int
    customer: str
    available_after: date
    next_booking: Optional[BookingRefDTO] = None

    @property
    def has_future_rental(self) -> bool:
        return self.next_booking is not None


@dataclass(frozen=True)
class UnavailableDumpsterDTO:
    """Blocked with no known free date, or under maintenance."""
    tong_no: str
    status: str
    reason: str
    rental_id: Optional[int] = None
    customer: Optional[str] = None


@dataclass(frozen=True)
class AvailabilityDTO:
    """Every dumpster classified for one query date."""
    query_date: date
    available: List[AvailableDumpsterDTO] = field(default_factory=list)
    upcoming: List[UpcomingDumpsterDTO] = field(default_factory=list)
    unavailable: List[UnavailableDumpsterDTO] = field(default_factory=list)

    def find_available(self, tong_no: str) -> Optional[AvailableDumpsterDTO]:
        return next((d for d in self.available if d.tong_no == tong_no), None)


@dataclass(frozen=True)
class ValidationResultDTO:
    """Result of a booking validation."""
    valid: bool
    error: Optional[str] = None
