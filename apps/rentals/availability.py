"""
Dumpster availability for a single day.

Every dumpster is placed in exactly one of three lists:
- available:   no rental occupies the day (possibly a same-day transition)
- upcoming:    occupied, but the current rental has a pickup date
- unavailable: occupied by an ongoing rental, or under maintenance

Works on data already in memory; callers fetch a fresh snapshot first.
"""
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Union

from .dtos import (
    AvailabilityDTO, AvailableDumpsterDTO, BookingDTO, BookingRefDTO,
    DumpsterDTO, UnavailableDumpsterDTO, UpcomingDumpsterDTO,
)
from .intervals import as_calendar_date, covers
from .models import DumpsterStatus

MAINTENANCE_REASON = "Under maintenance"
ONGOING_REASON = "Has an ongoing rental with no end date"


def group_by_dumpster(bookings: Iterable[BookingDTO]) -> Dict[str, List[BookingDTO]]:
    """Bookings per dumpster, each list ordered by placement date."""
    grouped: Dict[str, List[BookingDTO]] = {}
    for booking in bookings:
        grouped.setdefault(booking.dumpster_id, []).append(booking)
    for dumpster_bookings in grouped.values():
        dumpster_bookings.sort(key=lambda b: (b.date_placed, b.rental_id))
    return grouped


def _ref(booking: Optional[BookingDTO]) -> Optional[BookingRefDTO]:
    if booking is None:
        return None
    return BookingRefDTO(
        rental_id=booking.rental_id,
        date=booking.date_placed,
        customer=booking.customer_name,
    )


def next_booking_after(bookings: List[BookingDTO], day: date) -> Optional[BookingDTO]:
    """Earliest booking placed strictly after day."""
    return next((b for b in bookings if b.date_placed > day), None)


def classify_dumpster(
    dumpster: DumpsterDTO,
    bookings: List[BookingDTO],
    query_date: date,
):
    """
    Classify one dumpster for query_date.

    bookings must belong to this dumpster and be ordered by placement date.
    Returns an AvailableDumpsterDTO, UpcomingDumpsterDTO or UnavailableDumpsterDTO.
    """
    if dumpster.status == DumpsterStatus.MAINTENANCE:
        return UnavailableDumpsterDTO(
            tong_no=dumpster.tong_no,
            status=dumpster.status,
            reason=MAINTENANCE_REASON,
        )

    # A rental picked up on the query day frees the dumpster for a new placement
    transition = next((b for b in bookings if b.date_picked == query_date), None)
    current = next(
        (
            b for b in bookings
            if covers(b.interval, query_date) and b.date_picked != query_date
        ),
        None,
    )

    if current is not None:
        if current.date_picked is None:
            return UnavailableDumpsterDTO(
                tong_no=dumpster.tong_no,
                status=dumpster.status,
                reason=ONGOING_REASON,
                rental_id=current.rental_id,
                customer=current.customer_name,
            )

        # A rental placed on the pickup day counts as the next booking
        following = next(
            (
                b for b in bookings
                if b.rental_id != current.rental_id and b.date_placed >= current.date_picked
            ),
            None,
        )
        return UpcomingDumpsterDTO(
            tong_no=dumpster.tong_no,
            status=dumpster.status,
            rental_id=current.rental_id,
            customer=current.customer_name,
            available_after=current.date_picked,
            next_booking=_ref(following),
        )

    upcoming_booking = next_booking_after(bookings, query_date)
    return AvailableDumpsterDTO(
        tong_no=dumpster.tong_no,
        status=dumpster.status,
        available_until=upcoming_booking.date_placed if upcoming_booking else None,
        is_transition_day=transition is not None,
        transition_from=_ref(transition),
        next_booking=_ref(upcoming_booking),
    )


def resolve_availability(
    query_date: Union[date, datetime, str],
    dumpsters: Iterable[DumpsterDTO],
    bookings: Iterable[BookingDTO],
) -> AvailabilityDTO:
    """
    Classify every dumpster as available, upcoming or unavailable on query_date.
    Lists are ordered by tong number.
    """
    query_date = as_calendar_date(query_date)
    by_dumpster = group_by_dumpster(bookings)

    result = AvailabilityDTO(query_date=query_date)
    for dumpster in sorted(dumpsters, key=lambda d: d.tong_no):
        entry = classify_dumpster(dumpster, by_dumpster.get(dumpster.tong_no, []), query_date)
        if isinstance(entry, AvailableDumpsterDTO):
            result.available.append(entry)
        elif isinstance(entry, UpcomingDumpsterDTO):
            result.upcoming.append(entry)
        elif isinstance(entry, UnavailableDumpsterDTO):
            result.unavailable.append(entry)
        else:
            raise TypeError(f"Unexpected availability entry: {entry!r}")
    return result
