"""
Admissibility of a proposed booking.

Rules, checked in order:
1. Editing with dumpster, placement and pickup unchanged: admissible.
2. Editing with the same dumpster: admissible. The dumpster is already
   assigned to this rental; the shape of the new dates is the caller's check.
3. The dumpster must be available on the placement date.
4. An ongoing booking is rejected if the dumpster has any later booking.
5. A booking with a pickup date is rejected only if the next booking starts
   strictly before that pickup date (same-day transitions are allowed).

Rejections are ordinary results with a reason, never exceptions.
"""
from typing import Iterable, Optional

from apps.core.exceptions import ValidationRejected

from .availability import resolve_availability
from .dtos import BookingDTO, DumpsterDTO, ProposedBooking, ValidationResultDTO


def _describe_blocker(availability, tong_no: str) -> str:
    upcoming = next((d for d in availability.upcoming if d.tong_no == tong_no), None)
    if upcoming is not None:
        return f"Rented until {upcoming.available_after.isoformat()} by {upcoming.customer}"

    unavailable = next((d for d in availability.unavailable if d.tong_no == tong_no), None)
    if unavailable is not None:
        if unavailable.customer:
            return f"Indefinitely rented by {unavailable.customer}"
        return unavailable.reason
    return "Not available"


def check_booking(
    proposal: ProposedBooking,
    dumpsters: Iterable[DumpsterDTO],
    bookings: Iterable[BookingDTO],
    editing: Optional[BookingDTO] = None,
) -> ValidationResultDTO:
    """Decide whether proposal can be booked against the existing bookings."""
    if editing is not None:
        unchanged = (
            proposal.dumpster_id == editing.dumpster_id
            and proposal.date_placed == editing.date_placed
            and proposal.term == editing.term
        )
        if unchanged:
            return ValidationResultDTO(valid=True)
        if proposal.dumpster_id == editing.dumpster_id:
            return ValidationResultDTO(valid=True)

    dumpsters = list(dumpsters)
    if not any(d.tong_no == proposal.dumpster_id for d in dumpsters):
        return ValidationResultDTO(valid=False, error=f"Dumpster {proposal.dumpster_id} not found")

    others = [
        b for b in bookings
        if editing is None or b.rental_id != editing.rental_id
    ]

    availability = resolve_availability(proposal.date_placed, dumpsters, others)
    entry = availability.find_available(proposal.dumpster_id)
    if entry is None:
        return ValidationResultDTO(
            valid=False,
            error=(
                f"Dumpster {proposal.dumpster_id} is not available on "
                f"{proposal.date_placed.isoformat()}. "
                f"{_describe_blocker(availability, proposal.dumpster_id)}"
            ),
        )

    if entry.next_booking is None:
        return ValidationResultDTO(valid=True)

    next_start = entry.next_booking.date
    if proposal.date_picked is None:
        return ValidationResultDTO(
            valid=False,
            error=(
                f"Dumpster {proposal.dumpster_id} is booked from {next_start.isoformat()}. "
                "An ongoing rental cannot start before an existing reservation; set a pickup date."
            ),
        )

    if next_start < proposal.date_picked:
        return ValidationResultDTO(
            valid=False,
            error=(
                f"Dumpster {proposal.dumpster_id} is booked from {next_start.isoformat()}. "
                f"Pickup must be on or before {next_start.isoformat()}."
            ),
        )

    return ValidationResultDTO(valid=True)


def ensure_booking_allowed(
    proposal: ProposedBooking,
    dumpsters: Iterable[DumpsterDTO],
    bookings: Iterable[BookingDTO],
    editing: Optional[BookingDTO] = None,
) -> None:
    """Same as check_booking, raising ValidationRejected on rejection."""
    result = check_booking(proposal, dumpsters, bookings, editing=editing)
    if not result.valid:
        raise ValidationRejected(result.error)
