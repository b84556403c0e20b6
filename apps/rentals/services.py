"""
Services for Rentals app - Core business logic.

Reads go straight to the database so validation always runs against a fresh
snapshot. Rental writes re-check the overlap invariant inside the write
transaction; that catches two staff members booking the same dumpster at
once, but it is not a lock.
"""
import logging
from datetime import date
from typing import List, Optional

from django.apps import apps as django_apps
from django.db import transaction as db_transaction
from django.utils import timezone

from apps.core.cache import ReferenceDataCache
from apps.core.exceptions import StaleSnapshotConflict, ValidationRejected

from .availability import resolve_availability
from .conflicts import check_booking, ensure_booking_allowed
from .dtos import (
    AvailabilityDTO, BookingDTO, CustomerDTO, DumpsterDTO, ProposedBooking,
    RentalDTO, ValidationResultDTO,
)
from .intervals import Interval, find_overlaps, overlaps, term_from_pickup
from .models import Customer, Dumpster, DumpsterStatus, Rental

logger = logging.getLogger(__name__)

CUSTOMERS_CACHE_KEY = 'customers'
DUMPSTERS_CACHE_KEY = 'dumpsters'


# =============================================================================
# Customer Services
# =============================================================================

def _load_customers() -> List[CustomerDTO]:
    return [_customer_to_dto(c) for c in Customer.objects.all()]


def list_customers(cache: Optional[ReferenceDataCache] = None) -> List[CustomerDTO]:
    """List customers, read through the reference cache when one is given."""
    if cache is None:
        return _load_customers()
    return cache.get_or_load(CUSTOMERS_CACHE_KEY, _load_customers)


def create_customer(data, cache: Optional[ReferenceDataCache] = None) -> CustomerDTO:
    """Create a customer."""
    customer = Customer.objects.create(
        name=data.name,
        phone_number=data.phone_number or "",
    )
    if cache is not None:
        cache.invalidate(CUSTOMERS_CACHE_KEY)
    return _customer_to_dto(customer)


def touch_customer(customer_id: int) -> None:
    """Record rental or payment activity for a customer."""
    Customer.objects.filter(customer_id=customer_id).update(
        last_activity_date=timezone.localdate()
    )


# =============================================================================
# Dumpster Services
# =============================================================================

def _load_dumpsters() -> List[DumpsterDTO]:
    return [_dumpster_to_dto(d) for d in Dumpster.objects.all()]


def list_dumpsters(
    status: Optional[str] = None,
    cache: Optional[ReferenceDataCache] = None,
) -> List[DumpsterDTO]:
    """
    List dumpsters, optionally filtered by operational status.
    The unfiltered list is read through the reference cache when one is given.
    """
    if cache is None:
        dumpsters = _load_dumpsters()
    else:
        dumpsters = cache.get_or_load(DUMPSTERS_CACHE_KEY, _load_dumpsters)

    if status:
        dumpsters = [d for d in dumpsters if d.status.lower() == status.lower()]
    return dumpsters


def create_dumpster(data, cache: Optional[ReferenceDataCache] = None) -> DumpsterDTO:
    """Register a new dumpster."""
    if Dumpster.objects.filter(tong_no=data.tong_no).exists():
        raise ValidationRejected(f"Dumpster {data.tong_no} already exists")

    dumpster = Dumpster.objects.create(
        tong_no=data.tong_no,
        status=data.status or DumpsterStatus.AVAILABLE,
    )
    if cache is not None:
        cache.invalidate(DUMPSTERS_CACHE_KEY)
    return _dumpster_to_dto(dumpster)


def update_dumpster_status(
    tong_no: str,
    status: str,
    cache: Optional[ReferenceDataCache] = None,
) -> Optional[DumpsterDTO]:
    """Set the operational status by hand (e.g. send to maintenance)."""
    if status not in DumpsterStatus.values:
        raise ValidationRejected(f"Invalid dumpster status: {status}")

    try:
        dumpster = Dumpster.objects.get(tong_no=tong_no)
    except Dumpster.DoesNotExist:
        return None

    dumpster.status = status
    dumpster.save()
    if cache is not None:
        cache.invalidate(DUMPSTERS_CACHE_KEY)
    return _dumpster_to_dto(dumpster)


def sync_dumpster_status(
    tong_no: str,
    today: Optional[date] = None,
    cache: Optional[ReferenceDataCache] = None,
) -> Optional[str]:
    """
    Align a dumpster's Available/Rented flag with its rentals for today.
    Maintenance is a manual decision and is never overridden.
    A change drops the cached dumpster list (the app's cache unless one is given).
    Returns the new status, or None if nothing changed.
    """
    today = today or timezone.localdate()
    try:
        dumpster = Dumpster.objects.get(tong_no=tong_no)
    except Dumpster.DoesNotExist:
        return None

    if dumpster.status == DumpsterStatus.MAINTENANCE:
        return None

    availability = resolve_availability(
        today, [_dumpster_to_dto(dumpster)], load_bookings(tong_no)
    )
    new_status = DumpsterStatus.AVAILABLE if availability.available else DumpsterStatus.RENTED

    if dumpster.status == new_status:
        return None

    dumpster.status = new_status
    dumpster.save(update_fields=['status', 'updated_at'])
    if cache is None:
        cache = django_apps.get_app_config('rentals').reference_cache
    cache.invalidate(DUMPSTERS_CACHE_KEY)
    logger.info(f"Dumpster {tong_no} status synced to {new_status}")
    return new_status


def sync_all_dumpster_statuses(
    today: Optional[date] = None,
    cache: Optional[ReferenceDataCache] = None,
) -> int:
    """Sync every dumpster. Returns how many changed."""
    changed = 0
    for tong_no in Dumpster.objects.values_list('tong_no', flat=True):
        if sync_dumpster_status(tong_no, today=today, cache=cache):
            changed += 1
    return changed


# =============================================================================
# Snapshot Loading
# =============================================================================

def load_bookings(tong_no: Optional[str] = None) -> List[BookingDTO]:
    """Fetch all rentals (optionally for one dumpster) as bookings."""
    queryset = Rental.objects.select_related('customer').order_by('date_placed', 'rental_id')
    if tong_no:
        queryset = queryset.filter(dumpster_id=tong_no)
    return [_rental_to_booking(r) for r in queryset]


# =============================================================================
# Availability Services
# =============================================================================

def get_availability(query_date: date) -> AvailabilityDTO:
    """Classify every dumpster for query_date from a fresh snapshot."""
    return resolve_availability(query_date, _load_dumpsters(), load_bookings())


# =============================================================================
# Rental Services
# =============================================================================

def _proposal_from(data) -> ProposedBooking:
    if data.date_picked is not None and data.date_picked < data.date_placed:
        raise ValidationRejected("Pickup date cannot be before placement date")
    return ProposedBooking(
        dumpster_id=data.tong_no,
        date_placed=data.date_placed,
        term=term_from_pickup(data.date_picked),
    )


def check_rental(data, rental_id: Optional[int] = None) -> ValidationResultDTO:
    """
    Validate a proposed rental without saving it.
    rental_id is the rental being edited, if any.
    """
    try:
        proposal = _proposal_from(data)
    except ValidationRejected as e:
        return ValidationResultDTO(valid=False, error=e.reason)

    editing = None
    if rental_id is not None:
        editing = get_booking(rental_id)
        if editing is None:
            return ValidationResultDTO(valid=False, error="Rental not found")

    return check_booking(proposal, _load_dumpsters(), load_bookings(), editing=editing)


def get_booking(rental_id: int) -> Optional[BookingDTO]:
    try:
        rental = Rental.objects.select_related('customer').get(rental_id=rental_id)
    except Rental.DoesNotExist:
        return None
    return _rental_to_booking(rental)


def get_rental(rental_id: int) -> Optional[RentalDTO]:
    try:
        rental = Rental.objects.select_related('customer').get(rental_id=rental_id)
    except Rental.DoesNotExist:
        return None
    return _rental_to_dto(rental)


def list_rentals(
    tong_no: Optional[str] = None,
    customer_id: Optional[int] = None,
    active_on: Optional[date] = None,
) -> List[RentalDTO]:
    """List rentals with filtering. active_on keeps rentals occupying that day."""
    queryset = Rental.objects.select_related('customer')

    if tong_no:
        queryset = queryset.filter(dumpster_id=tong_no)
    if customer_id:
        queryset = queryset.filter(customer_id=customer_id)

    rentals = [_rental_to_dto(r) for r in queryset]
    if active_on:
        rentals = [
            r for r in rentals
            if r.date_placed <= active_on and (r.date_picked is None or r.date_picked >= active_on)
        ]
    return rentals


def _assert_invariant(tong_no: str, rental_id: int) -> None:
    """Raise StaleSnapshotConflict if the saved rental overlaps another one."""
    for first, second in find_overlaps(load_bookings(tong_no)):
        if rental_id in (first.rental_id, second.rental_id):
            other = second if first.rental_id == rental_id else first
            logger.warning(
                f"Rental {rental_id} overlaps rental {other.rental_id} on dumpster {tong_no}"
            )
            raise StaleSnapshotConflict()


def _reject_overlapping_dates(proposal: ProposedBooking, rental_id: int) -> None:
    """
    Edits on an assigned dumpster pass the conflict rules unchanged, so the
    new dates are checked against the dumpster's other rentals here.
    """
    interval = Interval(proposal.date_placed, proposal.term)
    for booking in load_bookings(proposal.dumpster_id):
        if booking.rental_id != rental_id and overlaps(interval, booking.interval):
            raise ValidationRejected(
                f"The new dates overlap rental {booking.rental_id} "
                f"({booking.date_placed.isoformat()} to "
                f"{booking.date_picked.isoformat() if booking.date_picked else 'ongoing'})"
            )


def create_rental(data, cache: Optional[ReferenceDataCache] = None) -> RentalDTO:
    """
    Create a rental after validating it against a fresh snapshot.

    Raises ValidationRejected if the dumpster is not free for the period and
    StaleSnapshotConflict if a concurrent write took it in the meantime.
    """
    proposal = _proposal_from(data)

    if not Customer.objects.filter(customer_id=data.customer_id).exists():
        raise ValidationRejected(f"Customer {data.customer_id} not found")

    ensure_booking_allowed(proposal, _load_dumpsters(), load_bookings())

    with db_transaction.atomic():
        rental = Rental.objects.create(
            customer_id=data.customer_id,
            dumpster_id=proposal.dumpster_id,
            driver=data.driver,
            location=data.location or "",
            date_placed=proposal.date_placed,
            date_picked=proposal.date_picked,
            remarks=data.remarks or "",
        )
        _assert_invariant(proposal.dumpster_id, rental.rental_id)
        touch_customer(data.customer_id)

    sync_dumpster_status(proposal.dumpster_id, cache=cache)
    logger.info(
        f"Rental {rental.rental_id} created for dumpster {proposal.dumpster_id} "
        f"from {proposal.date_placed}"
    )
    return get_rental(rental.rental_id)


def update_rental(
    rental_id: int,
    data,
    cache: Optional[ReferenceDataCache] = None,
) -> Optional[RentalDTO]:
    """
    Update a rental (usually to record the pickup date).
    Returns None if the rental does not exist.
    """
    try:
        rental = Rental.objects.get(rental_id=rental_id)
    except Rental.DoesNotExist:
        return None

    editing = get_booking(rental_id)
    proposal = _proposal_from(data)
    ensure_booking_allowed(proposal, _load_dumpsters(), load_bookings(), editing=editing)
    _reject_overlapping_dates(proposal, rental_id)

    previous_tong_no = rental.dumpster_id
    with db_transaction.atomic():
        rental.dumpster_id = proposal.dumpster_id
        rental.date_placed = proposal.date_placed
        rental.date_picked = proposal.date_picked
        rental.driver = data.driver
        rental.location = data.location or ""
        rental.remarks = data.remarks or ""
        rental.save()
        _assert_invariant(proposal.dumpster_id, rental.rental_id)

    sync_dumpster_status(proposal.dumpster_id, cache=cache)
    if previous_tong_no != proposal.dumpster_id:
        sync_dumpster_status(previous_tong_no, cache=cache)

    logger.info(f"Rental {rental_id} updated")
    return get_rental(rental_id)


def delete_rental(rental_id: int, cache: Optional[ReferenceDataCache] = None) -> bool:
    """
    Delete a rental. Rentals with invoices cannot be deleted.
    Returns False if the rental does not exist.
    """
    try:
        rental = Rental.objects.get(rental_id=rental_id)
    except Rental.DoesNotExist:
        return False

    if rental.invoices.exists():
        raise ValidationRejected("Cannot delete a rental that has invoices")

    tong_no = rental.dumpster_id
    rental.delete()
    sync_dumpster_status(tong_no, cache=cache)
    logger.info(f"Rental {rental_id} deleted")
    return True


# =============================================================================
# Helper Functions
# =============================================================================

def _customer_to_dto(customer: Customer) -> CustomerDTO:
    return CustomerDTO(
        customer_id=customer.customer_id,
        name=customer.name,
        phone_number=customer.phone_number,
        last_activity_date=customer.last_activity_date,
    )


def _dumpster_to_dto(dumpster: Dumpster) -> DumpsterDTO:
    return DumpsterDTO(tong_no=dumpster.tong_no, status=dumpster.status)


def _rental_to_booking(rental: Rental) -> BookingDTO:
    return BookingDTO(
        rental_id=rental.rental_id,
        dumpster_id=rental.dumpster_id,
        date_placed=rental.date_placed,
        term=term_from_pickup(rental.date_picked),
        customer_id=rental.customer_id,
        customer_name=rental.customer.name,
    )


def _rental_to_dto(rental: Rental) -> RentalDTO:
    return RentalDTO(
        rental_id=rental.rental_id,
        tong_no=rental.dumpster_id,
        customer_id=rental.customer_id,
        customer_name=rental.customer.name,
        driver=rental.driver,
        location=rental.location,
        date_placed=rental.date_placed,
        date_picked=rental.date_picked,
        remarks=rental.remarks,
    )
