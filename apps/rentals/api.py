"""API Router for Rentals app."""
from dataclasses import asdict
from datetime import date
from typing import List, Optional

from django.apps import apps as django_apps
from django.http import HttpRequest
from ninja import Router
from ninja.errors import HttpError

from apps.core.exceptions import StaleSnapshotConflict, ValidationRejected

from . import services
from .schemas import (
    AvailabilityOut, CustomerIn, CustomerOut, DumpsterIn, DumpsterOut,
    DumpsterStatusIn, ErrorOut, RentalCheckIn, RentalIn, RentalOut, ValidationOut,
)

router = Router(tags=["Rentals"])


# =============================================================================
# Helper Functions
# =============================================================================

def get_reference_cache():
    """The customer/dumpster list cache owned by the rentals app config."""
    return django_apps.get_app_config('rentals').reference_cache


def _availability_out(availability) -> AvailabilityOut:
    return AvailabilityOut(
        date=availability.query_date,
        available=[asdict(d) for d in availability.available],
        upcoming=[
            {**asdict(d), 'has_future_rental': d.has_future_rental}
            for d in availability.upcoming
        ],
        unavailable=[asdict(d) for d in availability.unavailable],
    )


# =============================================================================
# Customer Endpoints
# =============================================================================

@router.get("/customers", response=List[CustomerOut], auth=None)
def list_customers(request: HttpRequest):
    """List customers (served from the reference cache)."""
    customers = services.list_customers(cache=get_reference_cache())
    return [CustomerOut(**c.__dict__) for c in customers]


@router.post("/customers", response={201: CustomerOut}, auth=None)
def create_customer(request: HttpRequest, payload: CustomerIn):
    """Create a customer."""
    customer = services.create_customer(payload, cache=get_reference_cache())
    return 201, CustomerOut(**customer.__dict__)


# =============================================================================
# Dumpster Endpoints
# =============================================================================

@router.get("/dumpsters", response=List[DumpsterOut], auth=None)
def list_dumpsters(request: HttpRequest, status: Optional[str] = None):
    """
    List dumpsters.

    Query params:
    - status: Filter by Available, Rented or Maintenance
    """
    dumpsters = services.list_dumpsters(status=status, cache=get_reference_cache())
    return [DumpsterOut(**d.__dict__) for d in dumpsters]


@router.post("/dumpsters", response={201: DumpsterOut, 400: ErrorOut}, auth=None)
def create_dumpster(request: HttpRequest, payload: DumpsterIn):
    """Register a dumpster."""
    try:
        dumpster = services.create_dumpster(payload, cache=get_reference_cache())
    except ValidationRejected as e:
        raise HttpError(400, e.reason)
    return 201, DumpsterOut(**dumpster.__dict__)


@router.get("/dumpsters/availability", response=AvailabilityOut, auth=None)
def get_availability(request: HttpRequest, date: date):
    """
    Classify every dumpster for a date (YYYY-MM-DD) as available,
    upcoming (free after a known pickup) or unavailable.
    """
    return _availability_out(services.get_availability(date))


@router.put("/dumpsters/{tong_no}", response={200: DumpsterOut, 400: ErrorOut, 404: ErrorOut}, auth=None)
def update_dumpster(request: HttpRequest, tong_no: str, payload: DumpsterStatusIn):
    """Change a dumpster's operational status."""
    try:
        dumpster = services.update_dumpster_status(tong_no, payload.status, cache=get_reference_cache())
    except ValidationRejected as e:
        raise HttpError(400, e.reason)
    if not dumpster:
        raise HttpError(404, "Dumpster not found")
    return DumpsterOut(**dumpster.__dict__)


# =============================================================================
# Rental Endpoints
# =============================================================================

@router.get("/", response=List[RentalOut], auth=None)
def list_rentals(
    request: HttpRequest,
    tong_no: Optional[str] = None,
    customer_id: Optional[int] = None,
    active_on: Optional[date] = None,
):
    """List rentals, optionally by dumpster, customer or a day they occupy."""
    rentals = services.list_rentals(tong_no=tong_no, customer_id=customer_id, active_on=active_on)
    return [RentalOut(**r.__dict__) for r in rentals]


@router.post("/check", response=ValidationOut, auth=None)
def check_rental(request: HttpRequest, payload: RentalCheckIn):
    """Validate a rental against current bookings without saving it."""
    result = services.check_rental(payload, rental_id=payload.rental_id)
    return ValidationOut(valid=result.valid, error=result.error)


@router.get("/{rental_id}", response={200: RentalOut, 404: ErrorOut}, auth=None)
def get_rental(request: HttpRequest, rental_id: int):
    rental = services.get_rental(rental_id)
    if not rental:
        raise HttpError(404, "Rental not found")
    return RentalOut(**rental.__dict__)


@router.post("/", response={201: RentalOut, 400: ErrorOut, 409: ErrorOut}, auth=None)
def create_rental(request: HttpRequest, payload: RentalIn):
    """
    Create a rental.
    Rejected with 400 if the dumpster is not free for the period,
    409 if another booking was saved for it in the meantime.
    """
    try:
        rental = services.create_rental(payload, cache=get_reference_cache())
    except ValidationRejected as e:
        raise HttpError(400, e.reason)
    except StaleSnapshotConflict as e:
        raise HttpError(409, str(e))
    return 201, RentalOut(**rental.__dict__)


@router.put("/{rental_id}", response={200: RentalOut, 400: ErrorOut, 404: ErrorOut, 409: ErrorOut}, auth=None)
def update_rental(request: HttpRequest, rental_id: int, payload: RentalIn):
    """Update a rental (e.g. record the pickup date)."""
    try:
        rental = services.update_rental(rental_id, payload, cache=get_reference_cache())
    except ValidationRejected as e:
        raise HttpError(400, e.reason)
    except StaleSnapshotConflict as e:
        raise HttpError(409, str(e))
    if not rental:
        raise HttpError(404, "Rental not found")
    return RentalOut(**rental.__dict__)


@router.delete("/{rental_id}", response={204: None, 400: ErrorOut, 404: ErrorOut}, auth=None)
def delete_rental(request: HttpRequest, rental_id: int):
    """Delete a rental that has no invoices."""
    try:
        deleted = services.delete_rental(rental_id, cache=get_reference_cache())
    except ValidationRejected as e:
        raise HttpError(400, e.reason)
    if not deleted:
        raise HttpError(404, "Rental not found")
    return 204, None
