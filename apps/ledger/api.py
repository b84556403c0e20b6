"""API Router for Ledger app."""
from datetime import date
from typing import List, Optional

from django.http import HttpRequest
from ninja import Router
from ninja.errors import HttpError

from apps.core.exceptions import (
    OverpaymentConfirmationRequired, ReferenceCollision, ValidationRejected,
)

from . import services
from .allocation import PaymentBatchDTO
from .money import to_dollars
from .references import ReferencePolicy
from .schemas import (
    ErrorOut, InvoiceIn, InvoiceOut, OverpaymentOut, PaymentBatchIn, PaymentBatchOut,
    PaymentCancelIn, PaymentOut, PaymentPreviewIn, ReferenceOut,
)

router = Router(tags=["Ledger"])


# =============================================================================
# Helper Functions
# =============================================================================

def _batch_out(batch: PaymentBatchDTO) -> PaymentBatchOut:
    return PaymentBatchOut(
        splits=[
            {
                'invoice_id': s.invoice_id,
                'amount': to_dollars(s.amount_cents),
                'regular_portion': to_dollars(s.regular_cents),
                'overpaid_portion': to_dollars(s.overpaid_cents),
            }
            for s in batch.splits
        ],
        total_regular=batch.total_regular,
        total_overpaid=batch.total_overpaid,
        has_overpayment=batch.has_overpayment,
    )


def _items(payload) -> list:
    return [(line.invoice_id, line.amount) for line in payload.invoices]


# =============================================================================
# Invoice Endpoints
# =============================================================================

@router.get("/invoices", response=List[InvoiceOut], auth=None)
def list_invoices(
    request: HttpRequest,
    customer_id: Optional[int] = None,
    status: Optional[str] = None,
    outstanding_only: bool = False,
):
    """
    List invoices.

    Query params:
    - customer_id: Filter by customer
    - status: unpaid, paid or cancelled
    - outstanding_only: Only invoices with a balance left to pay
    """
    invoices = services.list_invoices(customer_id=customer_id, status=status, outstanding_only=outstanding_only)
    return [InvoiceOut(**i.__dict__) for i in invoices]


@router.post("/invoices", response={201: InvoiceOut, 400: ErrorOut}, auth=None)
def create_invoice(request: HttpRequest, payload: InvoiceIn):
    """Issue an invoice."""
    try:
        invoice = services.create_invoice(payload)
    except ValueError as e:
        raise HttpError(400, str(e))
    return 201, InvoiceOut(**invoice.__dict__)


@router.get("/invoices/{invoice_id}", response={200: InvoiceOut, 404: ErrorOut}, auth=None)
def get_invoice(request: HttpRequest, invoice_id: int):
    invoice = services.get_invoice(invoice_id)
    if not invoice:
        raise HttpError(404, "Invoice not found")
    return InvoiceOut(**invoice.__dict__)


# =============================================================================
# Payment Endpoints
# =============================================================================

@router.get("/payments", response=List[PaymentOut], auth=None)
def list_payments(request: HttpRequest, invoice_id: Optional[int] = None, include_cancelled: bool = False):
    """List payments, cancelled ones only when asked for."""
    payments = services.list_payments(invoice_id=invoice_id, include_cancelled=include_cancelled)
    return [PaymentOut(**p.__dict__) for p in payments]


@router.post("/payments/preview", response={200: PaymentBatchOut, 400: ErrorOut}, auth=None)
def preview_payment(request: HttpRequest, payload: PaymentPreviewIn):
    """Show how a payment would split across invoices. Nothing is saved."""
    try:
        batch = services.preview_payment_batch(_items(payload), payload.payment_reference)
    except ValidationRejected as e:
        raise HttpError(400, e.reason)
    return _batch_out(batch)


@router.post("/payments", response={201: List[PaymentOut], 400: ErrorOut, 409: OverpaymentOut}, auth=None)
def record_payment(request: HttpRequest, payload: PaymentBatchIn):
    """
    Record a payment across one or more invoices.

    Returns 409 with the computed split when the payment exceeds an invoice's
    balance; resend with confirm_overpayment=true to record the excess as a
    separate overpaid payment.
    """
    try:
        payments = services.record_payment_batch(
            _items(payload),
            payment_date=payload.payment_date,
            payment_method=payload.payment_method,
            payment_reference=payload.payment_reference,
            notes=payload.notes,
            confirm_overpayment=payload.confirm_overpayment,
            reference_policy=payload.reference_policy,
        )
    except OverpaymentConfirmationRequired as e:
        return 409, OverpaymentOut(detail=e.reason, split=_batch_out(e.batch))
    except ValidationRejected as e:
        raise HttpError(400, e.reason)
    except ReferenceCollision:
        raise HttpError(409, "Could not allocate a payment reference, please retry")
    return 201, [PaymentOut(**p.__dict__) for p in payments]


@router.put("/payments/{payment_id}/cancel", response={200: PaymentOut, 400: ErrorOut, 404: ErrorOut}, auth=None)
def cancel_payment(request: HttpRequest, payment_id: int, payload: PaymentCancelIn):
    """Cancel a payment and restore the invoice balance."""
    try:
        payment = services.cancel_payment(payment_id, reason=payload.reason)
    except ValueError as e:
        raise HttpError(400, str(e))
    if not payment:
        raise HttpError(404, "Payment not found")
    return PaymentOut(**payment.__dict__)


@router.put("/payments/{payment_id}/confirm", response={200: List[PaymentOut], 400: ErrorOut, 404: ErrorOut}, auth=None)
def confirm_payment(request: HttpRequest, payment_id: int):
    """
    Confirm a pending cheque payment.

    Every pending payment sharing its payment reference is confirmed too;
    all confirmed payments are returned.
    """
    try:
        payments = services.confirm_payment(payment_id)
    except ValueError as e:
        raise HttpError(400, str(e))
    if payments is None:
        raise HttpError(404, "Payment not found")
    return [PaymentOut(**p.__dict__) for p in payments]


# =============================================================================
# Reference Endpoints
# =============================================================================

@router.get("/references/next", response={200: ReferenceOut, 400: ErrorOut}, auth=None)
def next_reference(
    request: HttpRequest,
    policy: str = ReferencePolicy.FIRST_GAP.value,
    on_date: Optional[date] = None,
):
    """Preview the next internal reference for a month. Nothing is reserved."""
    if policy not in ReferencePolicy.values:
        raise HttpError(400, f"Invalid reference policy: {policy}")
    reference = services.preview_internal_reference(policy=policy, on_date=on_date)
    return ReferenceOut(reference=reference, policy=policy)
