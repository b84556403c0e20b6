"""
Services for Ledger app - Core business logic.
Handles invoices, payment batches, cancellation and internal reference allocation.

Balances are never adjusted incrementally: after every payment write the
invoice's current_balance is recomputed from its active payments.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from django.conf import settings
from django.db import IntegrityError, transaction as db_transaction
from django.db.models import Sum
from django.utils import timezone

from apps.core.exceptions import (
    OverpaymentConfirmationRequired, ReferenceCollision, ValidationRejected,
)
from apps.rentals.models import Customer, Rental
from apps.rentals.services import touch_customer

from .allocation import InvoiceLine, PaymentBatchDTO, allocate_batch
from .dtos import InvoiceDTO, PaymentDTO
from .models import (
    Invoice, InvoiceStatus, Payment, PaymentMethod, PaymentStatus, ReferenceSequence,
)
from .money import to_cents, to_dollars
from .references import ReferencePolicy, ReferenceScope, next_reference, scope_for

logger = logging.getLogger(__name__)

# (invoice_id, amount) pairs as submitted
PaymentItems = Iterable[Tuple[int, Decimal]]


def _reference_prefix() -> str:
    return getattr(settings, 'PAYMENT_REFERENCE_PREFIX', 'RV')


# =============================================================================
# Invoice Services
# =============================================================================

def create_invoice(data) -> InvoiceDTO:
    """Issue an invoice. The balance starts at the full amount."""
    if data.total_amount <= 0:
        raise ValidationRejected("Invoice amount must be greater than zero")

    if not Customer.objects.filter(customer_id=data.customer_id).exists():
        raise ValidationRejected(f"Customer {data.customer_id} not found")

    if data.rental_id is not None:
        if not Rental.objects.filter(rental_id=data.rental_id, customer_id=data.customer_id).exists():
            raise ValidationRejected(f"Rental {data.rental_id} not found for this customer")

    if Invoice.objects.filter(invoice_number=data.invoice_number).exists():
        raise ValidationRejected(f"Invoice number {data.invoice_number} already exists")

    invoice = Invoice.objects.create(
        invoice_number=data.invoice_number,
        customer_id=data.customer_id,
        rental_id=data.rental_id,
        date_issued=data.date_issued,
        total_amount=data.total_amount,
        current_balance=data.total_amount,
    )
    logger.info(f"Invoice {invoice.invoice_number} issued for {invoice.total_amount}")
    return get_invoice(invoice.invoice_id)


def get_invoice(invoice_id: int) -> Optional[InvoiceDTO]:
    try:
        invoice = Invoice.objects.select_related('customer').get(invoice_id=invoice_id)
    except Invoice.DoesNotExist:
        return None
    return _invoice_to_dto(invoice)


def list_invoices(
    customer_id: Optional[int] = None,
    status: Optional[str] = None,
    outstanding_only: bool = False,
) -> List[InvoiceDTO]:
    """List invoices, optionally only those with a balance left to pay."""
    qs = Invoice.objects.select_related('customer')
    if customer_id is not None:
        qs = qs.filter(customer_id=customer_id)
    if status:
        qs = qs.filter(status=status)
    if outstanding_only:
        qs = qs.filter(current_balance__gt=0).exclude(status=InvoiceStatus.CANCELLED)
    return [_invoice_to_dto(i) for i in qs]


def recalculate_invoice_balance(invoice_id: int) -> Decimal:
    """
    Recompute current_balance from active payments and update the paid flag.
    Cancelled invoices keep their status.
    """
    invoice = Invoice.objects.get(invoice_id=invoice_id)
    paid = invoice.payments.filter(
        status=PaymentStatus.ACTIVE
    ).aggregate(total=Sum('amount_paid'))['total'] or Decimal('0.00')

    invoice.current_balance = to_dollars(to_cents(invoice.total_amount) - to_cents(paid))
    if invoice.status != InvoiceStatus.CANCELLED:
        invoice.status = InvoiceStatus.PAID if invoice.current_balance <= 0 else InvoiceStatus.UNPAID
    invoice.save(update_fields=['current_balance', 'status', 'updated_at'])
    return invoice.current_balance


# =============================================================================
# Internal Reference Services
# =============================================================================

def _issued_codes(scope: ReferenceScope) -> List[str]:
    """Every code issued in scope, cancelled payments included."""
    return list(
        Payment.objects.filter(
            internal_reference__startswith=scope.stem
        ).values_list('internal_reference', flat=True)
    )


def preview_internal_reference(
    policy: str = ReferencePolicy.FIRST_GAP,
    on_date: Optional[date] = None,
) -> str:
    """The code the next allocation would get. Nothing is reserved."""
    scope = ReferenceScope.for_date(_reference_prefix(), on_date or timezone.localdate())
    return next_reference(scope, _issued_codes(scope), policy)


def allocate_internal_reference(scope: ReferenceScope, policy: str = ReferencePolicy.MAX_PLUS_ONE) -> str:
    """
    Allocate the next code in scope.

    The scope's ReferenceSequence row is locked for the rest of the enclosing
    transaction, so a concurrent allocation in the same scope waits until
    this one's payment is written. The unique internal_reference column still
    catches anything that slips through (e.g. on SQLite, which ignores
    SELECT ... FOR UPDATE).
    """
    with db_transaction.atomic():
        ReferenceSequence.objects.select_for_update().get_or_create(
            prefix=scope.prefix, year=scope.year, month=scope.month,
        )
        reference = next_reference(scope, _issued_codes(scope), policy)

    logger.info(f"Allocated internal reference {reference}")
    return reference


# =============================================================================
# Payment Services
# =============================================================================

def _invoice_lines(items: PaymentItems, for_update: bool = False) -> Tuple[List[InvoiceLine], dict]:
    """Fresh balances for the invoices in a batch, in submission order."""
    items = list(items)
    qs = Invoice.objects.all()
    if for_update:
        qs = qs.select_for_update()
    invoices = qs.in_bulk([invoice_id for invoice_id, _ in items])

    lines = []
    for invoice_id, amount in items:
        invoice = invoices.get(invoice_id)
        if invoice is None:
            raise ValidationRejected(f"Invoice {invoice_id} not found")
        if invoice.status == InvoiceStatus.CANCELLED:
            raise ValidationRejected(f"Invoice {invoice.invoice_number} is cancelled and cannot receive payments")
        lines.append(InvoiceLine(
            invoice_id=invoice_id,
            balance_cents=to_cents(invoice.current_balance),
            amount_cents=to_cents(amount),
        ))
    return lines, invoices


def preview_payment_batch(items: PaymentItems, payment_reference: Optional[str] = None) -> PaymentBatchDTO:
    """Split a batch against current balances without writing anything."""
    lines, _ = _invoice_lines(items)
    return allocate_batch(lines, payment_reference)


def _reject_reused_reference(invoices: dict, payment_reference: Optional[str]) -> None:
    if not payment_reference:
        return
    for invoice in invoices.values():
        reused = invoice.payments.filter(
            payment_reference=payment_reference
        ).exclude(status=PaymentStatus.CANCELLED).exists()
        if reused:
            raise ValidationRejected(
                f"Payment reference {payment_reference} has already been used "
                f"for invoice {invoice.invoice_number}"
            )


def _create_payment(invoice: Invoice, scope: ReferenceScope, policy: str, **fields) -> Payment:
    reference = allocate_internal_reference(scope, policy)
    try:
        with db_transaction.atomic():
            return Payment.objects.create(invoice=invoice, internal_reference=reference, **fields)
    except IntegrityError:
        raise ReferenceCollision(reference)


def _write_batch(
    items: List[Tuple[int, Decimal]],
    payment_date: date,
    payment_method: str,
    payment_reference: Optional[str],
    notes: str,
    confirm_overpayment: bool,
    reference_policy: str,
) -> List[Payment]:
    today = timezone.localdate()
    prefix = _reference_prefix()
    created = []

    with db_transaction.atomic():
        # Balances are re-read under lock; an overpayment that appeared since
        # the preview still needs confirmation.
        lines, invoices = _invoice_lines(items, for_update=True)
        batch = allocate_batch(lines, payment_reference)
        if batch.has_overpayment and not confirm_overpayment:
            raise OverpaymentConfirmationRequired(batch)
        _reject_reused_reference(invoices, batch.payment_reference)

        # Cheques stay pending until cleared, the excess included
        is_cheque = payment_method == PaymentMethod.CHEQUE
        regular_status = PaymentStatus.PENDING if is_cheque else PaymentStatus.ACTIVE
        excess_status = PaymentStatus.PENDING if is_cheque else PaymentStatus.OVERPAID

        for split in batch.splits:
            invoice = invoices[split.invoice_id]
            scope = scope_for(prefix, reference_policy, invoice.date_issued, today)

            if split.regular_cents > 0:
                created.append(_create_payment(
                    invoice, scope, reference_policy,
                    payment_date=payment_date,
                    amount_paid=to_dollars(split.regular_cents),
                    payment_method=payment_method,
                    payment_reference=batch.payment_reference,
                    status=regular_status,
                    notes=notes,
                ))

            if split.overpaid_cents > 0:
                created.append(_create_payment(
                    invoice, scope, reference_policy,
                    payment_date=payment_date,
                    amount_paid=to_dollars(split.overpaid_cents),
                    payment_method=payment_method,
                    payment_reference=batch.payment_reference,
                    status=excess_status,
                    is_overpayment=True,
                    notes=notes or f"Overpayment on invoice {invoice.invoice_number}",
                ))

            recalculate_invoice_balance(invoice.invoice_id)

        for customer_id in {i.customer_id for i in invoices.values()}:
            touch_customer(customer_id)

    return created


def record_payment_batch(
    items: PaymentItems,
    payment_date: date,
    payment_method: str = PaymentMethod.CASH,
    payment_reference: Optional[str] = None,
    notes: str = "",
    confirm_overpayment: bool = False,
    reference_policy: str = ReferencePolicy.MAX_PLUS_ONE,
) -> List[PaymentDTO]:
    """
    Record one payment across one or more invoices.

    Every invoice gets a regular payment for the part that fits its balance
    (pending for cheques, otherwise active) and a separate excess payment for
    the rest (pending for cheques until confirmed, otherwise overpaid). Each
    record gets its own internal reference.

    Raises:
        ValidationRejected: bad batch, cancelled invoice or reused reference
        OverpaymentConfirmationRequired: overpayment not confirmed
        ReferenceCollision: the reference was taken twice in a row
    """
    if payment_method not in PaymentMethod.values:
        raise ValidationRejected(f"Invalid payment method: {payment_method}")
    if reference_policy not in ReferencePolicy.values:
        raise ValidationRejected(f"Invalid reference policy: {reference_policy}")

    items = list(items)
    args = (items, payment_date, payment_method, payment_reference, notes or "",
            confirm_overpayment, reference_policy)
    try:
        payments = _write_batch(*args)
    except ReferenceCollision as e:
        logger.warning(f"{e}; retrying with a fresh allocation")
        payments = _write_batch(*args)

    total = sum((p.amount_paid for p in payments), Decimal('0.00'))
    logger.info(
        f"Recorded {len(payments)} payment record(s) totalling {total} "
        f"across {len(items)} invoice(s)"
    )
    return [get_payment(p.payment_id) for p in payments]


def get_payment(payment_id: int) -> Optional[PaymentDTO]:
    try:
        payment = Payment.objects.select_related('invoice').get(payment_id=payment_id)
    except Payment.DoesNotExist:
        return None
    return _payment_to_dto(payment)


def list_payments(invoice_id: Optional[int] = None, include_cancelled: bool = False) -> List[PaymentDTO]:
    qs = Payment.objects.select_related('invoice')
    if invoice_id is not None:
        qs = qs.filter(invoice_id=invoice_id)
    if not include_cancelled:
        qs = qs.exclude(status=PaymentStatus.CANCELLED)
    return [_payment_to_dto(p) for p in qs]


def cancel_payment(payment_id: int, reason: str = "") -> Optional[PaymentDTO]:
    """
    Cancel a payment. The record and its internal reference are kept;
    the invoice balance is restored.
    """
    with db_transaction.atomic():
        try:
            payment = Payment.objects.select_for_update().get(payment_id=payment_id)
        except Payment.DoesNotExist:
            return None

        if payment.status == PaymentStatus.CANCELLED:
            raise ValueError("Payment is already cancelled")

        payment.status = PaymentStatus.CANCELLED
        payment.cancellation_date = timezone.localdate()
        payment.cancellation_reason = reason or ""
        payment.save(update_fields=['status', 'cancellation_date', 'cancellation_reason', 'updated_at'])
        balance = recalculate_invoice_balance(payment.invoice_id)

    logger.info(f"Payment {payment.internal_reference or payment_id} cancelled; invoice balance now {balance}")
    return get_payment(payment_id)


def confirm_payment(payment_id: int) -> Optional[List[PaymentDTO]]:
    """
    Mark a pending (cheque) payment as cleared.

    A cheque paying several invoices is recorded as several payments sharing
    one payment_reference; confirming any of them confirms every pending
    payment with that reference. Regular parts become active, excess parts
    become overpaid. Payments on cancelled invoices are left pending.
    Returns the confirmed payments, or None if the payment does not exist.
    """
    with db_transaction.atomic():
        try:
            payment = Payment.objects.select_for_update().get(payment_id=payment_id)
        except Payment.DoesNotExist:
            return None

        if payment.status != PaymentStatus.PENDING:
            raise ValueError("Only pending payments can be confirmed")

        if payment.payment_reference:
            batch = list(
                Payment.objects.select_for_update().select_related('invoice').filter(
                    payment_reference=payment.payment_reference,
                    status=PaymentStatus.PENDING,
                ).order_by('payment_id')
            )
        else:
            batch = [payment]

        confirmed = []
        for pending in batch:
            if pending.invoice.status == InvoiceStatus.CANCELLED:
                logger.warning(
                    f"Skipping confirmation of payment {pending.payment_id}: "
                    f"invoice {pending.invoice.invoice_number} is cancelled"
                )
                continue
            pending.status = PaymentStatus.OVERPAID if pending.is_overpayment else PaymentStatus.ACTIVE
            pending.save(update_fields=['status', 'updated_at'])
            confirmed.append(pending)

        if not confirmed:
            raise ValueError("No pending payments could be confirmed")

        for invoice_id in {p.invoice_id for p in confirmed}:
            recalculate_invoice_balance(invoice_id)

    logger.info(
        f"Confirmed {len(confirmed)} payment(s) with reference "
        f"{payment.payment_reference or payment.internal_reference}"
    )
    return [get_payment(p.payment_id) for p in confirmed]


# =============================================================================
# DTO Helpers
# =============================================================================

def _invoice_to_dto(invoice: Invoice) -> InvoiceDTO:
    return InvoiceDTO(
        invoice_id=invoice.invoice_id,
        invoice_number=invoice.invoice_number,
        customer_id=invoice.customer_id,
        customer_name=invoice.customer.name,
        rental_id=invoice.rental_id,
        date_issued=invoice.date_issued,
        total_amount=invoice.total_amount,
        current_balance=invoice.current_balance,
        status=invoice.status,
    )


def _payment_to_dto(payment: Payment) -> PaymentDTO:
    return PaymentDTO(
        payment_id=payment.payment_id,
        invoice_id=payment.invoice_id,
        invoice_number=payment.invoice.invoice_number,
        payment_date=payment.payment_date,
        amount_paid=payment.amount_paid,
        payment_method=payment.payment_method,
        payment_reference=payment.payment_reference,
        internal_reference=payment.internal_reference,
        status=payment.status,
        notes=payment.notes,
        cancellation_date=payment.cancellation_date,
        cancellation_reason=payment.cancellation_reason,
        is_overpayment=payment.is_overpayment,
    )
