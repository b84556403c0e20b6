"""
Splitting one payment batch across invoices.

Each line pays one invoice. The part of a line that fits inside the invoice's
outstanding balance is regular; anything beyond it is overpaid and is stored
as a separate payment record. All arithmetic here is in integer cents.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence

from apps.core.exceptions import ValidationRejected

from .dtos import ValidationResultDTO
from .money import to_dollars


@dataclass(frozen=True)
class InvoiceLine:
    """One invoice in a batch with its authoritative balance and the amount offered."""
    invoice_id: int
    balance_cents: int
    amount_cents: int


@dataclass(frozen=True)
class PaymentSplitDTO:
    invoice_id: int
    amount_cents: int
    regular_cents: int
    overpaid_cents: int

    @property
    def is_overpaid(self) -> bool:
        return self.overpaid_cents > 0


@dataclass(frozen=True)
class PaymentBatchDTO:
    """The computed split for a whole batch, with totals."""
    splits: List[PaymentSplitDTO]
    payment_reference: Optional[str] = None

    @property
    def total_cents(self) -> int:
        return sum(s.amount_cents for s in self.splits)

    @property
    def total_regular_cents(self) -> int:
        return sum(s.regular_cents for s in self.splits)

    @property
    def total_overpaid_cents(self) -> int:
        return sum(s.overpaid_cents for s in self.splits)

    @property
    def total_regular(self) -> Decimal:
        return to_dollars(self.total_regular_cents)

    @property
    def total_overpaid(self) -> Decimal:
        return to_dollars(self.total_overpaid_cents)

    @property
    def has_overpayment(self) -> bool:
        return any(s.is_overpaid for s in self.splits)


def validate_batch(lines: Sequence[InvoiceLine], payment_reference: Optional[str] = None) -> ValidationResultDTO:
    """
    Check a batch before allocation.

    - at least one line
    - every amount is positive
    - an invoice appears once
    - a shared payment reference when more than one invoice is paid
    """
    if not lines:
        return ValidationResultDTO(valid=False, error="Select at least one invoice to pay")

    for line in lines:
        if line.amount_cents <= 0:
            return ValidationResultDTO(
                valid=False,
                error=f"Payment amount for invoice {line.invoice_id} must be greater than zero",
            )

    invoice_ids = [line.invoice_id for line in lines]
    if len(set(invoice_ids)) != len(invoice_ids):
        return ValidationResultDTO(valid=False, error="Each invoice can appear only once in a payment")

    if len(lines) > 1 and not (payment_reference or "").strip():
        return ValidationResultDTO(
            valid=False,
            error="A payment reference is required when paying multiple invoices",
        )

    return ValidationResultDTO(valid=True)


def split_line(line: InvoiceLine) -> PaymentSplitDTO:
    regular = min(line.amount_cents, max(line.balance_cents, 0))
    return PaymentSplitDTO(
        invoice_id=line.invoice_id,
        amount_cents=line.amount_cents,
        regular_cents=regular,
        overpaid_cents=line.amount_cents - regular,
    )


def allocate_batch(lines: Sequence[InvoiceLine], payment_reference: Optional[str] = None) -> PaymentBatchDTO:
    """Split every line into regular and overpaid parts. Raises ValidationRejected on a bad batch."""
    result = validate_batch(lines, payment_reference)
    if not result.valid:
        raise ValidationRejected(result.error)

    reference = (payment_reference or "").strip() or None
    return PaymentBatchDTO(
        splits=[split_line(line) for line in lines],
        payment_reference=reference,
    )
