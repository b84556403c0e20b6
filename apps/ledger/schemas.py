"""API Schemas for Ledger app - Pydantic/Ninja schemas for request/response validation."""
from typing import Optional, List
from datetime import date
from decimal import Decimal
from ninja import Schema


# =============================================================================
# Request Schemas
# =============================================================================

class InvoiceIn(Schema):
    """Schema for issuing an invoice."""
    invoice_number: str
    customer_id: int
    rental_id: Optional[int] = None
    date_issued: date
    total_amount: Decimal


class PaymentLineIn(Schema):
    """One invoice in a payment batch."""
    invoice_id: int
    amount: Decimal


class PaymentPreviewIn(Schema):
    """Schema for previewing how a payment splits across invoices."""
    invoices: List[PaymentLineIn]
    payment_reference: Optional[str] = None  # Required when paying more than one invoice


class PaymentBatchIn(PaymentPreviewIn):
    """Schema for recording a payment."""
    payment_date: date
    payment_method: str = 'cash'  # cash, cheque, bank_transfer, online
    notes: str = ""
    confirm_overpayment: bool = False
    reference_policy: str = 'max_plus_one'  # max_plus_one or first_gap


class PaymentCancelIn(Schema):
    reason: str = ""


# =============================================================================
# Response Schemas
# =============================================================================

class InvoiceOut(Schema):
    invoice_id: int
    invoice_number: str
    customer_id: int
    customer_name: str
    rental_id: Optional[int]
    date_issued: date
    total_amount: Decimal
    current_balance: Decimal
    status: str


class PaymentOut(Schema):
    payment_id: int
    invoice_id: int
    invoice_number: str
    payment_date: date
    amount_paid: Decimal
    payment_method: str
    payment_reference: Optional[str]
    internal_reference: Optional[str]
    status: str
    notes: str
    cancellation_date: Optional[date] = None
    cancellation_reason: str = ""
    is_overpayment: bool = False


class PaymentSplitOut(Schema):
    invoice_id: int
    amount: Decimal
    regular_portion: Decimal
    overpaid_portion: Decimal


class PaymentBatchOut(Schema):
    """How a payment splits into regular and overpaid amounts."""
    splits: List[PaymentSplitOut]
    total_regular: Decimal
    total_overpaid: Decimal
    has_overpayment: bool


class OverpaymentOut(Schema):
    """Returned with 409 when an overpayment has not been confirmed."""
    detail: str
    split: PaymentBatchOut


class ReferenceOut(Schema):
    reference: str
    policy: str


class ErrorOut(Schema):
    detail: str
