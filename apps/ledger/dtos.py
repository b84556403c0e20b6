"""DTOs for Ledger app - Data Transfer Objects for cross-app communication."""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class InvoiceDTO:
    """Invoice data."""
    invoice_id: int
    invoice_number: str
    customer_id: int
    customer_name: str
    rental_id: Optional[int]
    date_issued: date
    total_amount: Decimal
    current_balance: Decimal
    status: str


@dataclass(frozen=True)
class PaymentDTO:
    """Payment data."""
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


@dataclass(frozen=True)
class ValidationResultDTO:
    """Result of a validation check."""
    valid: bool
    error: Optional[str] = None
