"""Models for Ledger app."""
from django.db import models

from apps.rentals.models import Customer, Rental


class InvoiceStatus(models.TextChoices):
    UNPAID = 'unpaid', 'Unpaid'
    PAID = 'paid', 'Paid'
    CANCELLED = 'cancelled', 'Cancelled'


class PaymentStatus(models.TextChoices):
    """
    Lifecycle of a payment record.
    Only ACTIVE payments reduce an invoice's balance.
    """
    ACTIVE = 'active', 'Active'
    PENDING = 'pending', 'Pending (uncleared cheque)'
    CANCELLED = 'cancelled', 'Cancelled'
    OVERPAID = 'overpaid', 'Overpaid Amount'


class PaymentMethod(models.TextChoices):
    CASH = 'cash', 'Cash'
    CHEQUE = 'cheque', 'Cheque'
    BANK_TRANSFER = 'bank_transfer', 'Bank Transfer'
    ONLINE = 'online', 'Online'


class Invoice(models.Model):
    """
    An invoice issued to a customer, optionally for one rental.
    current_balance is recomputed from active payments after every payment write.
    """
    invoice_id = models.BigAutoField(primary_key=True)
    invoice_number = models.CharField(max_length=50, unique=True)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='invoices')
    rental = models.ForeignKey(
        Rental,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='invoices',
    )

    date_issued = models.DateField()
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    current_balance = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="total_amount minus active payments"
    )
    status = models.CharField(
        max_length=20,
        choices=InvoiceStatus.choices,
        default=InvoiceStatus.UNPAID
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-date_issued', '-invoice_id']

    def __str__(self):
        return f"Invoice {self.invoice_number} - {self.total_amount}"


class Payment(models.Model):
    """
    A payment against one invoice.
    Never hard-deleted; cancelling flips the status and restores the balance.
    """
    payment_id = models.BigAutoField(primary_key=True)
    invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, related_name='payments')

    payment_date = models.DateField()
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2)
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.CASH
    )
    payment_reference = models.CharField(
        max_length=100,
        blank=True,
        null=True,
        help_text="External reference (bank ref, cheque number, etc.)"
    )
    internal_reference = models.CharField(
        max_length=30,
        unique=True,
        blank=True,
        null=True,
        help_text="Sequential receipt voucher code, e.g. RV24/03/01"
    )
    status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.ACTIVE
    )
    is_overpayment = models.BooleanField(
        default=False,
        help_text="Excess over the invoice balance; a pending one becomes overpaid when confirmed"
    )
    notes = models.TextField(blank=True)

    cancellation_date = models.DateField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-payment_date', '-payment_id']
        indexes = [
            models.Index(fields=['invoice', 'status']),
        ]

    def __str__(self):
        return f"Payment {self.internal_reference or self.payment_id} - {self.amount_paid} ({self.status})"


class ReferenceSequence(models.Model):
    """
    One row per reference scope (prefix + year + month), used only as a lock.
    Locked with SELECT ... FOR UPDATE while a reference is allocated, so
    concurrent allocations in the same scope run one after another.
    """
    prefix = models.CharField(max_length=10)
    year = models.PositiveSmallIntegerField(help_text="Two-digit year")
    month = models.PositiveSmallIntegerField(help_text="Month (1-12)")
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ['prefix', 'year', 'month']
        verbose_name = "Reference Sequence"
        verbose_name_plural = "Reference Sequences"

    def __str__(self):
        return f"{self.prefix}{self.year:02d}/{self.month:02d}/"
