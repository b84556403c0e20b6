from django.contrib import admin
from .models import Invoice, Payment, ReferenceSequence


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'customer', 'date_issued', 'total_amount', 'current_balance', 'status']
    list_filter = ['status', 'date_issued']
    search_fields = ['invoice_number', 'customer__name']
    date_hierarchy = 'date_issued'
    readonly_fields = ['created_at', 'updated_at']


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['payment_id', 'internal_reference', 'invoice', 'amount_paid', 'payment_method', 'status', 'is_overpayment', 'payment_date']
    list_filter = ['status', 'payment_method', 'payment_date']
    search_fields = ['internal_reference', 'payment_reference', 'invoice__invoice_number']
    date_hierarchy = 'payment_date'
    readonly_fields = ['created_at', 'updated_at', 'cancellation_date']


@admin.register(ReferenceSequence)
class ReferenceSequenceAdmin(admin.ModelAdmin):
    list_display = ['prefix', 'year', 'month', 'updated_at']
    readonly_fields = ['updated_at']
