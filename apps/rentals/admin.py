from django.contrib import admin
from .models import Customer, Dumpster, Rental


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['customer_id', 'name', 'phone_number', 'last_activity_date']
    search_fields = ['name', 'phone_number']


@admin.register(Dumpster)
class DumpsterAdmin(admin.ModelAdmin):
    list_display = ['tong_no', 'status']
    list_filter = ['status']
    search_fields = ['tong_no']


@admin.register(Rental)
class RentalAdmin(admin.ModelAdmin):
    list_display = ['rental_id', 'dumpster', 'customer', 'driver', 'date_placed', 'date_picked']
    list_filter = ['date_placed', 'date_picked']
    search_fields = ['dumpster__tong_no', 'customer__name', 'driver']
    date_hierarchy = 'date_placed'
    readonly_fields = ['created_at', 'updated_at']
