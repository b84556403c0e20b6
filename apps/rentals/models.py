"""Models for Rentals app."""
from django.db import models


class DumpsterStatus(models.TextChoices):
    """Operational flag set by staff. Only MAINTENANCE affects availability."""
    AVAILABLE = 'Available', 'Available'
    RENTED = 'Rented', 'Rented'
    MAINTENANCE = 'Maintenance', 'Maintenance'


class Customer(models.Model):
    """A customer renting dumpsters."""
    customer_id = models.BigAutoField(primary_key=True)
    name = models.CharField(max_length=255)
    phone_number = models.CharField(max_length=30, blank=True)
    last_activity_date = models.DateField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class Dumpster(models.Model):
    """
    A physical dumpster, identified by its tong number.
    Never deleted while rentals reference it.
    """
    tong_no = models.CharField(max_length=20, primary_key=True)
    status = models.CharField(
        max_length=20,
        choices=DumpsterStatus.choices,
        default=DumpsterStatus.AVAILABLE,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['tong_no']

    def __str__(self):
        return f"{self.tong_no} ({self.status})"


class Rental(models.Model):
    """
    A dumpster placed at a customer site.
    date_picked is NULL while the rental is ongoing.
    """
    rental_id = models.BigAutoField(primary_key=True)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='rentals')
    dumpster = models.ForeignKey(
        Dumpster,
        on_delete=models.PROTECT,
        related_name='rentals',
        db_column='tong_no',
    )
    driver = models.CharField(max_length=100)
    location = models.CharField(max_length=255, blank=True)

    date_placed = models.DateField()
    date_picked = models.DateField(null=True, blank=True)
    remarks = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-date_placed', '-rental_id']
        indexes = [
            models.Index(fields=['dumpster', 'date_placed']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(date_picked__isnull=True) | models.Q(date_picked__gte=models.F('date_placed')),
                name='rental_pickup_not_before_placement',
            ),
        ]

    def __str__(self):
        return f"Rental {self.rental_id} - {self.dumpster_id}"
