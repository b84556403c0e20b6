"""
Unit tests for rentals services.
Tests rental persistence, the write-time overlap check and dumpster status sync.
"""
from datetime import date, timedelta
from decimal import Decimal
from unittest import mock

from django.apps import apps as django_apps
from django.test import TestCase
from django.utils import timezone

from apps.core.cache import ReferenceDataCache
from apps.core.exceptions import StaleSnapshotConflict, ValidationRejected
from apps.ledger.models import Invoice
from apps.rentals import services
from apps.rentals.models import Customer, Dumpster, DumpsterStatus, Rental
from apps.rentals.schemas import CustomerIn, DumpsterIn, RentalIn


class RentalServiceTestBase(TestCase):

    def setUp(self):
        self.today = timezone.localdate()
        self.customer = Customer.objects.create(name="Acme Builders", phone_number="0123")
        self.t1 = Dumpster.objects.create(tong_no='T1')
        self.t2 = Dumpster.objects.create(tong_no='T2')

    def rental_in(self, tong_no='T1', placed=None, picked=None):
        return RentalIn(
            customer_id=self.customer.customer_id,
            tong_no=tong_no,
            driver="Sam",
            date_placed=placed,
            date_picked=picked,
        )


class CreateRentalTest(RentalServiceTestBase):
    """Test rental creation."""

    def test_create_rental(self):
        rental = services.create_rental(self.rental_in(placed=date(2024, 3, 1), picked=date(2024, 3, 10)))

        self.assertEqual(rental.tong_no, 'T1')
        self.assertEqual(rental.customer_name, "Acme Builders")
        self.assertEqual(rental.date_picked, date(2024, 3, 10))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.last_activity_date, self.today)

    def test_overlapping_rental_is_rejected(self):
        services.create_rental(self.rental_in(placed=date(2024, 3, 1), picked=date(2024, 3, 10)))

        with self.assertRaises(ValidationRejected):
            services.create_rental(self.rental_in(placed=date(2024, 3, 5)))
        self.assertEqual(Rental.objects.count(), 1)

    def test_rental_on_pickup_day_is_allowed(self):
        services.create_rental(self.rental_in(placed=date(2024, 3, 1), picked=date(2024, 3, 10)))
        services.create_rental(self.rental_in(placed=date(2024, 3, 10)))
        self.assertEqual(Rental.objects.filter(dumpster_id='T1').count(), 2)

    def test_pickup_before_placement_is_rejected(self):
        with self.assertRaises(ValidationRejected) as ctx:
            services.create_rental(self.rental_in(placed=date(2024, 3, 10), picked=date(2024, 3, 1)))
        self.assertEqual(ctx.exception.reason, "Pickup date cannot be before placement date")

    def test_unknown_customer_is_rejected(self):
        data = RentalIn(customer_id=999999, tong_no='T1', driver="Sam", date_placed=date(2024, 3, 1))
        with self.assertRaises(ValidationRejected):
            services.create_rental(data)

    def test_write_time_overlap_raises_stale_conflict(self):
        """A conflicting rental that slipped past validation is rolled back."""
        services.create_rental(self.rental_in(placed=date(2024, 3, 1)))

        with mock.patch.object(services, 'ensure_booking_allowed'):
            with self.assertRaises(StaleSnapshotConflict) as ctx:
                services.create_rental(self.rental_in(placed=date(2024, 3, 5), picked=date(2024, 3, 6)))

        self.assertEqual(str(ctx.exception), "Booking conflict, please retry")
        self.assertEqual(Rental.objects.count(), 1)


class UpdateDeleteRentalTest(RentalServiceTestBase):
    """Test editing and deleting rentals."""

    def setUp(self):
        super().setUp()
        self.first = services.create_rental(self.rental_in(placed=date(2024, 3, 1), picked=date(2024, 3, 10)))
        self.second = services.create_rental(self.rental_in(placed=date(2024, 3, 12), picked=date(2024, 3, 20)))

    def test_record_pickup_up_to_next_rental(self):
        updated = services.update_rental(
            self.first.rental_id,
            self.rental_in(placed=date(2024, 3, 1), picked=date(2024, 3, 12)),
        )
        self.assertEqual(updated.date_picked, date(2024, 3, 12))

    def test_extending_into_next_rental_is_rejected(self):
        with self.assertRaises(ValidationRejected) as ctx:
            services.update_rental(
                self.first.rental_id,
                self.rental_in(placed=date(2024, 3, 1), picked=date(2024, 3, 15)),
            )
        self.assertIn(f"overlap rental {self.second.rental_id}", ctx.exception.reason)

    def test_move_to_another_dumpster(self):
        updated = services.update_rental(
            self.first.rental_id,
            self.rental_in(tong_no='T2', placed=date(2024, 3, 1), picked=date(2024, 3, 10)),
        )
        self.assertEqual(updated.tong_no, 'T2')

    def test_update_missing_rental_returns_none(self):
        self.assertIsNone(services.update_rental(999999, self.rental_in(placed=date(2024, 3, 1))))

    def test_check_rental_for_edit(self):
        result = services.check_rental(
            self.rental_in(placed=date(2024, 3, 1), picked=date(2024, 3, 10)),
            rental_id=self.first.rental_id,
        )
        self.assertTrue(result.valid)
        self.assertFalse(services.check_rental(self.rental_in(placed=date(2024, 3, 1)), rental_id=999999).valid)

    def test_delete_rental(self):
        self.assertTrue(services.delete_rental(self.second.rental_id))
        self.assertFalse(Rental.objects.filter(rental_id=self.second.rental_id).exists())
        self.assertFalse(services.delete_rental(self.second.rental_id))

    def test_rental_with_invoice_cannot_be_deleted(self):
        Invoice.objects.create(
            invoice_number="INV-1",
            customer=self.customer,
            rental_id=self.first.rental_id,
            date_issued=date(2024, 3, 10),
            total_amount=Decimal('100.00'),
            current_balance=Decimal('100.00'),
        )
        with self.assertRaises(ValidationRejected):
            services.delete_rental(self.first.rental_id)

    def test_list_rentals_active_on(self):
        active = services.list_rentals(active_on=date(2024, 3, 10))
        self.assertEqual([r.rental_id for r in active], [self.first.rental_id])


class DumpsterStatusSyncTest(RentalServiceTestBase):
    """Test the Available/Rented flag following today's rentals."""

    def test_ongoing_rental_marks_dumpster_rented(self):
        services.create_rental(self.rental_in(placed=self.today - timedelta(days=2)))
        self.t1.refresh_from_db()
        self.assertEqual(self.t1.status, DumpsterStatus.RENTED)

    def test_pickup_marks_dumpster_available(self):
        rental = services.create_rental(self.rental_in(placed=self.today - timedelta(days=5)))
        services.update_rental(
            rental.rental_id,
            self.rental_in(placed=self.today - timedelta(days=5), picked=self.today - timedelta(days=1)),
        )
        self.t1.refresh_from_db()
        self.assertEqual(self.t1.status, DumpsterStatus.AVAILABLE)

    def test_status_change_refreshes_app_cached_dumpster_list(self):
        cache = django_apps.get_app_config('rentals').reference_cache
        cache.clear()
        listed = {d.tong_no: d.status for d in services.list_dumpsters(cache=cache)}
        self.assertEqual(listed['T1'], DumpsterStatus.AVAILABLE)

        services.create_rental(self.rental_in(placed=self.today))

        listed = {d.tong_no: d.status for d in services.list_dumpsters(cache=cache)}
        self.assertEqual(listed['T1'], DumpsterStatus.RENTED)

    def test_status_change_refreshes_given_cache(self):
        cache = ReferenceDataCache(ttl_seconds=300)
        services.list_dumpsters(cache=cache)

        rental = services.create_rental(self.rental_in(placed=self.today), cache=cache)
        self.assertEqual(services.list_dumpsters(status='Rented', cache=cache)[0].tong_no, 'T1')

        services.delete_rental(rental.rental_id, cache=cache)
        self.assertEqual(services.list_dumpsters(status='Rented', cache=cache), [])

    def test_maintenance_is_never_overridden(self):
        Rental.objects.create(
            customer=self.customer, dumpster=self.t1, driver="Sam",
            date_placed=self.today - timedelta(days=1),
        )
        self.t1.status = DumpsterStatus.MAINTENANCE
        self.t1.save()

        self.assertIsNone(services.sync_dumpster_status('T1'))
        self.t1.refresh_from_db()
        self.assertEqual(self.t1.status, DumpsterStatus.MAINTENANCE)

    def test_sync_all_counts_changes(self):
        Rental.objects.create(
            customer=self.customer, dumpster=self.t2, driver="Sam",
            date_placed=date(2024, 3, 1),
        )
        self.assertEqual(services.sync_all_dumpster_statuses(today=date(2024, 3, 5)), 1)
        self.assertEqual(services.sync_all_dumpster_statuses(today=date(2024, 3, 5)), 0)


class ReferenceDataTest(TestCase):
    """Test customer and dumpster lists served through the cache."""

    def setUp(self):
        self.cache = ReferenceDataCache(ttl_seconds=300)

    def test_create_customer_invalidates_cached_list(self):
        self.assertEqual(services.list_customers(cache=self.cache), [])
        services.create_customer(CustomerIn(name="Acme"), cache=self.cache)
        self.assertEqual([c.name for c in services.list_customers(cache=self.cache)], ["Acme"])

    def test_duplicate_dumpster_is_rejected(self):
        services.create_dumpster(DumpsterIn(tong_no='T1'), cache=self.cache)
        with self.assertRaises(ValidationRejected):
            services.create_dumpster(DumpsterIn(tong_no='T1'), cache=self.cache)

    def test_status_filter_and_update(self):
        services.create_dumpster(DumpsterIn(tong_no='T1'), cache=self.cache)
        services.create_dumpster(DumpsterIn(tong_no='T2'), cache=self.cache)
        services.update_dumpster_status('T2', DumpsterStatus.MAINTENANCE, cache=self.cache)

        maintenance = services.list_dumpsters(status='maintenance', cache=self.cache)
        self.assertEqual([d.tong_no for d in maintenance], ['T2'])

    def test_invalid_status_is_rejected(self):
        services.create_dumpster(DumpsterIn(tong_no='T1'))
        with self.assertRaises(ValidationRejected):
            services.update_dumpster_status('T1', 'Lost')
        self.assertIsNone(services.update_dumpster_status('T9', DumpsterStatus.AVAILABLE))
