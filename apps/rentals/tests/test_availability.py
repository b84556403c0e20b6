"""
Unit tests for the availability resolver.
Runs on in-memory bookings, no database.
"""
from datetime import date

from django.test import SimpleTestCase

from apps.rentals.availability import MAINTENANCE_REASON, ONGOING_REASON, resolve_availability
from apps.rentals.dtos import BookingDTO, DumpsterDTO
from apps.rentals.intervals import ONGOING, Completed


def booking(rental_id, tong_no, placed, picked=None, customer="Acme"):
    term = Completed(picked) if picked else ONGOING
    return BookingDTO(
        rental_id=rental_id,
        dumpster_id=tong_no,
        date_placed=placed,
        term=term,
        customer_name=customer,
    )


class TransitionScenarioTest(SimpleTestCase):
    """T1 is rented from 2024-03-01 and picked up on 2024-03-10."""

    def setUp(self):
        self.dumpsters = [DumpsterDTO('T1', 'Available')]
        self.bookings = [booking(1, 'T1', date(2024, 3, 1), date(2024, 3, 10))]

    def test_pickup_day_is_a_transition_day(self):
        result = resolve_availability(date(2024, 3, 10), self.dumpsters, self.bookings)

        self.assertEqual(len(result.available), 1)
        entry = result.available[0]
        self.assertEqual(entry.tong_no, 'T1')
        self.assertTrue(entry.is_transition_day)
        self.assertEqual(entry.transition_from.rental_id, 1)
        self.assertIsNone(entry.available_until)

    def test_mid_rental_is_upcoming(self):
        result = resolve_availability(date(2024, 3, 5), self.dumpsters, self.bookings)

        self.assertEqual(result.available, [])
        self.assertEqual(len(result.upcoming), 1)
        entry = result.upcoming[0]
        self.assertEqual(entry.available_after, date(2024, 3, 10))
        self.assertEqual(entry.rental_id, 1)
        self.assertEqual(entry.customer, "Acme")
        self.assertFalse(entry.has_future_rental)

    def test_after_pickup_is_plainly_available(self):
        result = resolve_availability(date(2024, 3, 11), self.dumpsters, self.bookings)
        self.assertFalse(result.available[0].is_transition_day)

    def test_before_placement_reports_next_booking(self):
        result = resolve_availability(date(2024, 2, 20), self.dumpsters, self.bookings)

        entry = result.available[0]
        self.assertEqual(entry.available_until, date(2024, 3, 1))
        self.assertEqual(entry.next_booking.rental_id, 1)
        self.assertEqual(entry.next_booking.date, date(2024, 3, 1))

    def test_query_date_string_with_time(self):
        result = resolve_availability('2024-03-10T08:30:00', self.dumpsters, self.bookings)
        self.assertTrue(result.available[0].is_transition_day)


class ClassificationTest(SimpleTestCase):

    def test_ongoing_rental_is_unavailable(self):
        result = resolve_availability(
            date(2024, 3, 5),
            [DumpsterDTO('T2', 'Rented')],
            [booking(7, 'T2', date(2024, 3, 1), customer="Beta")],
        )
        self.assertEqual(len(result.unavailable), 1)
        entry = result.unavailable[0]
        self.assertEqual(entry.reason, ONGOING_REASON)
        self.assertEqual(entry.rental_id, 7)
        self.assertEqual(entry.customer, "Beta")

    def test_maintenance_overrides_bookings(self):
        result = resolve_availability(
            date(2024, 3, 20),
            [DumpsterDTO('T3', 'Maintenance')],
            [booking(1, 'T3', date(2024, 3, 1), date(2024, 3, 10))],
        )
        self.assertEqual(result.unavailable[0].reason, MAINTENANCE_REASON)
        self.assertIsNone(result.unavailable[0].rental_id)

    def test_upcoming_reports_booking_placed_on_pickup_day(self):
        bookings = [
            booking(1, 'T1', date(2024, 3, 1), date(2024, 3, 10)),
            booking(2, 'T1', date(2024, 3, 10), date(2024, 3, 20), customer="Beta"),
        ]
        result = resolve_availability(date(2024, 3, 5), [DumpsterDTO('T1', 'Rented')], bookings)

        entry = result.upcoming[0]
        self.assertTrue(entry.has_future_rental)
        self.assertEqual(entry.next_booking.rental_id, 2)
        self.assertEqual(entry.next_booking.customer, "Beta")

    def test_transition_day_with_next_rental_already_placed(self):
        """On the changeover day the new rental occupies the dumpster."""
        bookings = [
            booking(1, 'T1', date(2024, 3, 1), date(2024, 3, 10)),
            booking(2, 'T1', date(2024, 3, 10), date(2024, 3, 20)),
        ]
        result = resolve_availability(date(2024, 3, 10), [DumpsterDTO('T1', 'Rented')], bookings)

        self.assertEqual(result.available, [])
        self.assertEqual(result.upcoming[0].rental_id, 2)
        self.assertEqual(result.upcoming[0].available_after, date(2024, 3, 20))

    def test_every_dumpster_lands_in_exactly_one_list(self):
        dumpsters = [
            DumpsterDTO('T4', 'Available'),
            DumpsterDTO('T1', 'Available'),
            DumpsterDTO('T3', 'Maintenance'),
            DumpsterDTO('T2', 'Rented'),
            DumpsterDTO('T5', 'Available'),
        ]
        bookings = [
            booking(1, 'T1', date(2024, 3, 1), date(2024, 3, 10)),
            booking(2, 'T2', date(2024, 3, 1)),
            booking(3, 'T4', date(2024, 3, 10), date(2024, 3, 12)),
            booking(4, 'T5', date(2024, 2, 1), date(2024, 2, 5)),
        ]
        result = resolve_availability(date(2024, 3, 5), dumpsters, bookings)

        names = (
            [d.tong_no for d in result.available]
            + [d.tong_no for d in result.upcoming]
            + [d.tong_no for d in result.unavailable]
        )
        self.assertEqual(sorted(names), ['T1', 'T2', 'T3', 'T4', 'T5'])
        self.assertEqual(len(names), len(set(names)))
        self.assertEqual([d.tong_no for d in result.available], ['T4', 'T5'])
        self.assertEqual([d.tong_no for d in result.unavailable], ['T2', 'T3'])
