"""
Unit tests for rental intervals.
Tests date normalization, the rental term variant and the overlap predicate.
"""
from datetime import date, datetime

from django.test import SimpleTestCase

from apps.rentals.dtos import BookingDTO
from apps.rentals.intervals import (
    ONGOING, Completed, Interval, as_calendar_date, covers, find_overlaps,
    overlaps, pickup_of, term_from_pickup,
)


def completed(start, end):
    return Interval(start, Completed(end))


class CalendarDateTest(SimpleTestCase):
    """Test that time of day never matters."""

    def test_datetime_is_truncated(self):
        self.assertEqual(as_calendar_date(datetime(2024, 3, 10, 23, 59)), date(2024, 3, 10))

    def test_iso_string_with_time(self):
        self.assertEqual(as_calendar_date('2024-03-10T17:45:00Z'), date(2024, 3, 10))

    def test_plain_date_passes_through(self):
        self.assertEqual(as_calendar_date(date(2024, 3, 10)), date(2024, 3, 10))

    def test_invalid_string_raises(self):
        with self.assertRaises(ValueError):
            as_calendar_date('10/03/2024')


class RentalTermTest(SimpleTestCase):

    def test_missing_pickup_is_ongoing(self):
        self.assertIs(term_from_pickup(None), ONGOING)
        self.assertIs(term_from_pickup(''), ONGOING)
        self.assertIsNone(pickup_of(ONGOING))

    def test_pickup_builds_completed_term(self):
        term = term_from_pickup('2024-03-10')
        self.assertEqual(term, Completed(date(2024, 3, 10)))
        self.assertEqual(pickup_of(term), date(2024, 3, 10))

    def test_pickup_before_placement_is_rejected(self):
        with self.assertRaises(ValueError):
            completed(date(2024, 3, 10), date(2024, 3, 9))


class CoversTest(SimpleTestCase):
    """Test the inclusive [placement, pickup] interval."""

    def test_completed_interval_is_inclusive(self):
        interval = completed(date(2024, 3, 1), date(2024, 3, 10))
        self.assertTrue(covers(interval, date(2024, 3, 1)))
        self.assertTrue(covers(interval, date(2024, 3, 5)))
        self.assertTrue(covers(interval, date(2024, 3, 10)))
        self.assertFalse(covers(interval, date(2024, 2, 29)))
        self.assertFalse(covers(interval, date(2024, 3, 11)))

    def test_ongoing_interval_has_no_end(self):
        interval = Interval(date(2024, 3, 1))
        self.assertTrue(interval.is_ongoing)
        self.assertTrue(covers(interval, date(2030, 1, 1)))
        self.assertFalse(covers(interval, date(2024, 2, 29)))

    def test_time_of_day_is_ignored(self):
        interval = completed(date(2024, 3, 1), date(2024, 3, 10))
        self.assertTrue(covers(interval, datetime(2024, 3, 10, 23, 30)))


class OverlapsTest(SimpleTestCase):
    """Test the overlap predicate used for the booking invariant."""

    def test_transition_day_is_not_an_overlap(self):
        first = completed(date(2024, 3, 1), date(2024, 3, 10))
        second = completed(date(2024, 3, 10), date(2024, 3, 15))
        self.assertFalse(overlaps(first, second))
        self.assertFalse(overlaps(second, first))

    def test_shared_days_overlap(self):
        first = completed(date(2024, 3, 1), date(2024, 3, 10))
        second = completed(date(2024, 3, 9), date(2024, 3, 15))
        self.assertTrue(overlaps(first, second))

    def test_ongoing_blocks_everything_after_its_start(self):
        ongoing = Interval(date(2024, 3, 1), ONGOING)
        self.assertTrue(overlaps(ongoing, completed(date(2024, 5, 1), date(2024, 5, 2))))
        self.assertTrue(overlaps(ongoing, Interval(date(2024, 6, 1))))

    def test_ongoing_may_start_on_previous_pickup_day(self):
        previous = completed(date(2024, 3, 1), date(2024, 3, 10))
        self.assertFalse(overlaps(Interval(date(2024, 3, 10)), previous))

    def test_same_day_rentals_do_not_conflict(self):
        self.assertFalse(overlaps(
            completed(date(2024, 3, 5), date(2024, 3, 5)),
            completed(date(2024, 3, 5), date(2024, 3, 5)),
        ))

    def test_find_overlaps_is_per_dumpster(self):
        bookings = [
            BookingDTO(1, 'T1', date(2024, 3, 1), Completed(date(2024, 3, 10))),
            BookingDTO(2, 'T1', date(2024, 3, 5)),
            BookingDTO(3, 'T2', date(2024, 3, 5)),
        ]
        conflicts = find_overlaps(bookings)
        self.assertEqual(len(conflicts), 1)
        self.assertEqual({b.rental_id for b in conflicts[0]}, {1, 2})
