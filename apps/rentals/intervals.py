"""
Date intervals occupied by rentals.

A rental occupies [date_placed, date_picked] inclusive, or [date_placed, ∞)
while it is ongoing. Every value is reduced to a calendar date before it is
compared, so the time of day never changes an outcome.

The pickup day of one rental may be the placement day of the next one on the
same dumpster (a transition day); that shared day is not an overlap.
"""
from dataclasses import dataclass
from datetime import date, datetime
from itertools import combinations
from typing import Dict, Iterable, List, Optional, Tuple, Union


def as_calendar_date(value: Union[date, datetime, str]) -> date:
    """
    Normalize a date, datetime or ISO-8601 string to a calendar date.

    '2024-03-10', '2024-03-10T17:45:00' and datetime(2024, 3, 10, 17, 45)
    all become date(2024, 3, 10).
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            raise ValueError(f"Invalid date: {value!r}. Expected YYYY-MM-DD")
    raise TypeError(f"Cannot interpret {type(value).__name__} as a date")


@dataclass(frozen=True)
class Ongoing:
    """Rental term with no pickup date yet."""


@dataclass(frozen=True)
class Completed:
    """Rental term that ends on a known pickup date."""
    pickup_date: date

    def __post_init__(self):
        object.__setattr__(self, 'pickup_date', as_calendar_date(self.pickup_date))


RentalTerm = Union[Ongoing, Completed]

ONGOING = Ongoing()


def term_from_pickup(pickup_date: Optional[Union[date, datetime, str]]) -> RentalTerm:
    """Build the rental term from a nullable pickup date."""
    if pickup_date is None or pickup_date == '':
        return ONGOING
    return Completed(as_calendar_date(pickup_date))


def pickup_of(term: RentalTerm) -> Optional[date]:
    """The pickup date of a term, or None while ongoing."""
    if isinstance(term, Completed):
        return term.pickup_date
    if isinstance(term, Ongoing):
        return None
    raise TypeError(f"Unknown rental term: {term!r}")


@dataclass(frozen=True)
class Interval:
    """The days a rental occupies its dumpster."""
    start: date
    term: RentalTerm = ONGOING

    def __post_init__(self):
        object.__setattr__(self, 'start', as_calendar_date(self.start))
        end = pickup_of(self.term)
        if end is not None and end < self.start:
            raise ValueError(f"Pickup date {end} is before placement date {self.start}")

    @property
    def end(self) -> Optional[date]:
        return pickup_of(self.term)

    @property
    def is_ongoing(self) -> bool:
        return isinstance(self.term, Ongoing)


def covers(interval: Interval, day: Union[date, datetime, str]) -> bool:
    """True iff day falls inside [start, end] (or [start, ∞) when ongoing)."""
    day = as_calendar_date(day)
    if day < interval.start:
        return False
    if isinstance(interval.term, Ongoing):
        return True
    if isinstance(interval.term, Completed):
        return day <= interval.term.pickup_date
    raise TypeError(f"Unknown rental term: {interval.term!r}")


def overlaps(a: Interval, b: Interval) -> bool:
    """
    True when two intervals on the same dumpster conflict.

    Sharing only a boundary day (one's pickup day is the other's placement
    day) is a transition, not a conflict.
    """
    # Each interval must start before the other one ends
    a_before_b_ends = b.end is None or a.start < b.end
    b_before_a_ends = a.end is None or b.start < a.end
    return a_before_b_ends and b_before_a_ends


def find_overlaps(bookings: Iterable) -> List[Tuple[object, object]]:
    """
    Return every pair of bookings on the same dumpster whose intervals overlap.

    Bookings are anything with `dumpster_id` and `interval` attributes.
    """
    by_dumpster: Dict[str, list] = {}
    for booking in bookings:
        by_dumpster.setdefault(booking.dumpster_id, []).append(booking)

    conflicts = []
    for dumpster_bookings in by_dumpster.values():
        for first, second in combinations(dumpster_bookings, 2):
            if overlaps(first.interval, second.interval):
                conflicts.append((first, second))
    return conflicts
