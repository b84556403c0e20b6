"""
Sequential internal reference codes of the form {PREFIX}{YY}/{MM}/{NN}.

A scope is one prefix and calendar month. Allocation always works on the
complete list of codes already issued in the scope, cancelled payments
included, so a cancelled number is only reused under the first-gap policy.
"""
import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Set

from django.db import models


class ReferencePolicy(models.TextChoices):
    MAX_PLUS_ONE = 'max_plus_one', 'Highest number plus one'
    FIRST_GAP = 'first_gap', 'Lowest unused number'


@dataclass(frozen=True)
class ReferenceScope:
    prefix: str
    year: int
    month: int

    @classmethod
    def for_date(cls, prefix: str, on_date: date) -> 'ReferenceScope':
        return cls(prefix=prefix, year=on_date.year % 100, month=on_date.month)

    @property
    def stem(self) -> str:
        return f"{self.prefix}{self.year:02d}/{self.month:02d}/"

    @property
    def pattern(self) -> 're.Pattern':
        return re.compile(rf"^{re.escape(self.stem)}(\d+)$")

    def format(self, number: int) -> str:
        return f"{self.stem}{number:02d}"

    def numbers_in(self, codes: Iterable[str]) -> Set[int]:
        """Sequence numbers of the codes that belong to this scope."""
        pattern = self.pattern
        numbers = set()
        for code in codes:
            if not code:
                continue
            match = pattern.match(code)
            if match:
                numbers.add(int(match.group(1)))
        return numbers


def next_reference(scope: ReferenceScope, codes: Iterable[str], policy: str = ReferencePolicy.MAX_PLUS_ONE) -> str:
    """
    Next free code in scope.

    max_plus_one: one past the highest number used, earlier gaps stay gaps.
    first_gap:    the smallest positive number not used yet.
    """
    used = scope.numbers_in(codes)

    if policy == ReferencePolicy.MAX_PLUS_ONE:
        return scope.format(max(used, default=0) + 1)

    if policy == ReferencePolicy.FIRST_GAP:
        number = 1
        while number in used:
            number += 1
        return scope.format(number)

    raise ValueError(f"Unknown reference policy: {policy}")


def scope_for(prefix: str, policy: str, invoice_date: date, today: date) -> ReferenceScope:
    """
    Month a new reference is numbered in.
    Max-plus-one follows the invoice's month (possibly in the past),
    first-gap follows today's month.
    """
    if policy == ReferencePolicy.FIRST_GAP:
        return ReferenceScope.for_date(prefix, today)
    return ReferenceScope.for_date(prefix, invoice_date)
