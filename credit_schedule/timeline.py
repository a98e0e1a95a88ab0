"""Rate and principal adjustment timelines.

Both timelines sort their entries by effective date once, on construction,
and answer point-in-time and range questions with a binary search.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from datetime import date
from decimal import Decimal
from typing import Iterable, Iterator, List, Optional

from .data_models import AdjustmentEntry, RateEntry
from .errors import NoApplicableRate


class RateTimeline:
    """Ordered sequence of rate entries.

    A rate is in force from its effective date until the next entry's
    effective date, or indefinitely for the last entry. When two entries share
    an effective date the one supplied later wins.
    """

    def __init__(self, entries: Iterable[RateEntry]) -> None:
        self._entries: List[RateEntry] = sorted(entries, key=lambda e: e.effective_date)
        self._dates: List[date] = [e.effective_date for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RateEntry]:
        return iter(self._entries)

    def entry_on(self, day: date) -> RateEntry:
        """Return the latest entry with ``effective_date <= day``."""
        idx = bisect_right(self._dates, day)
        if idx == 0:
            raise NoApplicableRate(day if self._entries else None)
        return self._entries[idx - 1]

    def rate_on(self, day: date) -> Decimal:
        return self.entry_on(day).annual_percent

    def next_change_after(self, day: date) -> Optional[date]:
        """Return the first effective date strictly after ``day``, if any."""
        idx = bisect_right(self._dates, day)
        if idx == len(self._dates):
            return None
        return self._dates[idx]


class AdjustmentTimeline:
    """Ordered sequence of principal adjustments."""

    def __init__(self, entries: Iterable[AdjustmentEntry] = ()) -> None:
        self._entries: List[AdjustmentEntry] = sorted(entries, key=lambda e: e.effective_date)
        self._dates: List[date] = [e.effective_date for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[AdjustmentEntry]:
        return iter(self._entries)

    def between(self, start: date, end: date, include_start: bool = False) -> List[AdjustmentEntry]:
        """Return the entries effective in ``(start, end]``.

        With ``include_start`` the window is ``[start, end]``.
        """
        lo = bisect_left(self._dates, start) if include_start else bisect_right(self._dates, start)
        hi = bisect_right(self._dates, end)
        return self._entries[lo:hi]

    def total_between(self, start: date, end: date, include_start: bool = False) -> Decimal:
        return sum((e.amount for e in self.between(start, end, include_start)), Decimal("0"))
