"""
Read-only accessors over an expert's stored schedule data.

The resolver only depends on the three ``*Source`` protocols; the ``*Store``
classes are indexed, immutable in-memory implementations built from a
snapshot of the records.
"""

from datetime import date as date_type
from typing import Dict, Iterable, Iterator, List, Optional, Protocol

from models import Booking, SchedulePattern, ScheduleOverride

from .errors import AmbiguousPatternError, ConflictError


class PatternSource(Protocol):
    def pattern_for(self, day: date_type) -> Optional[SchedulePattern]: ...


class OverrideSource(Protocol):
    def override_for(self, day: date_type) -> Optional[ScheduleOverride]: ...


class BookingSource(Protocol):
    def bookings_for(self, day: date_type) -> List[Booking]: ...


class PatternStore:
    """Weekly templates indexed by ISO weekday."""

    def __init__(self, patterns: Iterable[SchedulePattern]):
        self._patterns = list(patterns)
        self._by_weekday: Dict[int, List[SchedulePattern]] = {}
        for pattern in self._patterns:
            for weekday in pattern.days_of_week:
                self._by_weekday.setdefault(weekday, []).append(pattern)

    def pattern_for(self, day: date_type) -> Optional[SchedulePattern]:
        """
        The active pattern governing ``day``.
        Several matches are settled by the latest validFrom; a tie on that is a data defect.
        """
        candidates = [p for p in self._by_weekday.get(day.isoweekday(), []) if p.applies_to(day)]
        if not candidates:
            return None

        latest = max(p.valid_from for p in candidates)
        winners = [p for p in candidates if p.valid_from == latest]
        if len(winners) > 1:
            raise AmbiguousPatternError(day, sorted(p.id for p in winners))
        return winners[0]

    def __iter__(self) -> Iterator[SchedulePattern]:
        return iter(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)


class OverrideStore:
    """Date-specific exceptions, keyed by date."""

    def __init__(self, overrides: Iterable[ScheduleOverride]):
        self._by_date: Dict[date_type, ScheduleOverride] = {}
        for override in overrides:
            if override.date in self._by_date:
                raise ConflictError(f"Duplicate overrides for {override.date.isoformat()}")
            self._by_date[override.date] = override

    def override_for(self, day: date_type) -> Optional[ScheduleOverride]:
        return self._by_date.get(day)

    def __iter__(self) -> Iterator[ScheduleOverride]:
        return iter(self._by_date.values())

    def __len__(self) -> int:
        return len(self._by_date)


class BookingStore:
    """Non-cancelled bookings grouped by date, ordered by start time."""

    def __init__(self, bookings: Iterable[Booking]):
        self._by_date: Dict[date_type, List[Booking]] = {}
        for booking in bookings:
            if not booking.is_active:
                continue
            self._by_date.setdefault(booking.date, []).append(booking)
        for day_bookings in self._by_date.values():
            day_bookings.sort(key=lambda b: b.slot.key)

    def bookings_for(self, day: date_type) -> List[Booking]:
        return list(self._by_date.get(day, []))

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_date.values())
