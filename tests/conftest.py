"""Shared test fixtures for the availability engine tests."""

from datetime import date

import pytest

from availability import AvailabilityResolver, BookingStore, OverrideStore, PatternStore, ScheduleRegistry
from models import SchedulePattern

TODAY = date(2024, 3, 1)
MONDAY = date(2024, 3, 4)
TUESDAY = date(2024, 3, 5)
SATURDAY = date(2024, 3, 9)


@pytest.fixture
def weekday_pattern() -> SchedulePattern:
    """Monday-Friday, one 09:00-10:00 slot, valid through 2024."""
    return SchedulePattern(
        id="pat_weekdays",
        name="Office hours",
        days_of_week=[1, 2, 3, 4, 5],
        time_slots=[{"start": "09:00", "end": "10:00"}],
        valid_from=date(2024, 1, 1),
        valid_to=date(2024, 12, 31),
    )


@pytest.fixture
def make_resolver(weekday_pattern):
    """Factory building a resolver over in-memory stores."""

    def _make(patterns=None, overrides=(), bookings=(), **kwargs) -> AvailabilityResolver:
        return AvailabilityResolver(
            PatternStore([weekday_pattern] if patterns is None else patterns),
            OverrideStore(overrides),
            BookingStore(bookings),
            **kwargs,
        )

    return _make


@pytest.fixture
def registry() -> ScheduleRegistry:
    """Registry with a fixed clock and the single-pattern policy on."""
    return ScheduleRegistry(today=lambda: TODAY, single_pattern=True)


@pytest.fixture
def pattern_payload() -> dict:
    """Wire-format pattern as sent by the expert's form."""
    return {
        "name": "Office hours",
        "daysOfWeek": [1, 2, 3, 4, 5],
        "timeSlots": [
            {"startTime": "09:00", "endTime": "10:00"},
            {"startTime": "10:00", "endTime": "11:00"},
        ],
        "validFrom": "2024-01-01",
        "validTo": "2024-12-31",
    }
