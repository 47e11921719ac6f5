"""
Data models package for the Expert Availability Engine.

This package exports the three groups of the data architecture:
1. Slots (TimeSlot and its single normalization routine)
2. Inputs (SchedulePattern, ScheduleOverride, Booking)
3. Output (ResolvedDaySchedule, ResolvedTimeSlot, DayResolution, AvailableDatesSummary)
"""

from .slot import (
    TimeSlot,
    normalize_slot_fields,
    normalize_time_slot
)

from .booking import (
    Booking,
    BookingStatus
)

from .schedule import (
    SchedulePattern,
    ScheduleOverride,
    OverrideType,
    ScheduleSource,
    ResolvedTimeSlot,
    ResolvedDaySchedule,
    DayResolution,
    AvailableDatesSummary
)

__all__ = [
    # --- Slot Model ---
    "TimeSlot",
    "normalize_slot_fields",
    "normalize_time_slot",

    # --- Input Models ---
    "SchedulePattern",
    "ScheduleOverride",
    "OverrideType",
    "Booking",
    "BookingStatus",

    # --- Output Models ---
    "ScheduleSource",
    "ResolvedTimeSlot",
    "ResolvedDaySchedule",
    "DayResolution",
    "AvailableDatesSummary",
]
