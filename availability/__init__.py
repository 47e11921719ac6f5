"""
Expert availability resolution engine.

- engine.py: AvailabilityResolver (resolve_day / resolve_range / resolve_week)
- stores.py: read-only accessors over patterns, overrides and bookings
- summary.py: available-dates summarizer and its cache
- constraints.py: mutation validators and pattern policies
- state.py: per-expert mutable records and the multi-expert registry
"""

from .engine import AvailabilityResolver, iter_dates, week_bounds
from .errors import (
    AmbiguousPatternError,
    ConflictError,
    ConflictingSlotStateError,
    RecordNotFoundError,
    ScheduleConsistencyError,
    ScheduleError,
    ValidationError,
)
from .stores import BookingStore, OverrideStore, PatternStore
from .summary import AvailableDatesSummarizer, SummaryCache, summarize_available_dates
from .constraints import (
    OverrideValidator,
    PatternValidator,
    non_overlapping_patterns_policy,
    single_pattern_policy,
    validate_time_slots,
)
from .state import ExpertSchedule, ScheduleRegistry, ScheduleSnapshot

__all__ = [
    # --- Resolution ---
    "AvailabilityResolver",
    "iter_dates",
    "week_bounds",
    "AvailableDatesSummarizer",
    "SummaryCache",
    "summarize_available_dates",

    # --- Accessors ---
    "PatternStore",
    "OverrideStore",
    "BookingStore",

    # --- Mutations ---
    "PatternValidator",
    "OverrideValidator",
    "single_pattern_policy",
    "non_overlapping_patterns_policy",
    "validate_time_slots",
    "ExpertSchedule",
    "ScheduleRegistry",
    "ScheduleSnapshot",

    # --- Errors ---
    "ScheduleError",
    "ValidationError",
    "ConflictError",
    "RecordNotFoundError",
    "ScheduleConsistencyError",
    "AmbiguousPatternError",
    "ConflictingSlotStateError",
]
