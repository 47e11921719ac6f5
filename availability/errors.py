"""
Error taxonomy of the availability engine.

- ValidationError / ConflictError: user-correctable, carry an actionable message.
- ScheduleConsistencyError subclasses: upstream data corruption detected while
  resolving; callers only ever show ``public_message``.
"""

from datetime import date as date_type
from typing import Sequence


class ScheduleError(Exception):
    """Base class for everything the engine raises."""


class ValidationError(ScheduleError):
    """Rejected input: empty required fields, overlapping slots, bad date ordering."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ConflictError(ScheduleError):
    """Uniqueness violation, e.g. a second override for the same date."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class RecordNotFoundError(ScheduleError, KeyError):
    """A pattern, override or booking id that does not exist for the expert."""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} {record_id} not found")
        self.kind = kind
        self.record_id = record_id

    def __str__(self) -> str:
        return self.args[0]


class ScheduleConsistencyError(ScheduleError):
    """Stored data contradicts itself; never patched by guessing."""

    public_message = "Unable to resolve schedule"

    def __init__(self, day: date_type, detail: str):
        super().__init__(f"{day.isoformat()}: {detail}")
        self.date = day
        self.detail = detail


class AmbiguousPatternError(ScheduleConsistencyError):
    """More than one active pattern with the same validFrom governs a date."""

    def __init__(self, day: date_type, pattern_ids: Sequence[str]):
        super().__init__(day, f"Ambiguous schedule patterns {', '.join(pattern_ids)}")
        self.pattern_ids = list(pattern_ids)


class ConflictingSlotStateError(ScheduleConsistencyError):
    """A slot is both closed by the expert and booked, or otherwise double-claimed."""
