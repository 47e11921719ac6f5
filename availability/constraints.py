"""
Mutation Validation Logic.

This module answers the binary question: "May this pattern/override be saved?"
It enforces the invariants the resolver relies on (non-overlapping slots,
sane date ordering, one override per date) before anything reaches the store.

Product rules that are policy rather than necessity (e.g. "one pattern per
expert") are plain callables so callers can swap them.
"""

import logging
from collections.abc import Mapping
from datetime import date as date_type
from typing import Any, Callable, Dict, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from models import OverrideType, SchedulePattern, ScheduleOverride, TimeSlot
from . import settings
from .errors import ConflictError, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
PatternPolicy = Callable[[SchedulePattern, Sequence[SchedulePattern]], None]


# --- Parsing at the boundary ---

def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()))
        message = err.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def parse_record(model_cls: Type[ModelT], data: Any) -> ModelT:
    """Build a model from wire data, reporting failures as ValidationError."""
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(_describe(e)) from e


def merge_changes(current: ModelT, changes: Any) -> Dict[str, Any]:
    """
    Overlay a partial update (snake_case or camelCase keys) on an existing record.
    The record id never changes.
    """
    if isinstance(changes, BaseModel):
        changes = changes.model_dump()
    if not isinstance(changes, Mapping):
        raise ValidationError("Update payload must be an object")

    names = {}
    for name, field in type(current).model_fields.items():
        names[name] = name
        if field.alias:
            names[field.alias] = name

    payload = current.model_dump()
    payload.update({names.get(key, key): value for key, value in changes.items()})
    payload["id"] = current.id
    return payload


# --- Slot lists ---

def validate_time_slots(slots: Sequence[Any]) -> List[TimeSlot]:
    """
    Normalize a slot list and reject empty or internally overlapping lists.
    Returned in ascending start order.
    """
    if not slots:
        raise ValidationError("At least one time slot is required")

    normalized = sorted((parse_record(TimeSlot, s) for s in slots), key=lambda s: s.key)
    for previous, current in zip(normalized, normalized[1:]):
        if previous.overlaps(current):
            raise ValidationError(f"Time slots overlap: {previous.label} and {current.label}")
    return normalized


# --- Pattern policies ---

def single_pattern_policy(candidate: SchedulePattern, existing: Sequence[SchedulePattern]) -> None:
    """Only one pattern per expert; further changes go through edits."""
    if any(p.id != candidate.id for p in existing):
        raise ConflictError("A schedule pattern already exists; edit it instead of creating a new one")


def non_overlapping_patterns_policy(candidate: SchedulePattern, existing: Sequence[SchedulePattern]) -> None:
    """No two active patterns may cover the same weekday over overlapping validity ranges."""
    if not candidate.is_active:
        return
    for other in existing:
        if other.id == candidate.id or not other.is_active:
            continue
        shared_days = set(candidate.days_of_week) & set(other.days_of_week)
        if not shared_days:
            continue
        if candidate.valid_from <= other.valid_to and other.valid_from <= candidate.valid_to:
            raise ConflictError(
                f"Pattern overlaps '{other.name or other.id}' on the same weekdays and dates"
            )


class PatternValidator:
    """
    Validates pattern creation and edits.
    """

    def __init__(
        self,
        today: Callable[[], date_type] = date_type.today,
        single_pattern: bool = settings.SINGLE_PATTERN,
        policies: Optional[Sequence[PatternPolicy]] = None
    ):
        self.today = today
        shared = list(policies) if policies is not None else [non_overlapping_patterns_policy]
        self.update_policies: List[PatternPolicy] = shared
        self.create_policies: List[PatternPolicy] = (
            [single_pattern_policy] if single_pattern else []
        ) + shared

    def validate_create(self, data: Any, existing: Sequence[SchedulePattern]) -> SchedulePattern:
        pattern = parse_record(SchedulePattern, data)
        self._check_pattern(pattern)
        for policy in self.create_policies:
            policy(pattern, existing)
        return pattern

    def validate_update(
        self,
        current: SchedulePattern,
        changes: Any,
        existing: Sequence[SchedulePattern]
    ) -> SchedulePattern:
        pattern = parse_record(SchedulePattern, merge_changes(current, changes))
        self._check_pattern(pattern)
        for policy in self.update_policies:
            policy(pattern, existing)
        return pattern

    def _check_pattern(self, pattern: SchedulePattern) -> None:
        if not pattern.days_of_week:
            raise ValidationError("Select at least one day of the week")

        slots = validate_time_slots(pattern.time_slots)

        if pattern.valid_from > pattern.valid_to:
            raise ValidationError("validFrom must be on or before validTo")

        if pattern.valid_to < self.today():
            raise ValidationError("validTo must not be in the past")

        logger.debug(f"Pattern {pattern.id} passed validation ({len(slots)} slots)")


class OverrideValidator:
    """
    Validates override creation and edits.
    Dates are unique per expert and immutable once created.
    """

    def validate_create(self, data: Any, existing: Sequence[ScheduleOverride]) -> ScheduleOverride:
        override = parse_record(ScheduleOverride, data)
        if any(o.date == override.date and o.id != override.id for o in existing):
            raise ConflictError(f"An override already exists for {override.date.isoformat()}")
        self._check_override(override)
        return override

    def validate_update(self, current: ScheduleOverride, changes: Any) -> ScheduleOverride:
        payload = merge_changes(current, changes)

        # Switching to a day off drops the slot list unless the caller sent one
        supplied = isinstance(changes, BaseModel) or any(
            key in changes for key in ("time_slots", "timeSlots")
        )
        if payload.get("type") in (OverrideType.UNAVAILABLE, OverrideType.UNAVAILABLE.value) and not supplied:
            payload["time_slots"] = []

        override = parse_record(ScheduleOverride, payload)
        if override.date != current.date:
            raise ValidationError("The date of an override cannot be changed; create a new override instead")
        self._check_override(override)
        return override

    def _check_override(self, override: ScheduleOverride) -> None:
        if override.type == OverrideType.OVERRIDE:
            validate_time_slots(override.time_slots)
        elif override.time_slots:
            raise ValidationError("A day-off override cannot carry time slots")
