"""
Time slot data model for the Expert Availability Engine.

A slot is a half-open interval [start, end) within a single day, at minute
precision, with an availability flag.

Every piece of slot-shaped data entering or leaving the engine is funnelled
through ``normalize_slot_fields`` so that the two field-naming conventions
seen on the wire (``start``/``end`` and ``startTime``/``endTime``) collapse
into one canonical shape.
"""

from collections.abc import Mapping
from datetime import time as time_type
from typing import Any, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator
from pydantic.alias_generators import to_camel

# Canonical name first, legacy name second
SLOT_FIELD_NAMES = {
    "start": ("start", "startTime"),
    "end": ("end", "endTime"),
}
SLOT_KEYS = frozenset(name for names in SLOT_FIELD_NAMES.values() for name in names)


def normalize_slot_fields(data: Any) -> Any:
    """
    Rewrite a slot-shaped mapping into the canonical ``start``/``end``/``available`` form.

    Rules:
        - ``start`` wins over ``startTime`` (and ``end`` over ``endTime``) when both are present.
        - A missing or null ``available`` flag means the slot is available.
        - Unrelated keys are passed through untouched.

    Anything that is not a mapping (e.g. an already-built model) is returned as-is.
    """
    if not isinstance(data, Mapping):
        return data

    normalized = {key: value for key, value in data.items() if key not in SLOT_KEYS}

    for canonical, candidates in SLOT_FIELD_NAMES.items():
        value = None
        for name in candidates:
            if data.get(name) is not None:
                value = data[name]
                break
        normalized[canonical] = value

    if normalized.get("available") is None:
        normalized["available"] = True

    return normalized


class TimeSlot(BaseModel):
    """A bookable time-of-day interval."""

    start: time_type = Field(description="Inclusive start of the slot (HH:MM)")
    end: time_type = Field(description="Exclusive end of the slot (HH:MM)")
    available: bool = Field(default=True, description="False when the slot is closed")

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {"start": "09:00", "end": "10:00", "available": True}
        },
    )

    @model_validator(mode="before")
    @classmethod
    def normalize_field_names(cls, data: Any) -> Any:
        return normalize_slot_fields(data)

    @field_validator("start", "end")
    @classmethod
    def truncate_to_minute(cls, value: time_type) -> time_type:
        return value.replace(second=0, microsecond=0, tzinfo=None)

    @model_validator(mode="after")
    def validate_times(self):
        if self.start >= self.end:
            raise ValueError("End time must be strictly after start time")
        return self

    @field_serializer("start", "end")
    def serialize_time(self, value: time_type) -> str:
        return value.strftime("%H:%M")

    @property
    def key(self) -> Tuple[time_type, time_type]:
        """Identity of the slot within a day, ignoring availability."""
        return (self.start, self.end)

    @property
    def label(self) -> str:
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"

    def overlaps(self, other: "TimeSlot") -> bool:
        # Half-open intervals: touching slots (09-10, 10-11) do not overlap
        return self.start < other.end and other.start < self.end


def normalize_time_slot(value: Any) -> TimeSlot:
    """Build the canonical TimeSlot from any supported representation."""
    if isinstance(value, TimeSlot):
        return value
    return TimeSlot.model_validate(value)
