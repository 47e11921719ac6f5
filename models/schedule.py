"""
Schedule data models for the Expert Availability Engine.

Inputs:
    - SchedulePattern: the recurring weekly template.
    - ScheduleOverride: a date-specific exception (day off or substitute slots).

Outputs (derived, never persisted):
    - ResolvedDaySchedule: the authoritative slot list for one date.
    - DayResolution: one entry of a range query, carrying either a schedule or an error.
    - AvailableDatesSummary: dates with at least one open slot, for calendar highlighting.
"""

from datetime import date as date_type
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .booking import Booking
from .slot import TimeSlot

WIRE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OverrideType(str, Enum):
    """How an override affects its date."""
    OVERRIDE = "override"         # Substitute slot list
    UNAVAILABLE = "unavailable"   # Whole day closed


class ScheduleSource(str, Enum):
    """Which data source produced a resolved day."""
    PATTERN = "pattern"
    OVERRIDE = "override"
    UNAVAILABLE = "unavailable"
    NONE = "none"                 # Nothing configured for this date


class SchedulePattern(BaseModel):
    """
    Recurring weekly availability template.
    Slots are implicitly available; closing a single occurrence is done with an override.
    """
    id: str = Field(description="Unique identifier")
    name: str = Field(default="", description="Label shown to the expert")
    days_of_week: List[int] = Field(
        default_factory=list,
        description="ISO weekdays the template applies to (1=Monday, 7=Sunday)"
    )
    time_slots: List[TimeSlot] = Field(default_factory=list)
    valid_from: date_type
    valid_to: date_type
    is_active: bool = Field(default=True)

    model_config = ConfigDict(
        **WIRE_CONFIG,
        json_schema_extra={
            "example": {
                "id": "pat_weekdays",
                "name": "Office hours",
                "daysOfWeek": [1, 2, 3, 4, 5],
                "timeSlots": [{"start": "09:00", "end": "10:00"}],
                "validFrom": "2024-01-01",
                "validTo": "2024-12-31",
                "isActive": True
            }
        }
    )

    @field_validator("days_of_week")
    @classmethod
    def validate_days(cls, v: List[int]) -> List[int]:
        for day in v:
            if not 1 <= day <= 7:
                raise ValueError(f"Day of week must be between 1 (Monday) and 7 (Sunday), got {day}")
        return sorted(set(v))

    def applies_to(self, day: date_type) -> bool:
        """True if this template governs the given calendar date."""
        return (
            self.is_active
            and day.isoweekday() in self.days_of_week
            and self.valid_from <= day <= self.valid_to
        )


class ScheduleOverride(BaseModel):
    """Date-specific exception to the weekly pattern."""
    id: str = Field(description="Unique identifier")
    date: date_type = Field(description="The single date this exception applies to")
    type: OverrideType = Field(description="Day off, or substitute slot list")
    time_slots: List[TimeSlot] = Field(
        default_factory=list,
        description="Replacement slots; each slot's available flag is authoritative"
    )
    reason: Optional[str] = Field(default=None, description="Free-text note, e.g. 'Public holiday'")

    model_config = ConfigDict(
        **WIRE_CONFIG,
        json_schema_extra={
            "example": {
                "id": "ovr_0305",
                "date": "2024-03-05",
                "type": "override",
                "timeSlots": [
                    {"start": "09:00", "end": "10:00", "available": False},
                    {"start": "14:00", "end": "15:00", "available": True}
                ]
            }
        }
    )


class ResolvedTimeSlot(TimeSlot):
    """A slot after merging pattern, override and booking data."""
    is_overridden: bool = Field(
        default=False,
        description="Closed by the expert through an override (not by a booking)"
    )
    booking: Optional[Booking] = Field(default=None, description="The booking occupying this slot")


class ResolvedDaySchedule(BaseModel):
    """Authoritative schedule for one date."""
    date: date_type
    is_unavailable: bool = Field(default=False, description="Whole day closed by an override")
    time_slots: List[ResolvedTimeSlot] = Field(default_factory=list)

    # --- Provenance ---
    source: ScheduleSource = Field(default=ScheduleSource.NONE)
    pattern_id: Optional[str] = Field(default=None)
    reason: Optional[str] = Field(default=None)

    model_config = WIRE_CONFIG

    @property
    def available_slots(self) -> List[ResolvedTimeSlot]:
        return [slot for slot in self.time_slots if slot.available]

    @property
    def has_open_slot(self) -> bool:
        return not self.is_unavailable and bool(self.available_slots)


class DayResolution(BaseModel):
    """One day of a range query: either a schedule or a public error message."""
    date: date_type
    schedule: Optional[ResolvedDaySchedule] = None
    error: Optional[str] = None

    model_config = WIRE_CONFIG

    @property
    def ok(self) -> bool:
        return self.error is None


class AvailableDatesSummary(BaseModel):
    """Compact view of a date range for calendar highlighting."""
    start_date: date_type
    end_date: date_type
    all_dates: List[date_type] = Field(default_factory=list)
    available_dates: List[date_type] = Field(default_factory=list)

    model_config = WIRE_CONFIG
