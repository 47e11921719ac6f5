"""
The Availability Resolution Engine.

Merges three data sources into the authoritative per-day schedule:
1. Override (highest precedence) - closes the day, or replaces the slot list outright.
2. Pattern - the weekly template, used only when no override exists for the date.
3. Bookings - flip matching open slots to taken; never reopen or add slots.

Resolution is a pure function of the accessors' data: no caching, no mutation.
"""

import logging
from datetime import date as date_type, timedelta
from typing import Dict, Iterator, List, Optional, Tuple

from models import (
    Booking,
    DayResolution,
    OverrideType,
    ResolvedDaySchedule,
    ResolvedTimeSlot,
    ScheduleSource,
    TimeSlot,
)
from . import settings
from .errors import ConflictingSlotStateError, ScheduleConsistencyError, ValidationError
from .stores import BookingSource, OverrideSource, PatternSource

logger = logging.getLogger(__name__)


def iter_dates(start_date: date_type, end_date: date_type) -> Iterator[date_type]:
    """Yield every date in [start_date, end_date]."""
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def week_bounds(anchor: date_type) -> Tuple[date_type, date_type]:
    """Monday and Sunday of the ISO week containing ``anchor``."""
    monday = anchor - timedelta(days=anchor.weekday())
    return monday, monday + timedelta(days=6)


class AvailabilityResolver:
    """
    Computes resolved day schedules for a single expert.
    """

    def __init__(
        self,
        patterns: PatternSource,
        overrides: OverrideSource,
        bookings: BookingSource,
        max_range_days: int = settings.MAX_RANGE_DAYS
    ):
        self.patterns = patterns
        self.overrides = overrides
        self.bookings = bookings
        self.max_range_days = max_range_days

    def resolve_day(self, day: date_type) -> ResolvedDaySchedule:
        """
        Resolve one date. All-or-nothing: consistency defects raise.
        """
        override = self.overrides.override_for(day)

        # 1. Day off: absolute, nothing else is consulted
        if override is not None and override.type == OverrideType.UNAVAILABLE:
            logger.debug(f"{day}: closed by override {override.id}")
            return ResolvedDaySchedule(
                date=day,
                is_unavailable=True,
                time_slots=[],
                source=ScheduleSource.UNAVAILABLE,
                reason=override.reason
            )

        # 2. Base slot list
        pattern_id: Optional[str] = None
        if override is not None:
            # Override flags are authoritative: closes pattern slots and adds ad hoc ones
            base_slots = list(override.time_slots)
            source = ScheduleSource.OVERRIDE
            reason = override.reason
        else:
            pattern = self.patterns.pattern_for(day)
            if pattern is None:
                # Unconfigured day: distinct from a day off
                logger.debug(f"{day}: no pattern or override")
                return ResolvedDaySchedule(date=day, source=ScheduleSource.NONE)
            # Template slots are always open
            base_slots = [slot.model_copy(update={"available": True}) for slot in pattern.time_slots]
            source = ScheduleSource.PATTERN
            pattern_id = pattern.id
            reason = None

        # 3. Apply bookings
        booked = self._index_bookings(day)
        resolved = [self._resolve_slot(day, slot, booked) for slot in base_slots]

        unmatched = set(booked) - {slot.key for slot in base_slots}
        if unmatched:
            logger.debug(f"{day}: {len(unmatched)} booking(s) match no slot and are ignored")

        # 4. Order and sanity check
        resolved.sort(key=lambda s: s.key)
        self._check_no_overlap(day, resolved)

        logger.debug(f"{day}: {len(resolved)} slot(s) from {source.value}")
        return ResolvedDaySchedule(
            date=day,
            is_unavailable=False,
            time_slots=resolved,
            source=source,
            pattern_id=pattern_id,
            reason=reason
        )

    def resolve_range(self, start_date: date_type, end_date: date_type) -> List[DayResolution]:
        """
        Resolve every date in [start_date, end_date].
        A consistency defect on one date is reported on that date only.
        """
        self._check_range(start_date, end_date)

        results = []
        for day in iter_dates(start_date, end_date):
            try:
                results.append(DayResolution(date=day, schedule=self.resolve_day(day)))
            except ScheduleConsistencyError as e:
                logger.error(f"Schedule defect on {day}: {e}")
                results.append(DayResolution(date=day, error=e.public_message))
        return results

    def resolve_week(self, anchor: date_type) -> List[DayResolution]:
        """Resolve Monday..Sunday of the week containing ``anchor``."""
        monday, sunday = week_bounds(anchor)
        return self.resolve_range(monday, sunday)

    # --- Helpers ---

    def _index_bookings(self, day: date_type) -> Dict[Tuple, Booking]:
        """Active bookings of the day keyed by exact (start, end)."""
        booked: Dict[Tuple, Booking] = {}
        for booking in self.bookings.bookings_for(day):
            if not booking.is_active:
                continue
            key = booking.slot.key
            if key in booked:
                raise ConflictingSlotStateError(
                    day,
                    f"Slot {booking.slot.label} booked twice ({booked[key].id}, {booking.id})"
                )
            booked[key] = booking
        return booked

    def _resolve_slot(self, day: date_type, slot: TimeSlot, booked: Dict[Tuple, Booking]) -> ResolvedTimeSlot:
        booking = booked.get(slot.key)

        if not slot.available:
            # Expert-imposed closure; a booking here means the two sources disagree
            if booking is not None:
                raise ConflictingSlotStateError(
                    day,
                    f"Slot {slot.label} is closed by an override but booked by {booking.id}"
                )
            return ResolvedTimeSlot(start=slot.start, end=slot.end, available=False, is_overridden=True)

        if booking is not None:
            return ResolvedTimeSlot(
                start=slot.start,
                end=slot.end,
                available=False,
                is_overridden=False,
                booking=booking
            )

        return ResolvedTimeSlot(start=slot.start, end=slot.end, available=True)

    def _check_no_overlap(self, day: date_type, slots: List[ResolvedTimeSlot]) -> None:
        """Slots are sorted; only neighbours can overlap."""
        for previous, current in zip(slots, slots[1:]):
            if previous.overlaps(current):
                raise ConflictingSlotStateError(
                    day,
                    f"Overlapping slots {previous.label} and {current.label}"
                )

    def _check_range(self, start_date: date_type, end_date: date_type) -> None:
        if end_date < start_date:
            raise ValidationError("End date must be on or after start date")
        span = (end_date - start_date).days + 1
        if span > self.max_range_days:
            raise ValidationError(f"Date range spans {span} days; the maximum is {self.max_range_days}")
