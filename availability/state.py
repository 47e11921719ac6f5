"""
Schedule State Management.

This module acts as the 'Memory' of the system:
1. Per-expert records (patterns, overrides, bookings) behind a lock, so that at
   most one mutation per expert is in flight.
2. Immutable snapshots for lock-free reads by the resolver.
3. A registry that hands out per-expert state and keeps summaries fresh.
"""

import logging
import threading
import uuid
from collections.abc import Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date as date_type
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from models import (
    AvailableDatesSummary,
    Booking,
    BookingStatus,
    DayResolution,
    OverrideType,
    ResolvedDaySchedule,
    SchedulePattern,
    ScheduleOverride,
)
from . import settings
from .constraints import OverrideValidator, PatternValidator, parse_record
from .engine import AvailabilityResolver
from .errors import ConflictError, RecordNotFoundError, ScheduleConsistencyError, ValidationError
from .stores import BookingStore, OverrideStore, PatternStore
from .summary import AvailableDatesSummarizer, SummaryCache

logger = logging.getLogger(__name__)

# (expert_id, new_version, changed_dates or None for "any date")
ChangeListener = Callable[[str, int, Optional[Iterable[date_type]]], Any]


def _with_id(data: Any) -> Any:
    """Assign a fresh id to wire data that does not carry one."""
    if isinstance(data, Mapping) and not data.get("id"):
        return {**data, "id": uuid.uuid4().hex}
    return data


@dataclass(frozen=True)
class ScheduleSnapshot:
    """Point-in-time copy of one expert's records."""
    expert_id: str
    version: int
    patterns: Tuple[SchedulePattern, ...]
    overrides: Tuple[ScheduleOverride, ...]
    bookings: Tuple[Booking, ...]

    def resolver(self, max_range_days: int = settings.MAX_RANGE_DAYS) -> AvailabilityResolver:
        return AvailabilityResolver(
            patterns=PatternStore(self.patterns),
            overrides=OverrideStore(self.overrides),
            bookings=BookingStore(self.bookings),
            max_range_days=max_range_days
        )


class ExpertSchedule:
    """
    Mutable schedule records of one expert.
    Mutations are validated and serialized; reads go through ``snapshot()``.
    """

    def __init__(
        self,
        expert_id: str,
        pattern_validator: Optional[PatternValidator] = None,
        override_validator: Optional[OverrideValidator] = None,
        listeners: Optional[List[ChangeListener]] = None
    ):
        self.expert_id = expert_id
        self.pattern_validator = pattern_validator or PatternValidator()
        self.override_validator = override_validator or OverrideValidator()
        self.listeners: List[ChangeListener] = list(listeners or [])

        self._patterns: Dict[str, SchedulePattern] = {}
        self._overrides: Dict[str, ScheduleOverride] = {}
        self._bookings: Dict[str, Booking] = {}
        self._lock = threading.RLock()
        self.version = 0

    # --- Reads ---

    def snapshot(self) -> ScheduleSnapshot:
        with self._lock:
            return ScheduleSnapshot(
                expert_id=self.expert_id,
                version=self.version,
                patterns=tuple(self._patterns.values()),
                overrides=tuple(self._overrides.values()),
                bookings=tuple(self._bookings.values())
            )

    def resolver(self) -> AvailabilityResolver:
        return self.snapshot().resolver()

    def get_pattern(self, pattern_id: str) -> SchedulePattern:
        with self._lock:
            return self._require(self._patterns, "Pattern", pattern_id)

    def get_override(self, override_id: str) -> ScheduleOverride:
        with self._lock:
            return self._require(self._overrides, "Override", override_id)

    def override_on(self, day: date_type) -> Optional[ScheduleOverride]:
        with self._lock:
            return next((o for o in self._overrides.values() if o.date == day), None)

    # --- Patterns ---

    def create_pattern(self, data: Any) -> SchedulePattern:
        with self._mutation("create pattern"):
            pattern = self.pattern_validator.validate_create(_with_id(data), list(self._patterns.values()))
            if pattern.id in self._patterns:
                raise ConflictError(f"Pattern {pattern.id} already exists")
            self._patterns[pattern.id] = pattern
            self._commit(None)
        logger.info(f"Expert {self.expert_id}: created pattern {pattern.id}")
        return pattern

    def update_pattern(self, pattern_id: str, changes: Any) -> SchedulePattern:
        with self._mutation("update pattern"):
            current = self._require(self._patterns, "Pattern", pattern_id)
            pattern = self.pattern_validator.validate_update(current, changes, list(self._patterns.values()))
            self._patterns[pattern_id] = pattern
            self._commit(None)
        logger.info(f"Expert {self.expert_id}: updated pattern {pattern_id}")
        return pattern

    def delete_pattern(self, pattern_id: str) -> None:
        with self._mutation("delete pattern"):
            self._require(self._patterns, "Pattern", pattern_id)
            del self._patterns[pattern_id]
            self._commit(None)
        logger.info(f"Expert {self.expert_id}: deleted pattern {pattern_id}")

    # --- Overrides ---

    def create_override(self, data: Any) -> ScheduleOverride:
        with self._mutation("create override"):
            override = self.override_validator.validate_create(_with_id(data), list(self._overrides.values()))
            if override.id in self._overrides:
                raise ConflictError(f"Override {override.id} already exists")
            self._check_closed_slots_unbooked(override)
            self._overrides[override.id] = override
            self._commit([override.date])
        logger.info(f"Expert {self.expert_id}: created {override.type.value} override for {override.date}")
        return override

    def update_override(self, override_id: str, changes: Any) -> ScheduleOverride:
        with self._mutation("update override"):
            current = self._require(self._overrides, "Override", override_id)
            override = self.override_validator.validate_update(current, changes)
            self._check_closed_slots_unbooked(override)
            self._overrides[override_id] = override
            self._commit([override.date])
        logger.info(f"Expert {self.expert_id}: updated override {override_id}")
        return override

    def delete_override(self, override_id: str) -> None:
        with self._mutation("delete override"):
            override = self._require(self._overrides, "Override", override_id)
            del self._overrides[override_id]
            self._commit([override.date])
        logger.info(f"Expert {self.expert_id}: deleted override {override_id}")

    def set_day_schedule(self, day: date_type, time_slots: Sequence[Any], reason: Optional[str] = None) -> ScheduleOverride:
        """
        Replace the slot list of a single date.
        Creates an override for the date, or rewrites the existing one.
        """
        with self._lock:
            existing = self.override_on(day)
            if existing is None:
                return self.create_override({
                    "date": day,
                    "type": OverrideType.OVERRIDE,
                    "time_slots": list(time_slots),
                    "reason": reason
                })
            changes = {"type": OverrideType.OVERRIDE, "time_slots": list(time_slots)}
            if reason is not None:
                changes["reason"] = reason
            return self.update_override(existing.id, changes)

    # --- Bookings ---

    def add_booking(self, data: Any) -> Booking:
        """Register a booking from the booking flow; active bookings may not overlap."""
        with self._mutation("add booking"):
            booking = parse_record(Booking, _with_id(data))
            if booking.id in self._bookings:
                raise ConflictError(f"Booking {booking.id} already exists")
            if booking.is_active:
                for other in self._bookings.values():
                    if other.is_active and other.date == booking.date and other.slot.overlaps(booking.slot):
                        raise ConflictError(
                            f"{booking.date.isoformat()} {booking.slot.label} is already booked"
                        )
                closing = self._closing_override(booking.date, booking.slot.key)
                if closing is not None:
                    raise ConflictError(
                        f"{booking.date.isoformat()} {booking.slot.label} is closed by override {closing.id}"
                    )
            self._bookings[booking.id] = booking
            self._commit([booking.date])
        logger.info(f"Expert {self.expert_id}: booking {booking.id} on {booking.date} {booking.slot.label}")
        return booking

    def cancel_booking(self, booking_id: str) -> Booking:
        with self._mutation("cancel booking"):
            current = self._require(self._bookings, "Booking", booking_id)
            booking = current.model_copy(update={"status": BookingStatus.CANCELLED})
            self._bookings[booking_id] = booking
            self._commit([booking.date])
        logger.info(f"Expert {self.expert_id}: cancelled booking {booking_id}")
        return booking

    # --- Bulk load ---

    def load_records(
        self,
        patterns: Iterable[SchedulePattern] = (),
        overrides: Iterable[ScheduleOverride] = (),
        bookings: Iterable[Booking] = ()
    ) -> None:
        """
        Replace all records with data read from a store.
        Stored data is trusted; only override date uniqueness is re-checked.
        """
        overrides = list(overrides)
        with self._mutation("load records"):
            OverrideStore(overrides)
            self._patterns = {p.id: p for p in patterns}
            self._overrides = {o.id: o for o in overrides}
            self._bookings = {b.id: b for b in bookings}
            self._commit(None)
        logger.info(
            f"Expert {self.expert_id}: loaded {len(self._patterns)} patterns, "
            f"{len(self._overrides)} overrides, {len(self._bookings)} bookings"
        )

    # --- Internals ---

    @contextmanager
    def _mutation(self, action: str):
        """Hold the expert lock for one mutation; rejected input is logged and re-raised."""
        with self._lock:
            try:
                yield
            except (ValidationError, ConflictError, RecordNotFoundError) as e:
                logger.warning(f"Expert {self.expert_id}: {action} rejected: {e}")
                raise

    def _closing_override(self, day: date_type, key: Tuple) -> Optional[ScheduleOverride]:
        """The override of ``day`` that closes the slot ``key``, if any."""
        override = self.override_on(day)
        if override is None or override.type != OverrideType.OVERRIDE:
            return None
        if any(slot.key == key and not slot.available for slot in override.time_slots):
            return override
        return None

    def _check_closed_slots_unbooked(self, override: ScheduleOverride) -> None:
        """A slot with an active booking cannot be closed; cancel the booking first."""
        closed = {slot.key for slot in override.time_slots if not slot.available}
        for booking in self._bookings.values():
            if booking.is_active and booking.date == override.date and booking.slot.key in closed:
                raise ConflictError(
                    f"{override.date.isoformat()} {booking.slot.label} is booked by {booking.id}; "
                    f"cancel the booking before closing the slot"
                )

    def _commit(self, changed_dates: Optional[List[date_type]]) -> None:
        """Bump the version and notify listeners. Caller holds the lock."""
        self.version += 1
        for listener in self.listeners:
            listener(self.expert_id, self.version, changed_dates)

    @staticmethod
    def _require(records: Dict[str, Any], kind: str, record_id: str) -> Any:
        try:
            return records[record_id]
        except KeyError:
            raise RecordNotFoundError(kind, record_id) from None


class ScheduleRegistry:
    """
    Entry point for callers: per-expert state plus cached summaries.
    """

    def __init__(
        self,
        today: Callable[[], date_type] = date_type.today,
        single_pattern: bool = settings.SINGLE_PATTERN,
        cache: Optional[SummaryCache] = None
    ):
        self.today = today
        self.single_pattern = single_pattern
        self.cache = cache if cache is not None else SummaryCache()
        self._experts: Dict[str, ExpertSchedule] = {}
        self._lock = threading.Lock()

    def for_expert(self, expert_id: str) -> ExpertSchedule:
        with self._lock:
            schedule = self._experts.get(expert_id)
            if schedule is None:
                schedule = ExpertSchedule(
                    expert_id,
                    pattern_validator=PatternValidator(today=self.today, single_pattern=self.single_pattern),
                    listeners=[self.cache.invalidate]
                )
                self._experts[expert_id] = schedule
            return schedule

    # --- Queries ---

    def resolve_day(self, expert_id: str, day: date_type) -> ResolvedDaySchedule:
        try:
            return self.for_expert(expert_id).resolver().resolve_day(day)
        except ScheduleConsistencyError as e:
            logger.error(f"Schedule defect for expert {expert_id} on {day}: {e}")
            raise

    def resolve_range(self, expert_id: str, start_date: date_type, end_date: date_type) -> List[DayResolution]:
        return self.for_expert(expert_id).resolver().resolve_range(start_date, end_date)

    def resolve_week(self, expert_id: str, anchor: date_type) -> List[DayResolution]:
        return self.for_expert(expert_id).resolver().resolve_week(anchor)

    def summarize(self, expert_id: str, start_date: date_type, end_date: date_type) -> AvailableDatesSummary:
        snapshot = self.for_expert(expert_id).snapshot()
        summarizer = AvailableDatesSummarizer(
            snapshot.resolver(),
            expert_id=expert_id,
            version=snapshot.version,
            cache=self.cache
        )
        return summarizer.summarize(start_date, end_date)

    def summarize_available_dates(self, expert_id: str, start_date: date_type, end_date: date_type) -> Set[date_type]:
        return set(self.summarize(expert_id, start_date, end_date).available_dates)
