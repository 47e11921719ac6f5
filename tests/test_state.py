"""Tests for per-expert schedule state and the registry."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, time

import pytest

from availability import (
    AmbiguousPatternError,
    ConflictError,
    ExpertSchedule,
    RecordNotFoundError,
    ScheduleRegistry,
    ValidationError,
)
from models import Booking, BookingStatus, OverrideType, ScheduleOverride, ScheduleSource

from .conftest import MONDAY, SATURDAY, TODAY, TUESDAY


class TestPatterns:
    """Pattern create/update/delete through the registry."""

    def test_create_assigns_id(self, registry, pattern_payload):
        pattern = registry.for_expert("e1").create_pattern(pattern_payload)
        assert pattern.id
        assert registry.for_expert("e1").get_pattern(pattern.id) == pattern

    def test_single_pattern_policy(self, registry, pattern_payload):
        schedule = registry.for_expert("e1")
        schedule.create_pattern(pattern_payload)
        with pytest.raises(ConflictError):
            schedule.create_pattern({**pattern_payload, "daysOfWeek": [6]})

    def test_past_pattern_rejected(self, registry, pattern_payload):
        with pytest.raises(ValidationError):
            registry.for_expert("e1").create_pattern({**pattern_payload, "validTo": "2024-02-01"})

    def test_update_and_delete(self, registry, pattern_payload):
        schedule = registry.for_expert("e1")
        pattern = schedule.create_pattern(pattern_payload)

        updated = schedule.update_pattern(pattern.id, {"name": "Mornings"})
        assert updated.name == "Mornings"
        assert updated.time_slots == pattern.time_slots

        schedule.delete_pattern(pattern.id)
        assert registry.resolve_day("e1", MONDAY).source == ScheduleSource.NONE

    def test_missing_record(self, registry):
        schedule = registry.for_expert("e1")
        with pytest.raises(RecordNotFoundError) as exc_info:
            schedule.update_pattern("nope", {"name": "x"})
        assert str(exc_info.value) == "Pattern nope not found"
        # Also usable where a KeyError is expected
        with pytest.raises(KeyError):
            schedule.delete_override("nope")
        with pytest.raises(RecordNotFoundError):
            schedule.cancel_booking("nope")


class TestOverrides:
    """Override lifecycle and per-date uniqueness."""

    def test_second_override_for_date_conflicts(self, registry):
        schedule = registry.for_expert("e1")
        schedule.create_override({"date": "2024-03-04", "type": "unavailable"})
        with pytest.raises(ConflictError):
            schedule.create_override({
                "date": "2024-03-04",
                "type": "override",
                "timeSlots": [{"start": "09:00", "end": "10:00"}],
            })

    def test_override_takes_effect(self, registry, pattern_payload):
        schedule = registry.for_expert("e1")
        schedule.create_pattern(pattern_payload)
        override = schedule.create_override({"date": "2024-03-04", "type": "unavailable", "reason": "Holiday"})

        day = registry.resolve_day("e1", MONDAY)
        assert day.is_unavailable
        assert day.reason == "Holiday"

        schedule.delete_override(override.id)
        assert len(registry.resolve_day("e1", MONDAY).available_slots) == 2

    def test_set_day_schedule_upserts(self, registry):
        schedule = registry.for_expert("e1")
        created = schedule.set_day_schedule(SATURDAY, [{"start": "10:00", "end": "11:00"}], reason="Workshop")
        assert created.type == OverrideType.OVERRIDE

        updated = schedule.set_day_schedule(SATURDAY, [{"start": "12:00", "end": "13:00"}])
        assert updated.id == created.id
        assert updated.reason == "Workshop"
        assert [s.start for s in registry.resolve_day("e1", SATURDAY).time_slots] == [time(12, 0)]

    def test_set_day_schedule_reopens_day_off(self, registry):
        schedule = registry.for_expert("e1")
        day_off = schedule.create_override({"date": SATURDAY, "type": "unavailable"})
        reopened = schedule.set_day_schedule(SATURDAY, [{"start": "10:00", "end": "11:00"}])
        assert reopened.id == day_off.id
        assert not registry.resolve_day("e1", SATURDAY).is_unavailable

    def test_override_on(self, registry):
        schedule = registry.for_expert("e1")
        override = schedule.create_override({"date": TUESDAY, "type": "unavailable"})
        assert schedule.override_on(TUESDAY) == override
        assert schedule.override_on(MONDAY) is None

    def test_concurrent_creates_for_same_date(self, registry):
        schedule = registry.for_expert("e1")

        def attempt(n):
            try:
                schedule.create_override({"id": f"o{n}", "date": TUESDAY, "type": "unavailable"})
                return True
            except ConflictError:
                return False

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(attempt, range(8)))

        assert results.count(True) == 1
        assert len(schedule.snapshot().overrides) == 1


class TestBookings:
    """Bookings registered against resolved slots."""

    def test_booking_takes_slot_and_cancel_reopens(self, registry, pattern_payload):
        schedule = registry.for_expert("e1")
        schedule.create_pattern(pattern_payload)
        booking = schedule.add_booking({
            "date": "2024-03-04", "startTime": "09:00", "endTime": "10:00", "status": "confirmed"
        })

        slot = registry.resolve_day("e1", MONDAY).time_slots[0]
        assert not slot.available
        assert slot.booking.id == booking.id

        cancelled = schedule.cancel_booking(booking.id)
        assert cancelled.status == BookingStatus.CANCELLED
        assert registry.resolve_day("e1", MONDAY).time_slots[0].available

    def test_overlapping_booking_conflicts(self, registry):
        schedule = registry.for_expert("e1")
        schedule.add_booking({"date": MONDAY, "start": "09:00", "end": "10:00"})
        with pytest.raises(ConflictError):
            schedule.add_booking({"date": MONDAY, "start": "09:30", "end": "10:30"})
        # Another day, or a cancelled booking, does not collide
        schedule.add_booking({"date": TUESDAY, "start": "09:30", "end": "10:30"})
        schedule.add_booking({"date": MONDAY, "start": "09:30", "end": "10:30", "status": "cancelled"})

    def test_invalid_booking(self, registry):
        with pytest.raises(ValidationError):
            registry.for_expert("e1").add_booking({"date": MONDAY, "start": "10:00", "end": "09:00"})

    def test_closing_a_booked_slot_conflicts(self, registry, pattern_payload):
        schedule = registry.for_expert("e1")
        schedule.create_pattern(pattern_payload)
        schedule.add_booking({"date": MONDAY, "start": "09:00", "end": "10:00", "status": "confirmed"})

        closing = [{"start": "09:00", "end": "10:00", "available": False}, {"start": "10:00", "end": "11:00"}]
        with pytest.raises(ConflictError):
            schedule.set_day_schedule(MONDAY, closing)
        assert schedule.override_on(MONDAY) is None

        slot = registry.resolve_day("e1", MONDAY).time_slots[0]
        assert slot.booking is not None

    def test_closing_a_booked_slot_on_edit_conflicts(self, registry):
        schedule = registry.for_expert("e1")
        override = schedule.set_day_schedule(MONDAY, [{"start": "09:00", "end": "10:00"}])
        schedule.add_booking({"date": MONDAY, "start": "09:00", "end": "10:00"})

        with pytest.raises(ConflictError):
            schedule.update_override(
                override.id, {"timeSlots": [{"start": "09:00", "end": "10:00", "available": False}]}
            )
        assert schedule.get_override(override.id) == override

    def test_closing_a_slot_after_cancellation(self, registry):
        schedule = registry.for_expert("e1")
        booking = schedule.add_booking({"date": MONDAY, "start": "09:00", "end": "10:00"})
        schedule.cancel_booking(booking.id)

        schedule.set_day_schedule(MONDAY, [{"start": "09:00", "end": "10:00", "available": False}])
        assert registry.resolve_day("e1", MONDAY).time_slots[0].is_overridden

    def test_booking_a_closed_slot_conflicts(self, registry):
        schedule = registry.for_expert("e1")
        schedule.set_day_schedule(MONDAY, [
            {"start": "09:00", "end": "10:00", "available": False},
            {"start": "10:00", "end": "11:00"},
        ])

        with pytest.raises(ConflictError):
            schedule.add_booking({"date": MONDAY, "start": "09:00", "end": "10:00", "status": "confirmed"})
        schedule.add_booking({"date": MONDAY, "start": "10:00", "end": "11:00", "status": "confirmed"})

        day = registry.resolve_day("e1", MONDAY)
        assert [s.available for s in day.time_slots] == [False, False]
        assert day.time_slots[1].booking is not None


class TestSnapshotsAndVersions:
    """Readers see immutable, versioned copies."""

    def test_every_mutation_bumps_version(self, registry, pattern_payload):
        schedule = registry.for_expert("e1")
        assert schedule.version == 0
        pattern = schedule.create_pattern(pattern_payload)
        schedule.update_pattern(pattern.id, {"name": "x"})
        schedule.create_override({"date": SATURDAY, "type": "unavailable"})
        assert schedule.version == 3

    def test_failed_mutation_keeps_version(self, registry):
        schedule = registry.for_expert("e1")
        with pytest.raises(ValidationError):
            schedule.create_override({"date": SATURDAY, "type": "override", "timeSlots": []})
        assert schedule.version == 0

    def test_snapshot_is_isolated_from_later_changes(self, registry, pattern_payload):
        schedule = registry.for_expert("e1")
        schedule.create_pattern(pattern_payload)
        snapshot = schedule.snapshot()

        schedule.create_override({"date": MONDAY, "type": "unavailable"})

        assert snapshot.overrides == ()
        assert not snapshot.resolver().resolve_day(MONDAY).is_unavailable
        assert schedule.resolver().resolve_day(MONDAY).is_unavailable

    def test_listener_receives_changed_dates(self):
        calls = []
        schedule = ExpertSchedule("e1", listeners=[lambda *args: calls.append(args)])
        schedule.create_override({"date": TUESDAY, "type": "unavailable"})
        assert calls == [("e1", 1, [TUESDAY])]


class TestLoadRecords:
    """Bulk load from persisted data."""

    def test_load_replaces_records(self, registry, weekday_pattern):
        schedule = registry.for_expert("e1")
        schedule.create_override({"date": SATURDAY, "type": "unavailable"})

        schedule.load_records(patterns=[weekday_pattern])
        snapshot = schedule.snapshot()
        assert snapshot.patterns == (weekday_pattern,)
        assert snapshot.overrides == ()

    def test_duplicate_override_dates_rejected(self, registry):
        overrides = [
            ScheduleOverride(id="o1", date=MONDAY, type=OverrideType.UNAVAILABLE),
            ScheduleOverride(id="o2", date=MONDAY, type=OverrideType.UNAVAILABLE),
        ]
        schedule = registry.for_expert("e1")
        with pytest.raises(ConflictError):
            schedule.load_records(overrides=overrides)
        assert schedule.version == 0

    def test_loaded_bookings_resolve(self, registry, weekday_pattern):
        booking = Booking(id="b1", date=MONDAY, slot={"start": "09:00", "end": "10:00"})
        registry.for_expert("e1").load_records(patterns=[weekday_pattern], bookings=[booking])
        assert not registry.resolve_day("e1", MONDAY).has_open_slot


class TestRegistry:
    """Expert isolation and query entry points."""

    def test_experts_are_isolated(self, registry, pattern_payload):
        registry.for_expert("e1").create_pattern(pattern_payload)
        registry.for_expert("e2").create_override({"date": MONDAY, "type": "unavailable"})

        assert registry.resolve_day("e1", MONDAY).has_open_slot
        assert registry.resolve_day("e2", MONDAY).is_unavailable
        assert registry.for_expert("e1") is registry.for_expert("e1")

    def test_resolve_week(self, registry, pattern_payload):
        registry.for_expert("e1").create_pattern(pattern_payload)
        week = registry.resolve_week("e1", date(2024, 3, 6))
        assert [r.date for r in week][0] == MONDAY
        assert len(week) == 7
        assert all(r.ok for r in week)

    def test_resolve_day_logs_defects(self, registry, weekday_pattern, caplog):
        twin = weekday_pattern.model_copy(update={"id": "pat_twin"})
        registry.for_expert("e1").load_records(patterns=[weekday_pattern, twin])

        with caplog.at_level(logging.ERROR, logger="availability.state"):
            with pytest.raises(AmbiguousPatternError):
                registry.resolve_day("e1", MONDAY)

        assert any(
            record.levelno == logging.ERROR and "pat_twin" in record.getMessage()
            for record in caplog.records
        )

    def test_single_pattern_can_be_disabled(self, pattern_payload):
        registry = ScheduleRegistry(today=lambda: TODAY, single_pattern=False)
        schedule = registry.for_expert("e1")
        schedule.create_pattern(pattern_payload)
        schedule.create_pattern({**pattern_payload, "daysOfWeek": [6, 7]})
        assert len(schedule.snapshot().patterns) == 2
