"""
Sample data generator for the Expert Availability Engine.
Builds a plausible, internally consistent expert calendar (pattern, overrides,
bookings) from a seed, for demos and tests.
"""

import logging
import random
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from models import Booking, BookingStatus, OverrideType, SchedulePattern, ScheduleOverride, TimeSlot

from availability.engine import AvailabilityResolver, iter_dates
from availability.stores import BookingStore, OverrideStore, PatternStore

logger = logging.getLogger(__name__)

# Office hours with a lunch break
DEFAULT_SLOTS: Sequence[Tuple[str, str]] = (
    ("09:00", "10:00"),
    ("10:00", "11:00"),
    ("11:00", "12:00"),
    ("14:00", "15:00"),
    ("15:00", "16:00"),
    ("16:00", "17:00"),
)
EXTRA_SLOT = ("18:00", "19:00")
DAY_OFF_REASONS = ["Public holiday", "Conference", "Sick leave", "Personal"]


class DataGenerator:
    def __init__(self, seed: Optional[int] = 42):
        self.rng = random.Random(seed)

    def generate_pattern(
        self,
        start_date: date,
        duration_days: int = 90,
        days_of_week: Sequence[int] = (1, 2, 3, 4, 5),
        slots: Sequence[Tuple[str, str]] = DEFAULT_SLOTS
    ) -> SchedulePattern:
        return SchedulePattern(
            id="pat_default",
            name="Working hours",
            days_of_week=list(days_of_week),
            time_slots=[TimeSlot(start=s, end=e) for s, e in slots],
            valid_from=start_date,
            valid_to=start_date + timedelta(days=duration_days - 1),
        )

    def generate_overrides(self, pattern: SchedulePattern, count: int = 6) -> List[ScheduleOverride]:
        """
        Mix of days off and edited days on dates the pattern covers.
        Edited days close one pattern slot and add an evening slot.
        """
        working_days = [d for d in iter_dates(pattern.valid_from, pattern.valid_to) if pattern.applies_to(d)]
        chosen = sorted(self.rng.sample(working_days, min(count, len(working_days))))

        overrides = []
        for i, day in enumerate(chosen):
            if i % 2 == 0:
                overrides.append(ScheduleOverride(
                    id=f"ovr_{day.isoformat()}",
                    date=day,
                    type=OverrideType.UNAVAILABLE,
                    reason=self.rng.choice(DAY_OFF_REASONS),
                ))
                continue

            closed = self.rng.choice(pattern.time_slots)
            slots = [
                slot.model_copy(update={"available": slot.key != closed.key})
                for slot in pattern.time_slots
            ]
            slots.append(TimeSlot(start=EXTRA_SLOT[0], end=EXTRA_SLOT[1]))
            overrides.append(ScheduleOverride(
                id=f"ovr_{day.isoformat()}",
                date=day,
                type=OverrideType.OVERRIDE,
                time_slots=slots,
            ))
        return overrides

    def generate_bookings(
        self,
        pattern: SchedulePattern,
        overrides: Sequence[ScheduleOverride],
        count: int = 20
    ) -> List[Booking]:
        """Bookings only on slots that are open once pattern and overrides are merged."""
        resolver = AvailabilityResolver(PatternStore([pattern]), OverrideStore(overrides), BookingStore([]))

        open_slots = []
        for day in iter_dates(pattern.valid_from, pattern.valid_to):
            schedule = resolver.resolve_day(day)
            open_slots.extend((day, slot) for slot in schedule.available_slots)

        chosen = self.rng.sample(open_slots, min(count, len(open_slots)))
        chosen.sort(key=lambda item: (item[0], item[1].key))

        statuses = [BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingStatus.CANCELLED]
        bookings = []
        for i, (day, slot) in enumerate(chosen):
            bookings.append(Booking(
                id=f"bk_{i:04d}",
                date=day,
                slot=TimeSlot(start=slot.start, end=slot.end),
                status=self.rng.choice(statuses),
                client_id=f"client_{self.rng.randint(1, 50):02d}",
                price=float(self.rng.choice([200000, 300000, 500000])),
            ))
        return bookings

    def generate_expert_data(
        self,
        start_date: date,
        duration_days: int = 90,
        override_count: int = 6,
        booking_count: int = 20
    ) -> Dict[str, list]:
        pattern = self.generate_pattern(start_date, duration_days)
        overrides = self.generate_overrides(pattern, override_count)
        bookings = self.generate_bookings(pattern, overrides, booking_count)
        logger.info(
            f"Generated 1 pattern, {len(overrides)} overrides, {len(bookings)} bookings "
            f"from {start_date} over {duration_days} days"
        )
        return {"patterns": [pattern], "overrides": overrides, "bookings": bookings}
