"""
Available-dates summarizer.

Reduces a resolved range to the dates that have at least one open slot.
Summaries are cached per (expert, start, end) and dropped as soon as a
pattern, override or booking affecting a date in the range changes.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date as date_type
from typing import Dict, Iterable, Optional, Set, Tuple

from models import AvailableDatesSummary
from . import settings
from .engine import AvailabilityResolver

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, date_type, date_type]


@dataclass
class _CacheEntry:
    version: int
    summary: AvailableDatesSummary


class SummaryCache:
    """
    LRU cache of summaries, versioned per expert.

    Every mutation of an expert's data bumps its version. Entries whose range
    covers a changed date are dropped; the others are re-stamped with the new
    version. A summary computed from an older snapshot is never stored.
    """

    def __init__(self, max_entries: int = settings.SUMMARY_CACHE_SIZE):
        self.max_entries = max_entries
        self._entries: "OrderedDict[CacheKey, _CacheEntry]" = OrderedDict()
        self._latest_version: Dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, key: CacheKey, version: int) -> Optional[AvailableDatesSummary]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.version != version:
                return None
            self._entries.move_to_end(key)
            return entry.summary

    def put(self, key: CacheKey, version: int, summary: AvailableDatesSummary) -> None:
        with self._lock:
            if version < self._latest_version.get(key[0], 0):
                return
            self._entries[key] = _CacheEntry(version, summary)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def invalidate(self, expert_id: str, version: int, dates: Optional[Iterable[date_type]] = None) -> int:
        """
        Record a change to ``expert_id`` at ``version``.
        ``dates=None`` means the change may affect any date (e.g. a pattern edit).
        Returns the number of dropped entries.
        """
        changed = None if dates is None else set(dates)
        dropped = 0
        with self._lock:
            self._latest_version[expert_id] = max(version, self._latest_version.get(expert_id, 0))
            for key in list(self._entries):
                owner, start_date, end_date = key
                if owner != expert_id:
                    continue
                if changed is None or any(start_date <= d <= end_date for d in changed):
                    del self._entries[key]
                    dropped += 1
                else:
                    self._entries[key].version = version
        if dropped:
            logger.info(f"Invalidated {dropped} cached summaries for expert {expert_id}")
        return dropped

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._latest_version.clear()

    def __len__(self) -> int:
        return len(self._entries)


class AvailableDatesSummarizer:
    """Calendar-highlighting view over an AvailabilityResolver."""

    def __init__(
        self,
        resolver: AvailabilityResolver,
        expert_id: Optional[str] = None,
        version: int = 0,
        cache: Optional[SummaryCache] = None
    ):
        self.resolver = resolver
        self.expert_id = expert_id
        self.version = version
        self.cache = cache if expert_id is not None else None

    def summarize(self, start_date: date_type, end_date: date_type) -> AvailableDatesSummary:
        key = (self.expert_id, start_date, end_date)
        if self.cache is not None:
            cached = self.cache.get(key, self.version)
            if cached is not None:
                # Callers get their own copy; the cached lists stay untouched
                return cached.model_copy(deep=True)

        resolutions = self.resolver.resolve_range(start_date, end_date)
        summary = AvailableDatesSummary(
            start_date=start_date,
            end_date=end_date,
            all_dates=[r.date for r in resolutions],
            available_dates=[r.date for r in resolutions if r.ok and r.schedule.has_open_slot]
        )

        # Failed days stay out of the cache so the defect is logged on every query
        if self.cache is not None and all(r.ok for r in resolutions):
            self.cache.put(key, self.version, summary.model_copy(deep=True))
        return summary

    def summarize_available_dates(self, start_date: date_type, end_date: date_type) -> Set[date_type]:
        return set(self.summarize(start_date, end_date).available_dates)


def summarize_available_dates(
    resolver: AvailabilityResolver,
    start_date: date_type,
    end_date: date_type
) -> Set[date_type]:
    """Uncached one-shot summary."""
    return AvailableDatesSummarizer(resolver).summarize_available_dates(start_date, end_date)
