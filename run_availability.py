"""
Main Execution Script for the Expert Availability Engine.
Loads (or generates) one expert's calendar, resolves the coming weeks,
prints a report and exports the result for the calendar front end.
"""

import json
import logging
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from availability import ScheduleRegistry, settings
from generators.data_factory import DataGenerator
from models import Booking, DayResolution, SchedulePattern, ScheduleOverride

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger("Main")

# --- CONFIGURATION ---
EXPERT_ID = "expert_demo"
USE_CACHE = True  # Set to False to always regenerate sample data
REPORT_DAYS = 14
# ---------------------


def save_expert_data(data: Dict[str, list], filename: str) -> None:
    """Persist records in wire format (camelCase, HH:MM times)."""
    serializable = {
        key: [item.model_dump(mode='json', by_alias=True) for item in items]
        for key, items in data.items()
    }
    with open(filename, 'w') as f:
        json.dump(serializable, f, indent=2)
    logger.info(f"💾 Saved expert data to {filename}")


def load_cached_data(filename: str) -> Optional[Dict[str, list]]:
    """
    Load JSON records and rebuild the models.
    """
    try:
        with open(filename, 'r') as f:
            data = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        logger.warning(f"⚠️ Data file {filename} not found or invalid. Falling back to Generator.")
        return None

    try:
        records = {
            "patterns": [SchedulePattern.model_validate(item) for item in data.get('patterns', [])],
            "overrides": [ScheduleOverride.model_validate(item) for item in data.get('overrides', [])],
            "bookings": [Booking.model_validate(item) for item in data.get('bookings', [])],
        }
    except ValidationError as e:
        logger.error(f"❌ Data file {filename} holds invalid records: {e}")
        return None

    logger.info(
        f"✅ Loaded {len(records['patterns'])} patterns, {len(records['overrides'])} overrides, "
        f"{len(records['bookings'])} bookings."
    )
    return records


def export_schedule_data(resolutions: List[DayResolution], available_dates: List[date], filename: str) -> dict:
    """
    Serializes resolved days into the JSON shape consumed by the calendar UI.
    """
    logger.info(f"💾 Exporting schedule to {filename}...")

    data = {
        "schedule": {},
        "failures": {},
        "availableDates": [d.isoformat() for d in available_dates]
    }
    for resolution in resolutions:
        key = resolution.date.isoformat()
        if resolution.ok:
            data["schedule"][key] = resolution.schedule.model_dump(mode='json', by_alias=True)
        else:
            data["failures"][key] = resolution.error

    with open(filename, 'w') as f:
        json.dump(data, f, indent=2)
    logger.info("✅ Schedule exported.")
    return data


def summarize_day(resolution: DayResolution) -> Tuple[str, str]:
    if not resolution.ok:
        return "ERROR", resolution.error
    schedule = resolution.schedule
    if schedule.is_unavailable:
        return "OFF", schedule.reason or "Day off"
    if not schedule.time_slots:
        return "-", "No schedule configured"
    booked = sum(1 for s in schedule.time_slots if s.booking is not None)
    closed = sum(1 for s in schedule.time_slots if s.is_overridden)
    return (
        schedule.source.value.upper(),
        f"{len(schedule.available_slots)} open / {booked} booked / {closed} closed"
    )


def main():
    logger.info("🚀 Starting Expert Availability Engine...")
    start_date = date.today()

    # --- PHASE 1: DATA ACQUISITION (File vs. Generator) ---
    records = load_cached_data(settings.DATA_FILENAME) if USE_CACHE else None

    if not records:
        logger.info("--- Phase 1: Generating sample data ---")
        records = DataGenerator().generate_expert_data(start_date, duration_days=90)
        save_expert_data(records, settings.DATA_FILENAME)

    # --- PHASE 2: RESOLUTION ---
    logger.info("\n--- Phase 2: Resolving schedule ---")
    registry = ScheduleRegistry()
    registry.for_expert(EXPERT_ID).load_records(**records)

    end_date = start_date + timedelta(days=REPORT_DAYS - 1)
    resolutions = registry.resolve_range(EXPERT_ID, start_date, end_date)
    available = sorted(registry.summarize_available_dates(EXPERT_ID, start_date, end_date))

    # --- PHASE 3: REPORTING ---
    print("\n" + "="*50)
    print("📅 SCHEDULE REPORT")
    print("="*50)
    for resolution in resolutions:
        label, detail = summarize_day(resolution)
        print(f"{resolution.date.isoformat()} ({resolution.date.strftime('%a')})  {label:<12} {detail}")
    print(f"\nBookable days: {len(available)}/{len(resolutions)}")

    # --- PHASE 4: EXPORT FOR FRONTEND ---
    export_schedule_data(resolutions, available, settings.EXPORT_FILENAME)

    print("\n✅ Run Complete.")


if __name__ == "__main__":
    main()
