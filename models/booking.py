"""
Booking data model.

Bookings are produced by the (external) booking flow; the engine only reads
them to mark pattern/override slots as taken.
"""

from collections.abc import Mapping
from datetime import date as date_type, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .slot import SLOT_KEYS, TimeSlot


class BookingStatus(str, Enum):
    """Lifecycle of a client's claim on a slot."""
    PENDING = "pending"       # Awaiting payment
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Booking(BaseModel):
    """
    A client's claim on exactly one slot of one date.
    Accepts the slot either nested (``slot``) or flattened onto the booking
    (``startTime``/``endTime`` or ``start``/``end``).
    """

    # --- Core Data ---
    id: str = Field(description="Unique identifier")
    date: date_type = Field(description="Calendar date of the session")
    slot: TimeSlot = Field(description="Occupied time range")
    status: BookingStatus = Field(default=BookingStatus.PENDING)

    # --- Details shown to the expert ---
    client_id: Optional[str] = Field(default=None)
    notes: str = Field(default="")
    price: Optional[float] = Field(default=None, ge=0)
    created_at: Optional[datetime] = Field(default=None)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "bk_0001",
                "date": "2024-03-04",
                "startTime": "09:00",
                "endTime": "10:00",
                "status": "confirmed",
                "clientId": "client_42",
                "price": 300000,
            }
        },
    )

    @model_validator(mode="before")
    @classmethod
    def lift_flat_slot(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and data.get("slot") is None:
            data = dict(data)
            data["slot"] = {key: data.pop(key) for key in list(data) if key in SLOT_KEYS}
        return data

    @property
    def is_active(self) -> bool:
        """Cancelled bookings no longer occupy their slot."""
        return self.status != BookingStatus.CANCELLED
