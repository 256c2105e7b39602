from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, field_serializer
from sqlmodel import Field, Index, SQLModel

from utils.datetime_helpers import format_utc_datetime, hours_between


# Defines the Structure of Data for a Clock Call
class ClockRequest(BaseModel):
    employee_code: str | None = None
    pin: str | None = None
    # Accepts numbers or numeric strings; validated in the clock service
    lat: float | str | None = None
    lng: float | str | None = None
    location_id: int | None = None


# Defines a Table "shifts"; a null clock_out means the shift is still open
class Shift(SQLModel, table=True):
    __tablename__ = "shifts"

    __table_args__ = (
        Index("ix_shifts_user_id", "user_id"),
        Index("ix_shifts_clock_in", "clock_in"),
        # Open-shift lookup: WHERE user_id = ? AND clock_out IS NULL
        Index("ix_shifts_user_id_clock_out", "user_id", "clock_out"),
        Index("ix_shifts_location_id", "location_id"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id")
    location_id: Optional[int] = Field(default=None, foreign_key="locations.id")
    clock_in: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    clock_out: Optional[datetime] = Field(default=None)
    clock_in_lat: Optional[float] = None
    clock_in_lng: Optional[float] = None
    clock_out_lat: Optional[float] = None
    clock_out_lng: Optional[float] = None
    notes: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("clock_in", "clock_out", "created_at")
    def serialize_timestamps(self, dt: Optional[datetime]) -> Optional[str]:
        """Ensure timestamps are formatted as UTC with Z suffix"""
        return format_utc_datetime(dt)


# Response shape for a shift joined with its user and location
class ShiftRead(BaseModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    employee_code: Optional[str] = None
    location_id: Optional[int] = None
    location_name: Optional[str] = None
    location_code: Optional[str] = None
    clock_in: datetime
    clock_out: Optional[datetime] = None
    clock_in_lat: Optional[float] = None
    clock_in_lng: Optional[float] = None
    clock_out_lat: Optional[float] = None
    clock_out_lng: Optional[float] = None
    notes: Optional[str] = None
    hours: Optional[float] = None
    adhoc: bool = False

    @field_serializer("clock_in", "clock_out")
    def serialize_timestamps(self, dt: Optional[datetime]) -> Optional[str]:
        return format_utc_datetime(dt)

    @classmethod
    def from_shift(cls, shift: "Shift", user=None, location=None) -> "ShiftRead":
        hours = None
        if shift.clock_out is not None:
            hours = round(hours_between(shift.clock_in, shift.clock_out), 2)
        return cls(
            id=shift.id,
            user_id=shift.user_id,
            user_name=user.name if user else None,
            employee_code=user.employee_code if user else None,
            location_id=shift.location_id,
            location_name=location.name if location else None,
            location_code=location.code if location else None,
            clock_in=shift.clock_in,
            clock_out=shift.clock_out,
            clock_in_lat=shift.clock_in_lat,
            clock_in_lng=shift.clock_in_lng,
            clock_out_lat=shift.clock_out_lat,
            clock_out_lng=shift.clock_out_lng,
            notes=shift.notes,
            hours=hours,
            adhoc=location is None or location.is_adhoc,
        )
