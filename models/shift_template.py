from sqlmodel import SQLModel, Field, Column, JSON
from datetime import datetime, timezone
from typing import List, Optional
from pydantic import field_serializer
from utils.datetime_helpers import format_utc_datetime

class ShiftTemplate(SQLModel, table=True):
    """
    Reusable shift pattern used by the bulk scheduler.

    Times are minutes after local midnight; an end before the start means the
    shift runs past midnight. Days use 0 = Sunday through 6 = Saturday.
    """
    __tablename__ = "shift_templates"

    id: Optional[int] = Field(default=None, primary_key=True)

    name: str = Field(index=True)
    description: Optional[str] = Field(default=None)
    location_id: Optional[int] = Field(default=None, foreign_key="locations.id")

    start_minutes: int
    end_minutes: int
    days_of_week: List[int] = Field(default_factory=list, sa_column=Column(JSON))

    active: bool = Field(default=True)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("created_at", "updated_at")
    def serialize_timestamps(self, dt: datetime) -> Optional[str]:
        return format_utc_datetime(dt)
