from sqlmodel import SQLModel, Field, Index
from typing import Optional
from enum import Enum
from datetime import datetime, timezone
from datetime import date as Date
from pydantic import field_serializer
from utils.datetime_helpers import format_utc_datetime

class TimeOffType(str, Enum):
    PTO = "PTO"
    SICK = "SICK"
    VACATION = "VACATION"
    UNPAID = "UNPAID"
    OTHER = "OTHER"

class TimeOffStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

class TimeOffRequest(SQLModel, table=True):
    __tablename__ = "time_off_requests"

    __table_args__ = (
        Index("ix_time_off_requests_user_id_status", "user_id", "status"),
        Index("ix_time_off_requests_start_date_end_date", "start_date", "end_date"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id")

    type: TimeOffType
    status: TimeOffStatus = Field(default=TimeOffStatus.PENDING)

    start_date: Date
    end_date: Date

    # Days off requested; deducted from pto_balance when a PTO request is approved
    days_requested: float = Field(gt=0)

    reason: Optional[str] = None

    # Review
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer('reviewed_at', 'created_at', 'updated_at')
    def serialize_timestamps(self, dt: Optional[datetime]) -> Optional[str]:
        """Ensure timestamps are formatted as UTC with Z suffix"""
        if dt is None:
            return None
        return format_utc_datetime(dt)
