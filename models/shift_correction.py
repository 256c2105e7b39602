from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime, timezone
from enum import Enum
from pydantic import field_serializer
from utils.datetime_helpers import format_utc_datetime

class CorrectionType(str, Enum):
    MISSING_IN = "MISSING_IN"
    MISSING_OUT = "MISSING_OUT"
    ADJUST_IN = "ADJUST_IN"
    ADJUST_OUT = "ADJUST_OUT"
    NEW_SHIFT = "NEW_SHIFT"

class CorrectionStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

# Types that need a requested clock-in / clock-out time
CLOCK_IN_TYPES = (CorrectionType.MISSING_IN, CorrectionType.ADJUST_IN)
CLOCK_OUT_TYPES = (CorrectionType.MISSING_OUT, CorrectionType.ADJUST_OUT)

# Worker request to fix a shift; applied to the shift when an admin approves it
class ShiftCorrectionRequest(SQLModel, table=True):
    __tablename__ = "shift_correction_requests"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    shift_id: Optional[int] = Field(default=None, foreign_key="shifts.id", nullable=True)

    type: CorrectionType

    requested_clock_in: Optional[datetime] = None
    requested_clock_out: Optional[datetime] = None

    reason: Optional[str] = None

    status: CorrectionStatus = Field(default=CorrectionStatus.PENDING, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("requested_clock_in", "requested_clock_out", "created_at", "updated_at")
    def serialize_timestamps(self, dt: Optional[datetime]) -> Optional[str]:
        return format_utc_datetime(dt)
