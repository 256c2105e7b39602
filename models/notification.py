from datetime import datetime, timezone
from typing import Optional

from pydantic import field_serializer
from sqlmodel import Field, Index, SQLModel

from utils.datetime_helpers import format_utc_datetime


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"

    __table_args__ = (
        Index("ix_notifications_user_id_read", "user_id", "read"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id")

    # e.g. "pto_request", "pto_reviewed", "correction_request", "document_added"
    type: str
    title: str
    message: str
    read: bool = Field(default=False)
    related_id: Optional[str] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("created_at")
    def serialize_created_at(self, dt: datetime) -> Optional[str]:
        return format_utc_datetime(dt)
