from datetime import datetime, timezone
from typing import Optional

from pydantic import field_serializer
from sqlmodel import Field, Index, SQLModel

from utils.datetime_helpers import format_utc_datetime


# Document metadata only; the file itself lives at `url`
class EmployeeDocument(SQLModel, table=True):
    __tablename__ = "employee_documents"

    __table_args__ = (
        Index("ix_employee_documents_user_id", "user_id"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id")

    title: str
    url: str
    description: Optional[str] = None
    visible_to_worker: bool = Field(default=True)
    uploaded_by_admin: bool = Field(default=False)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("created_at")
    def serialize_created_at(self, dt: datetime) -> Optional[str]:
        return format_utc_datetime(dt)
