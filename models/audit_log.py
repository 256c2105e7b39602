from sqlmodel import SQLModel, Field, Index
from datetime import datetime, timezone
from typing import Optional
from enum import Enum
from pydantic import field_serializer
from utils.datetime_helpers import format_utc_datetime

class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    EXPORT = "EXPORT"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"

class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    __table_args__ = (
        Index("ix_audit_logs_actor_id", "actor_id"),
        Index("ix_audit_logs_entity", "entity"),
        Index("ix_audit_logs_action", "action"),
        Index("ix_audit_logs_created_at", "created_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    # Who made the change ("admin" for the shared-password session)
    actor_id: str
    actor_name: str

    # What action was taken
    action: AuditAction

    # Affected record, e.g. entity="location", entity_id="12"
    entity: str
    entity_id: Optional[str] = None

    # JSON-encoded free-form details
    details: Optional[str] = None

    # Request origin
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("created_at")
    def serialize_created_at(self, dt: datetime) -> Optional[str]:
        return format_utc_datetime(dt)
