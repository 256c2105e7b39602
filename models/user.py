from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime, timezone
from enum import Enum


class Role(str, Enum):
    ADMIN = "ADMIN"
    WORKER = "WORKER"


# Employees and admins; `active` is the soft-disable switch
class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    employee_code: Optional[str] = Field(default=None, unique=True, index=True)
    email: Optional[str] = Field(default=None, index=True)

    # bcrypt hash of the worker's PIN
    pin_hash: Optional[str] = Field(default=None)

    role: Role = Field(default=Role.WORKER)
    active: bool = Field(default=True, index=True)

    # Pay
    hourly_rate: Optional[float] = Field(default=None, ge=0)
    salary_annual: Optional[float] = Field(default=None, ge=0)
    pto_balance: float = Field(default=0.0)  # days

    # Profile
    phone: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    admin_notes: Optional[str] = None

    # Notification preferences
    notify_email: bool = Field(default=True)
    notify_sms: bool = Field(default=False)

    default_location_id: Optional[int] = Field(default=None, foreign_key="locations.id")

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
