import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_serializer
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from core.deps import get_current_worker
from core.security import hash_pin
from db.session import get_session
from models.shift import ClockRequest
from models.shift_correction import CorrectionStatus, CorrectionType
from models.user import Role, User
from services.clock_service import ClockService
from services.correction_service import CorrectionService
from utils.datetime_helpers import format_utc_datetime

logger = logging.getLogger(__name__)

# Defines API Endpoints
router = APIRouter()


# --- Pydantic Models for Request Payloads ---

class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    employee_code: Optional[str] = None
    pin: Optional[str] = None


class CorrectionCreate(BaseModel):
    type: CorrectionType
    shift_id: Optional[int] = None
    requested_clock_in: Optional[datetime] = None
    requested_clock_out: Optional[datetime] = None
    reason: Optional[str] = None


class CorrectionCreated(BaseModel):
    id: int
    status: CorrectionStatus
    type: CorrectionType
    user_id: int
    shift_id: Optional[int] = None
    requested_clock_in: Optional[datetime] = None
    requested_clock_out: Optional[datetime] = None
    reason: Optional[str] = None
    created_at: datetime

    @field_serializer("requested_clock_in", "requested_clock_out", "created_at")
    def serialize_timestamps(self, dt: Optional[datetime]) -> Optional[str]:
        return format_utc_datetime(dt)


# Clock In / Out Toggle
@router.post("")
def clock(
    data: ClockRequest,
    session: Session = Depends(get_session),
):
    return ClockService.toggle(
        employee_code=(data.employee_code or "").strip(),
        pin=(data.pin or "").strip(),
        lat=data.lat,
        lng=data.lng,
        session=session,
        client_location_id=data.location_id,
    )


# Self Registration; account stays inactive until an admin approves it
@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    data: RegisterRequest,
    session: Session = Depends(get_session),
):
    name = (data.name or "").strip()
    email = (data.email or "").strip()
    employee_code = (data.employee_code or "").strip()
    pin = (data.pin or "").strip()

    if not name or not employee_code or not pin:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Name, employee code, and PIN are required to create an account.",
        )
    if not 3 <= len(employee_code) <= 20:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Employee code must be between 3 and 20 characters.",
        )
    if not 4 <= len(pin) <= 12:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="PIN must be between 4 and 12 characters.",
        )

    if session.exec(select(User).where(User.employee_code == employee_code)).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="That employee code is already in use. Check with your office to confirm your assigned code.",
        )
    if email and session.exec(select(User).where(User.email == email)).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="That email address is already associated with an account. Use a different email or contact your office.",
        )

    user = User(
        name=name,
        email=email or None,
        employee_code=employee_code,
        pin_hash=hash_pin(pin),
        role=Role.WORKER,
        active=False,
    )
    try:
        session.add(user)
        session.commit()
        session.refresh(user)
    except IntegrityError:
        session.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="That employee code is already in use. Check with your office to confirm your assigned code.",
        )

    logger.info("Registered pending worker %s (%s)", user.id, user.employee_code)

    return {
        "id": user.id,
        "name": user.name,
        "employee_code": user.employee_code,
        "email": user.email,
        "active": user.active,
        "message": "Account created. You'll be able to clock in once an admin approves your account.",
    }


# Worker Shift Correction Request
@router.post("/corrections", response_model=CorrectionCreated, status_code=status.HTTP_201_CREATED)
def create_correction(
    data: CorrectionCreate,
    session: Session = Depends(get_session),
    worker: User = Depends(get_current_worker),
):
    return CorrectionService.submit(
        user=worker,
        type=data.type,
        session=session,
        shift_id=data.shift_id,
        requested_clock_in=data.requested_clock_in,
        requested_clock_out=data.requested_clock_out,
        reason=data.reason,
    )
