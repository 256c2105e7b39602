import logging
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel
from sqlalchemy import or_
from sqlmodel import Session, select

from core.deps import require_admin
from db.session import get_session
from models.audit_log import AuditAction
from models.location import Location
from models.shift import Shift, ShiftRead
from models.user import User
from services.schedule_service import ScheduleService
from utils.audit import create_audit_log
from utils.datetime_helpers import as_utc
from utils.timezone_helpers import local_end_of_day, local_start_of_day

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Pydantic Models ---

class AdminShiftCreate(BaseModel):
    user_id: int
    location_id: Optional[int] = None
    clock_in: datetime
    clock_out: Optional[datetime] = None
    notes: Optional[str] = None


class AdminShiftUpdate(BaseModel):
    location_id: Optional[int] = None
    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None  # explicit null reopens the shift
    notes: Optional[str] = None


class BulkCreateRequest(BaseModel):
    template_id: int
    employee_ids: List[int]
    start_date: date
    end_date: date


# --- Helpers ---

def shift_read(session: Session, shift: Shift) -> ShiftRead:
    user = session.get(User, shift.user_id)
    location = session.get(Location, shift.location_id) if shift.location_id else None
    return ShiftRead.from_shift(shift, user, location)


def ensure_location_exists(session: Session, location_id: Optional[int]) -> None:
    if location_id is not None and not session.get(Location, location_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Location {location_id} does not exist.",
        )


def ensure_times_ordered(clock_in: datetime, clock_out: Optional[datetime]) -> None:
    if clock_out is not None and as_utc(clock_out) < as_utc(clock_in):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Clock out must be after clock in.",
        )


# --- API Endpoints ---

@router.get("", response_model=List[ShiftRead])
def list_shifts(
    employee_id: Optional[int] = Query(default=None),
    location_id: Optional[int] = Query(default=None),
    start: Optional[date] = Query(default=None),
    end: Optional[date] = Query(default=None),
    open_only: bool = Query(default=False),
    adhoc_only: bool = Query(default=False),
    search: Optional[str] = Query(default=None),
    limit: int = Query(default=500, ge=1, le=5000),
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    statement = (
        select(Shift, User, Location)
        .join(User, User.id == Shift.user_id)
        .outerjoin(Location, Location.id == Shift.location_id)
    )
    if adhoc_only:
        statement = statement.where(or_(Shift.location_id == None, Location.radius_meters <= 0))  # noqa: E711
    # Case-insensitive match on employee name / code or location name
    term = (search or "").strip()
    if term:
        pattern = f"%{term}%"
        statement = statement.where(
            or_(User.name.ilike(pattern), User.employee_code.ilike(pattern), Location.name.ilike(pattern))
        )
    if employee_id is not None:
        statement = statement.where(Shift.user_id == employee_id)
    if location_id is not None:
        statement = statement.where(Shift.location_id == location_id)
    if start is not None:
        statement = statement.where(Shift.clock_in >= local_start_of_day(start))
    if end is not None:
        statement = statement.where(Shift.clock_in <= local_end_of_day(end))
    if open_only:
        statement = statement.where(Shift.clock_out == None)  # noqa: E711

    rows = session.exec(statement.order_by(Shift.clock_in.desc()).limit(limit)).all()
    return [ShiftRead.from_shift(shift, user, location) for shift, user, location in rows]


@router.post("", response_model=ShiftRead, status_code=status.HTTP_201_CREATED)
def create_shift(
    data: AdminShiftCreate,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    if not session.get(User, data.user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee not found")
    ensure_location_exists(session, data.location_id)
    ensure_times_ordered(data.clock_in, data.clock_out)

    shift = Shift(
        user_id=data.user_id,
        location_id=data.location_id,
        clock_in=as_utc(data.clock_in),
        clock_out=as_utc(data.clock_out),
        notes=data.notes,
    )
    try:
        session.add(shift)
        session.commit()
        session.refresh(shift)
    except Exception:
        session.rollback()
        logger.exception("Error creating manual shift for user %s", data.user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create shift",
        )

    create_audit_log(
        session, admin, AuditAction.CREATE, "shift", shift.id,
        {"user_id": shift.user_id, "location_id": shift.location_id}, request,
    )
    return shift_read(session, shift)


@router.post("/bulk-create")
def bulk_create_shifts(
    data: BulkCreateRequest,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    shifts = ScheduleService.bulk_create(
        template_id=data.template_id,
        employee_ids=data.employee_ids,
        start=data.start_date,
        end=data.end_date,
        session=session,
    )
    create_audit_log(
        session, admin, AuditAction.CREATE, "shift", None,
        {
            "bulk": True,
            "template_id": data.template_id,
            "employee_ids": data.employee_ids,
            "start_date": data.start_date.isoformat(),
            "end_date": data.end_date.isoformat(),
            "count": len(shifts),
        },
        request,
    )
    return {"success": True, "count": len(shifts)}


@router.patch("/{shift_id}", response_model=ShiftRead)
def update_shift(
    shift_id: int,
    data: AdminShiftUpdate,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    shift = session.get(Shift, shift_id)
    if not shift:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shift not found")

    update_data = data.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
    if "clock_in" in update_data and update_data["clock_in"] is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid clockIn datetime")
    if "location_id" in update_data:
        ensure_location_exists(session, update_data["location_id"])

    for key in ("clock_in", "clock_out"):
        if key in update_data:
            update_data[key] = as_utc(update_data[key])
    ensure_times_ordered(
        update_data.get("clock_in", shift.clock_in),
        update_data.get("clock_out", shift.clock_out),
    )
    for key, value in update_data.items():
        setattr(shift, key, value)

    try:
        session.add(shift)
        session.commit()
        session.refresh(shift)
    except Exception:
        session.rollback()
        logger.exception("Error updating shift %s", shift_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update shift",
        )

    create_audit_log(
        session, admin, AuditAction.UPDATE, "shift", shift.id,
        {key: (value.isoformat() if isinstance(value, datetime) else value) for key, value in update_data.items()},
        request,
    )
    return shift_read(session, shift)


@router.delete("/{shift_id}")
def delete_shift(
    shift_id: int,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    shift = session.get(Shift, shift_id)
    if not shift:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shift not found")

    details = {"user_id": shift.user_id, "clock_in": as_utc(shift.clock_in).isoformat()}
    try:
        session.delete(shift)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Error deleting shift %s", shift_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete shift",
        )

    create_audit_log(session, admin, AuditAction.DELETE, "shift", shift_id, details, request)
    return {"ok": True}
