import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field as PydanticField, field_serializer
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from core.deps import require_admin
from core.security import hash_pin
from db.session import get_session
from models.audit_log import AuditAction
from models.employee_document import EmployeeDocument
from models.location import Location
from models.notification import Notification
from models.shift import Shift, ShiftRead
from models.shift_correction import ShiftCorrectionRequest
from models.time_off import TimeOffRequest
from models.user import Role, User
from utils.audit import create_audit_log
from utils.datetime_helpers import format_utc_datetime
from utils.notifications import DOCUMENT_ADDED, create_notification
from utils.timezone_helpers import local_date_of, local_end_of_day, local_start_of_day, parse_date_param

logger = logging.getLogger(__name__)

# --- Router Definition ---
router = APIRouter()


# --- Pydantic Data Models ---

# Base model: fields shared by create and read
class EmployeeBase(BaseModel):
    name: str = PydanticField(min_length=1)
    email: Optional[str] = None
    employee_code: Optional[str] = PydanticField(default=None, min_length=3, max_length=20)
    role: Role = Role.WORKER
    active: bool = True
    hourly_rate: Optional[float] = PydanticField(default=None, ge=0)
    salary_annual: Optional[float] = PydanticField(default=None, ge=0)
    pto_balance: float = PydanticField(default=0.0, ge=0)
    phone: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    admin_notes: Optional[str] = None
    notify_email: bool = True
    notify_sms: bool = False
    default_location_id: Optional[int] = None


# Create model: the PIN arrives in plain text and is hashed before storage
class EmployeeCreate(EmployeeBase):
    pin: Optional[str] = PydanticField(default=None, min_length=4, max_length=12)


# Read model: never exposes pin_hash
class EmployeeRead(EmployeeBase):
    id: int
    has_pin: bool = False
    created_at: datetime

    @field_serializer("created_at")
    def serialize_created_at(self, dt: datetime) -> Optional[str]:
        return format_utc_datetime(dt)

    @classmethod
    def from_user(cls, user: User) -> "EmployeeRead":
        data = {field: getattr(user, field) for field in EmployeeBase.model_fields}
        return cls(**data, id=user.id, has_pin=bool(user.pin_hash), created_at=user.created_at)


# Update model: every field optional
class EmployeeUpdate(BaseModel):
    name: Optional[str] = PydanticField(default=None, min_length=1)
    email: Optional[str] = None
    employee_code: Optional[str] = PydanticField(default=None, min_length=3, max_length=20)
    pin: Optional[str] = PydanticField(default=None, min_length=4, max_length=12)
    role: Optional[Role] = None
    active: Optional[bool] = None
    hourly_rate: Optional[float] = PydanticField(default=None, ge=0)
    salary_annual: Optional[float] = PydanticField(default=None, ge=0)
    pto_balance: Optional[float] = PydanticField(default=None, ge=0)
    phone: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    admin_notes: Optional[str] = None
    notify_email: Optional[bool] = None
    notify_sms: Optional[bool] = None
    default_location_id: Optional[int] = None


# Columns that are NOT NULL on the user table; an explicit null is rejected
REQUIRED_EMPLOYEE_FIELDS = ("name", "role", "active", "pto_balance", "notify_email", "notify_sms")
MIN_CODE_LENGTH = 3


class DocumentCreate(BaseModel):
    title: str = PydanticField(min_length=1)
    url: str = PydanticField(min_length=1)
    description: Optional[str] = None
    visible_to_worker: bool = True


class DocumentUpdate(BaseModel):
    title: Optional[str] = PydanticField(default=None, min_length=1)
    url: Optional[str] = PydanticField(default=None, min_length=1)
    description: Optional[str] = None
    visible_to_worker: Optional[bool] = None


# --- Helpers ---

def get_employee_or_404(session: Session, employee_id: int) -> User:
    user = session.get(User, employee_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Employee {employee_id} not found.",
        )
    return user


def clean_employee_code(employee_code: Optional[str]) -> Optional[str]:
    employee_code = (employee_code or "").strip() or None
    if employee_code and len(employee_code) < MIN_CODE_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Employee code must be at least {MIN_CODE_LENGTH} characters.",
        )
    return employee_code


def ensure_code_available(session: Session, employee_code: Optional[str], exclude_id: Optional[int] = None) -> None:
    if not employee_code:
        return
    statement = select(User).where(User.employee_code == employee_code)
    if exclude_id is not None:
        statement = statement.where(User.id != exclude_id)
    if session.exec(statement).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Employee code '{employee_code}' is already in use.",
        )


def commit_user(session: Session, user: User, action: str) -> None:
    try:
        session.add(user)
        session.commit()
        session.refresh(user)
    except IntegrityError as e:
        session.rollback()
        if "employee_code" in str(e.orig):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Employee code is already in use.",
            )
        logger.warning("Rejected employee %s: %s", action, e.orig)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid employee data.",
        )
    except Exception:
        session.rollback()
        logger.exception("Error trying to %s employee", action)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Could not {action} employee.",
        )


# --- Employees ---

@router.get("", response_model=List[EmployeeRead])
def list_employees(
    active: Optional[bool] = None,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    statement = select(User)
    if active is not None:
        statement = statement.where(User.active == active)
    users = session.exec(statement.order_by(User.created_at.desc(), User.id.desc())).all()
    return [EmployeeRead.from_user(u) for u in users]


@router.post("", response_model=EmployeeRead, status_code=status.HTTP_201_CREATED)
def create_employee(
    employee_in: EmployeeCreate,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    employee_code = clean_employee_code(employee_in.employee_code)
    ensure_code_available(session, employee_code)

    data = employee_in.model_dump(exclude={"pin", "employee_code"})
    user = User(**data, employee_code=employee_code)
    if employee_in.pin:
        user.pin_hash = hash_pin(employee_in.pin)

    commit_user(session, user, "create")
    logger.info("Admin created employee %s (%s)", user.id, user.employee_code)

    create_audit_log(
        session, admin, AuditAction.CREATE, "employee", user.id,
        {"name": user.name, "employee_code": user.employee_code}, request,
    )
    return EmployeeRead.from_user(user)


@router.get("/{employee_id}", response_model=EmployeeRead)
def read_employee(
    employee_id: int,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    return EmployeeRead.from_user(get_employee_or_404(session, employee_id))


@router.patch("/{employee_id}", response_model=EmployeeRead)
def update_employee(
    employee_id: int,
    employee_update: EmployeeUpdate,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    user = get_employee_or_404(session, employee_id)

    # exclude_unset=True ensures we only get fields the client actually sent
    update_data = employee_update.model_dump(exclude_unset=True)

    for key in REQUIRED_EMPLOYEE_FIELDS:
        if key in update_data and update_data[key] is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{key} cannot be null.",
            )

    pin = update_data.pop("pin", None)
    if "employee_code" in update_data:
        update_data["employee_code"] = clean_employee_code(update_data["employee_code"])
        ensure_code_available(session, update_data["employee_code"], exclude_id=user.id)

    for key, value in update_data.items():
        setattr(user, key, value)
    if pin:
        user.pin_hash = hash_pin(pin)

    commit_user(session, user, "update")

    changed = sorted(update_data) + (["pin"] if pin else [])
    create_audit_log(session, admin, AuditAction.UPDATE, "employee", user.id, {"fields": changed}, request)
    return EmployeeRead.from_user(user)


@router.delete("/{employee_id}")
def delete_employee(
    employee_id: int,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    user = get_employee_or_404(session, employee_id)

    # Don't remove an employee that already has shifts or requests on file
    shift_count = session.exec(select(func.count()).select_from(Shift).where(Shift.user_id == employee_id)).one()
    if shift_count > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete an employee who already has recorded shifts. (Leave them active or set them inactive instead.)",
        )
    ensure_no_requests(session, employee_id)

    name = user.name
    _delete_user(session, user)
    create_audit_log(session, admin, AuditAction.DELETE, "employee", employee_id, {"name": name}, request)
    return {"ok": True}


def ensure_no_requests(session: Session, employee_id: int) -> None:
    time_off_count = session.exec(
        select(func.count()).select_from(TimeOffRequest).where(TimeOffRequest.user_id == employee_id)
    ).one()
    correction_count = session.exec(
        select(func.count()).select_from(ShiftCorrectionRequest).where(ShiftCorrectionRequest.user_id == employee_id)
    ).one()
    if time_off_count or correction_count:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete an employee who has time-off or correction requests on file. (Set them inactive instead.)",
        )


def _delete_user(session: Session, user: User) -> None:
    try:
        for doc in session.exec(select(EmployeeDocument).where(EmployeeDocument.user_id == user.id)).all():
            session.delete(doc)
        for notification in session.exec(select(Notification).where(Notification.user_id == user.id)).all():
            session.delete(notification)
        session.delete(user)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Error deleting employee %s", user.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete employee.",
        )


# Pending registrations: approve activates, reject removes the account
@router.post("/{employee_id}/approve", response_model=EmployeeRead)
def approve_employee(
    employee_id: int,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    user = get_employee_or_404(session, employee_id)
    user.active = True
    commit_user(session, user, "approve")
    create_audit_log(session, admin, AuditAction.APPROVE, "employee", user.id, {"name": user.name}, request)
    return EmployeeRead.from_user(user)


@router.post("/{employee_id}/reject")
def reject_employee(
    employee_id: int,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    user = get_employee_or_404(session, employee_id)
    if user.active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only pending (inactive) accounts can be rejected.",
        )
    shift_count = session.exec(select(func.count()).select_from(Shift).where(Shift.user_id == employee_id)).one()
    if shift_count > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot reject an employee who already has recorded shifts.",
        )
    ensure_no_requests(session, employee_id)

    name = user.name
    _delete_user(session, user)
    create_audit_log(session, admin, AuditAction.REJECT, "employee", employee_id, {"name": name}, request)
    return {"ok": True}


# Shift history; defaults to the last 30 days, end date runs to end of day
@router.get("/{employee_id}/shifts", response_model=List[ShiftRead])
def employee_shifts(
    employee_id: int,
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    user = get_employee_or_404(session, employee_id)

    try:
        start_date = parse_date_param(start)
        end_date = parse_date_param(end)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not start_date or not end_date:
        end_date = local_date_of(datetime.now(timezone.utc))
        start_date = end_date - timedelta(days=30)

    rows = session.exec(
        select(Shift, Location)
        .outerjoin(Location, Location.id == Shift.location_id)
        .where(Shift.user_id == employee_id)
        .where(Shift.clock_in >= local_start_of_day(start_date))
        .where(Shift.clock_in <= local_end_of_day(end_date))
        .order_by(Shift.clock_in.desc())
    ).all()
    return [ShiftRead.from_shift(shift, user, location) for shift, location in rows]


# --- Documents ---

@router.get("/{employee_id}/documents", response_model=List[EmployeeDocument])
def list_employee_documents(
    employee_id: int,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    get_employee_or_404(session, employee_id)
    return session.exec(
        select(EmployeeDocument)
        .where(EmployeeDocument.user_id == employee_id)
        .order_by(EmployeeDocument.created_at.desc())
    ).all()


@router.post("/{employee_id}/documents", response_model=EmployeeDocument, status_code=status.HTTP_201_CREATED)
def add_employee_document(
    employee_id: int,
    doc_in: DocumentCreate,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    get_employee_or_404(session, employee_id)

    document = EmployeeDocument(
        user_id=employee_id,
        title=doc_in.title.strip(),
        url=doc_in.url.strip(),
        description=(doc_in.description or "").strip() or None,
        visible_to_worker=doc_in.visible_to_worker,
        uploaded_by_admin=True,
    )
    try:
        session.add(document)
        session.commit()
        session.refresh(document)
    except Exception:
        session.rollback()
        logger.exception("Error creating document for employee %s", employee_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create document.",
        )

    if document.visible_to_worker:
        create_notification(
            session, employee_id, DOCUMENT_ADDED, "New Document",
            f"A new document was added to your profile: {document.title}", related_id=str(document.id),
        )
    create_audit_log(session, admin, AuditAction.CREATE, "document", document.id, {"title": document.title}, request)
    return document


def get_document_or_404(session: Session, employee_id: int, doc_id: int) -> EmployeeDocument:
    document = session.get(EmployeeDocument, doc_id)
    if not document or document.user_id != employee_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found.")
    return document


@router.patch("/{employee_id}/documents/{doc_id}", response_model=EmployeeDocument)
def update_employee_document(
    employee_id: int,
    doc_id: int,
    doc_update: DocumentUpdate,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    document = get_document_or_404(session, employee_id, doc_id)

    update_data = doc_update.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid fields to update.")

    for key, value in update_data.items():
        if isinstance(value, str):
            value = value.strip() or None
        if value is None and key in ("title", "url", "visible_to_worker"):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{key} cannot be blank.",
            )
        update_data[key] = value

    for key, value in update_data.items():
        setattr(document, key, value)

    try:
        session.add(document)
        session.commit()
        session.refresh(document)
    except Exception:
        session.rollback()
        logger.exception("Error updating document %s", doc_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update document.",
        )
    return document


@router.delete("/{employee_id}/documents/{doc_id}")
def delete_employee_document(
    employee_id: int,
    doc_id: int,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    document = get_document_or_404(session, employee_id, doc_id)
    try:
        session.delete(document)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Error deleting document %s", doc_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete document.",
        )
    create_audit_log(session, admin, AuditAction.DELETE, "document", doc_id, None, request)
    return {"ok": True}
