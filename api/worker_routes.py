import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field as PydanticField
from sqlmodel import Session, select

from core.deps import get_current_worker
from core.security import (
    COOKIE_SECURE,
    WORKER_COOKIE,
    WORKER_SESSION_HOURS,
    create_session_token,
)
from db.session import get_session
from models.employee_document import EmployeeDocument
from models.location import Location
from models.notification import Notification
from models.shift import Shift, ShiftRead
from models.time_off import TimeOffRequest, TimeOffType
from models.user import User
from services.clock_service import ClockService
from services.time_off_service import TimeOffService

logger = logging.getLogger(__name__)

router = APIRouter()

PROFILE_FIELDS = ("email", "phone", "address_line1", "address_line2", "city", "state", "postal_code")


# --- Pydantic Models ---

class WorkerLogin(BaseModel):
    employee_code: Optional[str] = None
    pin: Optional[str] = None


class ProfileUpdate(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None


class WorkerTimeOffCreate(BaseModel):
    type: TimeOffType
    start_date: date
    end_date: date
    days_requested: float = PydanticField(gt=0)
    reason: Optional[str] = None


class WorkerDocumentCreate(BaseModel):
    title: str = PydanticField(min_length=1)
    url: str = PydanticField(min_length=1)
    description: Optional[str] = None


def profile_dict(user: User) -> dict:
    data = {"id": user.id, "name": user.name, "employee_code": user.employee_code}
    for field in PROFILE_FIELDS:
        data[field] = getattr(user, field)
    data["pto_balance"] = user.pto_balance
    return data


# --- Session ---

@router.post("/login")
def worker_login(
    data: WorkerLogin,
    response: Response,
    session: Session = Depends(get_session),
):
    employee_code = (data.employee_code or "").strip()
    pin = (data.pin or "").strip()
    if not employee_code or not pin:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Employee code and PIN are required.",
        )

    user = ClockService.authenticate(employee_code, pin, session)

    token = create_session_token(str(user.id), "worker", WORKER_SESSION_HOURS)
    response.set_cookie(
        key=WORKER_COOKIE,
        value=token,
        max_age=WORKER_SESSION_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=COOKIE_SECURE,
        path="/",
    )
    return {"ok": True, "user": {"id": user.id, "name": user.name, "employee_code": user.employee_code}}


@router.post("/logout")
def worker_logout(response: Response):
    response.delete_cookie(WORKER_COOKIE, path="/")
    return {"ok": True}


# --- Self Service ---

@router.get("/me")
def worker_me(
    session: Session = Depends(get_session),
    worker: User = Depends(get_current_worker),
):
    rows = session.exec(
        select(Shift, Location)
        .outerjoin(Location, Location.id == Shift.location_id)
        .where(Shift.user_id == worker.id)
        .order_by(Shift.clock_in.desc())
        .limit(50)
    ).all()

    documents = session.exec(
        select(EmployeeDocument)
        .where(EmployeeDocument.user_id == worker.id)
        .where(EmployeeDocument.visible_to_worker == True)  # noqa: E712
        .order_by(EmployeeDocument.created_at.desc())
    ).all()

    return {
        "worker": profile_dict(worker),
        "shifts": [ShiftRead.from_shift(shift, worker, location) for shift, location in rows],
        "documents": documents,
    }


@router.put("/profile")
def update_profile(
    data: ProfileUpdate,
    session: Session = Depends(get_session),
    worker: User = Depends(get_current_worker),
):
    # Blank strings clear a field
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(worker, key, (value or "").strip() or None)

    try:
        session.add(worker)
        session.commit()
        session.refresh(worker)
    except Exception:
        session.rollback()
        logger.exception("Error updating profile for worker %s", worker.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update profile",
        )
    return profile_dict(worker)


@router.get("/time-off", response_model=List[TimeOffRequest])
def list_my_time_off(
    session: Session = Depends(get_session),
    worker: User = Depends(get_current_worker),
):
    return session.exec(
        select(TimeOffRequest)
        .where(TimeOffRequest.user_id == worker.id)
        .order_by(TimeOffRequest.created_at.desc())
    ).all()


@router.post("/time-off", response_model=TimeOffRequest, status_code=status.HTTP_201_CREATED)
def request_time_off(
    data: WorkerTimeOffCreate,
    session: Session = Depends(get_session),
    worker: User = Depends(get_current_worker),
):
    request = TimeOffService.create(
        user=worker,
        type=data.type,
        start_date=data.start_date,
        end_date=data.end_date,
        days_requested=data.days_requested,
        session=session,
        reason=data.reason,
    )
    TimeOffService.notify_admins_of_request(request, session)
    return request


@router.get("/documents", response_model=List[EmployeeDocument])
def list_my_documents(
    session: Session = Depends(get_session),
    worker: User = Depends(get_current_worker),
):
    return session.exec(
        select(EmployeeDocument)
        .where(EmployeeDocument.user_id == worker.id)
        .where(EmployeeDocument.visible_to_worker == True)  # noqa: E712
        .order_by(EmployeeDocument.created_at.desc())
    ).all()


# Worker adds a document by URL; only metadata is stored
@router.post("/documents", response_model=EmployeeDocument, status_code=status.HTTP_201_CREATED)
def add_my_document(
    data: WorkerDocumentCreate,
    session: Session = Depends(get_session),
    worker: User = Depends(get_current_worker),
):
    document = EmployeeDocument(
        user_id=worker.id,
        title=data.title.strip(),
        url=data.url.strip(),
        description=(data.description or "").strip() or None,
        visible_to_worker=True,
        uploaded_by_admin=False,
    )
    try:
        session.add(document)
        session.commit()
        session.refresh(document)
    except Exception:
        session.rollback()
        logger.exception("Error creating document for worker %s", worker.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create document",
        )
    return document


@router.get("/notifications", response_model=List[Notification])
def list_my_notifications(
    unread_only: bool = False,
    session: Session = Depends(get_session),
    worker: User = Depends(get_current_worker),
):
    statement = select(Notification).where(Notification.user_id == worker.id)
    if unread_only:
        statement = statement.where(Notification.read == False)  # noqa: E712
    return session.exec(statement.order_by(Notification.created_at.desc()).limit(100)).all()


@router.post("/notifications/{notification_id}/read", response_model=Notification)
def mark_notification_read(
    notification_id: int,
    session: Session = Depends(get_session),
    worker: User = Depends(get_current_worker),
):
    notification = session.get(Notification, notification_id)
    if not notification or notification.user_id != worker.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")

    notification.read = True
    try:
        session.add(notification)
        session.commit()
        session.refresh(notification)
    except Exception:
        session.rollback()
        logger.exception("Error marking notification %s read", notification_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update notification",
        )
    return notification
