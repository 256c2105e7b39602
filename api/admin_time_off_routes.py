import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field as PydanticField
from sqlmodel import Session, select

from core.deps import require_admin
from db.session import get_session
from models.audit_log import AuditAction
from models.time_off import TimeOffRequest, TimeOffStatus, TimeOffType
from models.user import User
from services.time_off_service import TimeOffService
from utils.audit import create_audit_log

logger = logging.getLogger(__name__)

router = APIRouter()


class AdminTimeOffCreate(BaseModel):
    user_id: int
    type: TimeOffType
    start_date: date
    end_date: date
    days_requested: float = PydanticField(gt=0)
    reason: Optional[str] = None


class TimeOffReview(BaseModel):
    status: TimeOffStatus
    review_notes: Optional[str] = None


def time_off_dict(request: TimeOffRequest, user: Optional[User]) -> dict:
    data = request.model_dump(mode="json")
    data["user"] = {"id": user.id, "name": user.name, "employee_code": user.employee_code} if user else None
    return data


@router.get("")
def list_time_off(
    status_filter: Optional[TimeOffStatus] = Query(default=None, alias="status"),
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    statement = select(TimeOffRequest, User).join(User, User.id == TimeOffRequest.user_id)
    if status_filter is not None:
        statement = statement.where(TimeOffRequest.status == status_filter)
    rows = session.exec(
        statement.order_by(TimeOffRequest.status, TimeOffRequest.created_at.desc())
    ).all()
    return [time_off_dict(req, user) for req, user in rows]


# Admin-entered requests skip the balance check; it is applied at approval
@router.post("", status_code=status.HTTP_201_CREATED)
def create_time_off(
    data: AdminTimeOffCreate,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    user = session.get(User, data.user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee not found")

    time_off = TimeOffService.create(
        user=user,
        type=data.type,
        start_date=data.start_date,
        end_date=data.end_date,
        days_requested=data.days_requested,
        session=session,
        reason=data.reason,
        check_balance=False,
    )
    create_audit_log(
        session, admin, AuditAction.CREATE, "time-off", time_off.id,
        {"user_id": user.id, "type": time_off.type.value, "days_requested": time_off.days_requested},
        request,
    )
    return time_off_dict(time_off, user)


@router.patch("/{request_id}")
def review_time_off(
    request_id: int,
    data: TimeOffReview,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    time_off = TimeOffService.review(
        request_id=request_id,
        new_status=data.status,
        reviewer=admin["name"],
        session=session,
        review_notes=data.review_notes,
    )
    create_audit_log(
        session, admin,
        AuditAction.APPROVE if time_off.status == TimeOffStatus.APPROVED else AuditAction.REJECT,
        "time-off", time_off.id,
        {"user_id": time_off.user_id, "type": time_off.type.value, "days_requested": time_off.days_requested},
        request,
    )
    return time_off_dict(time_off, session.get(User, time_off.user_id))


@router.delete("/{request_id}")
def delete_time_off(
    request_id: int,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    time_off = session.get(TimeOffRequest, request_id)
    if not time_off:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")

    details = {"user_id": time_off.user_id, "status": time_off.status.value}
    try:
        session.delete(time_off)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Error deleting time-off request %s", request_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete request",
        )

    create_audit_log(session, admin, AuditAction.DELETE, "time-off", request_id, details, request)
    return {"success": True}
