import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from sqlmodel import Session, select

from core.deps import require_admin
from db.session import get_session
from models.audit_log import AuditAction
from models.location import Location
from models.shift import Shift, ShiftRead
from models.shift_correction import CorrectionStatus, ShiftCorrectionRequest
from models.user import User
from services.correction_service import CorrectionService
from utils.audit import create_audit_log

logger = logging.getLogger(__name__)

router = APIRouter()


class CorrectionReview(BaseModel):
    id: int
    action: Literal["approve", "reject"]


def correction_dict(correction: ShiftCorrectionRequest, user: Optional[User], shift: Optional[ShiftRead]) -> dict:
    data = correction.model_dump(mode="json")
    data["user"] = {"id": user.id, "name": user.name, "employee_code": user.employee_code} if user else None
    data["shift"] = shift.model_dump(mode="json") if shift else None
    return data


@router.get("")
def list_corrections(
    status_filter: CorrectionStatus = Query(default=CorrectionStatus.PENDING, alias="status"),
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    rows = session.exec(
        select(ShiftCorrectionRequest, User, Shift, Location)
        .join(User, User.id == ShiftCorrectionRequest.user_id)
        .outerjoin(Shift, Shift.id == ShiftCorrectionRequest.shift_id)
        .outerjoin(Location, Location.id == Shift.location_id)
        .where(ShiftCorrectionRequest.status == status_filter)
        .order_by(ShiftCorrectionRequest.created_at.desc())
    ).all()

    return [
        correction_dict(correction, user, ShiftRead.from_shift(shift, user, location) if shift else None)
        for correction, user, shift, location in rows
    ]


@router.patch("")
def review_correction(
    data: CorrectionReview,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    approve = data.action == "approve"
    correction, shift = CorrectionService.review(data.id, approve, session)
    logger.info("Correction %s %sd by admin", correction.id, data.action)

    details = {"type": correction.type.value, "user_id": correction.user_id}
    if shift is not None:
        details["shift_id"] = shift.id
    create_audit_log(
        session, admin, AuditAction.APPROVE if approve else AuditAction.REJECT,
        "shift-correction", correction.id, details, request,
    )

    user = session.get(User, correction.user_id)
    shift_read = None
    if shift is not None:
        location = session.get(Location, shift.location_id) if shift.location_id else None
        shift_read = ShiftRead.from_shift(shift, user, location)
    return correction_dict(correction, user, shift_read)
