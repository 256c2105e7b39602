import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, field_serializer
from sqlmodel import Session, select

from core.deps import require_admin
from db.session import get_session
from models.audit_log import AuditAction
from models.location import Location
from models.shift_template import ShiftTemplate
from utils.audit import create_audit_log
from utils.datetime_helpers import format_utc_datetime

logger = logging.getLogger(__name__)

router = APIRouter()

MINUTES_PER_DAY = 24 * 60


# --- Pydantic Models ---

class ShiftTemplateIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    location_id: Optional[int] = None
    start_minutes: Optional[int] = None
    end_minutes: Optional[int] = None
    days_of_week: Optional[List[int]] = None
    active: Optional[bool] = None


class TemplateLocation(BaseModel):
    id: int
    name: str
    code: str


class ShiftTemplateRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    location_id: Optional[int] = None
    location: Optional[TemplateLocation] = None
    start_minutes: int
    end_minutes: int
    days_of_week: List[int]
    active: bool
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at")
    def serialize_timestamps(self, dt: datetime) -> Optional[str]:
        return format_utc_datetime(dt)

    @classmethod
    def from_template(cls, template: ShiftTemplate, location: Optional[Location] = None) -> "ShiftTemplateRead":
        return cls(
            id=template.id,
            name=template.name,
            description=template.description,
            location_id=template.location_id,
            location=TemplateLocation(id=location.id, name=location.name, code=location.code) if location else None,
            start_minutes=template.start_minutes,
            end_minutes=template.end_minutes,
            days_of_week=list(template.days_of_week or []),
            active=template.active,
            created_at=template.created_at,
            updated_at=template.updated_at,
        )


# --- Helpers ---

def validate_template(session: Session, data: ShiftTemplateIn) -> dict:
    """Check a create/replace payload and return the column values to store."""
    name = (data.name or "").strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Template name is required")

    if not data.days_of_week:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one day of the week is required",
        )
    if any(day < 0 or day > 6 for day in data.days_of_week):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Days of the week must be between 0 (Sunday) and 6 (Saturday)",
        )

    if data.start_minutes is None or data.end_minutes is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Start and end times are required")
    for minutes in (data.start_minutes, data.end_minutes):
        if minutes < 0 or minutes >= MINUTES_PER_DAY:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Start and end times must be within a single day",
            )

    if data.location_id is not None and not session.get(Location, data.location_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Location {data.location_id} does not exist.",
        )

    return {
        "name": name,
        "description": (data.description or "").strip() or None,
        "location_id": data.location_id,
        "start_minutes": data.start_minutes,
        "end_minutes": data.end_minutes,
        "days_of_week": sorted(set(data.days_of_week)),
        "active": True if data.active is None else data.active,
    }


def template_read(session: Session, template: ShiftTemplate) -> ShiftTemplateRead:
    location = session.get(Location, template.location_id) if template.location_id else None
    return ShiftTemplateRead.from_template(template, location)


def save_template(session: Session, template: ShiftTemplate, action: str) -> None:
    try:
        session.add(template)
        session.commit()
        session.refresh(template)
    except Exception:
        session.rollback()
        logger.exception("Error trying to %s shift template", action)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to {action} template",
        )


# --- API Endpoints ---

@router.get("", response_model=List[ShiftTemplateRead])
def list_templates(
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    rows = session.exec(
        select(ShiftTemplate, Location)
        .outerjoin(Location, Location.id == ShiftTemplate.location_id)
        .order_by(ShiftTemplate.name)
    ).all()
    return [ShiftTemplateRead.from_template(template, location) for template, location in rows]


@router.post("", response_model=ShiftTemplateRead, status_code=status.HTTP_201_CREATED)
def create_template(
    data: ShiftTemplateIn,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    template = ShiftTemplate(**validate_template(session, data))
    save_template(session, template, "create")
    create_audit_log(session, admin, AuditAction.CREATE, "shift-template", template.id, {"name": template.name}, request)
    return template_read(session, template)


# Full replacement, the form always sends every field
@router.put("/{template_id}", response_model=ShiftTemplateRead)
def replace_template(
    template_id: int,
    data: ShiftTemplateIn,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    template = session.get(ShiftTemplate, template_id)
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")

    values = validate_template(session, data)
    for key, value in values.items():
        setattr(template, key, value)
    template.updated_at = datetime.now(timezone.utc)

    save_template(session, template, "update")
    create_audit_log(session, admin, AuditAction.UPDATE, "shift-template", template.id, values, request)
    return template_read(session, template)


@router.delete("/{template_id}")
def delete_template(
    template_id: int,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    template = session.get(ShiftTemplate, template_id)
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")

    name = template.name
    try:
        session.delete(template)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Error deleting shift template %s", template_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete template",
        )

    create_audit_log(session, admin, AuditAction.DELETE, "shift-template", template_id, {"name": name}, request)
    return {"success": True}
