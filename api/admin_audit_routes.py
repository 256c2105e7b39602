import json
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlmodel import Session

from core.deps import require_admin
from db.session import get_session
from models.audit_log import AuditAction, AuditLog
from utils.audit import create_audit_log, get_audit_logs
from utils.csv_export import csv_response
from utils.datetime_helpers import format_utc_datetime
from utils.timezone_helpers import get_current_time_in_tz, local_end_of_day, local_start_of_day

logger = logging.getLogger(__name__)

router = APIRouter()

EXPORT_LIMIT = 10000
EXPORT_HEADER = ["Timestamp", "User", "Action", "Entity", "Entity ID", "Details", "IP Address"]


def audit_dict(log: AuditLog) -> dict:
    data = log.model_dump(mode="json")
    if log.details:
        try:
            data["details"] = json.loads(log.details)
        except ValueError:
            # Older rows may hold plain text
            data["details"] = log.details
    return data


def _range(start_date: Optional[date], end_date: Optional[date]):
    start = local_start_of_day(start_date) if start_date else None
    end = local_end_of_day(end_date) if end_date else None
    return start, end


@router.get("")
def list_audit_logs(
    actor_id: Optional[str] = Query(default=None),
    entity: Optional[str] = Query(default=None),
    action: Optional[AuditAction] = Query(default=None),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    start, end = _range(start_date, end_date)
    logs, total = get_audit_logs(
        session, actor_id=actor_id, entity=entity, action=action, start=start, end=end, limit=limit, offset=offset
    )
    return {"logs": [audit_dict(log) for log in logs], "total": total}


@router.get("/export")
def export_audit_logs(
    request: Request,
    actor_id: Optional[str] = Query(default=None),
    entity: Optional[str] = Query(default=None),
    action: Optional[AuditAction] = Query(default=None),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    start, end = _range(start_date, end_date)
    logs, _ = get_audit_logs(session, actor_id=actor_id, entity=entity, action=action, start=start, end=end, limit=EXPORT_LIMIT)

    rows = [
        [
            format_utc_datetime(log.created_at),
            log.actor_name,
            log.action.value,
            log.entity,
            log.entity_id,
            log.details,
            log.ip_address,
        ]
        for log in logs
    ]

    create_audit_log(session, admin, AuditAction.EXPORT, "audit-log", details={"count": len(rows)}, request=request)
    filename = f"audit-log-{get_current_time_in_tz().date().isoformat()}.csv"
    return csv_response(filename, EXPORT_HEADER, rows)
