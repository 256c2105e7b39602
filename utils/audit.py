import json
import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import Request
from sqlalchemy import func
from sqlmodel import Session, select

from models.audit_log import AuditAction, AuditLog

logger = logging.getLogger(__name__)


def request_origin(request: Optional[Request]) -> tuple[Optional[str], Optional[str]]:
    """Client IP (honouring X-Forwarded-For) and user agent of a request."""
    if request is None:
        return None, None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else None
    return ip, request.headers.get("user-agent")


def create_audit_log(
    session: Session,
    actor: dict,
    action: AuditAction,
    entity: str,
    entity_id: Any = None,
    details: Optional[dict] = None,
    request: Optional[Request] = None,
) -> None:
    """
    Record an admin action. Called after the business change has been
    committed; a failure here is logged and never reaches the caller.
    """
    ip_address, user_agent = request_origin(request)
    try:
        entry = AuditLog(
            actor_id=str(actor.get("id", "admin")),
            actor_name=actor.get("name", "Admin"),
            action=action,
            entity=entity,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=json.dumps(details, default=str) if details else None,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        session.add(entry)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Failed to create audit log for %s %s", action, entity)


def get_audit_logs(
    session: Session,
    actor_id: Optional[str] = None,
    entity: Optional[str] = None,
    action: Optional[AuditAction] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: Optional[int] = 100,
    offset: int = 0,
) -> tuple[list[AuditLog], int]:
    """Filtered audit entries, newest first, plus the unpaged total."""
    filters = []
    if actor_id:
        filters.append(AuditLog.actor_id == actor_id)
    if entity:
        filters.append(AuditLog.entity == entity)
    if action:
        filters.append(AuditLog.action == action)
    if start:
        filters.append(AuditLog.created_at >= start)
    if end:
        filters.append(AuditLog.created_at <= end)

    statement = select(AuditLog)
    count_statement = select(func.count()).select_from(AuditLog)
    for condition in filters:
        statement = statement.where(condition)
        count_statement = count_statement.where(condition)
    statement = statement.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    if offset:
        statement = statement.offset(offset)
    if limit is not None:
        statement = statement.limit(limit)

    logs = session.exec(statement).all()
    total = session.exec(count_statement).one()
    return list(logs), total
