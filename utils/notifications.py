import logging
from typing import Optional

from sqlmodel import Session, select

from models.notification import Notification
from models.user import Role, User

logger = logging.getLogger(__name__)

# Known notification types
CORRECTION_REQUEST = "correction_request"
DOCUMENT_ADDED = "document_added"
PTO_REQUEST = "pto_request"
PTO_REVIEWED = "pto_reviewed"


def create_notification(
    session: Session,
    user_id: int,
    type: str,
    title: str,
    message: str,
    related_id: Optional[str] = None,
) -> None:
    try:
        session.add(
            Notification(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                related_id=str(related_id) if related_id is not None else None,
            )
        )
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Failed to create notification for user %s", user_id)


def notify_admins(
    session: Session,
    type: str,
    title: str,
    message: str,
    related_id: Optional[str] = None,
) -> int:
    """Notify every active admin who has email notifications on. Returns the count sent."""
    try:
        admins = session.exec(
            select(User)
            .where(User.role == Role.ADMIN)
            .where(User.active == True)  # noqa: E712
            .where(User.notify_email == True)  # noqa: E712
        ).all()

        for admin in admins:
            session.add(
                Notification(
                    user_id=admin.id,
                    type=type,
                    title=title,
                    message=message,
                    related_id=str(related_id) if related_id is not None else None,
                )
            )
        session.commit()
        return len(admins)
    except Exception:
        session.rollback()
        logger.exception("Failed to notify admins (%s)", type)
        return 0


def notify_admins_of_correction_request(session: Session, request_id: int, employee_name: str) -> int:
    return notify_admins(
        session,
        CORRECTION_REQUEST,
        "New Shift Correction Request",
        f"{employee_name} submitted a correction request",
        related_id=str(request_id),
    )
