import logging
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import HTTPException, status
from sqlmodel import Session

from models.time_off import TimeOffRequest, TimeOffStatus, TimeOffType
from models.user import User
from utils.notifications import PTO_REQUEST, PTO_REVIEWED, create_notification, notify_admins

logger = logging.getLogger(__name__)


class TimeOffService:

    @staticmethod
    def create(
        user: User,
        type: TimeOffType,
        start_date: date,
        end_date: date,
        days_requested: float,
        session: Session,
        reason: Optional[str] = None,
        check_balance: bool = True,
    ) -> TimeOffRequest:
        if end_date < start_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="End date must be on or after start date",
            )
        if days_requested <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Days requested must be greater than 0",
            )

        # If PTO, check balance up front
        if check_balance and type == TimeOffType.PTO and (user.pto_balance or 0) < days_requested:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Insufficient PTO balance")

        request = TimeOffRequest(
            user_id=user.id,
            type=type,
            start_date=start_date,
            end_date=end_date,
            days_requested=days_requested,
            reason=(reason or "").strip() or None,
        )
        try:
            session.add(request)
            session.commit()
            session.refresh(request)
        except Exception:
            session.rollback()
            logger.exception("Error creating time-off request for user %s", user.id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to create request",
            )
        return request

    @staticmethod
    def notify_admins_of_request(request: TimeOffRequest, session: Session) -> None:
        notify_admins(
            session,
            PTO_REQUEST,
            "New Time-Off Request",
            f"A new {request.type.value} request has been submitted for {request.days_requested:g} day(s).",
            related_id=str(request.id),
        )

    @staticmethod
    def review(
        request_id: int,
        new_status: TimeOffStatus,
        reviewer: str,
        session: Session,
        review_notes: Optional[str] = None,
    ) -> TimeOffRequest:
        """
        Approve or reject a pending request. Approving PTO deducts the days
        from the employee's balance; the employee is notified either way.
        """
        if new_status not in (TimeOffStatus.APPROVED, TimeOffStatus.REJECTED):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status")

        request = session.get(TimeOffRequest, request_id)
        if not request:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")

        if request.status != TimeOffStatus.PENDING:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request already reviewed")

        user = session.get(User, request.user_id)
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee not found")
        deduct = new_status == TimeOffStatus.APPROVED and request.type == TimeOffType.PTO
        if deduct and (user.pto_balance or 0) < request.days_requested:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Insufficient PTO balance")

        now = datetime.now(timezone.utc)
        request.status = new_status
        request.reviewed_by = reviewer
        request.reviewed_at = now
        request.review_notes = review_notes or None
        request.updated_at = now

        if deduct:
            user.pto_balance = (user.pto_balance or 0) - request.days_requested
            session.add(user)

        try:
            session.add(request)
            # Status change and balance deduction commit together
            session.commit()
            session.refresh(request)
        except Exception:
            session.rollback()
            logger.exception("Error reviewing time-off request %s", request_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to update request",
            )

        note = f" Note: {review_notes}" if review_notes else ""
        create_notification(
            session,
            request.user_id,
            PTO_REVIEWED,
            f"Time-Off Request {new_status.value}",
            f"Your {request.type.value} request for {request.days_requested:g} day(s) has been "
            f"{new_status.value.lower()}.{note}",
            related_id=str(request.id),
        )
        return request
