import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from fastapi import HTTPException, status
from sqlmodel import Session

from models.shift import Shift
from models.shift_correction import (
    CLOCK_IN_TYPES,
    CLOCK_OUT_TYPES,
    CorrectionStatus,
    CorrectionType,
    ShiftCorrectionRequest,
)
from models.user import User
from utils.datetime_helpers import as_utc
from utils.notifications import notify_admins_of_correction_request

logger = logging.getLogger(__name__)

NEW_SHIFT_NOTE = "Created via approved shift correction request."
ADJUSTED_NOTE = "Adjusted via approved correction request."


def _join_notes(*parts: Optional[str]) -> str:
    return " ".join(p.strip() for p in parts if p and p.strip())


class CorrectionService:

    @staticmethod
    def submit(
        user: User,
        type: CorrectionType,
        session: Session,
        shift_id: Optional[int] = None,
        requested_clock_in: Optional[datetime] = None,
        requested_clock_out: Optional[datetime] = None,
        reason: Optional[str] = None,
    ) -> ShiftCorrectionRequest:
        requested_clock_in = as_utc(requested_clock_in)
        requested_clock_out = as_utc(requested_clock_out)

        # Light sanity checks per type
        if type in CLOCK_IN_TYPES and not requested_clock_in:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Requested clock-in time is required for this correction type.",
            )
        if type in CLOCK_OUT_TYPES and not requested_clock_out:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Requested clock-out time is required for this correction type.",
            )
        if type == CorrectionType.NEW_SHIFT and not requested_clock_in and not requested_clock_out:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="For a NEW_SHIFT correction, provide at least a requested clock-in or clock-out.",
            )

        if shift_id is not None:
            shift = session.get(Shift, shift_id)
            if not shift or shift.user_id != user.id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Shift not found or does not belong to this worker.",
                )

        correction = ShiftCorrectionRequest(
            user_id=user.id,
            shift_id=shift_id,
            type=type,
            requested_clock_in=requested_clock_in,
            requested_clock_out=requested_clock_out,
            reason=(reason or "").strip() or None,
        )

        try:
            session.add(correction)
            session.commit()
            session.refresh(correction)
        except Exception:
            session.rollback()
            logger.exception("Error creating correction request for user %s", user.id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to submit correction request.",
            )

        notify_admins_of_correction_request(session, correction.id, user.name)
        return correction

    @staticmethod
    def review(
        correction_id: int,
        approve: bool,
        session: Session,
    ) -> Tuple[ShiftCorrectionRequest, Optional[Shift]]:
        """Approve (and apply to the shift) or reject a pending correction."""
        correction = session.get(ShiftCorrectionRequest, correction_id)
        if not correction:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Shift correction request not found.",
            )
        if correction.status != CorrectionStatus.PENDING:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Request already reviewed",
            )

        updated_shift = None
        if approve:
            updated_shift = CorrectionService._apply(correction, session)

        correction.status = CorrectionStatus.APPROVED if approve else CorrectionStatus.REJECTED
        correction.updated_at = datetime.now(timezone.utc)

        try:
            session.add(correction)
            session.commit()
            session.refresh(correction)
            if updated_shift is not None:
                session.refresh(updated_shift)
        except Exception:
            session.rollback()
            logger.exception("Error reviewing correction %s", correction_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to update shift correction.",
            )
        return correction, updated_shift

    @staticmethod
    def _apply(correction: ShiftCorrectionRequest, session: Session) -> Optional[Shift]:
        requested_in = as_utc(correction.requested_clock_in)
        requested_out = as_utc(correction.requested_clock_out)
        reason_text = f"Reason: {correction.reason}" if correction.reason else None

        if correction.type == CorrectionType.NEW_SHIFT:
            if not requested_in and not requested_out:
                logger.warning("NEW_SHIFT correction %s has no requested times", correction.id)
                return None
            shift = Shift(
                user_id=correction.user_id,
                location_id=None,
                clock_in=requested_in or requested_out,
                clock_out=requested_out,
                notes=_join_notes(NEW_SHIFT_NOTE, reason_text),
            )
            session.add(shift)
            return shift

        if not correction.shift_id:
            return None
        shift = session.get(Shift, correction.shift_id)
        if not shift:
            return None

        changed = False
        if correction.type in CLOCK_IN_TYPES and requested_in:
            shift.clock_in = requested_in
            changed = True
        if correction.type in CLOCK_OUT_TYPES and requested_out:
            shift.clock_out = requested_out
            changed = True

        if not changed:
            return None
        shift.notes = _join_notes(shift.notes, ADJUSTED_NOTE, reason_text)
        session.add(shift)
        return shift
