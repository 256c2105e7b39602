import logging
from datetime import date, datetime, timedelta
from typing import Iterable, List, Tuple

from fastapi import HTTPException, status
from sqlmodel import Session, select

from models.shift import Shift
from models.shift_template import ShiftTemplate
from models.user import User
from utils.timezone_helpers import date_range, local_time_on

logger = logging.getLogger(__name__)


def js_weekday(day: date) -> int:
    """Weekday with 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def template_dates(template: ShiftTemplate, start: date, end: date) -> List[date]:
    days = set(template.days_of_week or [])
    return [d for d in date_range(start, end) if js_weekday(d) in days]


def shift_times(template: ShiftTemplate, day: date) -> Tuple[datetime, datetime]:
    """UTC clock-in / clock-out for the template on a local date; an end before the start rolls to the next day."""
    clock_in = local_time_on(day, template.start_minutes)
    out_day = day + timedelta(days=1) if template.end_minutes < template.start_minutes else day
    clock_out = local_time_on(out_day, template.end_minutes)
    return clock_in, clock_out


class ScheduleService:

    @staticmethod
    def bulk_create(
        template_id: int,
        employee_ids: Iterable[int],
        start: date,
        end: date,
        session: Session,
    ) -> List[Shift]:
        employee_ids = list(dict.fromkeys(employee_ids))
        if not employee_ids:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Template and employees are required",
            )
        if end < start:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="End date must be on or after start date",
            )

        template = session.get(ShiftTemplate, template_id)
        if not template:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")

        found = session.exec(select(User.id).where(User.id.in_(employee_ids))).all()
        missing = sorted(set(employee_ids) - set(found))
        if missing:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Employees not found: {', '.join(str(m) for m in missing)}",
            )

        dates = template_dates(template, start, end)
        shifts = []
        for employee_id in employee_ids:
            for day in dates:
                clock_in, clock_out = shift_times(template, day)
                shifts.append(
                    Shift(
                        user_id=employee_id,
                        location_id=template.location_id,
                        clock_in=clock_in,
                        clock_out=clock_out,
                        notes=f"Created from template: {template.name}",
                    )
                )

        try:
            session.add_all(shifts)
            session.commit()
        except Exception:
            session.rollback()
            logger.exception("Error bulk creating shifts from template %s", template_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to create shifts",
            )

        logger.info("Created %d shifts from template %s", len(shifts), template.name)
        return shifts
