"""
Dashboard stats, payroll, analytics, labor reports and CSV/PDF exports.

Date query values are local calendar dates (YYYY-MM-DD) in APP_TIMEZONE and
every range is inclusive of its end date.
"""

import logging
from datetime import date, timedelta
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlmodel import Session, select

from core.deps import require_admin
from db.session import get_session
from models.audit_log import AuditAction
from models.location import Location
from models.shift import Shift
from models.user import User
from services import payroll_service
from utils.audit import create_audit_log
from utils.csv_export import csv_response
from utils.datetime_helpers import format_utc_datetime, hours_between
from utils.pdf_report import build_labor_report_pdf
from utils.timezone_helpers import from_utc_to_local, local_start_of_day, parse_date_param

logger = logging.getLogger(__name__)

router = APIRouter()

SHIFT_EXPORT_HEADER = ["EmployeeCode", "EmployeeName", "Location", "ClockIn", "ClockOut", "Hours"]
PAYROLL_EXPORT_HEADER = ["Employee", "Code", "Date", "Clock In", "Clock Out", "Hours", "Location"]


def _parse(value: Optional[str]) -> Optional[date]:
    try:
        return parse_date_param(value)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def _required_range(start: Optional[str], end: Optional[str], message: str) -> Tuple[date, date]:
    start_day, end_day = _parse(start), _parse(end)
    if not start_day or not end_day:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)
    if end_day < start_day:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="End date must be on or after start date",
        )
    return start_day, end_day


def _export_rows(session: Session, start: Optional[date], end: Optional[date]):
    statement = (
        select(Shift, User, Location)
        .join(User, User.id == Shift.user_id)
        .outerjoin(Location, Location.id == Shift.location_id)
        .order_by(Shift.clock_in.asc())
    )
    if start:
        statement = statement.where(Shift.clock_in >= local_start_of_day(start))
    if end:
        statement = statement.where(Shift.clock_in < local_start_of_day(end + timedelta(days=1)))
    return session.exec(statement).all()


def _hours_text(shift: Shift) -> str:
    if shift.clock_out is None:
        return ""
    return f"{hours_between(shift.clock_in, shift.clock_out):.2f}"


# --- Dashboard & payroll ---

@router.get("/stats")
def get_stats(
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    return payroll_service.dashboard_stats(session)


@router.get("/payroll")
def get_payroll(
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    user_id: Optional[int] = Query(default=None),
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    start_day, end_day = _required_range(start, end, "start and end query params are required (YYYY-MM-DD)")
    return {
        "start": start_day.isoformat(),
        "end": end_day.isoformat(),
        "employees": payroll_service.build_payroll(session, start_day, end_day, user_id=user_id),
    }


# --- Analytics ---

@router.get("/analytics/employees")
def analytics_employees(
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    location_id: Optional[str] = Query(default=None, alias="locationId"),
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    start_day, end_day = payroll_service.resolve_range(_parse(start), _parse(end))

    # "null" selects ADHOC shifts
    adhoc_only = location_id == "null"
    loc_id = None
    if location_id and not adhoc_only:
        try:
            loc_id = int(location_id)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid locationId")

    return {
        "start": start_day.isoformat(),
        "end": end_day.isoformat(),
        "employees": payroll_service.employee_breakdown(
            session, start_day, end_day, location_id=loc_id, adhoc_only=adhoc_only
        ),
    }


@router.get("/analytics/hours")
def analytics_hours(
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    return payroll_service.hours_series(session, _parse(start), _parse(end))


@router.get("/analytics/job-sites")
def analytics_job_sites(
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    start_day, end_day = payroll_service.resolve_range(_parse(start), _parse(end))
    return {
        "start": start_day.isoformat(),
        "end": end_day.isoformat(),
        "job_sites": payroll_service.job_site_breakdown(session, start_day, end_day),
    }


# --- Labor reports ---

@router.get("/reports")
def labor_report(
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    start_day, end_day = _required_range(start_date, end_date, "Missing date range")
    return payroll_service.labor_report(session, start_day, end_day)


@router.get("/reports/pdf")
def labor_report_pdf(
    request: Request,
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    start_day, end_day = _required_range(start_date, end_date, "Missing date range")
    report = payroll_service.labor_report(session, start_day, end_day)

    try:
        pdf = build_labor_report_pdf(report)
    except Exception:
        logger.exception("Failed to render labor report PDF")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate PDF",
        )

    create_audit_log(
        session, admin, AuditAction.EXPORT, "report", None,
        {"format": "pdf", "start": report["start"], "end": report["end"]}, request,
    )
    filename = f"labor-report-{report['start']}-to-{report['end']}.pdf"
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# --- CSV exports ---

@router.get("/export/shifts")
def export_shifts(
    request: Request,
    start: Optional[str] = Query(default=None, alias="from"),
    end: Optional[str] = Query(default=None, alias="to"),
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    rows = [
        [
            user.employee_code,
            user.name,
            payroll_service.location_label(None if location is None or location.is_adhoc else location),
            format_utc_datetime(shift.clock_in),
            format_utc_datetime(shift.clock_out),
            _hours_text(shift),
        ]
        for shift, user, location in _export_rows(session, _parse(start), _parse(end))
    ]

    create_audit_log(session, admin, AuditAction.EXPORT, "shift", None, {"format": "csv", "count": len(rows)}, request)
    return csv_response("shifts.csv", SHIFT_EXPORT_HEADER, rows)


@router.get("/export/payroll")
def export_payroll(
    request: Request,
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    rows = []
    for shift, user, location in _export_rows(session, _parse(start), _parse(end)):
        local_in = from_utc_to_local(shift.clock_in)
        local_out = from_utc_to_local(shift.clock_out) if shift.clock_out else None
        rows.append(
            [
                user.name or payroll_service.UNKNOWN_LABEL,
                user.employee_code,
                local_in.date().isoformat(),
                local_in.strftime("%H:%M"),
                local_out.strftime("%H:%M") if local_out else None,
                _hours_text(shift),
                payroll_service.location_label(None if location is None or location.is_adhoc else location),
            ]
        )

    create_audit_log(session, admin, AuditAction.EXPORT, "payroll", None, {"format": "csv", "count": len(rows)}, request)
    return csv_response("payroll.csv", PAYROLL_EXPORT_HEADER, rows)
