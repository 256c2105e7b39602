"""
Payroll, analytics and labor-cost aggregation over closed shifts.

All date parameters are local calendar dates in APP_TIMEZONE; the end date is
inclusive (the query runs to the start of the following day). Open shifts and
shifts with a non-positive duration are skipped everywhere.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlmodel import Session, select

from models.location import Location
from models.shift import Shift, ShiftRead
from models.user import User
from utils.datetime_helpers import hours_between
from utils.timezone_helpers import date_range, get_pay_period, local_date_of, local_start_of_day

logger = logging.getLogger(__name__)

ADHOC_LABEL = "ADHOC"
UNNAMED_LABEL = "Unnamed job site"
UNKNOWN_LABEL = "Unknown"

OVERTIME_THRESHOLD_HOURS = 40.0
OVERTIME_MULTIPLIER = 1.5
WORK_HOURS_PER_YEAR = 2080

WEEKDAY_SHORT = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


@dataclass
class WorkedShift:
    shift: Shift
    user: User
    location: Optional[Location]
    hours: float
    local_date: date


def _round(value: float) -> float:
    return round(value, 2)


def resolve_range(start: Optional[date], end: Optional[date]) -> Tuple[date, date]:
    """Explicit range, or the current Monday-Saturday pay period."""
    if start and end:
        return start, end
    return get_pay_period()


def fetch_worked_shifts(
    session: Session,
    start: date,
    end: date,
    user_id: Optional[int] = None,
    location_id: Optional[int] = None,
    adhoc_only: bool = False,
    active_only: bool = True,
) -> List[WorkedShift]:
    """Closed, positive-length shifts whose clock-in falls in [start, end]."""
    range_start = local_start_of_day(start)
    range_end = local_start_of_day(end + timedelta(days=1))

    statement = (
        select(Shift, User, Location)
        .join(User, User.id == Shift.user_id)
        .outerjoin(Location, Location.id == Shift.location_id)
        .where(Shift.clock_in >= range_start)
        .where(Shift.clock_in < range_end)
        .where(Shift.clock_out != None)  # noqa: E711
        .order_by(Shift.clock_in.asc())
    )
    if active_only:
        statement = statement.where(User.active == True)  # noqa: E712
    if user_id is not None:
        statement = statement.where(Shift.user_id == user_id)
    if adhoc_only:
        statement = statement.where(or_(Shift.location_id == None, Location.radius_meters <= 0))  # noqa: E711
    elif location_id is not None:
        statement = statement.where(Shift.location_id == location_id)

    worked = []
    for shift, user, location in session.exec(statement).all():
        hours = hours_between(shift.clock_in, shift.clock_out)
        if hours <= 0:
            continue
        # ADHOC template shifts are reported without a location
        if location is not None and location.is_adhoc:
            location = None
        worked.append(WorkedShift(shift, user, location, hours, local_date_of(shift.clock_in)))
    return worked


def location_label(location: Optional[Location]) -> str:
    if location is None:
        return ADHOC_LABEL
    return location.name or UNNAMED_LABEL


def _location_rows(bucket: Dict[Optional[int], dict]) -> List[dict]:
    rows = [
        {
            "location_id": row["location_id"],
            "location_name": row["location_name"],
            "total_hours": _round(row["total_hours"]),
            "total_wages": _round(row["total_wages"]),
        }
        for row in bucket.values()
    ]
    rows.sort(key=lambda r: r["total_hours"], reverse=True)
    return rows


def _add_to_location(bucket: Dict[Optional[int], dict], ws: WorkedShift, wages: float) -> None:
    loc_id = ws.location.id if ws.location else None
    row = bucket.get(loc_id)
    if row is None:
        row = {
            "location_id": loc_id,
            "location_name": location_label(ws.location),
            "total_hours": 0.0,
            "total_wages": 0.0,
        }
        bucket[loc_id] = row
    row["total_hours"] += ws.hours
    row["total_wages"] += wages


def build_payroll(session: Session, start: date, end: date, user_id: Optional[int] = None) -> List[dict]:
    """
    Per-employee payroll rows with per-location and per-day breakdowns.
    Wages are hours times hourly_rate (0 when unset).
    """
    rows: Dict[int, dict] = {}

    for ws in fetch_worked_shifts(session, start, end, user_id=user_id):
        user = ws.user
        wages = (user.hourly_rate or 0) * ws.hours

        row = rows.get(user.id)
        if row is None:
            row = {
                "user_id": user.id,
                "name": user.name,
                "employee_code": user.employee_code,
                "hourly_rate": user.hourly_rate,
                "total_hours": 0.0,
                "total_wages": 0.0,
                "shift_count": 0,
                "per_location": {},
                "per_day": {},
            }
            rows[user.id] = row

        row["total_hours"] += ws.hours
        row["total_wages"] += wages
        row["shift_count"] += 1
        _add_to_location(row["per_location"], ws, wages)

        day_key = ws.local_date.isoformat()
        day = row["per_day"].get(day_key)
        if day is None:
            day = {
                "date": day_key,
                "weekday": WEEKDAY_SHORT[ws.local_date.weekday()],
                "total_hours": 0.0,
                "total_wages": 0.0,
                "per_location": {},
            }
            row["per_day"][day_key] = day
        day["total_hours"] += ws.hours
        day["total_wages"] += wages
        _add_to_location(day["per_location"], ws, wages)

    result = []
    for row in rows.values():
        per_day = [
            {
                "date": d["date"],
                "weekday": d["weekday"],
                "total_hours": _round(d["total_hours"]),
                "total_wages": _round(d["total_wages"]),
                "per_location": _location_rows(d["per_location"]),
            }
            for d in row["per_day"].values()
        ]
        per_day.sort(key=lambda d: d["date"])
        result.append(
            {
                "user_id": row["user_id"],
                "name": row["name"],
                "employee_code": row["employee_code"],
                "hourly_rate": row["hourly_rate"],
                "total_hours": _round(row["total_hours"]),
                "total_wages": _round(row["total_wages"]),
                "shift_count": row["shift_count"],
                "per_location": _location_rows(row["per_location"]),
                "per_day": per_day,
            }
        )
    return result


# --- Analytics ---

def employee_breakdown(
    session: Session,
    start: date,
    end: date,
    location_id: Optional[int] = None,
    adhoc_only: bool = False,
) -> List[dict]:
    totals: Dict[int, dict] = {}
    for ws in fetch_worked_shifts(session, start, end, location_id=location_id, adhoc_only=adhoc_only):
        row = totals.setdefault(
            ws.user.id,
            {"user_id": ws.user.id, "user_name": ws.user.name or UNKNOWN_LABEL, "hours": 0.0, "shifts": 0, "cost": 0.0},
        )
        row["hours"] += ws.hours
        row["shifts"] += 1
        row["cost"] += ws.hours * (ws.user.hourly_rate or 0)

    rows = [
        {**row, "hours": _round(row["hours"]), "cost": _round(row["cost"])}
        for row in totals.values()
    ]
    rows.sort(key=lambda r: r["hours"], reverse=True)
    return rows


def job_site_breakdown(session: Session, start: date, end: date) -> List[dict]:
    totals: Dict[Optional[int], dict] = {}
    for ws in fetch_worked_shifts(session, start, end):
        loc_id = ws.location.id if ws.location else None
        row = totals.get(loc_id)
        if row is None:
            row = {
                "location_id": loc_id,
                "location_name": location_label(ws.location),
                "total_hours": 0.0,
                "total_wages": 0.0,
                "shift_count": 0,
                "workers": set(),
            }
            totals[loc_id] = row
        wages = ws.hours * (ws.user.hourly_rate or 0)
        row["total_hours"] += ws.hours
        row["total_wages"] += wages
        row["shift_count"] += 1
        row["workers"].add(ws.user.id)

    rows = []
    for row in totals.values():
        rows.append(
            {
                "location_id": row["location_id"],
                "location_name": row["location_name"],
                "total_hours": _round(row["total_hours"]),
                "total_wages": _round(row["total_wages"]),
                "total_cost": _round(row["total_wages"]),
                "shift_count": row["shift_count"],
                "worker_count": len(row["workers"]),
            }
        )
    rows.sort(key=lambda r: r["total_hours"], reverse=True)
    return rows


def hours_series(session: Session, start: Optional[date], end: Optional[date]) -> dict:
    """Hours per local day with every day in the range present; defaults to the last 14 days."""
    if not start or not end:
        end = local_date_of(datetime.now(timezone.utc))
        start = end - timedelta(days=13)

    by_day: Dict[date, float] = defaultdict(float)
    for ws in fetch_worked_shifts(session, start, end):
        by_day[ws.local_date] += ws.hours

    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "series": [{"date": d.isoformat(), "hours": _round(by_day.get(d, 0.0))} for d in date_range(start, end)],
    }


# --- Labor cost report ---

def effective_hourly_rate(user: User) -> float:
    if user.hourly_rate:
        return user.hourly_rate
    if user.salary_annual:
        return user.salary_annual / WORK_HOURS_PER_YEAR
    return 0.0


def labor_report(session: Session, start: date, end: date) -> dict:
    """
    Labor cost by employee and location, with overtime.

    Overtime is counted per employee per week (Monday start): hours past 40 in
    a week are paid at 1.5 times the effective rate. Salary-only staff are
    costed at salary / 2080 per hour.
    """
    worked = fetch_worked_shifts(session, start, end, active_only=False)

    # Walk each employee's week in clock-in order so overtime lands on the
    # shifts that cross the threshold
    week_hours: Dict[Tuple[int, date], float] = defaultdict(float)
    costed = []
    for ws in worked:
        week_start = ws.local_date - timedelta(days=ws.local_date.weekday())
        key = (ws.user.id, week_start)
        before = week_hours[key]
        week_hours[key] = before + ws.hours

        regular = max(0.0, min(ws.hours, OVERTIME_THRESHOLD_HOURS - before))
        overtime = ws.hours - regular
        rate = effective_hourly_rate(ws.user)
        cost = regular * rate + overtime * rate * OVERTIME_MULTIPLIER
        costed.append((ws, regular, overtime, rate, cost))

    by_employee: Dict[int, dict] = {}
    by_location: Dict[Optional[int], dict] = {}
    overtime_by_employee: Dict[int, dict] = {}
    total_cost = 0.0

    for ws, regular, overtime, rate, cost in costed:
        total_cost += cost

        emp = by_employee.setdefault(
            ws.user.id,
            {"user_id": ws.user.id, "employee_name": ws.user.name, "hours": 0.0, "regular_hours": 0.0, "overtime_hours": 0.0, "cost": 0.0},
        )
        emp["hours"] += ws.hours
        emp["regular_hours"] += regular
        emp["overtime_hours"] += overtime
        emp["cost"] += cost

        loc_id = ws.location.id if ws.location else None
        loc = by_location.setdefault(
            loc_id,
            {"location_id": loc_id, "location_name": location_label(ws.location), "hours": 0.0, "cost": 0.0, "shift_count": 0},
        )
        loc["hours"] += ws.hours
        loc["cost"] += cost
        loc["shift_count"] += 1

        if overtime > 0:
            ot = overtime_by_employee.setdefault(
                ws.user.id,
                {"user_id": ws.user.id, "employee_name": ws.user.name, "overtime_hours": 0.0, "overtime_cost": 0.0},
            )
            ot["overtime_hours"] += overtime
            ot["overtime_cost"] += overtime * rate * OVERTIME_MULTIPLIER

    def rounded(rows, *keys):
        return [{k: (_round(v) if k in keys else v) for k, v in row.items()} for row in rows]

    employees = rounded(by_employee.values(), "hours", "regular_hours", "overtime_hours", "cost")
    employees.sort(key=lambda r: r["cost"], reverse=True)
    locations = rounded(by_location.values(), "hours", "cost")
    locations.sort(key=lambda r: r["cost"], reverse=True)
    overtime_rows = rounded(overtime_by_employee.values(), "overtime_hours", "overtime_cost")
    overtime_rows.sort(key=lambda r: r["overtime_cost"], reverse=True)

    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "labor_cost": {
            "total": _round(total_cost),
            "by_employee": employees,
            "by_location": locations,
        },
        "overtime": {
            "total_overtime_hours": _round(sum(r["overtime_hours"] for r in overtime_by_employee.values())),
            "total_overtime_cost": _round(sum(r["overtime_cost"] for r in overtime_by_employee.values())),
            "by_employee": overtime_rows,
        },
        "total_hours": _round(sum(ws.hours for ws, *_ in costed)),
        "shift_count": len(costed),
    }


# --- Dashboard ---

def dashboard_stats(session: Session) -> dict:
    today = local_date_of(datetime.now(timezone.utc))
    day_start = local_start_of_day(today)
    day_end = local_start_of_day(today + timedelta(days=1))

    def count(statement) -> int:
        return session.exec(statement).one()

    recent = session.exec(
        select(Shift, User, Location)
        .join(User, User.id == Shift.user_id)
        .outerjoin(Location, Location.id == Shift.location_id)
        .order_by(Shift.clock_in.desc())
        .limit(10)
    ).all()

    return {
        "total_employees": count(select(func.count()).select_from(User)),
        "active_employees": count(select(func.count()).select_from(User).where(User.active == True)),  # noqa: E712
        "total_locations": count(select(func.count()).select_from(Location)),
        "active_locations": count(select(func.count()).select_from(Location).where(Location.active == True)),  # noqa: E712
        "open_shifts": count(select(func.count()).select_from(Shift).where(Shift.clock_out == None)),  # noqa: E711
        "todays_shifts": count(
            select(func.count()).select_from(Shift).where(Shift.clock_in >= day_start).where(Shift.clock_in < day_end)
        ),
        "recent_shifts": [ShiftRead.from_shift(s, u, l) for s, u, l in recent],
    }
