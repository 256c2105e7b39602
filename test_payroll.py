"""
Payroll, labor report, analytics and export endpoints over a fixed week
(Mon 2025-03-03 .. Sat 2025-03-08, America/Chicago).
"""

from datetime import date, timedelta

import pytest

from models.shift import Shift
from services.payroll_service import labor_report
from utils.timezone_helpers import local_time_on

MONDAY = date(2025, 3, 3)
WEEK = {"start": "2025-03-03", "end": "2025-03-08"}


def add_shift(session, user, day, start_hour, hours, location=None):
    clock_in = local_time_on(day, int(start_hour * 60))
    shift = Shift(
        user_id=user.id,
        location_id=location.id if location else None,
        clock_in=clock_in,
        clock_out=clock_in + timedelta(hours=hours) if hours is not None else None,
    )
    session.add(shift)
    session.commit()
    return shift


@pytest.fixture
def week(session, make_user, make_location):
    kyle = make_user(hourly_rate=20.0)
    shop = make_location()
    adhoc = make_location(code="ADHOC", lat=0, lng=0, radius_meters=0)

    add_shift(session, kyle, MONDAY, 8, 8, shop)
    add_shift(session, kyle, MONDAY + timedelta(days=1), 8, 4.5, adhoc)
    add_shift(session, kyle, MONDAY + timedelta(days=2), 8, None, shop)  # still open
    add_shift(session, kyle, MONDAY + timedelta(days=3), 8, 0, shop)  # zero length
    add_shift(session, kyle, MONDAY + timedelta(days=10), 8, 8, shop)  # next period
    return kyle, shop, adhoc


def test_payroll_requires_range(admin_client):
    response = admin_client.get("/api/admin/payroll", params={"start": "2025-03-03"})
    assert response.status_code == 400
    assert "required" in response.json()["error"]


def test_payroll_totals_and_breakdowns(admin_client, week):
    kyle, shop, _ = week
    body = admin_client.get("/api/admin/payroll", params=WEEK).json()

    assert len(body["employees"]) == 1
    row = body["employees"][0]
    assert row["user_id"] == kyle.id
    assert row["total_hours"] == 12.5
    assert row["total_wages"] == 250.0
    assert row["shift_count"] == 2

    assert [(loc["location_id"], loc["location_name"], loc["total_hours"]) for loc in row["per_location"]] == [
        (shop.id, shop.name, 8.0),
        (None, "ADHOC", 4.5),
    ]
    assert [(d["date"], d["weekday"], d["total_hours"]) for d in row["per_day"]] == [
        ("2025-03-03", "Mon", 8.0),
        ("2025-03-04", "Tue", 4.5),
    ]


def test_payroll_for_single_user(admin_client, week, make_user):
    make_user(employee_code="CHRIS")
    kyle, _, _ = week
    body = admin_client.get("/api/admin/payroll", params={**WEEK, "user_id": kyle.id}).json()
    assert [r["user_id"] for r in body["employees"]] == [kyle.id]


def test_employee_analytics_location_filters(admin_client, week):
    _, shop, _ = week
    at_shop = admin_client.get("/api/admin/analytics/employees", params={**WEEK, "locationId": shop.id}).json()
    assert at_shop["employees"][0]["hours"] == 8.0

    adhoc = admin_client.get("/api/admin/analytics/employees", params={**WEEK, "locationId": "null"}).json()
    assert adhoc["employees"][0]["hours"] == 4.5


def test_job_site_analytics(admin_client, week):
    body = admin_client.get("/api/admin/analytics/job-sites", params=WEEK).json()
    by_name = {row["location_name"]: row for row in body["job_sites"]}
    assert by_name["ADHOC"]["location_id"] is None
    assert by_name["ADHOC"]["total_cost"] == 90.0
    assert by_name["Lakeshop"]["worker_count"] == 1


def test_hours_series_has_every_day(admin_client, week):
    body = admin_client.get("/api/admin/analytics/hours", params=WEEK).json()
    assert len(body["series"]) == 6
    assert body["series"][0] == {"date": "2025-03-03", "hours": 8.0}
    assert body["series"][5]["hours"] == 0.0


def test_overtime_past_forty_hours(session, make_user):
    worker = make_user(hourly_rate=10.0)
    for offset in range(5):
        add_shift(session, worker, MONDAY + timedelta(days=offset), 7, 9)

    report = labor_report(session, MONDAY, MONDAY + timedelta(days=5))
    assert report["total_hours"] == 45.0
    assert report["overtime"]["total_overtime_hours"] == 5.0
    assert report["overtime"]["total_overtime_cost"] == 75.0
    assert report["labor_cost"]["total"] == 475.0


def test_salary_only_staff_are_costed_hourly(session, make_user):
    manager = make_user(employee_code="BOSS", hourly_rate=None, salary_annual=41600.0)
    add_shift(session, manager, MONDAY, 8, 2)

    report = labor_report(session, MONDAY, MONDAY)
    assert report["labor_cost"]["by_employee"][0]["cost"] == 40.0


def test_reports_need_dates(admin_client):
    response = admin_client.get("/api/admin/reports")
    assert response.status_code == 400
    assert response.json()["error"] == "Missing date range"


def test_report_pdf(admin_client, week):
    response = admin_client.get("/api/admin/reports/pdf", params={"startDate": "2025-03-03", "endDate": "2025-03-08"})
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")


def test_export_shifts_csv(admin_client, week):
    response = admin_client.get("/api/admin/export/shifts", params={"from": "2025-03-03", "to": "2025-03-08"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().splitlines()
    assert lines[0] == "EmployeeCode,EmployeeName,Location,ClockIn,ClockOut,Hours"
    assert len(lines) == 5
    assert lines[1].startswith("KYLE,Kyle,Lakeshop,2025-03-03T14:00:00Z")


def test_export_payroll_csv_uses_local_times(admin_client, week):
    response = admin_client.get("/api/admin/export/payroll", params={"start": "2025-03-03", "end": "2025-03-03"})
    lines = response.text.strip().splitlines()
    assert lines[0] == "Employee,Code,Date,Clock In,Clock Out,Hours,Location"
    assert lines[1] == "Kyle,KYLE,2025-03-03,08:00,16:00,8.00,Lakeshop"


def test_dashboard_stats(admin_client, week):
    body = admin_client.get("/api/admin/stats").json()
    assert body["total_employees"] == 1
    assert body["active_locations"] == 2
    assert body["open_shifts"] == 1
    assert len(body["recent_shifts"]) == 5
