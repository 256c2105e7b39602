from datetime import datetime, timezone
from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from utils.timezone_helpers import from_utc_to_local

TABLE_STYLE = TableStyle([
    ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
    ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
    ("FONTSIZE", (0, 0), (-1, -1), 9),
    ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
    ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
])


def _money(value: float) -> str:
    return f"${value:,.2f}"


def _table(header: list, rows: list) -> Table:
    t = Table([header] + rows, repeatRows=1, hAlign="LEFT")
    t.setStyle(TABLE_STYLE)
    return t


def build_labor_report_pdf(report: dict) -> bytes:
    """Render a labor_report() result as a one-document PDF."""
    styles = getSampleStyleSheet()
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=LETTER, title="Labor Report")

    labor = report["labor_cost"]
    overtime = report["overtime"]
    total_hours = report["total_hours"]
    avg = labor["total"] / total_hours if total_hours else 0.0
    generated = from_utc_to_local(datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M")

    story = [
        Paragraph("Labor Report", styles["Title"]),
        Paragraph(f"Period: {report['start']} to {report['end']}", styles["Normal"]),
        Paragraph(f"Generated: {generated}", styles["Normal"]),
        Spacer(1, 12),
        Paragraph("Summary", styles["Heading2"]),
        Paragraph(f"Total Labor Cost: {_money(labor['total'])}", styles["Normal"]),
        Paragraph(f"Total Hours: {total_hours:.2f}", styles["Normal"]),
        Paragraph(f"Total Overtime: {overtime['total_overtime_hours']:.2f} hours", styles["Normal"]),
        Paragraph(f"Average Cost/Hour: {_money(avg)}", styles["Normal"]),
        Spacer(1, 12),
        Paragraph("Labor Cost by Employee", styles["Heading2"]),
        _table(
            ["Employee", "Hours", "Overtime", "Cost"],
            [
                [e["employee_name"], f"{e['hours']:.2f}", f"{e['overtime_hours']:.2f}", _money(e["cost"])]
                for e in labor["by_employee"]
            ],
        ),
        Spacer(1, 12),
        Paragraph("Labor Cost by Location", styles["Heading2"]),
        _table(
            ["Location", "Hours", "Shifts", "Cost"],
            [
                [loc["location_name"], f"{loc['hours']:.2f}", str(loc["shift_count"]), _money(loc["cost"])]
                for loc in labor["by_location"]
            ],
        ),
    ]

    if overtime["by_employee"]:
        story += [
            Spacer(1, 12),
            Paragraph("Overtime", styles["Heading2"]),
            _table(
                ["Employee", "Overtime Hours", "Overtime Cost"],
                [
                    [o["employee_name"], f"{o['overtime_hours']:.2f}", _money(o["overtime_cost"])]
                    for o in overtime["by_employee"]
                ],
            ),
        ]

    doc.build(story)
    return buffer.getvalue()
