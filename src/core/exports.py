from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Any
from xml.sax.saxutils import escape

from jinja2 import Environment, FileSystemLoader, select_autoescape
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from src.db.models import Plan
from src.leakfinder.scan.scoring import effort_level, priority_label
from src.utils.money import format_cents
from src.utils.time import format_local


TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "app" / "templates"

PLAN_CSV_FIELDS = [
    "position",
    "priority",
    "action",
    "category",
    "status",
    "gain_yearly_eur",
    "effort_minutes",
    "effort",
    "risk",
    "steps",
]

_env: Environment | None = None


def _jinja() -> Environment:
    global _env
    if _env is None:
        _env = Environment(loader=FileSystemLoader(str(TEMPLATES_DIR)), autoescape=select_autoescape(["html"]))
        _env.filters["eur"] = format_cents
        _env.filters["local_dt"] = format_local
    return _env


def render_plan_item_rows(plan: Plan) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for it in plan.items:
        rows.append(
            {
                "position": it.position,
                "priority": priority_label(int(it.priority_score)),
                "action": it.action_title,
                "category": it.category or "",
                "status": it.status,
                "gain_yearly_eur": f"{it.gain_estimated_yearly_cents / 100:.2f}",
                "effort_minutes": it.effort_minutes,
                "effort": effort_level(it.effort_minutes),
                "risk": it.risk_level,
                "steps": " | ".join(it.action_steps_json or []),
            }
        )
    return rows


def render_plan_csv(plan: Plan) -> str:
    out = io.StringIO()
    w = csv.DictWriter(out, fieldnames=PLAN_CSV_FIELDS)
    w.writeheader()
    for r in render_plan_item_rows(plan):
        w.writerow(r)
    return out.getvalue()


def render_plan_html_report(plan: Plan) -> str:
    done = sum(1 for it in plan.items if it.status == "done")
    return _jinja().get_template("plan_report.html").render(
        plan=plan,
        rows=render_plan_item_rows(plan),
        items=list(plan.items),
        done_count=done,
    )


def render_plan_pdf(plan: Plan) -> bytes:
    """One-document PDF: plan header, totals, then one table row per item with its steps."""
    styles = getSampleStyleSheet()
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=0.6 * inch,
        rightMargin=0.6 * inch,
        topMargin=0.6 * inch,
        bottomMargin=0.6 * inch,
        title=plan.title,
    )

    story: list[Any] = []
    story.append(Paragraph(escape(plan.title), styles["Title"]))
    story.append(Spacer(1, 0.12 * inch))
    story.append(
        Paragraph(
            f"Created {escape(format_local(plan.created_at))} &nbsp;&nbsp; "
            f"<b>Potential yearly savings:</b> {escape(format_cents(plan.total_gain_cents))}",
            styles["Normal"],
        )
    )
    story.append(Spacer(1, 0.18 * inch))

    cell = styles["BodyText"]
    table_data: list[list[Any]] = [["#", "Action", "Gain / year", "Effort", "Status"]]
    for it in plan.items:
        steps = "".join(f"<br/>&bull; {escape(s)}" for s in (it.action_steps_json or []))
        table_data.append(
            [
                str(it.position),
                Paragraph(f"<b>{escape(it.action_title)}</b>{steps}", cell),
                format_cents(it.gain_estimated_yearly_cents),
                f"{it.effort_minutes} min",
                it.status,
            ]
        )

    tbl = Table(table_data, colWidths=[0.4 * inch, 4.1 * inch, 1.1 * inch, 0.7 * inch, 0.7 * inch], repeatRows=1)
    tbl.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("ALIGN", (2, 1), (2, -1), "RIGHT"),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.whitesmoke, colors.white]),
            ]
        )
    )
    story.append(tbl)
    doc.build(story)
    return buf.getvalue()
