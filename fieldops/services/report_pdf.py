"""
Render a maintenance report to PDF: header, job/customer details, then one
block per template section with the captured values.
"""
import io
from datetime import datetime
from typing import Any, Dict, List, Optional

from reportlab.lib.pagesizes import letter
from reportlab.lib import colors
from reportlab.pdfgen import canvas


FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
MARGIN = 48
LINE = 15


def _fmt_value(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (list, tuple)):
        return ", ".join(_fmt_value(v) for v in value) or "-"
    if isinstance(value, dict):
        return ", ".join(f"{k}: {_fmt_value(v)}" for k, v in value.items()) or "-"
    return str(value)


def _wrap(c: canvas.Canvas, text: str, width: float, font: str, size: float) -> List[str]:
    words = text.split()
    lines: List[str] = []
    current = ""
    for word in words:
        candidate = f"{current} {word}".strip()
        if c.stringWidth(candidate, font, size) <= width:
            current = candidate
        else:
            if current:
                lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines or [""]


def build_report_pdf(
    report: Any,
    sections: Optional[List[Dict[str, Any]]] = None,
    customer_name: Optional[str] = None,
    job_number: Optional[str] = None,
    company_name: Optional[str] = None,
) -> bytes:
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    page_w, page_h = letter
    usable = page_w - 2 * MARGIN
    y = page_h - MARGIN

    def ensure_space(needed: float):
        nonlocal y
        if y - needed < MARGIN:
            c.showPage()
            y = page_h - MARGIN

    c.setFont(FONT_BOLD, 16)
    c.drawString(MARGIN, y, company_name or "Service Report")
    y -= 22
    c.setFont(FONT_BOLD, 12)
    c.drawString(MARGIN, y, f"Report {report.report_number or ''}".strip())
    y -= LINE

    c.setFont(FONT, 10)
    details = [
        ("Customer", customer_name),
        ("Job", job_number),
        ("Status", report.status),
        ("Completed", report.completed_at.strftime("%Y-%m-%d %H:%M") if report.completed_at else None),
        ("Generated", datetime.utcnow().strftime("%Y-%m-%d %H:%M UTC")),
    ]
    for label, value in details:
        if value:
            c.drawString(MARGIN, y, f"{label}: {value}")
            y -= LINE

    c.setStrokeColor(colors.grey)
    c.line(MARGIN, y, page_w - MARGIN, y)
    y -= LINE

    data = report.report_data or {}
    if sections:
        for section in sections:
            ensure_space(LINE * 3)
            c.setFont(FONT_BOLD, 12)
            c.drawString(MARGIN, y, section.get("title") or section.get("id") or "")
            y -= LINE
            nested = data.get(section.get("id")) if isinstance(data.get(section.get("id")), dict) else {}
            for field in section.get("fields") or []:
                fid = field.get("id")
                value = nested.get(fid) if fid in nested else data.get(fid)
                text = f"{field.get('label') or fid}: {_fmt_value(value)}"
                for line in _wrap(c, text, usable - 12, FONT, 10):
                    ensure_space(LINE)
                    c.setFont(FONT, 10)
                    c.drawString(MARGIN + 12, y, line)
                    y -= LINE
            y -= 6
    else:
        for key, value in data.items():
            for line in _wrap(c, f"{key}: {_fmt_value(value)}", usable, FONT, 10):
                ensure_space(LINE)
                c.setFont(FONT, 10)
                c.drawString(MARGIN, y, line)
                y -= LINE

    c.showPage()
    c.save()
    return buf.getvalue()
