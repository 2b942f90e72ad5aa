import io
import logging
from typing import List, Tuple

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from models.schema import PunchEvent, PunchKind

REPORT_TITLE = "Punch Report"
REPORT_FOOTER = "Generated automatically by the punch clock"

KIND_LABELS = {
    PunchKind.ENTRY: "Entry",
    PunchKind.BREAK_START: "Break start",
    PunchKind.BREAK_END: "Break end",
    PunchKind.EXIT: "Exit",
    PunchKind.EXTRA_ENTRY: "Extra punch",
}


class ReportExportError(Exception):
    pass


def report_filename(date_key: str) -> str:
    return f"punch_report_{date_key.replace('/', '-')}.pdf"


def build_report_rows(punches: List[PunchEvent]) -> List[Tuple[str, str]]:
    """Rows of (kind label, HH:MM) in the order given; callers pass oldest first."""
    return [(KIND_LABELS[p.kind], p.display_time) for p in punches]


def render_report_pdf(punches: List[PunchEvent], date_label: str) -> bytes:
    buf = io.BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=A4, topMargin=36, bottomMargin=36, leftMargin=48, rightMargin=48)
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(name="TitleCentered", parent=styles["Title"], alignment=TA_CENTER)
    date_style = ParagraphStyle(name="DateCentered", parent=styles["Normal"], alignment=TA_CENTER, fontSize=14, leading=18)

    story = [Paragraph(REPORT_TITLE, title_style), Paragraph(f"Date: {date_label}", date_style), Spacer(1, 16)]
    rows = build_report_rows(punches)
    if not rows:
        story.append(Paragraph("No punches recorded today.", styles["Normal"]))
    else:
        table = Table([["Type", "Time"]] + [list(r) for r in rows], colWidths=[300, 120], repeatRows=1, hAlign="CENTER")
        table.setStyle(TableStyle([
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 12),
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#F5F5F7")),
            ("LINEBELOW", (0, 0), (-1, 0), 0.5, colors.black),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.whitesmoke]),
            ("ALIGN", (1, 0), (1, -1), "CENTER"),
        ]))
        story.append(table)

    def draw_footer(canvas, doc_obj):
        canvas.saveState()
        canvas.setFont("Helvetica", 10)
        canvas.setFillColor(colors.HexColor("#969696"))
        canvas.drawCentredString(doc_obj.pagesize[0] / 2, 20, REPORT_FOOTER)
        canvas.restoreState()

    try:
        doc.build(story, onFirstPage=draw_footer, onLaterPages=draw_footer)
    except Exception as e:
        logging.error(f"Report generation failed for {date_label}: {e}")
        raise ReportExportError(f"Could not generate report for {date_label}") from e
    return buf.getvalue()
