import qrcode
from io import BytesIO
from datetime import datetime
from typing import Optional
from xml.sax.saxutils import escape

import pytz
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib import colors
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Image, Table, TableStyle
from PIL import Image as PILImage

from ..config import settings
from ..schemas.od import OnDutyRequest


def generate_qr_code_image(data: str, size: int = 200) -> BytesIO:
    """Generate QR code image as BytesIO"""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    img = img.resize((size, size), PILImage.Resampling.LANCZOS)

    buffer = BytesIO()
    img.save(buffer, format='PNG')
    buffer.seek(0)
    return buffer


def to_campus_time(value: Optional[datetime], tz_name: Optional[str] = None) -> Optional[datetime]:
    """Stored timestamps are UTC (naive from SQLite); render them in the campus timezone."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    return value.astimezone(pytz.timezone(tz_name or settings.tz_default))


def _fmt_decided(value: Optional[datetime]) -> str:
    local = to_campus_time(value)
    return local.strftime("%d %b %Y, %I:%M %p %Z") if local else "-"


def create_approval_letter_pdf(
    od: OnDutyRequest,
    department_approver: str,
    institution_approver: str,
    verify_url: Optional[str] = None,
) -> BytesIO:
    """
    Create the OD approval letter for an approved request.

    Args:
        od: The approved request
        department_approver: Display name of the department gate approver
        institution_approver: Display name of the institution gate approver
        verify_url: Encoded in the QR code; defaults to the request id

    Returns:
        BytesIO buffer with PDF content
    """
    if od.final_status != "approved":
        raise ValueError("Approval letters are only issued for approved requests")

    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, rightMargin=60, leftMargin=60, topMargin=60, bottomMargin=60)
    story = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'LetterTitle',
        parent=styles['Heading1'],
        fontSize=20,
        textColor=colors.HexColor('#1f3b73'),
        spaceAfter=6,
        alignment=1,  # Center
        fontName='Helvetica-Bold',
    )
    subtitle_style = ParagraphStyle(
        'LetterSubtitle',
        parent=styles['Normal'],
        fontSize=12,
        textColor=colors.HexColor('#333333'),
        spaceAfter=18,
        alignment=1,
    )
    body_style = ParagraphStyle(
        'LetterBody',
        parent=styles['Normal'],
        fontSize=11,
        leading=16,
        textColor=colors.HexColor('#222222'),
        spaceAfter=10,
    )

    story.append(Paragraph(escape(settings.institution_name), title_style))
    story.append(Paragraph("ON-DUTY APPROVAL LETTER", subtitle_style))

    start, end = od.date_range.start, od.date_range.end
    period = start.strftime("%d %b %Y") if start == end else f"{start.strftime('%d %b %Y')} to {end.strftime('%d %b %Y')}"
    if od.time_range:
        period += f" ({od.time_range.start.strftime('%H:%M')} - {od.time_range.end.strftime('%H:%M')})"
    days_label = "day" if od.total_days == 1 else "days"

    story.append(Paragraph(
        f"This is to certify that <b>{escape(od.applicant.name)}</b> ({escape(od.applicant.institution_id)}) "
        f"has been granted on-duty leave for <b>{od.total_days} {days_label}</b>, {period}.",
        body_style,
    ))
    story.append(Paragraph(f"<b>Reason:</b> {escape(od.reason)}", body_style))

    # Participants
    students = [["#", "Name", "Institution ID"], ["1", od.applicant.name, od.applicant.institution_id]]
    for i, p in enumerate(od.participants, start=2):
        students.append([str(i), p.name, p.institution_id])
    student_table = Table(students, colWidths=[0.5 * inch, 3.5 * inch, 2 * inch])
    student_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#e8edf7')),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#b0b8c8')),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
    ]))
    story.append(Spacer(1, 0.15 * inch))
    story.append(student_table)
    story.append(Spacer(1, 0.3 * inch))

    approvals = [
        ["Gate", "Approved by", "Decided at"],
        ["Department", department_approver, _fmt_decided(od.department_gate.decided_at)],
        ["Institution", institution_approver, _fmt_decided(od.institution_gate.decided_at)],
    ]
    approval_table = Table(approvals, colWidths=[1.3 * inch, 2.5 * inch, 2.2 * inch])
    approval_table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('LINEBELOW', (0, 0), (-1, 0), 0.75, colors.HexColor('#1f3b73')),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
    ]))
    story.append(approval_table)
    story.append(Spacer(1, 0.4 * inch))

    qr_buffer = generate_qr_code_image(verify_url or str(od.id), size=150)
    qr_table = Table(
        [[Image(qr_buffer, width=1.3 * inch, height=1.3 * inch)],
         [Paragraph(f"Request #: {od.id}", ParagraphStyle('RefNumber', parent=body_style, fontSize=8,
                                                          textColor=colors.HexColor('#666666'), alignment=1))]],
        colWidths=[3 * inch],
    )
    qr_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
    ]))
    story.append(qr_table)

    doc.build(story)
    buffer.seek(0)
    return buffer
