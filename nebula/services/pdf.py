from io import BytesIO
from typing import List

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from nebula.models.ticket import Ticket
from nebula.services.qr import render_qr_png
from nebula.templates_config import format_datetime, format_price

PRIMARY = HexColor("#667eea")
HEADING = HexColor("#1f2937")
MUTED = HexColor("#6b7280")


def _wrap(c: canvas.Canvas, text: str, font: str, size: int, max_width: float) -> List[str]:
    words = text.split()
    if not words:
        return [""]
    lines = []
    current = words[0]
    for word in words[1:]:
        candidate = f"{current} {word}"
        if c.stringWidth(candidate, font, size) < max_width:
            current = candidate
        else:
            lines.append(current)
            current = word
    lines.append(current)
    return lines


def render_ticket_pdf(ticket: Ticket) -> bytes:
    """Printable A4 ticket with the event details and the QR code."""
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4
    event = ticket.event

    c.setFillColor(PRIMARY)
    c.setFont("Helvetica-Bold", 24)
    c.drawString(20 * mm, height - 25 * mm, "ELECTRONIC TICKET")
    c.setFillColor(HEADING)
    c.setFont("Helvetica", 14)
    c.drawString(20 * mm, height - 33 * mm, "Nebula Tickets")

    c.setStrokeColor(PRIMARY)
    c.setLineWidth(1.5)
    c.line(20 * mm, height - 38 * mm, width - 20 * mm, height - 38 * mm)

    y = height - 52 * mm
    c.setFont("Helvetica-Bold", 20)
    for line in _wrap(c, event.name, "Helvetica-Bold", 20, width - 40 * mm):
        c.drawString(20 * mm, y, line)
        y -= 9 * mm

    details = [
        ("TICKET NUMBER", ticket.ticket_number),
        ("EVENT DATE", format_datetime(event.event_date)),
        ("LOCATION", event.location),
        ("BUYER", ticket.buyer_name),
        ("EMAIL", ticket.buyer_email),
        ("PRICE", format_price(ticket.price)),
    ]
    y -= 4 * mm
    for label, value in details:
        c.setFont("Helvetica", 10)
        c.setFillColor(MUTED)
        c.drawString(20 * mm, y, label)
        c.setFont("Helvetica-Bold", 12)
        c.setFillColor(HEADING)
        c.drawString(65 * mm, y, value)
        y -= 8 * mm

    qr_size = 60 * mm
    qr_image = ImageReader(BytesIO(render_qr_png(ticket.qr_code)))
    c.drawImage(qr_image, (width - qr_size) / 2, y - qr_size - 10 * mm, qr_size, qr_size)

    c.setFont("Helvetica", 9)
    c.setFillColor(MUTED)
    c.drawCentredString(width / 2, y - qr_size - 16 * mm, ticket.qr_code)
    c.drawCentredString(width / 2, 20 * mm, "Present this QR code at the entrance. The ticket admits one person once.")

    c.showPage()
    c.save()
    return buffer.getvalue()
