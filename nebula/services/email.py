import aiosmtplib
from email.mime.application import MIMEApplication
from email.mime.image import MIMEImage
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Dict, List, Optional, Tuple
import logging

from nebula.config import get_settings
from nebula.models.ticket import Ticket
from nebula.services.pdf import render_ticket_pdf
from nebula.services.qr import render_qr_png
from nebula.templates_config import render_template

settings = get_settings()
logger = logging.getLogger(__name__)

QR_CONTENT_ID = "ticket-qr"


class EmailService:
    @staticmethod
    async def send_email(
        to_email: str,
        subject: str,
        html_content: str,
        attachments: Optional[List[Tuple[str, bytes]]] = None,
        inline_images: Optional[Dict[str, bytes]] = None
    ) -> bool:
        """Send an email using SMTP. PDF attachments, PNG inline images."""
        if not settings.smtp_user or not settings.smtp_password:
            logger.warning("SMTP not configured, skipping email send")
            return False

        message = MIMEMultipart("mixed")
        message["From"] = formataddr((settings.from_name, settings.from_email or settings.smtp_user))
        message["To"] = to_email
        message["Subject"] = subject

        body = MIMEMultipart("related")
        body.attach(MIMEText(html_content, "html"))
        for content_id, png in (inline_images or {}).items():
            image = MIMEImage(png, "png")
            image.add_header("Content-ID", f"<{content_id}>")
            image.add_header("Content-Disposition", "inline", filename=f"{content_id}.png")
            body.attach(image)
        message.attach(body)

        for filename, content in attachments or []:
            part = MIMEApplication(content, "pdf")
            part.add_header("Content-Disposition", "attachment", filename=filename)
            message.attach(part)

        try:
            await aiosmtplib.send(
                message,
                hostname=settings.smtp_host,
                port=settings.smtp_port,
                username=settings.smtp_user,
                password=settings.smtp_password,
                start_tls=settings.smtp_use_tls
            )
            return True
        except Exception as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            return False

    @staticmethod
    async def send_ticket_email(ticket: Ticket) -> bool:
        """Email the buyer their ticket with the QR code inline and a PDF copy."""
        event = ticket.event
        html_content = render_template(
            "email/ticket.html",
            ticket=ticket,
            event=event,
            qr_cid=QR_CONTENT_ID
        )

        return await EmailService.send_email(
            ticket.buyer_email,
            f"Your ticket for {event.name} - {ticket.ticket_number}",
            html_content,
            attachments=[(f"ticket-{ticket.ticket_number}.pdf", render_ticket_pdf(ticket))],
            inline_images={QR_CONTENT_ID: render_qr_png(ticket.qr_code)}
        )


def get_notifier():
    """Notification collaborator used by issuance and resend."""
    return EmailService
