"""
Ticket issuance: validate, resolve the event, mint identity, persist, notify.

Delivery is best effort. A ticket whose email could not be sent is still
issued and reported with `email_sent=False`.
"""
import logging
import math
from dataclasses import dataclass

from sqlalchemy.orm import Session

from nebula.config import get_settings
from nebula.database import utcnow
from nebula.errors import DependencyFailureError, NotFoundError, ValidationError
from nebula.models.ticket import Ticket
from nebula.models.user import User
from nebula.schemas.ticket import TicketCreate
from nebula.services.identity import generate_qr_code, generate_ticket_number
from nebula.services.ticket_store import TicketStore

settings = get_settings()
logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("event_name", "event_location", "buyer_name", "buyer_email")


@dataclass
class IssuanceResult:
    ticket: Ticket
    email_sent: bool


class IssuanceService:
    @staticmethod
    def validate_request(request: TicketCreate) -> None:
        missing = [
            field for field in REQUIRED_FIELDS
            if not str(getattr(request, field) or "").strip()
        ]
        if missing or request.event_date is None or request.price is None:
            raise ValidationError("Missing required fields", code="MISSING_FIELDS", details=missing or None)

        if not math.isfinite(request.price) or not 0 < request.price <= settings.max_ticket_price:
            raise ValidationError(
                f"Price must be greater than 0 and at most {settings.max_ticket_price:.2f}",
                code="INVALID_PRICE"
            )

        if request.event_date <= utcnow():
            raise ValidationError("Event date must be in the future", code="INVALID_DATE")

    @staticmethod
    async def issue_ticket(db: Session, request: TicketCreate, creator: User, notifier) -> IssuanceResult:
        IssuanceService.validate_request(request)

        event = TicketStore.create_event(
            db,
            name=request.event_name,
            location=request.event_location,
            event_date=request.event_date,
            base_price=request.price,
            creator_id=creator.id
        )

        ticket = TicketStore.create_ticket(
            db,
            event_id=event.id,
            buyer_name=request.buyer_name,
            buyer_email=request.buyer_email,
            buyer_phone=request.buyer_phone,
            price=request.price,
            ticket_number=generate_ticket_number(),
            qr_code=generate_qr_code(),
            creator_id=creator.id
        )
        ticket = TicketStore.get_ticket(db, ticket.id)
        logger.info(f"Issued ticket {ticket.ticket_number} for event {event.id} by user {creator.id}")

        email_sent = await IssuanceService._notify(notifier, ticket)
        return IssuanceResult(ticket=ticket, email_sent=email_sent)

    @staticmethod
    async def _notify(notifier, ticket: Ticket) -> bool:
        try:
            sent = await notifier.send_ticket_email(ticket)
        except Exception as e:
            logger.warning(f"Ticket {ticket.ticket_number} issued but email failed: {e}")
            return False

        if not sent:
            logger.warning(f"Ticket {ticket.ticket_number} issued but email was not delivered")
            return False
        return True

    @staticmethod
    async def resend_ticket(db: Session, ticket_id: int, email: str, notifier) -> Ticket:
        ticket = TicketStore.get_ticket(db, ticket_id)
        if not ticket:
            raise NotFoundError("Ticket not found", code="TICKET_NOT_FOUND")

        if email and email != ticket.buyer_email:
            logger.info(f"Updating buyer email of ticket {ticket.ticket_number}")
            TicketStore.update_buyer_email(db, ticket.id, email)
            ticket = TicketStore.get_ticket(db, ticket_id)

        try:
            sent = await notifier.send_ticket_email(ticket)
        except Exception as e:
            logger.error(f"Resend of ticket {ticket.ticket_number} failed: {e}")
            sent = False

        if not sent:
            raise DependencyFailureError("Failed to send ticket email", code="EMAIL_ERROR")

        logger.info(f"Resent ticket {ticket.ticket_number} to {ticket.buyer_email}")
        return ticket
