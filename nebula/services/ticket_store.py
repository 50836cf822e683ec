"""
Persistence for events and tickets.

All status changes go through `transition_status`, a single conditional
UPDATE checked by affected-row count. Nothing here reads a status and then
writes it back.
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, contains_eager, joinedload

from nebula.database import utcnow
from nebula.errors import DuplicateEntryError, InvalidReferenceError
from nebula.models.event import Event
from nebula.models.ticket import Ticket, TicketStatus, ALLOWED_TRANSITIONS
from nebula.models.user import User
from nebula.schemas.common import Pagination

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def escape_like(value: str) -> str:
    """Make LIKE wildcards in user input match literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class TicketStore:
    @staticmethod
    def find_event(db: Session, name: str, location: str, event_date: datetime) -> Optional[Event]:
        return db.query(Event).filter(
            Event.name == name,
            Event.location == location,
            Event.event_date == event_date
        ).first()

    @staticmethod
    def create_event(
        db: Session,
        name: str,
        location: str,
        event_date: datetime,
        base_price: float,
        creator_id: int
    ) -> Event:
        """
        Return the event matching (name, location, event_date) exactly,
        creating it if there is none. When a concurrent request inserts the
        same event first, its row is returned instead.
        """
        existing = TicketStore.find_event(db, name, location, event_date)
        if existing:
            return existing

        event = Event(
            name=name,
            location=location,
            event_date=event_date,
            base_price=base_price,
            created_by=creator_id
        )
        db.add(event)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            existing = TicketStore.find_event(db, name, location, event_date)
            if existing is None:
                if db.query(User).filter(User.id == creator_id).first() is None:
                    raise InvalidReferenceError(f"User {creator_id} does not exist") from exc
                raise
            logger.info(f"Event '{name}' was created concurrently, reusing id {existing.id}")
            return existing

        db.refresh(event)
        logger.info(f"Created event {event.id}: '{name}' at '{location}' on {event_date}")
        return event

    @staticmethod
    def create_ticket(
        db: Session,
        event_id: int,
        buyer_name: str,
        buyer_email: str,
        buyer_phone: Optional[str],
        price: float,
        ticket_number: str,
        qr_code: str,
        creator_id: int
    ) -> Ticket:
        event = db.query(Event).filter(Event.id == event_id).first()
        if not event:
            raise InvalidReferenceError(f"Event {event_id} does not exist")

        ticket = Ticket(
            ticket_number=ticket_number,
            event_id=event_id,
            buyer_name=buyer_name,
            buyer_email=buyer_email,
            buyer_phone=buyer_phone,
            price=price,
            qr_code=qr_code,
            status=TicketStatus.ACTIVE,
            created_by=creator_id
        )
        db.add(ticket)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.warning(f"Rejected ticket {ticket_number}: {exc.orig}")
            raise DuplicateEntryError("A ticket with this number or QR code already exists") from exc

        db.refresh(ticket)
        return ticket

    @staticmethod
    def get_ticket(db: Session, ticket_id: int) -> Optional[Ticket]:
        return db.query(Ticket).options(joinedload(Ticket.event)).filter(
            Ticket.id == ticket_id
        ).first()

    @staticmethod
    def find_by_qr_code(db: Session, qr_code: str) -> Optional[Ticket]:
        return db.query(Ticket).options(joinedload(Ticket.event)).filter(
            Ticket.qr_code == qr_code
        ).first()

    @staticmethod
    def transition_status(
        db: Session,
        ticket_id: int,
        expected: TicketStatus,
        new_status: TicketStatus,
        used_at: Optional[datetime] = None
    ) -> bool:
        """
        Compare-and-swap the ticket status.

        Returns False, without raising, when the stored status was not
        `expected` at the time of the update.
        """
        if (expected, new_status) not in ALLOWED_TRANSITIONS:
            raise ValueError(f"Illegal ticket transition {expected.value} -> {new_status.value}")

        if new_status == TicketStatus.USED:
            used_at = used_at or utcnow()
        else:
            used_at = None

        updated = db.query(Ticket).filter(
            Ticket.id == ticket_id,
            Ticket.status == expected
        ).update(
            {
                Ticket.status: new_status,
                Ticket.used_at: used_at,
                Ticket.updated_at: utcnow()
            },
            synchronize_session=False
        )
        db.commit()
        return updated == 1

    @staticmethod
    def update_buyer_email(db: Session, ticket_id: int, email: str) -> bool:
        updated = db.query(Ticket).filter(Ticket.id == ticket_id).update(
            {Ticket.buyer_email: email, Ticket.updated_at: utcnow()},
            synchronize_session=False
        )
        db.commit()
        return updated == 1

    @staticmethod
    def list_tickets(
        db: Session,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[TicketStatus] = None,
        event_id: Optional[int] = None
    ) -> Tuple[List[Ticket], Pagination]:
        page = max(1, page)
        limit = max(1, min(MAX_PAGE_SIZE, limit))

        query = db.query(Ticket).join(Event, Ticket.event_id == Event.id).options(
            contains_eager(Ticket.event)
        )

        if search and search.strip():
            pattern = f"%{escape_like(search.strip())}%"
            query = query.filter(or_(
                Ticket.ticket_number.ilike(pattern, escape="\\"),
                Ticket.buyer_name.ilike(pattern, escape="\\"),
                Ticket.buyer_email.ilike(pattern, escape="\\"),
                Event.name.ilike(pattern, escape="\\")
            ))
        if status:
            query = query.filter(Ticket.status == status)
        if event_id is not None:
            query = query.filter(Ticket.event_id == event_id)

        total = query.count()
        tickets = query.order_by(
            Ticket.created_at.desc(), Ticket.id.desc()
        ).offset((page - 1) * limit).limit(limit).all()

        return tickets, Pagination.build(page, limit, total)
