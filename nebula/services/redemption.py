"""
Redemption state machine.

    active --redeem--> used
    active --cancel--> cancelled

`used` and `cancelled` are terminal. Validation is read-only; redemption and
cancellation go through the store's compare-and-swap, so of several
concurrent attempts on one ticket exactly one wins.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from nebula.database import utcnow
from nebula.errors import (
    NotFoundError, TicketNotActiveError, TicketAlreadyUsedError, TicketAlreadyCancelledError
)
from nebula.models.ticket import Ticket, TicketStatus
from nebula.services.identity import is_valid_qr_format
from nebula.services.ticket_store import TicketStore

logger = logging.getLogger(__name__)

INVALID_QR_REASON = "Invalid QR code"


@dataclass
class ScanResult:
    ticket: Optional[Ticket]
    is_valid: bool
    reason: str
    redeemed: bool = False


def format_timestamp(value) -> str:
    return f"{value:%Y-%m-%d %H:%M:%S} UTC"


def describe_status(ticket: Ticket) -> Tuple[bool, str]:
    """Whether the ticket admits entry, and the reason shown to door staff."""
    if ticket.status == TicketStatus.ACTIVE:
        return True, "Ticket is valid"
    if ticket.status == TicketStatus.USED:
        return False, f"Ticket already used at {format_timestamp(ticket.used_at)}"
    if ticket.status == TicketStatus.CANCELLED:
        return False, "Ticket has been cancelled"
    return False, "Unknown ticket status"


def _ticket_not_found() -> NotFoundError:
    return NotFoundError("Ticket not found", code="TICKET_NOT_FOUND")


class RedemptionService:
    @staticmethod
    def validate(db: Session, qr_code: str) -> ScanResult:
        """Look up a scanned code without changing anything."""
        if not is_valid_qr_format(qr_code):
            return ScanResult(ticket=None, is_valid=False, reason=INVALID_QR_REASON)

        ticket = TicketStore.find_by_qr_code(db, qr_code)
        if not ticket:
            return ScanResult(ticket=None, is_valid=False, reason=INVALID_QR_REASON)

        is_valid, reason = describe_status(ticket)
        return ScanResult(ticket=ticket, is_valid=is_valid, reason=reason)

    @staticmethod
    def redeem(db: Session, ticket_id: int) -> Ticket:
        if TicketStore.transition_status(db, ticket_id, TicketStatus.ACTIVE, TicketStatus.USED, utcnow()):
            ticket = TicketStore.get_ticket(db, ticket_id)
            logger.info(f"Ticket {ticket.ticket_number} redeemed")
            return ticket

        ticket = TicketStore.get_ticket(db, ticket_id)
        if not ticket:
            raise _ticket_not_found()

        _, reason = describe_status(ticket)
        logger.info(f"Redemption of ticket {ticket.ticket_number} rejected: {reason}")
        raise TicketNotActiveError(f"Ticket is not active: {reason}")

    @staticmethod
    def redeem_by_qr(db: Session, qr_code: str) -> ScanResult:
        """
        Scan-and-redeem. Unknown, used and cancelled tickets are normal scan
        outcomes and come back as a non-redeemed result, never as errors.
        """
        result = RedemptionService.validate(db, qr_code)
        if not result.is_valid:
            return result

        ticket = result.ticket
        won = TicketStore.transition_status(db, ticket.id, TicketStatus.ACTIVE, TicketStatus.USED, utcnow())
        db.refresh(ticket)

        if won:
            logger.info(f"Ticket {ticket.ticket_number} redeemed by scan")
            return ScanResult(ticket=ticket, is_valid=True, reason="Ticket redeemed", redeemed=True)

        # lost the race to another scanner
        _, reason = describe_status(ticket)
        logger.info(f"Scan of ticket {ticket.ticket_number} lost redemption race: {reason}")
        return ScanResult(ticket=ticket, is_valid=False, reason=reason)

    @staticmethod
    def cancel(db: Session, ticket_id: int) -> Ticket:
        if TicketStore.transition_status(db, ticket_id, TicketStatus.ACTIVE, TicketStatus.CANCELLED):
            ticket = TicketStore.get_ticket(db, ticket_id)
            logger.info(f"Ticket {ticket.ticket_number} cancelled")
            return ticket

        ticket = TicketStore.get_ticket(db, ticket_id)
        if not ticket:
            raise _ticket_not_found()
        if ticket.status == TicketStatus.USED:
            raise TicketAlreadyUsedError("Cannot cancel a ticket that has already been used")
        if ticket.status == TicketStatus.CANCELLED:
            raise TicketAlreadyCancelledError("Ticket is already cancelled")
        raise TicketNotActiveError("Ticket is not active")
