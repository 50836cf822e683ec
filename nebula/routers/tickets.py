from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from nebula.database import get_db
from nebula.errors import NotFoundError
from nebula.models.ticket import Ticket, TicketStatus
from nebula.models.user import User
from nebula.schemas.common import success_response
from nebula.schemas.ticket import (
    ResendRequest, ScanRequest, ScanResponse, TicketCreate,
    TicketIssuedResponse, TicketResponse
)
from nebula.services.auth import Capability, require_capability
from nebula.services.email import get_notifier
from nebula.services.issuance import IssuanceService
from nebula.services.pdf import render_ticket_pdf
from nebula.services.qr import render_qr_png
from nebula.services.redemption import RedemptionService, ScanResult
from nebula.services.ticket_store import TicketStore

router = APIRouter(prefix="/tickets", tags=["tickets"])


def serialize_ticket(ticket: Ticket) -> dict:
    return TicketResponse.model_validate(ticket).model_dump(by_alias=True, mode="json")


def serialize_scan(result: ScanResult, model=ScanResponse) -> dict:
    fields = {
        "ticket": TicketResponse.model_validate(result.ticket) if result.ticket else None,
        "is_valid": result.is_valid,
        "reason": result.reason,
    }
    if "redeemed" in model.model_fields:
        fields["redeemed"] = result.redeemed
    return model(**fields).model_dump(by_alias=True, mode="json")


def get_ticket_or_404(db: Session, ticket_id: int) -> Ticket:
    ticket = TicketStore.get_ticket(db, ticket_id)
    if not ticket:
        raise NotFoundError("Ticket not found", code="TICKET_NOT_FOUND")
    return ticket


@router.get("")
def list_tickets(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[TicketStatus] = None,
    event_id: Optional[int] = Query(None, alias="eventId"),
    user: User = Depends(require_capability(Capability.VIEW_TICKETS)),
    db: Session = Depends(get_db)
):
    tickets, pagination = TicketStore.list_tickets(
        db, page=page, limit=limit, search=search, status=status, event_id=event_id
    )
    return success_response(
        data=[serialize_ticket(t) for t in tickets],
        meta={"pagination": pagination.model_dump(by_alias=True)}
    )


@router.post("/scan")
def scan_ticket(
    payload: ScanRequest,
    user: User = Depends(require_capability(Capability.SCAN_TICKETS)),
    db: Session = Depends(get_db)
):
    result = RedemptionService.validate(db, payload.qr_data)
    return success_response(data=serialize_scan(result))


@router.get("/{ticket_id}")
def get_ticket(
    ticket_id: int,
    user: User = Depends(require_capability(Capability.VIEW_TICKETS)),
    db: Session = Depends(get_db)
):
    return success_response(data=serialize_ticket(get_ticket_or_404(db, ticket_id)))


@router.post("", status_code=201)
async def create_ticket(
    payload: TicketCreate,
    user: User = Depends(require_capability(Capability.ISSUE_TICKETS)),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier)
):
    result = await IssuanceService.issue_ticket(db, payload, user, notifier)
    issued = TicketIssuedResponse.model_validate({
        **TicketResponse.model_validate(result.ticket).model_dump(),
        "email_sent": result.email_sent,
        "qr_image_url": f"/api/tickets/{result.ticket.id}/qr",
    })
    message = "Ticket created successfully"
    if not result.email_sent:
        message += ", but the email could not be sent"
    return success_response(data=issued.model_dump(by_alias=True, mode="json"), message=message)


@router.post("/{ticket_id}/resend")
async def resend_ticket(
    ticket_id: int,
    payload: ResendRequest,
    user: User = Depends(require_capability(Capability.ISSUE_TICKETS)),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier)
):
    ticket = await IssuanceService.resend_ticket(db, ticket_id, payload.email, notifier)
    return success_response(data=serialize_ticket(ticket), message="Ticket resent successfully")


@router.put("/{ticket_id}/mark-used")
def mark_ticket_used(
    ticket_id: int,
    user: User = Depends(require_capability(Capability.SCAN_TICKETS)),
    db: Session = Depends(get_db)
):
    ticket = RedemptionService.redeem(db, ticket_id)
    return success_response(data=serialize_ticket(ticket), message="Ticket marked as used")


@router.delete("/{ticket_id}")
def cancel_ticket(
    ticket_id: int,
    user: User = Depends(require_capability(Capability.CANCEL_TICKETS)),
    db: Session = Depends(get_db)
):
    ticket = RedemptionService.cancel(db, ticket_id)
    return success_response(data=serialize_ticket(ticket), message="Ticket cancelled successfully")


@router.get("/{ticket_id}/qr")
def ticket_qr_image(
    ticket_id: int,
    user: User = Depends(require_capability(Capability.VIEW_TICKETS)),
    db: Session = Depends(get_db)
):
    ticket = get_ticket_or_404(db, ticket_id)
    return Response(content=render_qr_png(ticket.qr_code), media_type="image/png")


@router.get("/{ticket_id}/pdf")
def ticket_pdf(
    ticket_id: int,
    user: User = Depends(require_capability(Capability.VIEW_TICKETS)),
    db: Session = Depends(get_db)
):
    ticket = get_ticket_or_404(db, ticket_id)
    return Response(
        content=render_ticket_pdf(ticket),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="ticket-{ticket.ticket_number}.pdf"'}
    )
