from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from nebula.database import get_db
from nebula.models.user import User
from nebula.routers.tickets import serialize_scan, serialize_ticket
from nebula.schemas.common import success_response
from nebula.schemas.ticket import MarkUsedRequest, RedeemResponse, ScanRequest
from nebula.services.auth import Capability, require_capability
from nebula.services.redemption import RedemptionService

router = APIRouter(prefix="/qr", tags=["qr"])


@router.post("/validate")
def validate_qr(
    payload: ScanRequest,
    user: User = Depends(require_capability(Capability.SCAN_TICKETS)),
    db: Session = Depends(get_db)
):
    result = RedemptionService.validate(db, payload.qr_data)
    return success_response(data=serialize_scan(result))


@router.post("/redeem")
def redeem_qr(
    payload: ScanRequest,
    user: User = Depends(require_capability(Capability.SCAN_TICKETS)),
    db: Session = Depends(get_db)
):
    result = RedemptionService.redeem_by_qr(db, payload.qr_data)
    return success_response(data=serialize_scan(result, RedeemResponse))


@router.post("/mark-used")
def mark_used(
    payload: MarkUsedRequest,
    user: User = Depends(require_capability(Capability.SCAN_TICKETS)),
    db: Session = Depends(get_db)
):
    ticket = RedemptionService.redeem(db, payload.ticket_id)
    return success_response(data=serialize_ticket(ticket), message="Ticket marked as used")
