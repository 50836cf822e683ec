from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from nebula.database import get_db, utcnow
from nebula.models.ticket import Ticket, TicketStatus
from nebula.models.user import User
from nebula.routers.auth import serialize_user
from nebula.schemas.admin import DashboardStats
from nebula.schemas.common import Pagination, success_response
from nebula.schemas.ticket import TicketResponse
from nebula.schemas.user import UserCreate, UserUpdate
from nebula.services.auth import AuthService, Capability, require_capability

router = APIRouter(prefix="/admin", tags=["admin"])

RECENT_TICKETS = 10
REVENUE_STATUSES = (TicketStatus.ACTIVE, TicketStatus.USED)


def revenue_since(db: Session, since: datetime = None) -> float:
    query = db.query(func.sum(Ticket.price)).filter(Ticket.status.in_(REVENUE_STATUSES))
    if since is not None:
        query = query.filter(Ticket.created_at >= since)
    return float(query.scalar() or 0)


@router.get("/statistics")
def dashboard_statistics(
    admin: User = Depends(require_capability(Capability.MANAGE_USERS)),
    db: Session = Depends(get_db)
):
    now = utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    month_start = today.replace(day=1)

    counts = dict(
        db.query(Ticket.status, func.count(Ticket.id)).group_by(Ticket.status).all()
    )

    recent_tickets = db.query(Ticket).options(joinedload(Ticket.event)).order_by(
        Ticket.created_at.desc(), Ticket.id.desc()
    ).limit(RECENT_TICKETS).all()

    stats = DashboardStats(
        total_tickets=sum(counts.values()),
        active_tickets=counts.get(TicketStatus.ACTIVE, 0),
        used_tickets=counts.get(TicketStatus.USED, 0),
        cancelled_tickets=counts.get(TicketStatus.CANCELLED, 0),
        total_revenue=revenue_since(db),
        todays_sales=db.query(Ticket).filter(Ticket.created_at >= today).count(),
        monthly_revenue=revenue_since(db, month_start),
        recent_tickets=[TicketResponse.model_validate(t) for t in recent_tickets]
    )
    return success_response(data=stats.model_dump(by_alias=True, mode="json"))


@router.get("/users")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: User = Depends(require_capability(Capability.MANAGE_USERS)),
    db: Session = Depends(get_db)
):
    query = db.query(User)
    total = query.count()
    users = query.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * limit).limit(limit).all()

    return success_response(
        data=[serialize_user(u) for u in users],
        meta={"pagination": Pagination.build(page, limit, total).model_dump(by_alias=True)}
    )


@router.post("/users", status_code=201)
def create_user(
    payload: UserCreate,
    admin: User = Depends(require_capability(Capability.MANAGE_USERS)),
    db: Session = Depends(get_db)
):
    user = AuthService.create_user(db, payload)
    return success_response(data=serialize_user(user), message="User created successfully")


@router.put("/users/{user_id}")
def update_user(
    user_id: int,
    payload: UserUpdate,
    admin: User = Depends(require_capability(Capability.MANAGE_USERS)),
    db: Session = Depends(get_db)
):
    user = AuthService.update_user(db, user_id, payload, admin)
    return success_response(data=serialize_user(user), message="User updated successfully")


@router.delete("/users/{user_id}")
def delete_user(
    user_id: int,
    admin: User = Depends(require_capability(Capability.MANAGE_USERS)),
    db: Session = Depends(get_db)
):
    AuthService.deactivate_user(db, user_id, admin)
    return success_response(message="User deactivated successfully")
