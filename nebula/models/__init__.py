from nebula.models.user import User, UserRole
from nebula.models.refresh_token import RefreshToken
from nebula.models.event import Event
from nebula.models.ticket import Ticket, TicketStatus, ALLOWED_TRANSITIONS

__all__ = ["User", "UserRole", "RefreshToken", "Event", "Ticket", "TicketStatus", "ALLOWED_TRANSITIONS"]
