from nebula.schemas.common import Pagination, success_response
from nebula.schemas.user import (
    LoginRequest, RefreshRequest, LogoutRequest, ChangePasswordRequest,
    UserCreate, UserUpdate, UserResponse
)
from nebula.schemas.ticket import (
    TicketCreate, ResendRequest, ScanRequest, MarkUsedRequest,
    TicketResponse, TicketIssuedResponse, ScanResponse, RedeemResponse
)
from nebula.schemas.admin import DashboardStats

__all__ = [
    "Pagination", "success_response",
    "LoginRequest", "RefreshRequest", "LogoutRequest", "ChangePasswordRequest",
    "UserCreate", "UserUpdate", "UserResponse",
    "TicketCreate", "ResendRequest", "ScanRequest", "MarkUsedRequest",
    "TicketResponse", "TicketIssuedResponse", "ScanResponse", "RedeemResponse",
    "DashboardStats"
]
