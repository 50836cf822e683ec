from nebula.services.auth import AuthService, Capability, ROLE_CAPABILITIES, has_capability
from nebula.services.email import EmailService, get_notifier
from nebula.services.issuance import IssuanceService, IssuanceResult
from nebula.services.redemption import RedemptionService, ScanResult
from nebula.services.ticket_store import TicketStore

__all__ = [
    "AuthService",
    "Capability",
    "ROLE_CAPABILITIES",
    "has_capability",
    "EmailService",
    "get_notifier",
    "IssuanceService",
    "IssuanceResult",
    "RedemptionService",
    "ScanResult",
    "TicketStore",
]
