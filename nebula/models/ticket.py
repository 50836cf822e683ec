from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum, CheckConstraint
from sqlalchemy.orm import relationship, validates
from nebula.database import Base, utcnow
import enum


class TicketStatus(str, enum.Enum):
    ACTIVE = "active"
    USED = "used"
    CANCELLED = "cancelled"


class Ticket(Base):
    __tablename__ = "tickets"
    __table_args__ = (
        CheckConstraint(
            "(status = 'used' AND used_at IS NOT NULL) OR (status != 'used' AND used_at IS NULL)",
            name="ck_tickets_used_at_matches_status"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    ticket_number = Column(String(32), unique=True, nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    buyer_name = Column(String(255), nullable=False)
    buyer_email = Column(String(255), nullable=False)
    buyer_phone = Column(String(20), nullable=True)
    price = Column(Float, nullable=False)
    qr_code = Column(String(64), unique=True, nullable=False, index=True)
    status = Column(
        Enum(TicketStatus, name="ticket_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=TicketStatus.ACTIVE,
        index=True
    )
    used_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    event = relationship("Event", back_populates="tickets")
    creator = relationship("User")

    @validates("qr_code")
    def validate_qr_code(self, key, value):
        if self.qr_code is not None and value != self.qr_code:
            raise ValueError("qr_code is immutable once issued")
        return value


# every legal status change; used and cancelled are terminal
ALLOWED_TRANSITIONS = frozenset({
    (TicketStatus.ACTIVE, TicketStatus.USED),
    (TicketStatus.ACTIVE, TicketStatus.CANCELLED),
})
