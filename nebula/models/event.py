from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from nebula.database import Base, utcnow


class Event(Base):
    __tablename__ = "events"
    # issuance reuses an event only on an exact match of all three fields
    __table_args__ = (
        UniqueConstraint("name", "location", "event_date", name="uq_events_name_location_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    location = Column(String(255), nullable=False)
    event_date = Column(DateTime, nullable=False)
    base_price = Column(Float, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    creator = relationship("User")
    tickets = relationship("Ticket", back_populates="event")
