from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime, timezone
from typing import Optional

from nebula.models.ticket import TicketStatus
from nebula.schemas.common import CamelModel


class TicketCreate(CamelModel):
    event_name: str = Field(min_length=3, max_length=255)
    event_date: datetime
    event_location: str = Field(min_length=3, max_length=255)
    price: float = Field(allow_inf_nan=False)
    buyer_name: str = Field(min_length=2, max_length=255)
    buyer_email: EmailStr
    buyer_phone: Optional[str] = Field(default=None, min_length=10, max_length=20)

    @field_validator("event_date")
    @classmethod
    def to_naive_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    @field_validator("buyer_email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("buyer_phone", mode="before")
    @classmethod
    def blank_phone_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ResendRequest(CamelModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()


class ScanRequest(CamelModel):
    qr_data: str = Field(min_length=1, max_length=128)


class MarkUsedRequest(CamelModel):
    ticket_id: int


class EventInfo(BaseModel):
    id: int
    name: str
    location: str
    event_date: datetime
    base_price: float

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class TicketResponse(BaseModel):
    id: int
    ticket_number: str
    event_id: int
    buyer_name: str
    buyer_email: str
    buyer_phone: Optional[str]
    price: float
    qr_code: str
    status: TicketStatus
    used_at: Optional[datetime]
    created_by: int
    created_at: datetime
    updated_at: datetime
    event: Optional[EventInfo] = None

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class TicketIssuedResponse(TicketResponse):
    email_sent: bool
    qr_image_url: str


class ScanResponse(BaseModel):
    ticket: Optional[TicketResponse]
    is_valid: bool
    reason: str

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class RedeemResponse(ScanResponse):
    redeemed: bool
