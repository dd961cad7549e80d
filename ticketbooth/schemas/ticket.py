from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime
from typing import Optional

from ticketbooth.models.ticket import TicketStatus
from ticketbooth.models.payment import PaymentStatus

TICKET_CODE_PATTERN = r"^TKT-[A-F0-9]{12}$"
PHONE_PATTERN = r"^[+]?[\d\s-]{10,}$"


class TicketPurchase(BaseModel):
    email: EmailStr
    name: str = Field(min_length=2, max_length=100)
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    email_consent: bool
    ticket_type_id: int
    attendee_name: str = Field(min_length=2, max_length=100)
    expiry_days: Optional[int] = Field(default=None, ge=1, le=365)

    @field_validator("phone", mode="before")
    @classmethod
    def blank_phone_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class BuyerResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str]

    class Config:
        from_attributes = True


class TicketTypeInfo(BaseModel):
    id: int
    name: str
    unit_price: int

    class Config:
        from_attributes = True


class PaymentInfo(BaseModel):
    id: int
    provider: str
    amount: int
    status: PaymentStatus
    paid_at: Optional[datetime]

    class Config:
        from_attributes = True


class TicketResponse(BaseModel):
    id: int
    ticket_code: str
    status: TicketStatus
    attendee_name: str
    expiry_date: Optional[datetime]
    checked_in_at: Optional[datetime]
    is_expired: bool
    buyer_id: int
    ticket_type_id: int
    created_at: Optional[datetime] = None
    ticket_type: Optional[TicketTypeInfo] = None

    class Config:
        from_attributes = True


class TicketDetailResponse(TicketResponse):
    buyer: Optional[BuyerResponse] = None
    payment: Optional[PaymentInfo] = None
