from pydantic import BaseModel, EmailStr
from datetime import datetime
from typing import Optional

from ticketbooth.models.payment import PaymentStatus


class CustomerDetails(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None


class CreateTransactionRequest(BaseModel):
    ticket_id: int
    customer_details: Optional[CustomerDetails] = None


class TransactionResponse(BaseModel):
    token: str
    redirect_url: str
    order_id: str
    ticket_id: int


class PaymentResponse(BaseModel):
    id: int
    ticket_id: int
    provider: str
    amount: int
    status: PaymentStatus
    order_id: Optional[str]
    transaction_id: Optional[str]
    payment_type: Optional[str]
    paid_at: Optional[datetime]
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
