from ticketbooth.schemas.common import success_response
from ticketbooth.schemas.auth import AdminLogin, AdminCreate, AdminResponse, TokenData
from ticketbooth.schemas.ticket_type import (
    TicketTypeCreate, TicketTypeUpdate, TicketTypeResponse
)
from ticketbooth.schemas.ticket import (
    TicketPurchase, TicketResponse, TicketDetailResponse, BuyerResponse, TICKET_CODE_PATTERN
)
from ticketbooth.schemas.payment import (
    CreateTransactionRequest, CustomerDetails, PaymentResponse, TransactionResponse
)

__all__ = [
    "success_response",
    "AdminLogin", "AdminCreate", "AdminResponse", "TokenData",
    "TicketTypeCreate", "TicketTypeUpdate", "TicketTypeResponse",
    "TicketPurchase", "TicketResponse", "TicketDetailResponse", "BuyerResponse", "TICKET_CODE_PATTERN",
    "CreateTransactionRequest", "CustomerDetails", "PaymentResponse", "TransactionResponse"
]
