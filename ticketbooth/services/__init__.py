from ticketbooth.services.auth import AuthService
from ticketbooth.services.inventory import InventoryService
from ticketbooth.services.tickets import TicketService
from ticketbooth.services.purchase import PurchaseService
from ticketbooth.services.payment import PaymentService
from ticketbooth.services.checkin import CheckInService
from ticketbooth.services.email import EmailService

__all__ = [
    "AuthService", "InventoryService", "TicketService", "PurchaseService",
    "PaymentService", "CheckInService", "EmailService"
]
