from ticketbooth.models.admin import Admin
from ticketbooth.models.buyer import Buyer
from ticketbooth.models.ticket_type import TicketType
from ticketbooth.models.ticket import Ticket, TicketStatus
from ticketbooth.models.payment import Payment, PaymentStatus

__all__ = ["Admin", "Buyer", "TicketType", "Ticket", "TicketStatus", "Payment", "PaymentStatus"]
