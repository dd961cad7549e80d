import logging
from sqlalchemy.orm import Session

from ticketbooth.errors import TransitionConflict, UnprocessableError
from ticketbooth.models.ticket import Ticket, TicketStatus
from ticketbooth.services.tickets import TicketService

logger = logging.getLogger(__name__)


def _status_error(status: TicketStatus) -> UnprocessableError:
    if status == TicketStatus.USED:
        return UnprocessableError("Ticket already used", "TICKET_ALREADY_USED")
    if status == TicketStatus.CANCELLED:
        return UnprocessableError("Ticket has been cancelled", "TICKET_CANCELLED")
    return UnprocessableError("Ticket must be paid before check-in", "TICKET_NOT_PAID")


class CheckInService:
    @staticmethod
    def check_in(db: Session, ticket_id: int) -> Ticket:
        """
        Redeem a PAID, unexpired ticket.

        Guards run in order: exists, not expired, not used, not cancelled,
        paid. The final write is a compare-and-swap from PAID, so of two
        simultaneous scans only one wins and the other sees "already used".
        """
        ticket = TicketService.get_ticket(db, ticket_id)

        if ticket.is_expired:
            raise UnprocessableError("Ticket has expired", "TICKET_EXPIRED")
        if ticket.status != TicketStatus.PAID:
            raise _status_error(ticket.status)

        try:
            TicketService.transition(db, ticket_id, {TicketStatus.PAID}, TicketStatus.USED)
        except TransitionConflict as e:
            db.rollback()
            raise _status_error(e.current_status) from e
        db.commit()

        ticket = TicketService.get_ticket(db, ticket_id)
        logger.info("Ticket %s checked in at %s", ticket.ticket_code, ticket.checked_in_at)
        return ticket
