import logging
import secrets
from typing import Iterable, Optional
from sqlalchemy import select, update
from sqlalchemy.orm import Session, joinedload

from ticketbooth.errors import NotFoundError, TransitionConflict
from ticketbooth.helpers import utcnow
from ticketbooth.models.ticket import Ticket, TicketStatus

logger = logging.getLogger(__name__)

TICKET_CODE_PREFIX = "TKT-"


class TicketService:
    @staticmethod
    def generate_ticket_code() -> str:
        """Return a code like ``TKT-9F3A01BC44D2`` drawn from 6 random bytes."""
        return f"{TICKET_CODE_PREFIX}{secrets.token_hex(6).upper()}"

    @staticmethod
    def _with_relations(db: Session):
        return db.query(Ticket).options(
            joinedload(Ticket.buyer),
            joinedload(Ticket.ticket_type),
            joinedload(Ticket.payment)
        )

    @staticmethod
    def get_all_tickets(db: Session) -> list[Ticket]:
        return TicketService._with_relations(db).order_by(Ticket.created_at.desc(), Ticket.id.desc()).all()

    @staticmethod
    def find_ticket(db: Session, ticket_id: int) -> Optional[Ticket]:
        return TicketService._with_relations(db).filter(Ticket.id == ticket_id).first()

    @staticmethod
    def get_ticket(db: Session, ticket_id: int) -> Ticket:
        ticket = TicketService.find_ticket(db, ticket_id)
        if not ticket:
            raise NotFoundError("Ticket not found", "TICKET_NOT_FOUND")
        return ticket

    @staticmethod
    def get_ticket_by_code(db: Session, ticket_code: str) -> Ticket:
        ticket = TicketService._with_relations(db).filter(Ticket.ticket_code == ticket_code).first()
        if not ticket:
            raise NotFoundError("Ticket not found", "TICKET_NOT_FOUND")
        return ticket

    @staticmethod
    def get_tickets_by_buyer(db: Session, buyer_id: int) -> list[Ticket]:
        return TicketService._with_relations(db).filter(
            Ticket.buyer_id == buyer_id
        ).order_by(Ticket.created_at.desc(), Ticket.id.desc()).all()

    @staticmethod
    def transition(
        db: Session,
        ticket_id: int,
        allowed_from: Iterable[TicketStatus],
        to: TicketStatus
    ) -> None:
        """
        Compare-and-swap the status of a ticket.

        The update only applies while the stored status is one of
        ``allowed_from``; otherwise ``TransitionConflict`` is raised carrying
        the status that was actually found. Does not commit.
        """
        allowed_from = frozenset(allowed_from)
        # Re-asserting a non-terminal status is a no-op set, not a move
        illegal = {
            status for status in allowed_from
            if not status.can_transition(to) and (status != to or status.is_terminal)
        }
        if illegal:
            raise ValueError(f"{sorted(s.value for s in illegal)} cannot move to {to.value}")

        values = {"status": to}
        if to == TicketStatus.USED:
            values["checked_in_at"] = utcnow()

        result = db.execute(
            update(Ticket)
            .where(Ticket.id == ticket_id, Ticket.status.in_(allowed_from))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return

        current = db.execute(select(Ticket.status).where(Ticket.id == ticket_id)).scalar_one_or_none()
        if current is None:
            raise NotFoundError("Ticket not found", "TICKET_NOT_FOUND")
        logger.info("Ticket %s transition to %s rejected, status is %s", ticket_id, to.value, current.value)
        raise TransitionConflict(current_status=current)
