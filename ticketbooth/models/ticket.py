from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ticketbooth.database import Base
from ticketbooth.helpers import utcnow
import enum


class TicketStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    USED = "USED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return not TRANSITIONS[self]

    def can_transition(self, target: "TicketStatus") -> bool:
        return target in TRANSITIONS[self]

    @classmethod
    def predecessors(cls, target: "TicketStatus") -> frozenset:
        """Every status a ticket may be in for a move to ``target`` to be legal."""
        return frozenset(status for status in cls if status.can_transition(target))


# Forward moves only. USED and CANCELLED are terminal.
TRANSITIONS = {
    TicketStatus.PENDING: frozenset({TicketStatus.PAID, TicketStatus.CANCELLED}),
    TicketStatus.PAID: frozenset({TicketStatus.USED, TicketStatus.CANCELLED}),
    TicketStatus.USED: frozenset(),
    TicketStatus.CANCELLED: frozenset(),
}


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    ticket_code = Column(String(16), unique=True, index=True, nullable=False)
    status = Column(Enum(TicketStatus), nullable=False, default=TicketStatus.PENDING)
    attendee_name = Column(String(100), nullable=False)
    expiry_date = Column(DateTime, nullable=True)
    checked_in_at = Column(DateTime, nullable=True)
    buyer_id = Column(Integer, ForeignKey("buyers.id"), nullable=False)
    ticket_type_id = Column(Integer, ForeignKey("ticket_types.id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    buyer = relationship("Buyer", back_populates="tickets")
    ticket_type = relationship("TicketType", back_populates="tickets")
    payment = relationship("Payment", back_populates="ticket", uselist=False)

    @property
    def is_expired(self) -> bool:
        # Recomputed on every access, never stored.
        return self.expiry_date is not None and utcnow() > self.expiry_date
