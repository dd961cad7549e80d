from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ticketbooth.database import Base


class TicketType(Base):
    __tablename__ = "ticket_types"
    __table_args__ = (
        CheckConstraint("quota >= 0", name="ck_ticket_types_quota"),
        CheckConstraint("sold_count >= 0 AND sold_count <= quota", name="ck_ticket_types_sold_count"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    unit_price = Column(Integer, nullable=False)  # minor currency units
    quota = Column(Integer, nullable=False)
    sold_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())

    tickets = relationship("Ticket", back_populates="ticket_type")

    @property
    def available(self) -> int:
        return self.quota - self.sold_count

    @property
    def is_sold_out(self) -> bool:
        return self.sold_count >= self.quota
