from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ticketbooth.database import Base


class Buyer(Base):
    __tablename__ = "buyers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(32), nullable=True)
    email_consent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())

    tickets = relationship("Ticket", back_populates="buyer")
