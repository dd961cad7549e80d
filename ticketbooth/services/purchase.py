import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Protocol
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ticketbooth.config import get_settings
from ticketbooth.errors import (
    AppError, BadRequestError, ConflictError, DeliveryError,
    ServiceUnavailableError, UnprocessableError
)
from ticketbooth.helpers import utcnow
from ticketbooth.models.buyer import Buyer
from ticketbooth.models.ticket import Ticket, TicketStatus
from ticketbooth.schemas.ticket import TicketPurchase
from ticketbooth.services.inventory import InventoryService
from ticketbooth.services.tickets import TicketService

settings = get_settings()
logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send(self, to_email: str, template_data: dict) -> None:
        ...


@dataclass
class PurchaseResult:
    """
    Outcome of a committed purchase.

    ``delivered`` is False when the ticket and its reservation were committed
    but the receipt could not be sent; the caller reports that as a
    service-unavailable outcome and can retry delivery later.
    """
    ticket: Ticket
    delivered: bool
    delivery_error: Optional[str] = None


def _is_ticket_code_collision(error: IntegrityError) -> bool:
    return "ticket_code" in str(error.orig)


class PurchaseService:
    @staticmethod
    def get_or_create_buyer(db: Session, data: TicketPurchase) -> Buyer:
        """Look up a buyer by email; create one with the supplied profile if absent."""
        buyer = db.query(Buyer).filter(Buyer.email == data.email).first()
        if buyer:
            return buyer

        buyer = Buyer(
            name=data.name,
            email=data.email,
            phone=data.phone,
            email_consent=data.email_consent
        )
        db.add(buyer)
        try:
            db.commit()
        except IntegrityError:
            # Another purchase created the same buyer first
            db.rollback()
            return db.query(Buyer).filter(Buyer.email == data.email).one()
        db.refresh(buyer)
        logger.info("Created buyer %s for %s", buyer.id, buyer.email)
        return buyer

    @staticmethod
    def create_ticket(
        db: Session,
        buyer: Buyer,
        ticket_type_id: int,
        attendee_name: str,
        expiry_date
    ) -> Ticket:
        """
        Reserve inventory and insert a PENDING ticket in one transaction.

        A ticket code collision rolls back both effects and the whole unit is
        retried with a fresh code.
        """
        for attempt in range(1, settings.ticket_code_attempts + 1):
            try:
                InventoryService.reserve(db, ticket_type_id)
                ticket = Ticket(
                    ticket_code=TicketService.generate_ticket_code(),
                    status=TicketStatus.PENDING,
                    attendee_name=attendee_name,
                    expiry_date=expiry_date,
                    buyer_id=buyer.id,
                    ticket_type_id=ticket_type_id
                )
                db.add(ticket)
                db.commit()
            except IntegrityError as e:
                db.rollback()
                if not _is_ticket_code_collision(e):
                    raise
                logger.warning("Ticket code collision on attempt %d, regenerating", attempt)
                continue
            except AppError:
                db.rollback()
                raise

            db.refresh(ticket)
            return ticket

        raise ConflictError("Could not allocate a unique ticket code", "DUPLICATE_ENTRY")

    @staticmethod
    async def purchase(db: Session, data: TicketPurchase, notifier: Notifier) -> PurchaseResult:
        if not data.email_consent:
            raise BadRequestError(
                "You must agree to receive the ticket via email",
                "EMAIL_CONSENT_REQUIRED"
            )

        ticket_type = InventoryService.get_ticket_type(db, data.ticket_type_id)
        if ticket_type.is_sold_out:
            raise UnprocessableError("Tickets sold out", "TICKETS_SOLD_OUT")

        buyer = PurchaseService.get_or_create_buyer(db, data)

        expiry_days = data.expiry_days or settings.default_expiry_days
        expiry_date = utcnow() + timedelta(days=expiry_days)

        ticket = PurchaseService.create_ticket(
            db, buyer, data.ticket_type_id, data.attendee_name, expiry_date
        )
        logger.info(
            "Ticket %s (%s) purchased by buyer %s",
            ticket.id, ticket.ticket_code, buyer.id
        )

        try:
            await PurchaseService.send_receipt(ticket, notifier)
        except DeliveryError as e:
            logger.error("Ticket %s committed but receipt delivery failed: %s", ticket.ticket_code, e)
            return PurchaseResult(ticket=ticket, delivered=False, delivery_error=str(e))

        return PurchaseResult(ticket=ticket, delivered=True)

    @staticmethod
    async def send_receipt(ticket: Ticket, notifier: Notifier) -> None:
        await notifier.send(
            ticket.buyer.email,
            {
                "attendee_name": ticket.attendee_name,
                "ticket_code": ticket.ticket_code,
                "ticket_type": ticket.ticket_type.name,
                "price": ticket.ticket_type.unit_price,
                "expiry_date": ticket.expiry_date
            }
        )

    @staticmethod
    async def resend_receipt(db: Session, ticket_id: int, notifier: Notifier) -> Ticket:
        ticket = TicketService.get_ticket(db, ticket_id)
        if ticket.status == TicketStatus.CANCELLED:
            raise UnprocessableError("Ticket has been cancelled", "TICKET_CANCELLED")

        try:
            await PurchaseService.send_receipt(ticket, notifier)
        except DeliveryError as e:
            logger.error("Receipt redelivery failed for ticket %s: %s", ticket.ticket_code, e)
            raise ServiceUnavailableError(
                "The ticket email could not be delivered",
                "EMAIL_DELIVERY_FAILED"
            ) from e

        logger.info("Receipt for ticket %s resent", ticket.ticket_code)
        return ticket
