import logging
from sqlalchemy import func, update
from sqlalchemy.orm import Session

from ticketbooth.errors import NotFoundError, UnprocessableError
from ticketbooth.models.ticket import Ticket
from ticketbooth.models.ticket_type import TicketType
from ticketbooth.schemas.ticket_type import TicketTypeCreate, TicketTypeUpdate

logger = logging.getLogger(__name__)


class InventoryService:
    """
    Owns ticket type quota and sold count.

    ``sold_count`` is only ever written through guarded ``UPDATE ... WHERE``
    statements, so concurrent writers are serialized by the database and the
    count can never pass the quota.
    """

    @staticmethod
    def list_ticket_types(db: Session) -> list[TicketType]:
        return db.query(TicketType).order_by(TicketType.name.asc()).all()

    @staticmethod
    def get_ticket_type(db: Session, ticket_type_id: int) -> TicketType:
        ticket_type = db.query(TicketType).filter(TicketType.id == ticket_type_id).first()
        if not ticket_type:
            raise NotFoundError("Ticket type not found", "TICKET_TYPE_NOT_FOUND")
        return ticket_type

    @staticmethod
    def create_ticket_type(db: Session, data: TicketTypeCreate) -> TicketType:
        ticket_type = TicketType(
            name=data.name,
            unit_price=data.unit_price,
            quota=data.quota,
            sold_count=0
        )
        db.add(ticket_type)
        db.commit()
        db.refresh(ticket_type)
        logger.info("Created ticket type %s (%s, quota %d)", ticket_type.id, ticket_type.name, ticket_type.quota)
        return ticket_type

    @staticmethod
    def reserve(db: Session, ticket_type_id: int) -> TicketType:
        """
        Take one unit of quota for ``ticket_type_id``.

        Does not commit. The caller must commit the reservation in the same
        transaction as the ticket it belongs to, or roll both back.
        """
        result = db.execute(
            update(TicketType)
            .where(
                TicketType.id == ticket_type_id,
                TicketType.sold_count < TicketType.quota
            )
            .values(sold_count=TicketType.sold_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return db.get(TicketType, ticket_type_id, populate_existing=True)

        if db.get(TicketType, ticket_type_id) is None:
            raise NotFoundError("Ticket type not found", "TICKET_TYPE_NOT_FOUND")
        raise UnprocessableError("Tickets sold out", "TICKETS_SOLD_OUT")

    @staticmethod
    def update_ticket_type(db: Session, ticket_type_id: int, data: TicketTypeUpdate) -> TicketType:
        ticket_type = InventoryService.get_ticket_type(db, ticket_type_id)

        if data.quota is not None:
            InventoryService.update_quota(db, ticket_type_id, data.quota)
        if data.name is not None:
            ticket_type.name = data.name
        if data.unit_price is not None:
            ticket_type.unit_price = data.unit_price

        db.commit()
        db.refresh(ticket_type)
        return ticket_type

    @staticmethod
    def update_quota(db: Session, ticket_type_id: int, new_quota: int) -> None:
        # Guarded like reserve() so a concurrent sale cannot slip under the new quota
        result = db.execute(
            update(TicketType)
            .where(
                TicketType.id == ticket_type_id,
                TicketType.sold_count <= new_quota
            )
            .values(quota=new_quota)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return

        db.rollback()
        if db.get(TicketType, ticket_type_id) is None:
            raise NotFoundError("Ticket type not found", "TICKET_TYPE_NOT_FOUND")
        raise UnprocessableError("Cannot reduce quota below sold count", "QUOTA_BELOW_SOLD")

    @staticmethod
    def delete_ticket_type(db: Session, ticket_type_id: int) -> None:
        ticket_type = InventoryService.get_ticket_type(db, ticket_type_id)

        if InventoryService.count_tickets(db, ticket_type_id) > 0:
            raise UnprocessableError(
                "Cannot delete ticket type with existing tickets",
                "TICKET_TYPE_HAS_TICKETS"
            )

        db.delete(ticket_type)
        db.commit()
        logger.info("Deleted ticket type %s", ticket_type_id)

    @staticmethod
    def count_tickets(db: Session, ticket_type_id: int) -> int:
        return db.query(func.count(Ticket.id)).filter(Ticket.ticket_type_id == ticket_type_id).scalar()

