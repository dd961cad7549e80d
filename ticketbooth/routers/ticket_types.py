from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ticketbooth.database import get_db
from ticketbooth.models.admin import Admin
from ticketbooth.schemas.common import success_response
from ticketbooth.schemas.ticket_type import TicketTypeCreate, TicketTypeUpdate, TicketTypeResponse
from ticketbooth.services.auth import get_current_admin
from ticketbooth.services.inventory import InventoryService

router = APIRouter(prefix="/ticket-types", tags=["ticket-types"])


@router.get("")
async def list_ticket_types(db: Session = Depends(get_db)):
    ticket_types = InventoryService.list_ticket_types(db)
    return success_response([TicketTypeResponse.model_validate(t) for t in ticket_types])


@router.get("/{ticket_type_id}")
async def get_ticket_type(ticket_type_id: int, db: Session = Depends(get_db)):
    ticket_type = InventoryService.get_ticket_type(db, ticket_type_id)
    return success_response(TicketTypeResponse.model_validate(ticket_type))


@router.post("", status_code=201)
async def create_ticket_type(
    data: TicketTypeCreate,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    ticket_type = InventoryService.create_ticket_type(db, data)
    return success_response(TicketTypeResponse.model_validate(ticket_type))


@router.patch("/{ticket_type_id}")
async def update_ticket_type(
    ticket_type_id: int,
    data: TicketTypeUpdate,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    ticket_type = InventoryService.update_ticket_type(db, ticket_type_id, data)
    return success_response(TicketTypeResponse.model_validate(ticket_type))


@router.delete("/{ticket_type_id}")
async def delete_ticket_type(
    ticket_type_id: int,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    InventoryService.delete_ticket_type(db, ticket_type_id)
    return success_response({"id": ticket_type_id})
