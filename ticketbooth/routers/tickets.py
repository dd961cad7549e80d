from fastapi import APIRouter, Depends, Path, Request
from sqlalchemy.orm import Session

from ticketbooth.config import get_settings
from ticketbooth.database import get_db
from ticketbooth.errors import ServiceUnavailableError
from ticketbooth.middleware.rate_limit import limiter
from ticketbooth.models.admin import Admin
from ticketbooth.schemas.common import success_response
from ticketbooth.schemas.ticket import (
    TicketPurchase, TicketResponse, TicketDetailResponse, TICKET_CODE_PATTERN
)
from ticketbooth.services.auth import get_current_admin
from ticketbooth.services.checkin import CheckInService
from ticketbooth.services.email import EmailService
from ticketbooth.services.purchase import Notifier, PurchaseService
from ticketbooth.services.tickets import TicketService

router = APIRouter(prefix="/tickets", tags=["tickets"])
settings = get_settings()


def get_notifier() -> Notifier:
    return EmailService


@router.post("/purchase", status_code=201)
@limiter.limit(settings.purchase_rate_limit)
async def purchase_ticket(
    request: Request,
    data: TicketPurchase,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
):
    result = await PurchaseService.purchase(db, data, notifier)
    ticket = TicketResponse.model_validate(result.ticket)

    if not result.delivered:
        # Committed; only the email is missing
        raise ServiceUnavailableError(
            "Ticket purchased, but the confirmation email could not be delivered",
            "EMAIL_DELIVERY_FAILED",
            data=ticket.model_dump(mode="json")
        )
    return success_response(ticket)


@router.get("")
async def get_all_tickets(
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    tickets = TicketService.get_all_tickets(db)
    return success_response([TicketDetailResponse.model_validate(t) for t in tickets])


@router.get("/code/{ticket_code}")
async def get_ticket_by_code(
    ticket_code: str = Path(pattern=TICKET_CODE_PATTERN),
    db: Session = Depends(get_db)
):
    ticket = TicketService.get_ticket_by_code(db, ticket_code)
    return success_response(TicketResponse.model_validate(ticket))


@router.get("/buyer/{buyer_id}")
async def get_tickets_by_buyer(
    buyer_id: int,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    tickets = TicketService.get_tickets_by_buyer(db, buyer_id)
    return success_response([TicketDetailResponse.model_validate(t) for t in tickets])


@router.get("/{ticket_id}")
async def get_ticket(
    ticket_id: int,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    ticket = TicketService.get_ticket(db, ticket_id)
    return success_response(TicketDetailResponse.model_validate(ticket))


@router.post("/{ticket_id}/check-in")
@limiter.limit(settings.checkin_rate_limit)
async def check_in_ticket(
    request: Request,
    ticket_id: int,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    ticket = CheckInService.check_in(db, ticket_id)
    return success_response(TicketDetailResponse.model_validate(ticket))


@router.post("/{ticket_id}/resend")
async def resend_ticket_email(
    ticket_id: int,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
):
    ticket = await PurchaseService.resend_receipt(db, ticket_id, notifier)
    return success_response(TicketResponse.model_validate(ticket))
