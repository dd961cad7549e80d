from fastapi import APIRouter, Depends, Request, Header
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from ticketbooth.database import get_db
from ticketbooth.models.admin import Admin
from ticketbooth.schemas.common import success_response
from ticketbooth.schemas.payment import CreateTransactionRequest, PaymentResponse, TransactionResponse
from ticketbooth.services.auth import get_current_admin
from ticketbooth.services.gateway import PaymentGateway, get_gateway
from ticketbooth.services.payment import PaymentService

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("/client-key")
async def get_client_key(gateway: PaymentGateway = Depends(get_gateway)):
    return success_response({"client_key": gateway.client_key})


@router.post("/create-transaction", status_code=201)
async def create_transaction(
    data: CreateTransactionRequest,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway)
):
    transaction = PaymentService.create_transaction(db, data.ticket_id, data.customer_details, gateway)
    return success_response(TransactionResponse(**transaction))


@router.post("/notification")
async def payment_notification(
    request: Request,
    stripe_signature: str = Header(None, alias="stripe-signature"),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway)
):
    payload = await request.body()
    result = PaymentService.handle_notification(db, payload, stripe_signature, gateway)

    # Always 200, otherwise the gateway keeps redelivering
    return JSONResponse(status_code=200, content=jsonable_encoder(result.to_response()))


@router.get("/status/{order_id}")
async def get_transaction_status(
    order_id: str,
    admin: Admin = Depends(get_current_admin),
    gateway: PaymentGateway = Depends(get_gateway)
):
    return success_response(PaymentService.get_transaction_status(order_id, gateway))


@router.post("/sync/{order_id}")
async def sync_transaction(
    order_id: str,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway)
):
    result = PaymentService.sync_transaction(db, order_id, gateway)
    return result.to_response()


@router.get("/ticket/{ticket_id}")
async def get_payment_by_ticket(
    ticket_id: int,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    payment = PaymentService.get_payment_by_ticket_id(db, ticket_id)
    return success_response(PaymentResponse.model_validate(payment))
