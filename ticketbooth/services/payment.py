import logging
from dataclasses import dataclass, field
from typing import Optional
from sqlalchemy.orm import Session

from ticketbooth.errors import (
    AppError, BadRequestError, ConflictError, GatewayError, InvalidNotificationError,
    NotFoundError, ServiceUnavailableError, TransitionConflict, UnprocessableError
)
from ticketbooth.helpers import make_order_id, parse_order_id, utcnow
from ticketbooth.models.payment import Payment, PaymentStatus
from ticketbooth.models.ticket import Ticket, TicketStatus
from ticketbooth.schemas.payment import CustomerDetails
from ticketbooth.services.gateway import PaymentGateway, VerifiedNotification
from ticketbooth.services.tickets import TicketService

logger = logging.getLogger(__name__)

# Outcomes of a reconciled notification
APPLIED = "applied"
UNCHANGED = "unchanged"
IGNORED = "ignored"
FAILED = "failed"


@dataclass(frozen=True)
class TargetState:
    payment_status: PaymentStatus
    ticket_status: TicketStatus
    marks_paid: bool = False


CANCELLING_STATUSES = {
    "deny": PaymentStatus.DENY,
    "cancel": PaymentStatus.CANCEL,
    "expire": PaymentStatus.EXPIRE,
    "refund": PaymentStatus.REFUND,
}


def map_transaction_status(transaction_status: str, fraud_status: Optional[str]) -> Optional[TargetState]:
    """Translate a verified gateway status into local payment and ticket state."""
    if transaction_status == "capture":
        if fraud_status == "accept":
            return TargetState(PaymentStatus.SUCCESS, TicketStatus.PAID, marks_paid=True)
        if fraud_status == "challenge":
            return TargetState(PaymentStatus.CHALLENGE, TicketStatus.PENDING)
        return None
    if transaction_status == "settlement":
        return TargetState(PaymentStatus.SUCCESS, TicketStatus.PAID, marks_paid=True)
    if transaction_status == "pending":
        return TargetState(PaymentStatus.PENDING, TicketStatus.PENDING)
    if transaction_status in CANCELLING_STATUSES:
        return TargetState(CANCELLING_STATUSES[transaction_status], TicketStatus.CANCELLED)
    return None


def allowed_predecessors(target: TicketStatus) -> frozenset:
    """Statuses from which reconciliation may assign ``target``."""
    allowed = TicketStatus.predecessors(target)
    if not target.is_terminal:
        allowed = allowed | {target}
    return allowed


@dataclass
class ReconciliationResult:
    success: bool
    outcome: str
    order_id: Optional[str] = None
    transaction_status: Optional[str] = None
    fraud_status: Optional[str] = None
    payment_type: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    ticket_status: Optional[TicketStatus] = None
    error: Optional[dict] = field(default=None)

    def to_response(self) -> dict:
        data = {
            "outcome": self.outcome,
            "order_id": self.order_id,
            "transaction_status": self.transaction_status,
            "fraud_status": self.fraud_status,
            "payment_type": self.payment_type,
            "payment_status": self.payment_status.value if self.payment_status else None,
            "ticket_status": self.ticket_status.value if self.ticket_status else None,
        }
        if self.success:
            return {"success": True, "message": "Notification processed", "data": data}
        return {"success": False, "message": self.error["message"], "error": self.error, "data": data}


class PaymentService:
    @staticmethod
    def create_transaction(
        db: Session,
        ticket_id: int,
        customer_details: Optional[CustomerDetails],
        gateway: PaymentGateway
    ) -> dict:
        """Start a gateway transaction for a PENDING ticket and record its payment."""
        ticket = TicketService.get_ticket(db, ticket_id)

        if ticket.status == TicketStatus.PAID:
            raise ConflictError("Ticket already paid", "TICKET_ALREADY_PAID")
        if ticket.status == TicketStatus.CANCELLED:
            raise BadRequestError("Ticket has been cancelled", "TICKET_CANCELLED")
        if ticket.status == TicketStatus.USED:
            raise BadRequestError("Ticket already used", "TICKET_ALREADY_USED")
        if ticket.is_expired:
            raise UnprocessableError("Ticket has expired", "TICKET_EXPIRED")

        payment = ticket.payment
        if payment and payment.status == PaymentStatus.SUCCESS:
            raise ConflictError("Payment already completed for this ticket", "PAYMENT_ALREADY_COMPLETED")

        ticket_type = ticket.ticket_type
        buyer = ticket.buyer
        order_id = make_order_id(ticket.id, utcnow())

        details = customer_details or CustomerDetails()
        name_parts = buyer.name.split(" ")
        customer = {
            "first_name": details.first_name or name_parts[0],
            "last_name": details.last_name or " ".join(name_parts[1:]),
            "email": details.email or buyer.email,
            "phone": details.phone or buyer.phone or "",
        }
        items = [{
            "id": str(ticket_type.id),
            "name": ticket_type.name,
            "price": ticket_type.unit_price,
            "quantity": 1,
        }]

        try:
            session = gateway.create_transaction(order_id, ticket_type.unit_price, items, customer)
        except GatewayError as e:
            raise ServiceUnavailableError(
                "Payment gateway is unavailable, please try again",
                "PAYMENT_GATEWAY_ERROR"
            ) from e

        if payment is None:
            payment = Payment(ticket_id=ticket.id)
            db.add(payment)
        payment.provider = gateway.provider
        payment.amount = ticket_type.unit_price
        payment.status = PaymentStatus.PENDING
        payment.order_id = order_id
        payment.provider_reference = session.token
        db.commit()

        logger.info("Started %s transaction %s for ticket %s", gateway.provider, order_id, ticket.id)
        return {
            "token": session.token,
            "redirect_url": session.redirect_url,
            "order_id": order_id,
            "ticket_id": ticket.id,
        }

    @staticmethod
    def handle_notification(
        db: Session,
        payload: bytes,
        signature: Optional[str],
        gateway: PaymentGateway
    ) -> ReconciliationResult:
        """
        Reconcile one webhook delivery.

        Never raises. The gateway redelivers anything that is not
        acknowledged, so every failure is logged and returned as a failed
        result for the caller to acknowledge.
        """
        try:
            notification = gateway.verify_notification(payload, signature)
        except InvalidNotificationError as e:
            logger.warning("Rejected payment notification: %s", e)
            return PaymentService._failed(BadRequestError(str(e), "INVALID_NOTIFICATION"))
        except GatewayError as e:
            logger.error("Could not verify payment notification: %s", e)
            return PaymentService._failed(
                ServiceUnavailableError("Payment gateway is unavailable", "PAYMENT_GATEWAY_ERROR")
            )

        if notification is None:
            return ReconciliationResult(success=True, outcome=IGNORED)

        logger.info(
            "Transaction notification received (%s). Order ID: %s. Status: %s. Fraud: %s",
            notification.event_type or "direct", notification.order_id,
            notification.transaction_status, notification.fraud_status
        )

        try:
            return PaymentService.reconcile(db, notification)
        except AppError as e:
            db.rollback()
            logger.warning("Unresolvable notification for order %s: %s", notification.order_id, e.message)
            return PaymentService._failed(e, notification)
        except Exception:
            db.rollback()
            logger.exception("Failed to reconcile notification for order %s", notification.order_id)
            return PaymentService._failed(
                AppError("Failed to process notification"), notification
            )

    @staticmethod
    def reconcile(db: Session, notification: VerifiedNotification) -> ReconciliationResult:
        """
        Assign the payment and ticket state implied by ``notification``.

        The ticket transition and the payment update commit together. The
        write is a status assignment, so redelivery lands on the same state.
        Events for an order the payment no longer points at are ignored, and
        once a ticket is cancelled the payment keeps its first recorded cause.
        """
        result = ReconciliationResult(
            success=True,
            outcome=APPLIED,
            order_id=notification.order_id,
            transaction_status=notification.transaction_status,
            fraud_status=notification.fraud_status,
            payment_type=notification.payment_type,
        )

        ticket_id = parse_order_id(notification.order_id)
        if ticket_id is None:
            raise BadRequestError("Invalid order ID format", "INVALID_ORDER_ID")

        target = map_transaction_status(notification.transaction_status, notification.fraud_status)
        if target is None:
            logger.info(
                "No state change for order %s status %s/%s",
                notification.order_id, notification.transaction_status, notification.fraud_status
            )
            result.outcome = IGNORED
            return result

        ticket = db.get(Ticket, ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket not found", "TICKET_NOT_FOUND")
        payment = db.query(Payment).filter(Payment.ticket_id == ticket_id).first()
        if payment is None:
            raise NotFoundError("Payment not found", "PAYMENT_NOT_FOUND")

        if payment.order_id and payment.order_id != notification.order_id:
            # A retried checkout replaced this order; its late events must not touch the ticket
            logger.warning(
                "Ignoring %s for superseded order %s, ticket %s is on %s",
                notification.transaction_status, notification.order_id, ticket_id, payment.order_id
            )
            result.outcome = IGNORED
            result.ticket_status = ticket.status
            result.payment_status = payment.status
            return result

        try:
            TicketService.transition(db, ticket_id, allowed_predecessors(target.ticket_status), target.ticket_status)
        except TransitionConflict as e:
            db.rollback()
            result.ticket_status = e.current_status
            result.payment_status = payment.status
            if e.current_status != target.ticket_status:
                # Out of order or after a terminal state: keep what we have
                logger.warning(
                    "Ignoring %s for ticket %s in status %s",
                    notification.transaction_status, ticket_id, e.current_status.value
                )
                result.outcome = IGNORED
            else:
                # Already terminal; the first recorded cause stands
                result.outcome = UNCHANGED
            return result

        payment.status = target.payment_status
        if notification.transaction_id:
            payment.transaction_id = notification.transaction_id
        if notification.payment_type:
            payment.payment_type = notification.payment_type
        if target.marks_paid and payment.paid_at is None:
            payment.paid_at = utcnow()
        db.commit()

        result.payment_status = target.payment_status
        result.ticket_status = target.ticket_status
        logger.info(
            "Order %s reconciled (%s): payment %s, ticket %s",
            notification.order_id, result.outcome, target.payment_status.value, target.ticket_status.value
        )
        return result

    @staticmethod
    def get_transaction_status(order_id: str, gateway: PaymentGateway) -> dict:
        try:
            return gateway.query_status(order_id)
        except GatewayError as e:
            raise ServiceUnavailableError(
                "Payment gateway is unavailable, please try again",
                "PAYMENT_GATEWAY_ERROR"
            ) from e

    @staticmethod
    def sync_transaction(db: Session, order_id: str, gateway: PaymentGateway) -> ReconciliationResult:
        """Pull the current status of ``order_id`` and reconcile it, for missed webhooks."""
        status = PaymentService.get_transaction_status(order_id, gateway)
        if not status.get("transaction_status"):
            raise NotFoundError("Transaction not found at payment gateway", "TRANSACTION_NOT_FOUND")

        notification = VerifiedNotification(
            order_id=order_id,
            transaction_status=status["transaction_status"],
            fraud_status=status.get("fraud_status"),
            payment_type=status.get("payment_type"),
            transaction_id=status.get("transaction_id")
        )
        try:
            return PaymentService.reconcile(db, notification)
        except AppError:
            db.rollback()
            raise

    @staticmethod
    def get_payment_by_ticket_id(db: Session, ticket_id: int) -> Payment:
        payment = db.query(Payment).filter(Payment.ticket_id == ticket_id).first()
        if not payment:
            raise NotFoundError("Payment not found", "PAYMENT_NOT_FOUND")
        return payment

    @staticmethod
    def _failed(error: AppError, notification: Optional[VerifiedNotification] = None) -> ReconciliationResult:
        result = ReconciliationResult(success=False, outcome=FAILED, error=error.to_dict())
        if notification is not None:
            result.order_id = notification.order_id
            result.transaction_status = notification.transaction_status
            result.fraud_status = notification.fraud_status
            result.payment_type = notification.payment_type
        return result
