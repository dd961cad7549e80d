"""
Payment gateway client.

The reconciler speaks a small transaction-status vocabulary (``capture``,
``settlement``, ``pending``, ``deny``, ``cancel``, ``expire``, ``refund``
plus an optional fraud verdict). ``StripeGateway`` implements that contract
on top of Stripe Checkout: webhook payloads are authenticated with the
endpoint signing secret and each relevant event type is normalized into the
vocabulary. Anything else is reported as ``None`` and acknowledged upstream
without touching local state.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import stripe

from ticketbooth.config import get_settings
from ticketbooth.errors import GatewayError, InvalidNotificationError

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass
class TransactionSession:
    token: str
    redirect_url: str


@dataclass
class VerifiedNotification:
    order_id: Optional[str]
    transaction_status: str
    fraud_status: Optional[str]
    payment_type: Optional[str]
    transaction_id: Optional[str]
    event_type: Optional[str] = None


class PaymentGateway(Protocol):
    provider: str
    client_key: str

    def create_transaction(
        self, order_id: str, amount: int, items: list[dict], customer: dict
    ) -> TransactionSession:
        ...

    def verify_notification(self, payload: bytes, signature: Optional[str]) -> Optional[VerifiedNotification]:
        ...

    def query_status(self, order_id: str) -> dict:
        ...


def _field(obj: Any, key: str, default: Any = None) -> Any:
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError):
        return default
    return default if value is None else value


# Stripe PaymentIntent.status -> transaction status
PAYMENT_INTENT_STATUSES = {
    "succeeded": "settlement",
    "processing": "pending",
    "requires_payment_method": "pending",
    "requires_confirmation": "pending",
    "requires_action": "pending",
    "requires_capture": "pending",
    "canceled": "cancel",
}


class StripeGateway:
    provider = "stripe"

    def __init__(
        self,
        secret_key: Optional[str] = None,
        publishable_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        currency: Optional[str] = None,
        frontend_url: Optional[str] = None
    ):
        self.secret_key = secret_key if secret_key is not None else settings.stripe_secret_key
        self.client_key = publishable_key if publishable_key is not None else settings.stripe_publishable_key
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.stripe_webhook_secret
        self.currency = currency or settings.currency
        self.frontend_url = frontend_url or settings.frontend_url

    def create_transaction(
        self, order_id: str, amount: int, items: list[dict], customer: dict
    ) -> TransactionSession:
        """Open a Checkout Session; the order id rides along as the client reference."""
        line_items = [{
            "price_data": {
                "currency": self.currency,
                "product_data": {"name": item["name"]},
                "unit_amount": item["price"]
            },
            "quantity": item.get("quantity", 1)
        } for item in items]

        params = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": line_items,
            "client_reference_id": order_id,
            "metadata": {"order_id": order_id},
            "payment_intent_data": {"metadata": {"order_id": order_id}},
            "success_url": f"{self.frontend_url}/payment/finish?order_id={order_id}",
            "cancel_url": f"{self.frontend_url}/payment/cancel?order_id={order_id}",
        }
        if customer.get("email"):
            params["customer_email"] = customer["email"]

        try:
            session = stripe.checkout.Session.create(api_key=self.secret_key, **params)
        except stripe.StripeError as e:
            logger.error("Stripe checkout session for %s failed: %s", order_id, e)
            raise GatewayError(str(e)) from e

        logger.info("Created Stripe checkout session %s for %s (%d)", session.id, order_id, amount)
        return TransactionSession(token=session.id, redirect_url=session.url)

    def verify_notification(self, payload: bytes, signature: Optional[str]) -> Optional[VerifiedNotification]:
        if not signature:
            raise InvalidNotificationError("Missing signature")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise InvalidNotificationError("Invalid signature") from e
        except ValueError as e:
            raise InvalidNotificationError("Invalid payload") from e

        return self.normalize_event(event)

    def normalize_event(self, event: Any) -> Optional[VerifiedNotification]:
        event_type = _field(event, "type")
        obj = _field(_field(event, "data"), "object")

        if event_type == "checkout.session.completed":
            paid = _field(obj, "payment_status") in ("paid", "no_payment_required")
            return self._from_session(obj, "settlement" if paid else "pending", event_type)
        if event_type == "checkout.session.async_payment_succeeded":
            return self._from_session(obj, "settlement", event_type)
        if event_type == "checkout.session.async_payment_failed":
            return self._from_session(obj, "deny", event_type)
        if event_type == "checkout.session.expired":
            return self._from_session(obj, "expire", event_type)
        if event_type == "payment_intent.canceled":
            return self._from_payment_intent(obj, "cancel", None, event_type)
        if event_type == "charge.refunded":
            intent = self._retrieve_payment_intent(_field(obj, "payment_intent"))
            return self._from_payment_intent(intent, "refund", None, event_type)
        if event_type == "review.opened":
            intent = self._retrieve_payment_intent(_field(obj, "payment_intent"))
            return self._from_payment_intent(intent, "capture", "challenge", event_type)
        if event_type == "review.closed" and _field(obj, "reason") == "approved":
            intent = self._retrieve_payment_intent(_field(obj, "payment_intent"))
            return self._from_payment_intent(intent, "capture", "accept", event_type)

        logger.debug("Ignoring Stripe event %s", event_type)
        return None

    def query_status(self, order_id: str) -> dict:
        try:
            result = stripe.PaymentIntent.search(
                query=f"metadata['order_id']:'{order_id}'",
                api_key=self.secret_key
            )
        except stripe.StripeError as e:
            logger.error("Stripe status lookup for %s failed: %s", order_id, e)
            raise GatewayError(str(e)) from e

        intents = list(_field(result, "data", []))
        if not intents:
            return {"order_id": order_id, "transaction_status": None, "provider_status": None}

        intent = intents[0]
        provider_status = _field(intent, "status")
        return {
            "order_id": order_id,
            "transaction_status": PAYMENT_INTENT_STATUSES.get(provider_status, "pending"),
            "provider_status": provider_status,
            "transaction_id": _field(intent, "id"),
            "amount": _field(intent, "amount"),
        }

    def _retrieve_payment_intent(self, payment_intent_id: Optional[str]) -> Any:
        if not payment_intent_id:
            raise InvalidNotificationError("Event has no payment intent")
        try:
            return stripe.PaymentIntent.retrieve(payment_intent_id, api_key=self.secret_key)
        except stripe.StripeError as e:
            raise GatewayError(str(e)) from e

    @staticmethod
    def _from_session(session: Any, transaction_status: str, event_type: str) -> VerifiedNotification:
        payment_types = _field(session, "payment_method_types", [])
        return VerifiedNotification(
            order_id=_field(session, "client_reference_id") or _field(_field(session, "metadata"), "order_id"),
            transaction_status=transaction_status,
            fraud_status=None,
            payment_type=payment_types[0] if payment_types else None,
            transaction_id=_field(session, "payment_intent") or _field(session, "id"),
            event_type=event_type
        )

    @staticmethod
    def _from_payment_intent(
        intent: Any, transaction_status: str, fraud_status: Optional[str], event_type: str
    ) -> VerifiedNotification:
        payment_types = _field(intent, "payment_method_types", [])
        return VerifiedNotification(
            order_id=_field(_field(intent, "metadata"), "order_id"),
            transaction_status=transaction_status,
            fraud_status=fraud_status,
            payment_type=payment_types[0] if payment_types else None,
            transaction_id=_field(intent, "id"),
            event_type=event_type
        )


def get_gateway() -> PaymentGateway:
    return StripeGateway()
