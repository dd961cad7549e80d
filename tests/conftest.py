"""
Shared fixtures: a fresh SQLite database per test, fake payment gateway and
notifier collaborators, and an authenticated admin.
"""
import json
import os
import tempfile
import typing as t
from datetime import timedelta

# Settings are read once at import time, so configure them before importing the app
_TEST_DIR = tempfile.mkdtemp(prefix="ticketbooth-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DIR}/default.db")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SMTP_USER", "")
os.environ.setdefault("SMTP_PASSWORD", "")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from ticketbooth.database import get_db, init_db, make_engine  # noqa: E402
from ticketbooth.errors import DeliveryError, GatewayError, InvalidNotificationError  # noqa: E402
from ticketbooth.helpers import utcnow  # noqa: E402
from ticketbooth.main import app  # noqa: E402
from ticketbooth.models import Admin, Payment, PaymentStatus, Ticket, TicketStatus, TicketType  # noqa: E402
from ticketbooth.models.buyer import Buyer  # noqa: E402
from ticketbooth.routers.tickets import get_notifier  # noqa: E402
from ticketbooth.schemas.auth import AdminCreate  # noqa: E402
from ticketbooth.schemas.ticket import TicketPurchase  # noqa: E402
from ticketbooth.services.auth import AuthService  # noqa: E402
from ticketbooth.services.gateway import TransactionSession, VerifiedNotification, get_gateway  # noqa: E402


VALID_SIGNATURE = "t=1,v1=valid"


class FakeNotifier:
    """Records receipts instead of sending them; can be told to fail."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, dict]] = []
        self.fail = False

    async def send(self, to_email: str, template_data: dict) -> None:
        if self.fail:
            raise DeliveryError("SMTP connection refused")
        self.sent.append((to_email, template_data))


class FakeGateway:
    """
    In-memory payment gateway.

    Notifications are JSON bodies in the normalized vocabulary; only
    ``VALID_SIGNATURE`` is accepted as authentic.
    """

    provider = "fake"
    client_key = "pk_test_fake"

    def __init__(self) -> None:
        self.transactions: list[dict] = []
        self.statuses: dict[str, dict] = {}
        self.fail = False

    def create_transaction(self, order_id: str, amount: int, items: list[dict], customer: dict) -> TransactionSession:
        if self.fail:
            raise GatewayError("gateway down")
        self.transactions.append(
            {"order_id": order_id, "amount": amount, "items": items, "customer": customer}
        )
        return TransactionSession(token=f"tok_{order_id}", redirect_url=f"https://pay.example/{order_id}")

    def verify_notification(self, payload: bytes, signature: t.Optional[str]) -> t.Optional[VerifiedNotification]:
        if signature != VALID_SIGNATURE:
            raise InvalidNotificationError("Invalid signature")
        body = json.loads(payload)
        if body.get("ignore"):
            return None
        return VerifiedNotification(
            order_id=body.get("order_id"),
            transaction_status=body["transaction_status"],
            fraud_status=body.get("fraud_status"),
            payment_type=body.get("payment_type", "card"),
            transaction_id=body.get("transaction_id", "txn_1"),
            event_type=body.get("event_type"),
        )

    def query_status(self, order_id: str) -> dict:
        if self.fail:
            raise GatewayError("gateway down")
        return self.statuses.get(
            order_id, {"order_id": order_id, "transaction_status": None, "provider_status": None}
        )


def notification_body(order_id: str, transaction_status: str, fraud_status: t.Optional[str] = None) -> bytes:
    body = {"order_id": order_id, "transaction_status": transaction_status}
    if fraud_status:
        body["fraud_status"] = fraud_status
    return json.dumps(body).encode()


@pytest.fixture
def engine(tmp_path: t.Any) -> t.Iterator[t.Any]:
    engine = make_engine(f"sqlite:///{tmp_path}/test.db")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: t.Any) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory: sessionmaker) -> t.Iterator[Session]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def rate_limit_enabled() -> t.Iterator[None]:
    """Turn the shared limiter on for one test; the suite runs with it disabled."""
    from ticketbooth.middleware.rate_limit import limiter

    previous = limiter.enabled
    limiter.enabled = True
    try:
        yield
    finally:
        limiter.enabled = previous


@pytest.fixture
def client(session_factory: sessionmaker, notifier: FakeNotifier, gateway: FakeGateway) -> t.Iterator[TestClient]:
    def override_get_db() -> t.Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin(db: Session) -> Admin:
    return AuthService.create_admin(
        db, AdminCreate(name="Gate Admin", email="admin@example.com", password="supersecret")
    )


@pytest.fixture
def admin_headers(admin: Admin) -> dict[str, str]:
    token = AuthService.create_access_token(data={"sub": str(admin.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def ticket_type_factory(db: Session) -> t.Callable[..., TicketType]:
    def factory(name: str = "Regular", unit_price: int = 5000, quota: int = 100, sold_count: int = 0) -> TicketType:
        ticket_type = TicketType(name=name, unit_price=unit_price, quota=quota, sold_count=sold_count)
        db.add(ticket_type)
        db.commit()
        db.refresh(ticket_type)
        return ticket_type

    return factory


@pytest.fixture
def ticket_type(ticket_type_factory: t.Callable[..., TicketType]) -> TicketType:
    return ticket_type_factory()


@pytest.fixture
def purchase_data() -> t.Callable[..., TicketPurchase]:
    def factory(ticket_type_id: int, **overrides: t.Any) -> TicketPurchase:
        data = {
            "email": "jane@example.com",
            "name": "Jane Smith",
            "phone": "+62 812 3456 7890",
            "email_consent": True,
            "ticket_type_id": ticket_type_id,
            "attendee_name": "Jane Smith",
        }
        data.update(overrides)
        return TicketPurchase(**data)

    return factory


@pytest.fixture
def buyer(db: Session) -> Buyer:
    buyer = Buyer(name="John Doe", email="john@example.com", email_consent=True)
    db.add(buyer)
    db.commit()
    db.refresh(buyer)
    return buyer


@pytest.fixture
def ticket_factory(db: Session, buyer: Buyer, ticket_type: TicketType) -> t.Callable[..., Ticket]:
    """Insert a ticket directly in a given status, bypassing the purchase flow."""
    counter = iter(range(1, 10_000))

    def factory(
        status: TicketStatus = TicketStatus.PENDING,
        expiry_date: t.Any = "default",
        with_payment: bool = False,
    ) -> Ticket:
        ticket = Ticket(
            ticket_code=f"TKT-{next(counter):012X}",
            status=status,
            attendee_name="John Doe",
            expiry_date=utcnow() + timedelta(days=7) if expiry_date == "default" else expiry_date,
            checked_in_at=utcnow() if status == TicketStatus.USED else None,
            buyer_id=buyer.id,
            ticket_type_id=ticket_type.id,
        )
        db.add(ticket)
        db.commit()
        if with_payment:
            db.add(Payment(
                ticket_id=ticket.id,
                provider="fake",
                amount=ticket_type.unit_price,
                status=PaymentStatus.PENDING,
                order_id=f"ORDER-{ticket.id}-1700000000000",
            ))
            db.commit()
        db.refresh(ticket)
        return ticket

    return factory
