"""Create the first admin and, optionally, the default ticket types."""
import argparse
import logging
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ticketbooth.config import get_settings
from ticketbooth.database import SessionLocal, init_db
from ticketbooth.models.admin import Admin
from ticketbooth.models.ticket_type import TicketType
from ticketbooth.schemas.auth import AdminCreate
from ticketbooth.schemas.ticket_type import TicketTypeCreate
from ticketbooth.services.auth import AuthService
from ticketbooth.services.inventory import InventoryService

logger = logging.getLogger(__name__)

# Prices in minor currency units
DEFAULT_TICKET_TYPES = [
    TicketTypeCreate(name="VIP", unit_price=15000, quota=50),
    TicketTypeCreate(name="Regular", unit_price=5000, quota=200),
    TicketTypeCreate(name="Student", unit_price=2500, quota=100),
]


def ensure_admin(db: Session, admin_data: AdminCreate) -> tuple[Admin, bool]:
    """Return the admin with this email, creating it if missing."""
    existing = AuthService.get_admin_by_email(db, admin_data.email)
    if existing:
        logger.warning("Admin %s already exists, leaving it untouched", admin_data.email)
        return existing, False

    admin = AuthService.create_admin(db, admin_data)
    logger.info("Created admin %s (%s)", admin.id, admin.email)
    return admin, True


def seed_ticket_types(db: Session, ticket_types: list[TicketTypeCreate] = DEFAULT_TICKET_TYPES) -> list[TicketType]:
    created = []
    for data in ticket_types:
        if db.query(TicketType).filter(TicketType.name == data.name).first():
            logger.info("Ticket type %s already exists, skipping", data.name)
            continue
        created.append(InventoryService.create_ticket_type(db, data))
    return created


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="ticketbooth-bootstrap",
        description="Create the first admin account. Values default to ADMIN_EMAIL, ADMIN_NAME and ADMIN_PASSWORD."
    )
    parser.add_argument("--email", default=settings.admin_email or None)
    parser.add_argument("--name", default=settings.admin_name)
    parser.add_argument("--password", default=settings.admin_password or None)
    parser.add_argument(
        "--seed-ticket-types",
        action="store_true",
        help="Also create the VIP, Regular and Student ticket types"
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.email or not args.password:
        parser.error("an admin email and password are required (flags or ADMIN_EMAIL/ADMIN_PASSWORD)")

    try:
        admin_data = AdminCreate(name=args.name, email=args.email, password=args.password)
    except ValidationError as e:
        parser.error(f"invalid admin details: {e}")

    init_db()
    db = SessionLocal()
    try:
        ensure_admin(db, admin_data)
        if args.seed_ticket_types:
            created = seed_ticket_types(db)
            logger.info("Seeded %d ticket type(s)", len(created))
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
