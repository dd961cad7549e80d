from ticketbooth.routers.auth import router as auth_router
from ticketbooth.routers.ticket_types import router as ticket_types_router
from ticketbooth.routers.tickets import router as tickets_router
from ticketbooth.routers.payments import router as payments_router

__all__ = [
    "auth_router",
    "ticket_types_router",
    "tickets_router",
    "payments_router"
]
