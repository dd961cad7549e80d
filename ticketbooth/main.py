import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ticketbooth.config import get_settings
from ticketbooth.database import init_db
from ticketbooth.errors import AppError
from ticketbooth.middleware.rate_limit import limiter
from ticketbooth.middleware.security import setup_security_middleware
from ticketbooth.routers import (
    auth_router,
    ticket_types_router,
    tickets_router,
    payments_router
)
from ticketbooth.schemas.common import error_response

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="Ticketbooth",
    description="Event ticket sales, payment reconciliation and check-in",
    version="1.0.0",
    lifespan=lifespan
)

app.state.limiter = limiter

setup_security_middleware(app, allowed_hosts=settings.allowed_hosts)

app.include_router(auth_router)
app.include_router(ticket_types_router)
app.include_router(tickets_router)
app.include_router(payments_router)


@app.get("/health")
async def health():
    return {"success": True, "data": {"status": "ok"}}


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.code)
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(error_response(exc.code, exc.message, exc.data))
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    content = error_response("VALIDATION_ERROR", message)
    content["error"]["details"] = jsonable_encoder(errors, custom_encoder={Exception: str})
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=409,
        content=error_response("DUPLICATE_ENTRY", "A record with this value already exists")
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content=error_response("RATE_LIMIT", "Too many requests, please try again later.")
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse(
            status_code=404,
            content=error_response("ROUTE_NOT_FOUND", f"Cannot {request.method} {request.url.path}")
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response("HTTP_ERROR", str(exc.detail))
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_response("INTERNAL_ERROR", "Internal server error")
    )
