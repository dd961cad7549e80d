from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from ticketbooth.database import get_db
from ticketbooth.middleware.rate_limit import limiter
from ticketbooth.models.admin import Admin
from ticketbooth.schemas.auth import AdminCreate, AdminLogin, AdminResponse
from ticketbooth.schemas.common import success_response
from ticketbooth.services.auth import (
    AuthService, get_current_admin, set_auth_cookie, clear_auth_cookie
)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login")
@limiter.limit("5/minute")  # Max 5 login attempts per minute per IP
async def login(
    request: Request,
    response: Response,
    credentials: AdminLogin,
    db: Session = Depends(get_db)
):
    admin = AuthService.authenticate_admin(db, credentials.email, credentials.password)

    access_token = AuthService.create_access_token(data={"sub": str(admin.id)})
    set_auth_cookie(response, access_token, request)
    return success_response({
        "admin": AdminResponse.model_validate(admin),
        "token": access_token,
        "token_type": "bearer"
    })


@router.post("/logout")
async def logout(response: Response):
    clear_auth_cookie(response)
    return success_response({"message": "Logged out"})


@router.get("/me")
async def me(admin: Admin = Depends(get_current_admin)):
    return success_response(AdminResponse.model_validate(admin))


@router.post("/admins", status_code=201)
async def create_admin(
    data: AdminCreate,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    new_admin = AuthService.create_admin(db, data)
    return success_response(AdminResponse.model_validate(new_admin))
