from datetime import datetime, timedelta, timezone
from typing import Optional
import bcrypt
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from fastapi import Depends, Request, Response

from ticketbooth.config import get_settings
from ticketbooth.database import get_db
from ticketbooth.errors import ConflictError, UnauthorizedError, ForbiddenError
from ticketbooth.models.admin import Admin
from ticketbooth.schemas.auth import AdminCreate, TokenData

settings = get_settings()

AUTH_COOKIE_NAME = "token"


class AuthService:
    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )

    @staticmethod
    def get_password_hash(password: str) -> str:
        return bcrypt.hashpw(
            password.encode('utf-8'),
            bcrypt.gensalt(rounds=12)
        ).decode('utf-8')

    @staticmethod
    def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
        to_encode = data.copy()
        if expires_delta:
            expire = datetime.now(timezone.utc) + expires_delta
        else:
            expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

    @staticmethod
    def decode_token(token: str) -> Optional[TokenData]:
        try:
            payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
            admin_id = payload.get("sub")
            if admin_id is None:
                return None
            return TokenData(admin_id=int(admin_id))
        except (JWTError, ValueError):
            return None

    @staticmethod
    def create_admin(db: Session, admin_data: AdminCreate) -> Admin:
        if AuthService.get_admin_by_email(db, admin_data.email):
            raise ConflictError("Email already exists", "EMAIL_EXISTS")

        admin = Admin(
            name=admin_data.name,
            email=admin_data.email,
            hashed_password=AuthService.get_password_hash(admin_data.password)
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        return admin

    @staticmethod
    def authenticate_admin(db: Session, email: str, password: str) -> Admin:
        admin = AuthService.get_admin_by_email(db, email)
        # Same error for unknown email and bad password
        if not admin or not AuthService.verify_password(password, admin.hashed_password):
            raise UnauthorizedError("Invalid email or password", "INVALID_CREDENTIALS")
        return admin

    @staticmethod
    def get_admin_by_email(db: Session, email: str) -> Optional[Admin]:
        return db.query(Admin).filter(Admin.email == email).first()

    @staticmethod
    def get_admin_by_id(db: Session, admin_id: int) -> Optional[Admin]:
        return db.query(Admin).filter(Admin.id == admin_id).first()


def get_token_from_request(request: Request) -> Optional[str]:
    token = request.cookies.get(AUTH_COOKIE_NAME)
    if token:
        return token
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[len("Bearer "):]
    return None


def get_current_admin(
    request: Request,
    db: Session = Depends(get_db)
) -> Admin:
    token = get_token_from_request(request)
    if not token:
        raise UnauthorizedError("Authentication required", "AUTH_REQUIRED")

    token_data = AuthService.decode_token(token)
    if token_data is None:
        raise UnauthorizedError("Invalid or expired token", "INVALID_TOKEN")

    admin = AuthService.get_admin_by_id(db, token_data.admin_id)
    if admin is None:
        raise ForbiddenError("Admin access required", "ADMIN_REQUIRED")
    return admin


def set_auth_cookie(response: Response, token: str, request: Request):
    is_secure = (
        request.url.scheme == "https" or
        request.headers.get("x-forwarded-proto") == "https"
    )

    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        max_age=settings.access_token_expire_minutes * 60,
        samesite="lax",
        secure=is_secure
    )


def clear_auth_cookie(response: Response):
    response.delete_cookie(key=AUTH_COOKIE_NAME)
