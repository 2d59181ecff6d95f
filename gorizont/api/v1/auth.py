import uuid

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gorizont.api.deps import get_current_user, get_db
from gorizont.common.enums import UserRole
from gorizont.common.exceptions import BadRequestError, UnauthorizedError
from gorizont.common.logging import get_logger
from gorizont.common.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from gorizont.db.models.user import User

router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = get_logger("api.auth")


# ---------- Schemas ----------


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: str = Field(min_length=1)
    phone: str | None = None
    role: UserRole = UserRole.BUYER


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    full_name: str
    phone: str | None
    role: str
    is_active: bool

    model_config = {"from_attributes": True}


# ---------- Endpoints ----------


async def _active_user(db: AsyncSession, *criteria) -> User | None:
    result = await db.execute(select(User).where(*criteria, User.is_deleted.is_(False)))
    return result.scalar_one_or_none()


def _issue_tokens(user: User) -> TokenResponse:
    claims = {"sub": str(user.id)}
    return TokenResponse(
        access_token=create_access_token(claims),
        refresh_token=create_refresh_token(claims),
    )


@router.post("/register", response_model=UserResponse, status_code=201)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    if body.role == UserRole.ADMIN:
        raise BadRequestError("Admin accounts cannot be self-registered")

    taken = await db.execute(select(User.id).where(User.email == body.email))
    if taken.first() is not None:
        raise BadRequestError(f"Email {body.email} is already registered")

    user = User(
        email=body.email,
        hashed_password=get_password_hash(body.password),
        full_name=body.full_name,
        phone=body.phone,
        role=body.role.value,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)

    logger.info("Registered %s account %s", user.role, user.id)
    return user


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    user = await _active_user(db, User.email == body.email)
    password_ok = user is not None and verify_password(body.password, user.hashed_password)
    if not password_ok:
        raise UnauthorizedError("Invalid email or password")
    if not user.is_active:
        raise UnauthorizedError("Account is inactive")
    return _issue_tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(body: RefreshRequest, db: AsyncSession = Depends(get_db)):
    try:
        claims = decode_token(body.refresh_token)
        if claims.get("type") != "refresh":
            raise UnauthorizedError("Invalid token type")
        user_id = uuid.UUID(claims.get("sub") or "")
    except ValueError:
        raise UnauthorizedError("Invalid refresh token")

    user = await _active_user(db, User.id == user_id)
    if user is None or not user.is_active:
        raise UnauthorizedError("User not found")
    return _issue_tokens(user)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user
