import uuid
from collections.abc import AsyncGenerator

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gorizont.common.enums import UserRole
from gorizont.common.exceptions import PermissionDeniedError, UnauthorizedError
from gorizont.common.security import decode_token
from gorizont.db.models.user import User
from gorizont.db.session import async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def _session_user_id(authorization: str | None) -> uuid.UUID:
    if not authorization:
        raise UnauthorizedError("Missing session token")
    scheme, _, token = authorization.partition(" ")
    if scheme != "Bearer" or not token:
        raise UnauthorizedError("Invalid authorization header format")

    try:
        claims = decode_token(token)
        if claims.get("type") != "access":
            raise ValueError("not an access token")
        return uuid.UUID(claims.get("sub") or "")
    except ValueError:
        raise UnauthorizedError("Invalid session")


async def get_current_user(
    authorization: str | None = Header(None, description="Bearer <session token>"),
    db: AsyncSession = Depends(get_db),
) -> User:
    user_id = _session_user_id(authorization)
    user = await db.scalar(
        select(User).where(User.id == user_id, User.is_deleted.is_(False))
    )
    if user is None:
        raise UnauthorizedError("Invalid session")
    if not user.is_active:
        raise PermissionDeniedError("This account has been deactivated")
    return user


def require_role(*roles: UserRole):
    """Dependency factory that admits only the given roles."""
    allowed = {r.value for r in roles}

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise PermissionDeniedError(
                f"Requires role: {' or '.join(sorted(allowed))}"
            )
        return current_user

    return role_checker
