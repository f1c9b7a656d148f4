import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.exceptions import AuthenticationError, PermissionDeniedError
from app.core.security import decode_access_token
from app.db.session import AsyncSessionLocal
from app.models.user import User
from app.services.realtime import get_broadcaster  # noqa: F401
from app.services.tenant_context import TenantContext, resolve_tenant_context

logger = logging.getLogger("hse.deps")

# Missing Authorization header falls through to the cookie
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login/oauth2", auto_error=False)


async def get_db() -> AsyncGenerator:
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def get_db_session():
    """
    Context manager version of get_db for WebSocket handlers.

    Usage:
        async with get_db_session() as db:
            ...
    """
    async with AsyncSessionLocal() as session:
        yield session


def get_session_factory() -> async_sessionmaker:
    """Factory for handlers that open several sessions (dashboard fan-out)."""
    return AsyncSessionLocal


def _token_from_cookie(request: Optional[Request]) -> Optional[str]:
    if request is None:
        return None
    token = request.cookies.get("access_token")
    if token and token.lower().startswith("bearer "):
        token = token.split(" ", 1)[1].strip() or None
    return token


async def user_from_token(db: AsyncSession, token: Optional[str]) -> User:
    """Resolve the active user a JWT was issued for."""
    if not token:
        raise AuthenticationError()
    user_id = decode_access_token(token)
    if user_id is None:
        raise AuthenticationError()

    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        raise AuthenticationError()
    if not user.is_active:
        raise PermissionDeniedError("Inactive user")
    return user


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    token: Optional[str] = Depends(oauth2_scheme),
) -> User:
    return await user_from_token(db, token or _token_from_cookie(request))


async def get_tenant_context(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> TenantContext:
    """Role and company of the caller, read fresh from the database."""
    return await resolve_tenant_context(db, current_user)


async def require_tenant(ctx: TenantContext = Depends(get_tenant_context)) -> TenantContext:
    """Like get_tenant_context, but the caller must belong to a company (409 otherwise)."""
    ctx.require_company()
    return ctx


async def require_company_admin(ctx: TenantContext = Depends(require_tenant)) -> TenantContext:
    ctx.require_admin()
    return ctx


async def require_super_admin(ctx: TenantContext = Depends(get_tenant_context)) -> TenantContext:
    if not ctx.is_super_admin:
        logger.warning("User %s denied super admin access", ctx.user_id)
        raise PermissionDeniedError("Super admin role required")
    return ctx
