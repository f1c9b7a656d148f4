from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_db, get_tenant_context
from app.core.config import settings
from app.core.exceptions import AuthenticationError, ConflictError, PermissionDeniedError, ValidationError
from app.core.rate_limiter import RateLimits, limiter
from app.core.security import create_access_token, get_password_hash, verify_password
from app.models.user import User
from app.schemas.token import LoginRequest, LoginResponse, TenantContextView, Token, UserRegister
from app.services.tenant_context import TenantContext, resolve_tenant_context

router = APIRouter()


def _user_view(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "is_active": user.is_active,
    }


def _context_view(ctx: TenantContext) -> TenantContextView:
    return TenantContextView(
        user_id=ctx.user_id,
        company_id=ctx.company_id,
        company_name=ctx.company_name,
        role=ctx.role,
        actor_name=ctx.actor_name,
    )


async def _authenticate_user(db: AsyncSession, email: str, password: str) -> tuple[User, str]:
    """Check credentials, stamp last_login and mint an access token."""
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password, user.hashed_password):
        raise AuthenticationError("Incorrect email or password")
    if not user.is_active:
        raise PermissionDeniedError("Inactive user")

    user.last_login = datetime.now(timezone.utc)
    await db.commit()
    return user, create_access_token(subject=user.id)


def _set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key="access_token",
        value=token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(RateLimits.AUTH_REGISTER)
async def register(
    request: Request,
    user_in: UserRegister,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Create a user account without a company. The user is sent to company
    setup after the first sign-in.
    """
    if len(user_in.password) < settings.MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters")
    email = user_in.email.strip().lower()
    if await db.scalar(select(User.id).where(User.email == email)) is not None:
        raise ConflictError("users", "email", email)

    user = User(
        email=email,
        full_name=(user_in.full_name or "").strip() or None,
        hashed_password=get_password_hash(user_in.password),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return _user_view(user)


@router.post("/login", response_model=LoginResponse)
@limiter.limit(RateLimits.AUTH_LOGIN)
async def login(
    request: Request,
    response: Response,
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Sign in with email and password. Besides the token the response carries
    the caller's current role and company; a null company means the client
    should continue with company setup.
    """
    user, access_token = await _authenticate_user(db, login_data.email, login_data.password)
    _set_auth_cookie(response, access_token)
    ctx = await resolve_tenant_context(db, user)
    return LoginResponse(
        access_token=access_token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=_user_view(user),
        context=_context_view(ctx),
    )


@router.post("/login/oauth2", response_model=Token)
@limiter.limit(RateLimits.AUTH_LOGIN)
async def login_oauth2(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Form-encoded login used by the interactive API docs."""
    _, access_token = await _authenticate_user(db, form_data.username, form_data.password)
    return Token(access_token=access_token, expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60)


@router.get("/me")
async def read_users_me(
    current_user: User = Depends(get_current_user),
    ctx: TenantContext = Depends(get_tenant_context),
) -> Any:
    return {"user": _user_view(current_user), "context": _context_view(ctx)}


@router.post("/context/refresh", response_model=TenantContextView)
async def refresh_context(ctx: TenantContext = Depends(get_tenant_context)) -> Any:
    """
    Re-read role and company from the database. Clients call this after
    company setup instead of signing in again.
    """
    return _context_view(ctx)


@router.post("/logout")
async def logout(response: Response) -> Any:
    response.delete_cookie("access_token", path="/")
    return {"message": "Successfully logged out"}
