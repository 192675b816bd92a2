"""
Authentication API routes.
"""

import logging
from datetime import datetime, timezone
from typing import Annotated, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.middleware.rate_limit import get_rate_limit, limiter
from api.schemas.auth import (
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
    UserUpdateRequest,
)
from core.security.password import password_hasher
from core.security.tokens import TokenService
from infrastructure.config.settings import settings
from infrastructure.database.connection import get_db
from infrastructure.database.models.user import User, UserStatus

logger = logging.getLogger(__name__)


def _get_cookie_kwargs(settings_obj) -> dict:
    """
    Cookie attributes for the auth cookies.

    Cross-site (SameSite=None; Secure) in production or whenever the frontend
    is not served from localhost, SameSite=Lax otherwise.
    """
    is_production = settings_obj.environment == "production"
    frontend_url = settings_obj.frontend_url
    is_deployed = not any(h in frontend_url for h in ("localhost", "127.0.0.1", "0.0.0.0"))
    use_cross_site = is_production or is_deployed
    return dict(
        httponly=True,
        secure=use_cross_site,
        samesite="none" if use_cross_site else "lax",
        path="/",
    )


def _set_auth_cookies(response: JSONResponse, access_token: str, refresh_token: str, settings_obj) -> None:
    kwargs = _get_cookie_kwargs(settings_obj)
    access_max_age = settings_obj.jwt_access_token_expire_minutes * 60
    refresh_max_age = settings_obj.jwt_refresh_token_expire_days * 86400
    response.set_cookie("access_token", access_token, max_age=access_max_age, **kwargs)
    response.set_cookie("refresh_token", refresh_token, max_age=refresh_max_age, **kwargs)


def _clear_auth_cookies(response: JSONResponse, settings_obj) -> None:
    kwargs = _get_cookie_kwargs(settings_obj)
    response.delete_cookie("access_token", **kwargs)
    response.delete_cookie("refresh_token", **kwargs)


def _token_response(user: User) -> JSONResponse:
    """Issue a token pair in the body and as HttpOnly cookies."""
    access_token, refresh_token = token_service.create_token_pair(
        user_id=user.id,
        email=user.email,
        role=user.role,
    )
    response = JSONResponse(
        content={
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "expires_in": settings.jwt_access_token_expire_minutes * 60,
        }
    )
    _set_auth_cookies(response, access_token, refresh_token, settings)
    return response


router = APIRouter(prefix="/auth", tags=["Authentication"])

token_service = TokenService(
    secret_key=settings.jwt_secret_key,
    algorithm=settings.jwt_algorithm,
    access_token_expire_minutes=settings.jwt_access_token_expire_minutes,
    refresh_token_expire_days=settings.jwt_refresh_token_expire_days,
)


async def get_current_user(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency to get the current authenticated user.

    Checks the Authorization header (Bearer token) first, then the HttpOnly
    access_token cookie set by login.
    """
    token = None
    if authorization and authorization.startswith("Bearer "):
        parts = authorization.split(" ", 1)
        token = parts[1] if len(parts) > 1 and parts[1] else None

    if not token:
        token = request.cookies.get("access_token")

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = token_service.verify_access_token(token)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == payload.sub))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is not active",
        )

    return user


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("register"))
async def register(
    request: Request,
    register_data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Register a new user account.
    """
    result = await db.execute(select(User).where(User.email == register_data.email.lower()))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An account with this email already exists",
        )

    user = User(
        email=register_data.email.lower(),
        name=register_data.name,
        password_hash=password_hasher.hash(register_data.password),
        language=register_data.language,
        status=UserStatus.ACTIVE.value,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info("Registered user %s", user.id)
    return user


@router.post("/login", response_model=TokenResponse)
@limiter.limit(get_rate_limit("login"))
async def login(
    request: Request,
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """
    Authenticate user and return access tokens.
    """
    result = await db.execute(select(User).where(User.email == login_data.email.lower()))
    user = result.scalar_one_or_none()

    # Always run bcrypt so response time does not reveal whether the email exists
    password_ok = password_hasher.verify(login_data.password, user.password_hash if user else None)
    if not user or not password_ok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if user.status == UserStatus.SUSPENDED.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account has been suspended",
        )

    user.last_login = datetime.now(timezone.utc)
    await db.commit()

    return _token_response(user)


@router.post("/refresh", response_model=TokenResponse)
@limiter.limit(get_rate_limit("refresh"))
async def refresh_token(
    request: Request,
    body: Optional[RefreshTokenRequest] = Body(None),
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """
    Exchange a refresh token for a new token pair.

    The HttpOnly cookie is read first, then the request body.
    """
    refresh_tok = request.cookies.get("refresh_token")
    if not refresh_tok:
        refresh_tok = body.refresh_token if body and body.refresh_token else None

    if not refresh_tok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token required",
        )

    payload = token_service.verify_refresh_token(refresh_tok)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )

    result = await db.execute(select(User).where(User.id == payload.sub))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    return _token_response(user)


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    return current_user


@router.put("/me", response_model=UserResponse)
async def update_me(
    update_data: UserUpdateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Update the current user's name or preferred quiz language.
    """
    if update_data.name is not None:
        current_user.name = update_data.name
    if update_data.language is not None:
        current_user.language = update_data.language
    await db.commit()
    await db.refresh(current_user)
    return current_user


@router.post("/logout", status_code=status.HTTP_200_OK)
@limiter.limit(get_rate_limit("logout"))
async def logout(
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
) -> JSONResponse:
    """
    Clear the auth cookies. Tokens are stateless; API clients discard their copy.
    """
    response = JSONResponse(content={"message": "Logged out successfully"})
    _clear_auth_cookies(response, settings)
    return response
