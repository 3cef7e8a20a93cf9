"""
api/routes/auth.py -- Authentication REST endpoints.

Routes (mounted under /api):
  POST  /api/auth/register   -- create account; 201 {token, user}
  POST  /api/auth/login      -- password login; 200 {token, user}
  POST  /api/auth/logout     -- stateless; the client discards its token
  GET   /api/auth/me         -- current user (requires Bearer token)
  GET   /api/auth/profile    -- alias of /me
  PATCH /api/auth/profile    -- change first/last name (requires Bearer token)

Security:
  [H2] register and login are rate-limited per client address
       (enforce_auth_rate_limit runs before the body is handled).
  [C1] login goes through AuthService.login(), which equalizes timing between
       unknown email and wrong password. Do not inline store + bcrypt here.
  [M5] Cache-Control: no-store on every response that carries a token.

Errors are raised as core.errors exceptions and rendered by api/main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from api.limiter import enforce_auth_rate_limit
from api.models import (
    AuthResponse,
    LoginRequest,
    MeResponse,
    MessageResponse,
    ProfileUpdateRequest,
    RegisterRequest,
    UserResponse,
)
from auth.dependencies import get_auth_service, get_current_user
from auth.models import User
from auth.service import AuthService

# Auth policy:
# - POST   /auth/register:  public, rate-limited
# - POST   /auth/login:     public, rate-limited
# - POST   /auth/logout:    public -- there is no server-side session to end
# - GET    /auth/me:        requires auth (get_current_user)
# - GET    /auth/profile:   requires auth (get_current_user)
# - PATCH  /auth/profile:   requires auth (get_current_user)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/auth/register",
    response_model=AuthResponse,
    status_code=201,
    dependencies=[Depends(enforce_auth_rate_limit)],
)
async def register(
    body: RegisterRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Create an account and return a bearer token for it."""
    result = await service.register(body.email, body.password, body.first_name, body.last_name)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return AuthResponse(token=result.token, user=UserResponse.from_user(result.user))


@router.post(
    "/auth/login",
    response_model=AuthResponse,
    dependencies=[Depends(enforce_auth_rate_limit)],
)
async def login(
    body: LoginRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Authenticate with email and password.

    Unknown email and wrong password return the same 401 body.
    """
    result = await service.login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return AuthResponse(token=result.token, user=UserResponse.from_user(result.user))


@router.post("/auth/logout", response_model=MessageResponse)
async def logout() -> MessageResponse:
    """Acknowledge logout. Tokens stay valid until expiry; the client must discard it."""
    return MessageResponse(message="Logged out.")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
@router.get("/auth/profile", response_model=MeResponse)
async def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return the public representation of the authenticated user."""
    return MeResponse(user=UserResponse.from_user(current_user))


@router.patch("/auth/profile", response_model=MeResponse)
async def update_profile(
    body: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> MeResponse:
    """Update first and/or last name of the authenticated user."""
    updated = await service.update_profile(current_user, body.first_name, body.last_name)
    return MeResponse(user=UserResponse.from_user(updated))
