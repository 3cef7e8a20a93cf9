"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The AuthService is built once in api/main.py lifespan and stored on
app.state.auth_service; get_auth_service() hands it to route handlers.

get_current_user() requires an `Authorization: Bearer <token>` header and
resolves it to an active User, raising AuthError (401) otherwise. The
exception handler in api/main.py renders the error body.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.models import User
from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


async def get_current_user(request: Request, service: AuthService = Depends(get_auth_service)) -> User:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    return await service.get_current_user(request.headers.get("Authorization"))
