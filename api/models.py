"""
API request and response models for authgate REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclass in auth/models.py, which owns the
internal domain representation. Route handlers map between the two.

JSON field names are camelCase (firstName, isEmailVerified, ...) via an
alias generator; Python attributes stay snake_case. Request models accept
either form.

Request fields are all Optional: presence and format are checked by
auth/validators.py so a missing field produces the same `{"error": ...}`
400 as an invalid one, naming the first failing field.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from auth.models import User

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    model_config = _CAMEL

    email: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class LoginRequest(BaseModel):
    model_config = _CAMEL

    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    """Body for PATCH /api/auth/profile. Omitted fields are left unchanged."""

    model_config = _CAMEL

    first_name: Optional[str] = None
    last_name: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public representation of a user.

    There is deliberately no field for password_hash or the reset-token
    fields, so they cannot be serialized even by accident.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    email: str
    first_name: str
    last_name: str
    is_email_verified: bool
    is_active: bool
    last_login: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            is_email_verified=user.is_email_verified,
            is_active=user.is_active,
            last_login=user.last_login,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class AuthResponse(BaseModel):
    """Response body for register (201) and login (200)."""

    model_config = ConfigDict(frozen=True)

    token: str
    user: UserResponse


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserResponse


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorResponse(BaseModel):
    """Every error body: `{"error": "<human-readable message>"}`."""

    model_config = ConfigDict(frozen=True)

    error: str


class HealthResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "OK"
    timestamp: str
    environment: str
    version: str
    components: dict[str, str]
