"""
auth/service.py -- Register / login / current-user orchestration.

AuthService is the only component with business-level control flow. It
holds no state of its own beyond its collaborators; everything durable
lives in the UserRepository.

Blocking work (repository calls and bcrypt) runs in a worker thread and is
bounded by Settings.repository_timeout_seconds. A timeout or an
OperationalError surfaces as TransientError (503, retryable). A timed-out
worker thread is abandoned, not killed; its result is discarded.

Repository errors are translated, never passed through:
  IntegrityError on the email unique constraint -> ConflictError
  OperationalError / timeout                    -> TransientError
  any other SQLAlchemyError                     -> FatalError
The original exception stays on __cause__ for the logs only.

Security:
  [C1] Unknown email and wrong password take the same bcrypt time (see
       passwords.verify_dummy) and raise the same AuthError message.
  Passwords and tokens are never logged. Users are logged by id.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from auth.models import User
from auth.passwords import hash_password, needs_rehash, verify_dummy, verify_password
from auth.store import UserRepository
from auth.tokens import create_access_token, extract_bearer_token, verify_access_token
from auth.validators import (
    canonical_email,
    is_utf8_encodable,
    validate_email,
    validate_name,
    validate_password,
)
from core.errors import (
    AuthError,
    AuthErrorReason,
    ConflictError,
    FatalError,
    TransientError,
    ValidationError,
)

logger = logging.getLogger("authgate.auth")


@dataclass(frozen=True)
class AuthResult:
    token: str
    user: User


def _is_email_conflict(exc: IntegrityError) -> bool:
    """True if the IntegrityError is a unique violation on users.email.

    PostgreSQL reports SQLSTATE 23505 with the constraint name; SQLite
    reports "UNIQUE constraint failed: users.email".
    """
    orig = exc.orig
    message = str(orig).lower()
    if getattr(orig, "pgcode", None) == "23505" or getattr(orig, "sqlstate", None) == "23505":
        return "email" in message
    return "unique" in message and "email" in message


class AuthService:
    def __init__(self, store: UserRepository, timeout_seconds: float | None = None) -> None:
        self._store = store
        self._timeout = timeout_seconds

    async def _call(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a blocking call in a worker thread under the configured timeout."""
        name = getattr(func, "__name__", "call")
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args, **kwargs), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.error("%s timed out after %ss", name, self._timeout)
            raise TransientError() from exc
        except IntegrityError as exc:
            if _is_email_conflict(exc):
                raise ConflictError() from exc
            logger.exception("Unexpected integrity error in %s", name)
            raise FatalError() from exc
        except OperationalError as exc:
            logger.warning("Repository unavailable during %s: %s", name, exc.__class__.__name__)
            raise TransientError() from exc
        except SQLAlchemyError as exc:
            logger.exception("Repository error in %s", name)
            raise FatalError() from exc

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    async def register(
        self,
        email: str | None,
        password: str | None,
        first_name: str | None,
        last_name: str | None,
    ) -> AuthResult:
        """Create an account and return a token for it.

        Fields are validated in order (email, password, first name, last
        name); the first failure is raised. The get_by_email() pre-check
        only saves a bcrypt round on obvious duplicates -- a concurrent
        duplicate is caught by the store's unique constraint instead.
        """
        email = validate_email(email)
        password = validate_password(password)
        first_name = validate_name(first_name, "First name")
        last_name = validate_name(last_name, "Last name")

        if await self._call(self._store.get_by_email, email) is not None:
            raise ConflictError()

        password_hash = await self._call(hash_password, password)
        user = await self._call(
            self._store.create_user,
            User(email=email, first_name=first_name, last_name=last_name, password_hash=password_hash),
        )
        logger.info("Registered user %s", user.id)
        return AuthResult(token=create_access_token(user.id), user=user)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def login(self, email: str | None, password: str | None) -> AuthResult:
        """Check credentials, stamp last_login and return a fresh token.

        Email syntax is deliberately not validated here: any string is just
        a lookup key, and a miss is indistinguishable from a wrong password.
        Inactive accounts fail the same way.
        """
        if not email or not email.strip():
            raise ValidationError("Email and password are required", field="email")
        if not password:
            raise ValidationError("Email and password are required", field="password")
        if not is_utf8_encodable(email):
            raise ValidationError("Please provide a valid email", field="email")
        if not is_utf8_encodable(password):
            raise ValidationError("Password contains invalid characters", field="password")

        user = await self._call(self._store.get_by_email, canonical_email(email))
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            await self._call(verify_dummy, password)
            logger.info("Login failed: unknown email")
            raise AuthError(AuthErrorReason.INVALID_CREDENTIALS)
        if not await self._call(verify_password, password, user.password_hash):
            logger.info("Login failed: bad password for user %s", user.id)
            raise AuthError(AuthErrorReason.INVALID_CREDENTIALS)
        if not user.is_active:
            logger.info("Login failed: user %s is inactive", user.id)
            raise AuthError(AuthErrorReason.INVALID_CREDENTIALS)

        if needs_rehash(user.password_hash):
            new_hash = await self._call(hash_password, password)
            await self._call(self._store.update_user, user.id, password_hash=new_hash)
            logger.info("Upgraded password hash cost for user %s", user.id)

        updated = await self._call(self._store.update_last_login, user.id)
        if updated is None:
            # Deleted between lookup and update.
            raise AuthError(AuthErrorReason.INVALID_CREDENTIALS)
        logger.info("User %s logged in", updated.id)
        return AuthResult(token=create_access_token(updated.id), user=updated)

    # ------------------------------------------------------------------
    # Current user
    # ------------------------------------------------------------------

    async def get_current_user(self, authorization: str | None) -> User:
        """Resolve an Authorization header value to an active User.

        Missing/malformed header -> AuthError(UNAUTHENTICATED)
        Bad signature or expired -> AuthError(INVALID_TOKEN)
        User gone or inactive    -> AuthError(UNAUTHENTICATED)
        """
        token = extract_bearer_token(authorization)
        user_id = verify_access_token(token)
        user = await self._call(self._store.get_by_id, user_id)
        if user is None or not user.is_active:
            raise AuthError(AuthErrorReason.UNAUTHENTICATED)
        return user

    async def update_profile(
        self,
        user: User,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        """Change the user's names. Omitted (None) fields are left as they are."""
        updates: dict[str, str] = {}
        if first_name is not None:
            updates["first_name"] = validate_name(first_name, "First name")
        if last_name is not None:
            updates["last_name"] = validate_name(last_name, "Last name")
        if not updates:
            raise ValidationError("No fields to update")

        updated = await self._call(self._store.update_user, user.id, **updates)
        if updated is None:
            raise AuthError(AuthErrorReason.UNAUTHENTICATED)
        logger.info("Updated profile for user %s", updated.id)
        return updated
