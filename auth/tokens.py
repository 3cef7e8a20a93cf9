"""
auth/tokens.py -- Bearer token issue and verification (JWT, HS256).

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (user id), iat, exp and jti. Verification raises
       AuthError(INVALID_TOKEN) on any failure -- bad signature, malformed
       structure, missing claims, or now >= exp.

  Stateless: nothing about issued tokens is stored. Rotating SECRET_KEY
       invalidates every outstanding token. There is no revocation list;
       logout is the client discarding its token. jti is included so a
       denylist keyed by token id can be added later without changing the
       token format.

  Expiry: Settings.token_expire_seconds (default 24h).

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
import time
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from core.config import get_settings
from core.errors import AuthError, AuthErrorReason

logger = logging.getLogger("authgate.auth")

ALGORITHM = "HS256"


def create_access_token(user_id: str, expire_seconds: int = 0) -> str:
    """Encode a signed JWT bound to user_id.

    Args:
        user_id:        Store-assigned user id, carried as the `sub` claim.
        expire_seconds: Token lifetime. If 0 (default), uses
                        Settings.token_expire_seconds.
    """
    settings = get_settings()
    duration = expire_seconds if expire_seconds > 0 else settings.token_expire_seconds
    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=duration),
        "jti": secrets.token_hex(16),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def verify_access_token(token: str) -> str:
    """Verify a JWT issued by create_access_token() and return its user id."""
    try:
        payload = jwt.decode(token, get_settings().secret_key, algorithms=[ALGORITHM])
    except JWTError as exc:
        logger.debug("Token rejected: %s", exc.__class__.__name__)
        raise AuthError(AuthErrorReason.INVALID_TOKEN) from exc

    user_id = payload.get("sub")
    exp = payload.get("exp")
    if not isinstance(user_id, str) or not user_id or not isinstance(exp, (int, float)):
        raise AuthError(AuthErrorReason.INVALID_TOKEN)
    # jose accepts a token during its final second; expiry is now >= exp.
    if time.time() >= exp:
        raise AuthError(AuthErrorReason.INVALID_TOKEN)
    return user_id


def extract_bearer_token(authorization: str | None) -> str:
    """Return the token from an `Authorization: Bearer <token>` header value.

    A missing header, another scheme, or an empty/space-containing token all
    raise AuthError(UNAUTHENTICATED).
    """
    if not authorization:
        raise AuthError(AuthErrorReason.UNAUTHENTICATED)
    scheme, _, token = authorization.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        raise AuthError(AuthErrorReason.UNAUTHENTICATED)
    return token
