"""
auth/models.py -- Domain dataclass for the user identity record.

Pattern: Data class (pure data container, zero logic). The store does the
persistence work; api/models.py owns the public JSON shape.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """An account that can log in and hold bearer tokens.

    email is always the canonical form (trimmed, lowercased) and is the
    uniqueness key. password_hash is a self-describing bcrypt string, never
    the plaintext. password_hash and the reset_password_* fields are kept out
    of repr() so a logged User cannot leak them, and api/models.UserResponse
    has no field for them.

    id, created_at and updated_at are assigned by the store.
    Timestamps are ISO 8601 UTC strings.
    """

    email: str
    first_name: str
    last_name: str
    password_hash: str = field(repr=False)
    id: str | None = None
    is_email_verified: bool = False
    is_active: bool = True
    reset_password_token: str | None = field(default=None, repr=False)
    reset_password_expires: str | None = field(default=None, repr=False)
    last_login: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
