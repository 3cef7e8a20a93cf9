"""
auth/passwords.py -- bcrypt password hashing and verification.

Security design decisions:
  bcrypt directly, no passlib wrapper. passlib's wrap-bug detection builds a
  password longer than 72 bytes, which bcrypt 4.x+ rejects outright.

  The hash string is self-describing ($2b$<cost>$<salt+digest>), so
  verification needs no out-of-band parameters and each hash_password()
  call yields a different string for the same input (fresh salt).

  Cost factor comes from Settings.bcrypt_rounds. needs_rehash() lets the
  login path upgrade hashes created under an older cost.

  verify_dummy() exists for timing equalization [C1]: the login path calls it
  when the email is unknown so response time does not reveal whether an
  account exists.

Plaintext passwords are never logged or stored by this module.
"""

from __future__ import annotations

from functools import lru_cache

import bcrypt

from core.config import get_settings


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    cost = rounds if rounds is not None else get_settings().bcrypt_rounds
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=cost)).decode("utf-8")


def verify_password(plain: str, hashed: str | None) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed or missing hash is a mismatch, not an error. bcrypt also
    raises ValueError for passwords over 72 bytes, which likewise cannot
    match anything we stored.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def needs_rehash(hashed: str, rounds: int | None = None) -> bool:
    """Return True if the hash was made with a different cost than configured."""
    cost = rounds if rounds is not None else get_settings().bcrypt_rounds
    parts = hashed.split("$")
    # ["", "2b", "12", "<salt+digest>"]
    if len(parts) != 4 or not parts[2].isdigit():
        return True
    return int(parts[2]) != cost


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password("authgate_timing_dummy")


def verify_dummy(plain: str) -> bool:
    """Burn one bcrypt verification at the configured cost. Always returns False."""
    verify_password(plain, _dummy_hash())
    return False
