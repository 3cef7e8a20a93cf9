"""
auth/validators.py -- Credential and profile field validation.

Pure, synchronous functions. Each returns the normalized value or raises
core.errors.ValidationError with a client-safe message and the field name.

Password policy:
  - at least PASSWORD_MIN_LENGTH (8) characters
  - at most PASSWORD_MAX_BYTES (72) bytes once UTF-8 encoded. bcrypt only
    reads the first 72 bytes, so anything longer would be silently truncated.
  - at least one letter and at least one digit

Strings that cannot be encoded as UTF-8 (lone surrogates, which a JSON
unicode escape can produce) are rejected with a ValidationError like any other
bad input.

Email syntax is checked with email-validator (no DNS lookups). The result is
lowercased so it can be used directly as the uniqueness key.
"""

from __future__ import annotations

from email_validator import EmailNotValidError
from email_validator import validate_email as _check_email_syntax

from core.errors import ValidationError

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_BYTES = 72
NAME_MAX_LENGTH = 50


def canonical_email(raw: str) -> str:
    """Return the lookup form of an email: trimmed and lowercased. No syntax check."""
    return raw.strip().lower()


def is_utf8_encodable(raw: str) -> bool:
    """False for strings holding lone surrogates, which JSON can carry but UTF-8 cannot."""
    try:
        raw.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def validate_email(raw: str | None) -> str:
    if raw is None or not raw.strip():
        raise ValidationError("Email is required", field="email")
    if not is_utf8_encodable(raw):
        raise ValidationError("Please provide a valid email", field="email")
    try:
        result = _check_email_syntax(raw.strip(), check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError("Please provide a valid email", field="email") from exc
    return canonical_email(result.normalized)


def validate_password(raw: str | None) -> str:
    """Check a new password against the policy. The password is returned unchanged."""
    if not raw:
        raise ValidationError("Password is required", field="password")
    try:
        encoded = raw.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise ValidationError("Password contains invalid characters", field="password") from exc
    if len(raw) < PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long",
            field="password",
        )
    if len(encoded) > PASSWORD_MAX_BYTES:
        raise ValidationError(
            f"Password cannot exceed {PASSWORD_MAX_BYTES} bytes",
            field="password",
        )
    if not any(c.isalpha() for c in raw) or not any(c.isdigit() for c in raw):
        raise ValidationError(
            "Password must contain at least one letter and one number",
            field="password",
        )
    return raw


def validate_name(raw: str | None, field_label: str) -> str:
    """Trim a first/last name and check 1..NAME_MAX_LENGTH characters remain.

    field_label is the human label used in the message ("First name");
    the error's field is its snake_case form ("first_name").
    """
    field_name = field_label.lower().replace(" ", "_")
    trimmed = (raw or "").strip()
    if not trimmed:
        raise ValidationError(f"{field_label} is required", field=field_name)
    if len(trimmed) > NAME_MAX_LENGTH:
        raise ValidationError(
            f"{field_label} cannot exceed {NAME_MAX_LENGTH} characters",
            field=field_name,
        )
    if not is_utf8_encodable(trimmed):
        raise ValidationError(f"{field_label} contains invalid characters", field=field_name)
    return trimmed
