"""Shared identifier and account-identity normalization helpers."""

from __future__ import annotations

import re
import uuid
from typing import Any

from services.errors import InvalidArgument


_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_USERNAME_PATTERN = re.compile(r"^[a-z0-9._-]{3,30}$")


def normalize_username(value: Any) -> str:
    """Normalize a username for storage and lookup (case-insensitive)."""
    text = str(value or "").strip().lower()
    if text.startswith("@"):
        text = text[1:]
    return text


def normalize_email(value: Any) -> str:
    return str(value or "").strip().lower()


def is_valid_username(value: str) -> bool:
    return bool(_USERNAME_PATTERN.match(value or ""))


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_PATTERN.match(value or ""))


def require_valid_id(value: Any, label: str) -> str:
    """Return the canonical form of an entity id or raise InvalidArgument.

    Runs before any store access so malformed ids never become a not-found.
    """
    text = str(value or "").strip()
    try:
        return str(uuid.UUID(text))
    except ValueError as exc:
        raise InvalidArgument(f"Invalid {label} ID") from exc


def require_text(value: Any, label: str) -> str:
    """Return stripped text or raise InvalidArgument when empty."""
    text = str(value or "").strip()
    if not text:
        raise InvalidArgument(f"{label} cannot be empty")
    return text
