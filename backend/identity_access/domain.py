"""
Identity domain constants and simple helpers.

Why:
- Centralize allowed roles to avoid drift between the web layer, the services
  and the client CLI.
"""

from __future__ import annotations

ROLE_STUDENT = "student"
ROLE_ADMIN = "admin"

# Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({ROLE_STUDENT, ROLE_ADMIN})


def normalize_role(value: str | None) -> str:
    """Map a requested role to an allowed one; unknown or empty means student."""
    role = (value or "").strip().lower()
    return role if role in ALLOWED_ROLES else ROLE_STUDENT


__all__ = ["ALLOWED_ROLES", "ROLE_STUDENT", "ROLE_ADMIN", "normalize_role"]
