"""Helpers for safe debug logging.

pycrownstone handles account passwords, access tokens and the sphere keys
used to encrypt radio traffic.  This module redacts those fields before
payloads are emitted in DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "accesstoken",
        "access_token",
        "token",
        "authorization",
        "cookie",
        # Sphere/radio credentials
        "key",
        "adminkey",
        "memberkey",
        "basickey",
        "admin_key",
        "member_key",
        "basic_key",
    }
)


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None:
        return None

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            if key.lower() in _SENSITIVE_VALUE_KEYS:
                redacted[key] = "<redacted>"
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)


def mask_email(email: str) -> str:
    """Mask the local part of an email address for INFO-level logs."""
    local, sep, domain = email.partition("@")
    if not sep:
        return "<redacted>"
    if len(local) <= 1:
        return f"*@{domain}"
    return f"{local[0]}{'*' * (len(local) - 1)}@{domain}"


def describe_secret(value: str | None) -> str:
    """Describe a secret without revealing it (``"<missing>"`` or its length)."""
    if not value:
        return "<missing>"
    return f"<{len(value)} chars>"
