"""Client configuration for pycrownstone."""

from __future__ import annotations

import dataclasses
import os
from typing import Any, Literal

from pycrownstone._constants import (
    BASE_URL,
    DEFAULT_DISCOVERY_TIMEOUT_S,
    DEFAULT_POLL_PRESENCE_INTERVAL_S,
    DEFAULT_SESSION_TTL_S,
    SSE_URL,
)
from pycrownstone.exceptions import CrownstoneConfigError

OverlapPolicy = Literal["drop", "queue"]

_OVERLAP_POLICIES: frozenset[str] = frozenset({"drop", "queue"})


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class CrownstoneConfig:
    """Client configuration.

    Parameters
    ----------
    email : str
        Crownstone account email.  May be left empty when credentials
        come from the platform settings store instead.
    password : str
        Crownstone account password (plaintext; hashed before sending).
    base_url : str
        Cloud REST API base URL.
    sse_url : str
        Server-sent events endpoint of the push stream.
    presence_poll_interval : float
        Seconds between presence polls that catch missed push events.
    discovery_timeout : float
        Seconds to look for a device's radio advertisement before the
        fallback is declared "not found".
    request_timeout : float
        Total timeout in seconds of a single cloud request.
    sse_reconnect_delay : float
        Seconds to wait before reconnecting a dropped push stream.
    session_ttl : float
        Access token time-to-live in seconds.  ``0`` disables expiry
        (the session then only refreshes on ``401``).
    push_enabled : bool
        Connect the push stream on login.
    overlap_policy : {"drop", "queue"}
        What happens to a command issued while another of the same class
        is in flight: dropped (default) or queued behind it.
    """

    email: str = ""
    password: str = ""
    base_url: str = BASE_URL
    sse_url: str = SSE_URL
    presence_poll_interval: float = DEFAULT_POLL_PRESENCE_INTERVAL_S
    discovery_timeout: float = DEFAULT_DISCOVERY_TIMEOUT_S
    request_timeout: float = 30.0
    sse_reconnect_delay: float = 5.0
    session_ttl: float = DEFAULT_SESSION_TTL_S
    push_enabled: bool = True
    overlap_policy: OverlapPolicy = "drop"

    def __post_init__(self) -> None:
        if self.overlap_policy not in _OVERLAP_POLICIES:
            raise CrownstoneConfigError(f"overlap_policy must be 'drop' or 'queue', got {self.overlap_policy!r}")
        if self.discovery_timeout <= 0:
            raise CrownstoneConfigError("discovery_timeout must be positive")
        if self.presence_poll_interval <= 0:
            raise CrownstoneConfigError("presence_poll_interval must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> CrownstoneConfig:
        """Create configuration from environment variables.

        Reads ``CROWNSTONE_EMAIL``, ``CROWNSTONE_PASSWORD`` and the optional
        ``CROWNSTONE_*`` variables below.  Explicit keyword arguments
        override environment values.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "CROWNSTONE_EMAIL": "email",
            "CROWNSTONE_PASSWORD": "password",
            "CROWNSTONE_BASE_URL": "base_url",
            "CROWNSTONE_SSE_URL": "sse_url",
            "CROWNSTONE_OVERLAP_POLICY": "overlap_policy",
        }
        _ENV_FLOAT_MAP = {
            "CROWNSTONE_PRESENCE_POLL_INTERVAL": "presence_poll_interval",
            "CROWNSTONE_DISCOVERY_TIMEOUT": "discovery_timeout",
            "CROWNSTONE_REQUEST_TIMEOUT": "request_timeout",
            "CROWNSTONE_SSE_RECONNECT_DELAY": "sse_reconnect_delay",
            "CROWNSTONE_SESSION_TTL": "session_ttl",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = float(val)
            except ValueError as exc:
                raise CrownstoneConfigError(f"{env_key} must be a number, got {val!r}") from exc

        if "push_enabled" not in overrides:
            config_kwargs["push_enabled"] = _env_bool(env.get("CROWNSTONE_PUSH_ENABLED"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
