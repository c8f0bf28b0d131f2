"""Custom exception hierarchy for pycrownstone."""

from __future__ import annotations


class CrownstoneError(Exception):
    """Base exception for all pycrownstone errors."""


class CrownstoneConfigError(CrownstoneError):
    """Invalid or missing configuration."""


class CrownstoneTransportError(CrownstoneError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class CrownstoneApiError(CrownstoneError):
    """API returned an error object (application-level error)."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "",
        endpoint: str = "",
    ) -> None:
        self.code = code
        self.endpoint = endpoint
        super().__init__(message)


class CrownstoneAuthenticationError(CrownstoneApiError):
    """Login failed: bad credentials or unreachable service."""


class CrownstoneSessionExpiredError(CrownstoneAuthenticationError):
    """Access token rejected by the server.

    Raised when a post-login API call answers ``401``.  The client
    catches this internally to trigger one automatic re-authentication.
    """


class CrownstoneFetchError(CrownstoneError):
    """A mirror pass could not obtain any usable data."""

    def __init__(self, message: str, *, failures: tuple[str, ...] = ()) -> None:
        self.failures = failures
        super().__init__(message)


class CrownstoneKeyFetchError(CrownstoneError):
    """The sphere keys needed for radio commands could not be fetched."""

    def __init__(self, message: str, *, sphere_id: str = "") -> None:
        self.sphere_id = sphere_id
        super().__init__(message)


class CrownstoneDiscoveryTimeout(CrownstoneError):
    """The radio advertisement of a device was not found in time."""

    def __init__(self, message: str, *, address: str = "") -> None:
        self.address = address
        super().__init__(message)


class CrownstoneCommandError(CrownstoneError):
    """A transport rejected a device command."""

    def __init__(self, message: str, *, device_id: str = "", transport: str = "") -> None:
        self.device_id = device_id
        self.transport = transport
        super().__init__(message)
