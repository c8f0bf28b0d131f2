"""High-level async client for the Crownstone cloud API."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import aiohttp

from pycrownstone._api import devices as _devices_api
from pycrownstone._api import presence as _presence_api
from pycrownstone._api import spheres as _spheres_api
from pycrownstone._api.login import login as _login
from pycrownstone._redact import mask_email
from pycrownstone._transport import CloudTransport, Transport
from pycrownstone.config import CrownstoneConfig
from pycrownstone.exceptions import CrownstoneAuthenticationError, CrownstoneError, CrownstoneSessionExpiredError
from pycrownstone.models.device import DeviceRecord
from pycrownstone.models.keys import SphereKey
from pycrownstone.models.presence import CurrentLocation
from pycrownstone.models.sphere import Location, Sphere
from pycrownstone.session import Session

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class CrownstoneCloud:
    """Async client for the Crownstone cloud API.

    Usage::

        async with CrownstoneCloud(config) as cloud:
            await cloud.login(email, password)
            spheres = await cloud.get_spheres()

    Long-lived owners (such as :class:`pycrownstone.app.CrownstoneApp`)
    may call :meth:`open` / :meth:`close` instead of using the context
    manager.
    """

    def __init__(
        self,
        config: CrownstoneConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport
        self._external_transport = transport is not None
        self._session: Session | None = None
        self._email = config.email
        self._password = config.password

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> CrownstoneCloud:
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def open(self) -> None:
        if self._transport is not None:
            return
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        self._transport = CloudTransport(self._config, self._http_session)

    async def close(self) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if not self._external_transport:
            self._transport = None
        self._session = None

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    @property
    def user_id(self) -> str | None:
        return self._session.user_id if self._session is not None else None

    @property
    def logged_in(self) -> bool:
        return self._session is not None

    async def login(self, email: str | None = None, password: str | None = None) -> None:
        """Authenticate and obtain an access token.

        Credentials given here are remembered for automatic re-login.
        On failure the previous session (if any) is kept untouched.
        """
        await self.open()
        transport = self._require_transport()
        email = email if email is not None else self._email
        password = password if password is not None else self._password
        token = await _login(transport, email, password)

        ttl = token.ttl if token.ttl else self._config.session_ttl
        if self._config.session_ttl <= 0:
            ttl = float("inf")
        self._session = Session(user_id=token.user_id, access_token=token.access_token, ttl=ttl)
        self._email = email
        self._password = password
        _logger.debug("Logged in as %s (user=%s)", mask_email(email), token.user_id)

    async def ensure_session(self) -> Session:
        """Return an active session, re-authenticating if expired."""
        if self._session is not None and not self._session.is_expired:
            return self._session
        if not self._email or not self._password:
            raise CrownstoneAuthenticationError("Not logged in")
        await self.login()
        assert self._session is not None  # noqa: S101
        return self._session

    def invalidate_session(self) -> None:
        """Force session invalidation (next call will re-authenticate)."""
        self._session = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise CrownstoneError("Client not initialized. Use 'async with CrownstoneCloud(...) as cloud:'")
        return self._transport

    async def _call_with_reauth(self, fn: Callable[[Session, Transport], Awaitable[T]]) -> T:
        """Run an API call, retrying once on session expiry."""
        session = await self.ensure_session()
        transport = self._require_transport()
        try:
            return await fn(session, transport)
        except CrownstoneSessionExpiredError:
            _logger.debug("Access token rejected; logging in again")
            self.invalidate_session()
            session = await self.ensure_session()
            return await fn(session, transport)

    # ------------------------------------------------------------------
    # Read endpoints
    # ------------------------------------------------------------------

    async def get_spheres(self) -> list[Sphere]:
        """Fetch all spheres the account has access to."""
        return await self._call_with_reauth(_spheres_api.fetch_spheres)

    async def get_locations(self, sphere_id: str) -> list[Location]:
        """Fetch the rooms of a sphere."""
        return await self._call_with_reauth(
            lambda session, transport: _spheres_api.fetch_locations(session, transport, sphere_id)
        )

    async def get_devices(self, sphere_id: str) -> list[DeviceRecord]:
        """Fetch the devices of a sphere, with abilities and switch state."""
        return await self._call_with_reauth(
            lambda session, transport: _devices_api.fetch_devices(session, transport, sphere_id)
        )

    async def get_device(self, device_id: str) -> DeviceRecord:
        """Fetch one device, with abilities and switch state."""
        return await self._call_with_reauth(
            lambda session, transport: _devices_api.fetch_device(session, transport, device_id)
        )

    async def get_sphere_keys(self, sphere_id: str) -> list[SphereKey]:
        """Fetch the key entries of a sphere."""
        return await self._call_with_reauth(
            lambda session, transport: _spheres_api.fetch_sphere_keys(session, transport, sphere_id)
        )

    async def get_current_location(self) -> list[CurrentLocation]:
        """Fetch where the logged-in user currently is."""
        return await self._call_with_reauth(_presence_api.fetch_current_location)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def turn_on(self, device_id: str) -> None:
        await self._call_with_reauth(
            lambda session, transport: _devices_api.switch_device(session, transport, device_id, on=True)
        )

    async def turn_off(self, device_id: str) -> None:
        await self._call_with_reauth(
            lambda session, transport: _devices_api.switch_device(session, transport, device_id, on=False)
        )

    async def set_switch(self, device_id: str, percentage: int) -> None:
        """Dim a device to *percentage* (0..100)."""
        await self._call_with_reauth(
            lambda session, transport: _devices_api.switch_device(
                session, transport, device_id, percentage=percentage
            )
        )
