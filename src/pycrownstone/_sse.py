"""Server-sent events push stream over aiohttp."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any

import aiohttp

from pycrownstone._api.login import login as _login
from pycrownstone._constants import USER_AGENT
from pycrownstone._redact import mask_email
from pycrownstone._transport import CloudTransport, Transport
from pycrownstone.collaborators import PushHandler
from pycrownstone.config import CrownstoneConfig
from pycrownstone.exceptions import CrownstoneAuthenticationError, CrownstoneError, CrownstoneTransportError

_logger = logging.getLogger(__name__)


def parse_sse_lines(lines: list[str]) -> str | None:
    """Join the ``data`` fields of one event block; ``None`` if it has none."""
    data: list[str] = []
    for line in lines:
        if not line or line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if name != "data":
            continue
        data.append(value[1:] if value.startswith(" ") else value)
    return "\n".join(data) if data else None


class CrownstoneEventStream:
    """Push stream reading the cloud's event server.

    ``start`` spawns one background reader task; a dropped connection is
    re-opened after ``sse_reconnect_delay`` seconds, logging in again if
    the server rejects the token.
    """

    def __init__(
        self,
        config: CrownstoneConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config
        self._http_session = session
        self._external_session = session is not None
        self._transport = transport
        self._access_token: str | None = None
        self._email = ""
        self._password = ""
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _ensure_http(self) -> aiohttp.ClientSession:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        return self._http_session

    async def login(self, email: str, password: str) -> None:
        if self._transport is None:
            self._transport = CloudTransport(self._config, self._ensure_http())
        token = await _login(self._transport, email, password)
        self._access_token = token.access_token
        self._email = email
        self._password = password
        _logger.debug("Push stream authenticated as %s", mask_email(email))

    async def start(self, handler: PushHandler) -> None:
        if self._access_token is None:
            raise CrownstoneAuthenticationError("Push stream requires login before start")
        await self.stop()
        self._task = asyncio.create_task(self._run(handler), name="crownstone-sse")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        _logger.debug("Push stream stopped")

    async def close(self) -> None:
        await self.stop()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    async def _run(self, handler: PushHandler) -> None:
        while True:
            try:
                await self._read(handler)
                _logger.debug("Push stream closed by server")
            except CrownstoneTransportError as exc:
                _logger.warning("Push stream error: %s", exc)
                if exc.status_code == 401:
                    await self._relogin()
            except (aiohttp.ClientError, TimeoutError) as exc:
                _logger.warning("Push stream dropped: %s", exc)
            except Exception:
                _logger.exception("Unexpected push stream failure; reconnecting")
            await asyncio.sleep(self._config.sse_reconnect_delay)

    async def _relogin(self) -> None:
        try:
            await self.login(self._email, self._password)
        except CrownstoneError as exc:
            _logger.warning("Push stream could not log in again: %s", exc)

    async def _read(self, handler: PushHandler) -> None:
        http = self._ensure_http()
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=self._config.request_timeout)
        headers = {"accept": "text/event-stream", "user-agent": USER_AGENT}
        async with http.get(
            self._config.sse_url,
            params={"accessToken": self._access_token or ""},
            headers=headers,
            timeout=timeout,
        ) as resp:
            if resp.status >= 300:
                raise CrownstoneTransportError(
                    f"HTTP {resp.status} from event server",
                    status_code=resp.status,
                    endpoint=self._config.sse_url,
                )
            _logger.debug("Push stream connected")
            block: list[str] = []
            async for raw_line in resp.content:
                line = raw_line.decode("utf-8", errors="replace").rstrip("\r\n")
                if line:
                    block.append(line)
                    continue
                data = parse_sse_lines(block)
                block = []
                if data is not None:
                    await self._dispatch(data, handler)

    async def _dispatch(self, data: str, handler: PushHandler) -> None:
        try:
            payload: Any = json.loads(data)
        except json.JSONDecodeError:
            _logger.debug("Ignoring non-JSON push event: %.200s", data)
            return
        if not isinstance(payload, dict):
            return
        try:
            await handler(payload)
        except Exception:
            _logger.exception("Push event handler failed")
