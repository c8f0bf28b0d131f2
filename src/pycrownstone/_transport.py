"""HTTP transport for the Crownstone cloud REST API."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pycrownstone._constants import USER_AGENT
from pycrownstone._redact import redact_for_log
from pycrownstone.config import CrownstoneConfig
from pycrownstone.exceptions import CrownstoneTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`CloudTransport`) concrete.
    """

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        access_token: str | None = None,
        params: Mapping[str, Any] | None = None,
        json_body: Any = None,
    ) -> Any:
        ...


class CloudTransport:
    """JSON-over-HTTP transport with access-token authentication."""

    def __init__(self, config: CrownstoneConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        access_token: str | None = None,
        params: Mapping[str, Any] | None = None,
        json_body: Any = None,
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Query values that are not strings are JSON-encoded (loopback
        ``filter`` parameters are JSON objects).
        """
        headers: dict[str, str] = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }
        if access_token:
            headers["authorization"] = access_token

        query: dict[str, str] = {}
        for key, value in (params or {}).items():
            query[key] = value if isinstance(value, str) else json.dumps(value, separators=(",", ":"))

        url = f"{self._config.base_url}{endpoint}"
        _logger.debug("%s %s params=%s body=%s", method, url, query, redact_for_log(json_body))

        try:
            async with self._http.request(
                method,
                url,
                params=query or None,
                json=json_body,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                if resp.status >= 300:
                    raise CrownstoneTransportError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except CrownstoneTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise CrownstoneTransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        if not text.strip():
            return None

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise CrownstoneTransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                endpoint=endpoint,
            ) from exc
