"""Login endpoint.

Endpoint:
  - POST /users/login

The cloud never receives the plaintext password, only its SHA-1 hex digest.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any

from pycrownstone._redact import mask_email, redact_for_log
from pycrownstone._transport import Transport
from pycrownstone.exceptions import CrownstoneAuthenticationError, CrownstoneTransportError
from pycrownstone.models.token import AuthToken

_logger = logging.getLogger(__name__)

LOGIN_ENDPOINT = "/users/login"


def hash_password(password: str) -> str:
    """SHA-1 hex digest of the UTF-8 password, as the cloud expects it."""
    return hashlib.sha1(password.encode("utf-8")).hexdigest()


def build_login_request(email: str, password: str) -> dict[str, str]:
    """Build the JSON body for the login endpoint."""
    return {"email": email.strip().lower(), "password": hash_password(password)}


def parse_login_response(response: Any) -> AuthToken:
    """Parse the login response and extract the auth token.

    Raises
    ------
    CrownstoneAuthenticationError
        If the response is missing token fields.
    """
    if not isinstance(response, dict) or not response.get("id") or not response.get("userId"):
        _logger.debug("Unexpected login response keys=%s", redact_for_log(list(response or {})))
        raise CrownstoneAuthenticationError(
            "Login response missing token fields",
            endpoint=LOGIN_ENDPOINT,
        )
    ttl = response.get("ttl")
    return AuthToken(
        access_token=str(response["id"]),
        user_id=str(response["userId"]),
        ttl=float(ttl) if isinstance(ttl, (int, float)) and ttl > 0 else None,
        raw=response,
    )


async def login(transport: Transport, email: str, password: str) -> AuthToken:
    """Exchange credentials for an access token.

    Every failure (rejected credentials, network, malformed reply) is
    reported as :class:`CrownstoneAuthenticationError`.
    """
    if not email or not password:
        raise CrownstoneAuthenticationError("Email and password are required", endpoint=LOGIN_ENDPOINT)
    try:
        response = await transport.request("POST", LOGIN_ENDPOINT, json_body=build_login_request(email, password))
    except CrownstoneTransportError as exc:
        _logger.debug("Login failed for %s", mask_email(email), exc_info=True)
        code = str(exc.status_code) if exc.status_code is not None else ""
        raise CrownstoneAuthenticationError(
            f"Login failed: {exc}",
            code=code,
            endpoint=LOGIN_ENDPOINT,
        ) from exc
    return parse_login_response(response)
