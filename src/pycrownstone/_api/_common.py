"""Shared helpers for Crownstone API endpoint modules.

This module centralizes the most repeated patterns:
- sending an authenticated request for the current session
- mapping ``401`` to a session-expired error
- validating list payloads into models

It is internal to pycrownstone and may change at any time.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from pycrownstone._transport import Transport
from pycrownstone.exceptions import (
    CrownstoneApiError,
    CrownstoneSessionExpiredError,
    CrownstoneTransportError,
)
from pycrownstone.session import Session

_logger = logging.getLogger(__name__)

TModel = TypeVar("TModel", bound=BaseModel)

SESSION_EXPIRED_STATUS: frozenset[int] = frozenset({401})


async def authed_request(
    transport: Transport,
    session: Session,
    method: str,
    endpoint: str,
    *,
    params: Mapping[str, Any] | None = None,
    json_body: Any = None,
) -> Any:
    """Send a request with the session token, mapping token rejection."""
    try:
        return await transport.request(
            method,
            endpoint,
            access_token=session.access_token,
            params=params,
            json_body=json_body,
        )
    except CrownstoneTransportError as exc:
        if exc.status_code in SESSION_EXPIRED_STATUS:
            raise CrownstoneSessionExpiredError(
                f"{endpoint} rejected the access token (HTTP {exc.status_code})",
                code=str(exc.status_code),
                endpoint=endpoint,
            ) from exc
        raise


def parse_list(model: type[TModel], payload: Any, *, endpoint: str) -> list[TModel]:
    """Validate a JSON array into models, skipping malformed items."""
    if not isinstance(payload, list):
        raise CrownstoneApiError(
            f"Expected a list from {endpoint}, got {type(payload).__name__}",
            endpoint=endpoint,
        )
    items: list[TModel] = []
    for raw in payload:
        try:
            items.append(model.model_validate(raw))
        except ValidationError:
            _logger.debug("Skipping malformed %s item from %s", model.__name__, endpoint, exc_info=True)
    return items


def parse_object(model: type[TModel], payload: Any, *, endpoint: str) -> TModel:
    """Validate a JSON object into a model."""
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise CrownstoneApiError(f"Malformed {model.__name__} from {endpoint}: {exc}", endpoint=endpoint) from exc
