"""Routing of push events to the presence reconciler and the resync hook."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import ValidationError

from pycrownstone.collaborators import PushStream
from pycrownstone.handler import PresenceReconciler
from pycrownstone.models.presence import PresenceEvent

_logger = logging.getLogger(__name__)

DATA_CHANGE_TYPES = frozenset({"dataChange", "abilityChange"})


class PushEventListener:
    """Owns the push session and dispatches its payloads."""

    def __init__(
        self,
        stream: PushStream,
        reconciler: PresenceReconciler,
        *,
        on_data_change: Callable[[dict[str, Any]], Awaitable[None]] | None = None,
    ) -> None:
        self._stream = stream
        self._reconciler = reconciler
        self._on_data_change = on_data_change

    async def login(self, email: str, password: str) -> None:
        """Replace the current push session with one for these credentials."""
        await self._stream.stop()
        await self._stream.login(email, password)
        await self._stream.start(self.handle)

    async def stop(self) -> None:
        await self._stream.stop()

    async def handle(self, payload: dict[str, Any]) -> None:
        event_type = payload.get("type")
        if event_type == "presence":
            try:
                event = PresenceEvent.model_validate(payload)
            except ValidationError as exc:
                _logger.debug("Ignoring malformed presence event: %s", exc.errors(include_input=False))
                return
            await self._reconciler.apply_event(event)
        elif event_type in DATA_CHANGE_TYPES:
            _logger.debug("Received %s event", event_type)
            if self._on_data_change is not None:
                await self._on_data_change(payload)
        else:
            _logger.debug("Ignoring push event type=%s", event_type)
