"""Event-sourced presence store keyed by user.

This is the only component allowed to merge presence observations.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType

from pycrownstone.models.presence import PresenceSource, PresenceUpdate, UserPresence
from pycrownstone.state.policy import should_accept_update

_logger = logging.getLogger(__name__)


class PresenceStore:
    """Last known location per user, merged monotonically by timestamp.

    Entries are created on first sighting and replaced in place; they are
    never deleted.  ``version`` increases with every accepted update so
    projections can tell whether they are stale.
    """

    def __init__(self) -> None:
        self._users: dict[str, UserPresence] = {}
        self._push_seen: set[str] = set()
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    def apply(self, update: PresenceUpdate) -> bool:
        """Apply an observation; return ``False`` when it was stale."""
        cached = self._users.get(update.user_id)
        if not should_accept_update(
            cached_timestamp=cached.timestamp if cached is not None else None,
            incoming_timestamp=update.timestamp,
            cached_source=cached.source if cached is not None else None,
            incoming_source=update.source,
        ):
            _logger.debug(
                "Discarding stale %s presence for user=%s (ts=%.3f < %.3f)",
                update.source,
                update.user_id,
                update.timestamp,
                cached.timestamp if cached is not None else float("nan"),
            )
            return False

        entry = UserPresence(
            user_id=update.user_id,
            sphere_id=update.sphere_id,
            location=update.location,
            timestamp=update.timestamp,
            source=update.source,
        )
        if entry == cached:
            return True
        # Copy-on-write so snapshots handed out earlier stay intact.
        users = dict(self._users)
        users[update.user_id] = entry
        self._users = users
        if update.source is PresenceSource.PUSH:
            self._push_seen.add(update.user_id)
        self._version += 1
        return True

    def get(self, user_id: str) -> UserPresence | None:
        return self._users.get(user_id)

    def has_push_data(self, user_id: str) -> bool:
        """Whether a push event has ever been applied for *user_id*."""
        return user_id in self._push_seen

    def snapshot(self) -> Mapping[str, UserPresence]:
        """Read-only view of the current generation."""
        return MappingProxyType(self._users)
