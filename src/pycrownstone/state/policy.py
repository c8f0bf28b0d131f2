"""Deterministic presence merge policy.

Polls and push events are merged through the same rule; this module
contains no parsing.
"""

from __future__ import annotations

from pycrownstone.models.presence import PresenceSource


def source_priority(source: PresenceSource) -> int:
    """Higher wins when two observations carry the same timestamp."""
    # Push events are more timely than a poll that was issued at the same instant.
    priorities: dict[PresenceSource, int] = {
        PresenceSource.PUSH: 20,
        PresenceSource.POLL: 10,
    }
    return priorities.get(source, 0)


def should_accept_update(
    *,
    cached_timestamp: float | None,
    incoming_timestamp: float,
    cached_source: PresenceSource | None,
    incoming_source: PresenceSource,
) -> bool:
    """Decide whether an incoming presence observation should be applied.

    Policy:
    - No cached entry: accept.
    - Older than the cached entry: reject.
    - Newer: accept.
    - Same timestamp: accept unless the cached source has higher priority.
    """
    if cached_timestamp is None:
        return True
    if incoming_timestamp < cached_timestamp:
        return False
    if incoming_timestamp > cached_timestamp:
        return True
    if cached_source is None:
        return True
    return source_priority(incoming_source) >= source_priority(cached_source)
