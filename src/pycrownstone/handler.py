"""Presence reconciler: applies presence events and fires room triggers."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from pycrownstone.mapper import Mapper
from pycrownstone.models.presence import PresenceEvent, RoomRef
from pycrownstone.state.presence import PresenceStore

_logger = logging.getLogger(__name__)

TriggerAction = Callable[[RoomRef], Awaitable[None]]


@dataclass(eq=False)
class FlowTrigger:
    """A user-configured "someone enters room X" trigger.

    ``eq=False`` keeps identity semantics, so the same room may be
    registered more than once and each registration unregistered alone.
    """

    room_id: str
    room_name: str
    action: TriggerAction = field(repr=False)

    def matches(self, room: RoomRef) -> bool:
        return room.matches(self.room_id, self.room_name)


class PresenceReconciler:
    def __init__(
        self,
        store: PresenceStore,
        mapper: Mapper,
        *,
        user_id: Callable[[], str | None],
        poll: Callable[[], Awaitable[int]],
    ) -> None:
        self._store = store
        self._mapper = mapper
        self._user_id = user_id
        self._poll = poll
        self._triggers: list[FlowTrigger] = []

    @property
    def triggers(self) -> tuple[FlowTrigger, ...]:
        return tuple(self._triggers)

    def register_trigger(self, room_id: str, room_name: str, action: TriggerAction) -> FlowTrigger:
        trigger = FlowTrigger(room_id=room_id, room_name=room_name, action=action)
        self._triggers.append(trigger)
        return trigger

    def unregister_trigger(self, trigger: FlowTrigger) -> None:
        try:
            self._triggers.remove(trigger)
        except ValueError:
            _logger.debug("Trigger for room %s was not registered", trigger.room_id)

    async def apply_event(self, event: PresenceEvent) -> int:
        """Merge a push presence event; return the number of triggers fired.

        An exit only clears the location when it is for the room the user
        is currently recorded in.
        """
        if not event.is_enter:
            entry = self._store.get(event.user.id)
            if entry is not None and entry.location is not None and entry.location.id != event.location.id:
                _logger.debug(
                    "Ignoring exit of %s for user %s, who is in %s",
                    event.location.id,
                    event.user.id,
                    entry.location.id,
                )
                return 0
        if not self._store.apply(event.to_update()):
            return 0
        self._mapper.map_all()

        if not event.is_enter:
            _logger.debug("User %s left room %s", event.user.id, event.location.id)
            return 0

        room = event.location
        _logger.debug("User %s entered room %s (%s)", event.user.id, room.id, room.name)
        fired = 0
        for trigger in list(self._triggers):
            if not trigger.matches(room):
                continue
            fired += 1
            try:
                await trigger.action(room)
            except Exception:
                _logger.exception("Trigger for room %s failed", room.id)
        return fired

    async def evaluate_condition(self, room_id: str, room_name: str) -> bool:
        """Whether the logged-in user is currently in the given room."""
        user_id = self._user_id()
        if user_id is None:
            return False

        if not self._store.has_push_data(user_id):
            try:
                await self._poll()
            except Exception:
                _logger.warning("Could not poll presence for condition", exc_info=True)
            else:
                self._mapper.map_all()

        entry = self._store.get(user_id)
        if entry is None or entry.location is None:
            return False
        return entry.location.matches(room_id, room_name)
