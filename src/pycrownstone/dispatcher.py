"""Command dispatch: cloud first, short-range radio as the fallback."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pycrownstone._constants import DEFAULT_DISCOVERY_TIMEOUT_S, DIM_MAX_PERCENT, fraction_to_percentage
from pycrownstone.collaborators import CloudApi, RadioLink
from pycrownstone.config import OverlapPolicy
from pycrownstone.exceptions import CrownstoneDiscoveryTimeout, CrownstoneKeyFetchError
from pycrownstone.keys import KeyCache
from pycrownstone.mapper import Mapper
from pycrownstone.models.command import (
    CommandClass,
    CommandOutcome,
    CommandResult,
    CommandTransport,
    StageOutcome,
    StageResult,
    next_transport,
)
from pycrownstone.state.fast_cache import DeviceView, FastCache

_logger = logging.getLogger(__name__)

StateListener = Callable[[DeviceView], Awaitable[None]]


class CommandDispatcher:
    """Sends switch and dim commands and records the inferred state.

    One command per class (switch, dim) is in flight at a time.  With the
    ``"drop"`` overlap policy a request arriving while another of its
    class is running returns :attr:`CommandOutcome.DROPPED` without
    touching any transport; with ``"queue"`` it waits its turn.
    """

    def __init__(
        self,
        cloud: CloudApi,
        radio: RadioLink | None,
        key_cache: KeyCache,
        fast_cache: FastCache,
        mapper: Mapper,
        *,
        discovery_timeout: float = DEFAULT_DISCOVERY_TIMEOUT_S,
        overlap_policy: OverlapPolicy = "drop",
        on_state_change: StateListener | None = None,
        logged_in: Callable[[], bool] | None = None,
    ) -> None:
        self._cloud = cloud
        self._logged_in = logged_in if logged_in is not None else lambda: cloud.logged_in
        self._radio = radio
        self._keys = key_cache
        self._fast_cache = fast_cache
        self._mapper = mapper
        self._discovery_timeout = discovery_timeout
        self._overlap_policy = overlap_policy
        self._on_state_change = on_state_change
        self._tokens = {CommandClass.SWITCH: asyncio.Lock(), CommandClass.DIM: asyncio.Lock()}
        self._last_levels: dict[str, float] = {}

    def busy(self, command: CommandClass) -> bool:
        return self._tokens[command].locked()

    # ------------------------------------------------------------------
    # Public commands
    # ------------------------------------------------------------------

    async def set_on_off(self, device_id: str, on: bool) -> CommandResult:
        """Switch a device on or off.

        The cloud is tried first; a failed cloud attempt falls back to
        the radio exactly once.
        """
        return await self._run(CommandClass.SWITCH, device_id, lambda: self._switch(device_id, on))

    async def set_dim(self, device_id: str, fraction: float) -> CommandResult:
        """Dim a device to *fraction* (0..1).  Cloud only."""
        return await self._run(CommandClass.DIM, device_id, lambda: self._dim(device_id, fraction))

    async def _run(
        self,
        command: CommandClass,
        device_id: str,
        body: Callable[[], Awaitable[CommandResult]],
    ) -> CommandResult:
        if not self._logged_in():
            _logger.info("Not logged in; ignoring %s command for %s", command, device_id)
            return CommandResult(device_id=device_id, command=command, outcome=CommandOutcome.SKIPPED)

        view = self._fast_cache.device(device_id)
        if view is not None and view.locked:
            _logger.info("Device %s is locked; ignoring %s command", device_id, command)
            return CommandResult(device_id=device_id, command=command, outcome=CommandOutcome.SKIPPED)

        token = self._tokens[command]
        if token.locked() and self._overlap_policy == "drop":
            _logger.debug("A %s command is already in flight; dropping request for %s", command, device_id)
            return CommandResult(device_id=device_id, command=command, outcome=CommandOutcome.DROPPED)

        async with token:
            return await body()

    # ------------------------------------------------------------------
    # Switch
    # ------------------------------------------------------------------

    async def _switch(self, device_id: str, on: bool) -> CommandResult:
        view = self._fast_cache.device(device_id)
        stages = [await self._cloud_switch(device_id, on)]
        if next_transport(stages[-1]) is CommandTransport.RADIO:
            stages.append(await self._radio_switch(device_id, view, on))

        final = stages[-1]
        if not final.ok:
            _logger.warning("Switching %s %s failed: %s", device_id, "on" if on else "off", final.error)
            return CommandResult(
                device_id=device_id,
                command=CommandClass.SWITCH,
                outcome=CommandOutcome.FAILED,
                stages=tuple(stages),
            )

        dim_level: float | None = None
        if view is not None and view.dimmable:
            dim_level = self._resume_level(view) if on else 0.0
        await self._record(device_id, is_on=on, dim_level=dim_level)
        return CommandResult(
            device_id=device_id,
            command=CommandClass.SWITCH,
            outcome=CommandOutcome.SUCCESS,
            stages=tuple(stages),
        )

    async def _cloud_switch(self, device_id: str, on: bool) -> StageResult:
        try:
            if on:
                await self._cloud.turn_on(device_id)
            else:
                await self._cloud.turn_off(device_id)
        except Exception as exc:
            _logger.warning("There was a problem switching %s through the cloud: %s", device_id, exc)
            return StageResult(transport=CommandTransport.CLOUD, outcome=StageOutcome.RECOVERABLE, error=str(exc))
        return StageResult(transport=CommandTransport.CLOUD, outcome=StageOutcome.OK)

    async def _radio_switch(self, device_id: str, view: DeviceView | None, on: bool) -> StageResult:
        if self._radio is None:
            return StageResult(
                transport=CommandTransport.RADIO,
                outcome=StageOutcome.TERMINAL,
                error="no radio link",
            )
        if view is None or not view.address:
            return StageResult(
                transport=CommandTransport.RADIO,
                outcome=StageOutcome.TERMINAL,
                error=f"radio address of {device_id} unknown",
            )
        _logger.info("Switching %s over the radio", device_id)
        try:
            await self._send_over_radio(self._radio, view, 1 if on else 0)
        except Exception as exc:
            _logger.warning("There was a problem switching %s over the radio: %s", device_id, exc)
            return StageResult(transport=CommandTransport.RADIO, outcome=StageOutcome.TERMINAL, error=str(exc))
        return StageResult(transport=CommandTransport.RADIO, outcome=StageOutcome.OK)

    async def _send_over_radio(self, radio: RadioLink, view: DeviceView, state: int) -> None:
        try:
            keys = await self._keys.ensure_keys(view.sphere_id)
        except CrownstoneKeyFetchError as exc:
            _logger.warning("%s; trying the radio with the keys already loaded", exc)
        else:
            radio.settings.load_keys(keys.admin_key, keys.member_key, keys.basic_key)

        advertisement = await self._discover(radio, view.address)
        if advertisement is None:
            raise CrownstoneDiscoveryTimeout(
                f"Device {view.address} not seen within {self._discovery_timeout:g}s",
                address=view.address,
            )

        await radio.connect(advertisement)
        try:
            await radio.control.set_switch_state(state)
            await radio.control.disconnect()
        finally:
            await radio.disconnect()

    async def _discover(self, radio: RadioLink, address: str) -> Any | None:
        try:
            return await asyncio.wait_for(
                radio.discover(address, self._discovery_timeout),
                timeout=self._discovery_timeout,
            )
        except TimeoutError:
            return None

    def _resume_level(self, view: DeviceView) -> float:
        level = self._last_levels.get(view.id)
        if level is not None:
            return level
        if view.dim_level:
            return view.dim_level
        return DIM_MAX_PERCENT / 100

    # ------------------------------------------------------------------
    # Dim
    # ------------------------------------------------------------------

    async def _dim(self, device_id: str, fraction: float) -> CommandResult:
        percentage = fraction_to_percentage(fraction)
        level = percentage / 100
        previous = self._fast_cache.device(device_id)

        # On/off state and level land in one swap before the command goes out.
        written = await self._record(device_id, is_on=percentage > 0, dim_level=level)
        try:
            await self._cloud.set_switch(device_id, percentage)
        except Exception as exc:
            _logger.warning("There was a problem dimming %s to %d%%: %s", device_id, percentage, exc)
            if previous is not None and written is not None:
                restored = self._mapper.restore_device(previous, expected=written)
                if restored is not None:
                    await self._notify(restored)
            return CommandResult(
                device_id=device_id,
                command=CommandClass.DIM,
                outcome=CommandOutcome.FAILED,
                stages=(
                    StageResult(transport=CommandTransport.CLOUD, outcome=StageOutcome.TERMINAL, error=str(exc)),
                ),
            )

        if percentage > 0:
            self._last_levels[device_id] = level
        return CommandResult(
            device_id=device_id,
            command=CommandClass.DIM,
            outcome=CommandOutcome.SUCCESS,
            stages=(StageResult(transport=CommandTransport.CLOUD, outcome=StageOutcome.OK),),
        )

    # ------------------------------------------------------------------
    # Inferred state
    # ------------------------------------------------------------------

    async def _record(
        self,
        device_id: str,
        *,
        is_on: bool | None = None,
        dim_level: float | None = None,
    ) -> DeviceView | None:
        updated = self._mapper.apply_switch_state(device_id, is_on=is_on, dim_level=dim_level)
        if updated is not None:
            await self._notify(updated)
        return updated

    async def _notify(self, view: DeviceView) -> None:
        if self._on_state_change is None:
            return
        try:
            await self._on_state_change(view)
        except Exception:
            _logger.exception("State listener failed for device %s", view.id)
