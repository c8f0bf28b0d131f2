"""Command dispatch result types."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from pycrownstone.exceptions import CrownstoneCommandError


class CommandClass(StrEnum):
    SWITCH = "switch"
    DIM = "dim"


class CommandTransport(StrEnum):
    CLOUD = "cloud"
    RADIO = "radio"


class StageOutcome(StrEnum):
    """Outcome of one transport attempt."""

    OK = "ok"
    RECOVERABLE = "recoverable"
    """Failed, but another transport may still succeed."""
    TERMINAL = "terminal"
    """Failed; nothing else will be attempted for this command."""


class CommandOutcome(StrEnum):
    """Overall outcome of a command request."""

    SUCCESS = "success"
    FAILED = "failed"
    DROPPED = "dropped"
    """Another command of the same class was in flight."""
    SKIPPED = "skipped"
    """Not logged in, or the device is locked; nothing was dispatched."""


class StageResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    transport: CommandTransport
    outcome: StageOutcome
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is StageOutcome.OK


class CommandResult(BaseModel):
    """What happened to a single ``set_on_off`` / ``set_dim`` request."""

    model_config = ConfigDict(frozen=True)

    device_id: str
    command: CommandClass
    outcome: CommandOutcome
    stages: tuple[StageResult, ...] = Field(default_factory=tuple)

    @property
    def success(self) -> bool:
        return self.outcome is CommandOutcome.SUCCESS

    @property
    def transport(self) -> CommandTransport | None:
        """Transport that carried the command, if it succeeded."""
        for stage in self.stages:
            if stage.ok:
                return stage.transport
        return None

    def raise_for_failure(self) -> None:
        """Raise :class:`CrownstoneCommandError` unless the command succeeded."""
        if self.success:
            return
        last = self.stages[-1] if self.stages else None
        detail = last.error if last is not None and last.error else self.outcome.value
        raise CrownstoneCommandError(
            f"{self.command} command for {self.device_id} {self.outcome.value}: {detail}",
            device_id=self.device_id,
            transport=last.transport.value if last is not None else "",
        )


def next_transport(stage: StageResult) -> CommandTransport | None:
    """Decide the follow-up transport purely from the previous stage."""
    if stage.outcome is StageOutcome.RECOVERABLE and stage.transport is CommandTransport.CLOUD:
        return CommandTransport.RADIO
    return None
