"""Device (smart plug) models."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, Field, field_validator, model_validator

from pycrownstone._constants import DIMMING_ABILITY
from pycrownstone.models._base import CloudTimestamp, CrownstoneBaseModel


class Dimmability(StrEnum):
    """Whether a device exposes a dim control."""

    FIXED = "fixed"
    DIMMABLE = "dimmable"

    @classmethod
    def from_flag(cls, dimmable: bool) -> Dimmability:
        return cls.DIMMABLE if dimmable else cls.FIXED


class Ability(CrownstoneBaseModel):
    """A device ability (dimming, switchcraft, tap-to-toggle, ...)."""

    type: str = ""
    enabled: bool = False
    synced_to_crownstone: bool = Field(
        default=False,
        validation_alias=AliasChoices("syncedToCrownstone", "synced_to_crownstone"),
    )


class DeviceRecord(CrownstoneBaseModel):
    """A device as last fetched from the cloud.

    The switch state is stored as the cloud reports it: a unit fraction
    where ``0`` is off and anything above is on (dimmed below ``1``).
    """

    id: str
    """Cloud device id."""
    name: str = ""
    address: str = ""
    """Radio (MAC) address, as reported by the cloud."""
    sphere_id: str = Field(default="", validation_alias=AliasChoices("sphereId", "sphere_id"))
    location_id: str | None = Field(default=None, validation_alias=AliasChoices("locationId", "location_id"))
    locked: bool = False
    abilities: list[Ability] = Field(default_factory=list)
    switch_state: float | None = Field(
        default=None,
        validation_alias=AliasChoices("switchState", "switch_state", "currentSwitchState"),
    )
    updated_at: CloudTimestamp = None

    @model_validator(mode="before")
    @classmethod
    def _unwrap_switch_state(cls, values: Any) -> Any:
        """The cloud nests the live state as ``currentSwitchState.switchState``."""
        if not isinstance(values, dict):
            return values
        nested = values.get("currentSwitchState")
        if isinstance(nested, dict):
            values = dict(values)
            values["currentSwitchState"] = nested.get("switchState")
        return values

    @field_validator("switch_state", mode="before")
    @classmethod
    def _normalize_switch_state(cls, value: Any) -> float | None:
        if value is None:
            return None
        try:
            state = float(value)
        except (TypeError, ValueError):
            return None
        # Older firmware reports 0..100 instead of 0..1.
        if state > 1:
            state /= 100.0
        return max(0.0, min(1.0, state))

    @property
    def dimmable(self) -> bool:
        """Whether the dimming ability is enabled.

        Falls back to the first listed ability when none is typed.
        """
        for ability in self.abilities:
            if ability.type == DIMMING_ABILITY:
                return ability.enabled
        if self.abilities and not any(ability.type for ability in self.abilities):
            return self.abilities[0].enabled
        return False

    @property
    def dimmability(self) -> Dimmability:
        return Dimmability.from_flag(self.dimmable)

    @property
    def is_on(self) -> bool | None:
        if self.switch_state is None:
            return None
        return self.switch_state > 0
