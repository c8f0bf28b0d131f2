"""Sphere and location (room) models."""

from __future__ import annotations

from pydantic import AliasChoices, Field

from pycrownstone.models._base import CloudTimestamp, CrownstoneBaseModel


class Sphere(CrownstoneBaseModel):
    """An environment container (e.g. a home) owned by the account."""

    id: str
    """Cloud sphere id."""
    name: str = ""
    """User-chosen sphere name."""
    uid: int | None = None
    """Short numeric sphere id used in radio advertisements."""
    updated_at: CloudTimestamp = None


class Location(CrownstoneBaseModel):
    """A room within a sphere."""

    id: str
    """Cloud location id."""
    name: str = ""
    """Room name as shown to the user."""
    sphere_id: str = Field(default="", validation_alias=AliasChoices("sphereId", "sphere_id"))
    """Id of the sphere this room belongs to."""
    icon: str = ""
    updated_at: CloudTimestamp = None
