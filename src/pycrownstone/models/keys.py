"""Sphere key models."""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from pycrownstone.models._base import CrownstoneBaseModel


class KeyType(StrEnum):
    ADMIN_KEY = "ADMIN_KEY"
    MEMBER_KEY = "MEMBER_KEY"
    BASIC_KEY = "BASIC_KEY"


class SphereKey(CrownstoneBaseModel):
    """One key entry of the ``sphereKeys`` list."""

    id: str = ""
    key_type: str = ""
    key: str = ""
    ttl: int | None = None

    def __repr__(self) -> str:
        return f"SphereKey(key_type={self.key_type!r})"


class KeySet(BaseModel):
    """The three-tier credentials required to command a device over radio."""

    model_config = ConfigDict(frozen=True)

    sphere_id: str
    admin_key: str | None = None
    member_key: str | None = None
    basic_key: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.admin_key and self.member_key and self.basic_key)

    @classmethod
    def from_sphere_keys(cls, sphere_id: str, keys: Iterable[SphereKey]) -> KeySet:
        """Partition key entries by type; unknown types are ignored."""
        found: dict[str, str] = {}
        for entry in keys:
            if entry.key_type == KeyType.ADMIN_KEY:
                found["admin_key"] = entry.key
            elif entry.key_type == KeyType.MEMBER_KEY:
                found["member_key"] = entry.key
            elif entry.key_type == KeyType.BASIC_KEY:
                found["basic_key"] = entry.key
        return cls(sphere_id=sphere_id, **found)

    def __repr__(self) -> str:
        present = [name for name in ("admin_key", "member_key", "basic_key") if getattr(self, name)]
        return f"KeySet(sphere_id={self.sphere_id!r}, present={present})"
