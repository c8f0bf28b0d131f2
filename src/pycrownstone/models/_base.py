"""Base model for Crownstone cloud payloads.

Every cloud response model inherits from :class:`CrownstoneBaseModel`,
which provides:

* ``alias_generator=to_camel`` so camelCase API keys map automatically
  to snake_case fields.
* A ``model_validator(mode="before")`` that drops ``None`` values so
  field defaults apply, and maps the loopback ``id`` fields.
* A ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_cloud_timestamp(value: Any) -> datetime | None:
    """Convert an ISO-8601 string or epoch number (s or ms) to a UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    ts = float(value)
    if ts >= _MS_THRESHOLD:
        ts /= 1000.0
    return datetime.fromtimestamp(ts, tz=UTC)


CloudTimestamp = Annotated[datetime | None, BeforeValidator(parse_cloud_timestamp)]
"""Annotated type that coerces cloud timestamps to UTC datetimes."""


class CrownstoneBaseModel(BaseModel):
    """Base for Crownstone cloud response models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True, repr=False)
    """Original API response dict."""

    @model_validator(mode="before")
    @classmethod
    def _clean_cloud_values(cls, values: Any) -> Any:
        """Drop null values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = {key: value for key, value in values.items() if value is not None}
        # Keep the caller's raw when constructing with kwargs that include raw=.
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
