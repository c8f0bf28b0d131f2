"""Internal constants shared across the library."""

BASE_URL = "https://cloud.crownstone.rocks/api"
SSE_URL = "https://events.crownstone.rocks/sse"
USER_AGENT = "pycrownstone"

# Presence is re-polled this often in case push events were missed.
DEFAULT_POLL_PRESENCE_INTERVAL_S: float = 30 * 60

# Bound on radio advertisement discovery before a device is "not found".
DEFAULT_DISCOVERY_TIMEOUT_S: float = 10.0

# Cloud access tokens are issued for two weeks.
DEFAULT_SESSION_TTL_S: float = 14 * 24 * 3600

# ------------------------------------------------------------------
# Dimming
# ------------------------------------------------------------------

# Devices have a minimum effective dim level; anything between 0 and this is raised to it.
DIM_FLOOR_PERCENT = 10
DIM_MAX_PERCENT = 100

DIMMING_ABILITY = "dimming"

# ------------------------------------------------------------------
# Platform capabilities
# ------------------------------------------------------------------

CAPABILITY_ONOFF = "onoff"
CAPABILITY_DIM = "dim"

LOCKED_REASON = "This device is locked."


def normalize_address(address: str) -> str:
    """Radio addresses are compared lowercase without separators."""
    return address.strip().lower().replace(":", "")


def fraction_to_percentage(fraction: float) -> int:
    """Convert a unit dim fraction to the integer percentage sent to the cloud.

    Values are clamped to ``[0, 100]``; anything strictly between 0 and
    the hardware floor of 10 is raised to the floor.
    """
    percentage = float(fraction) * 100
    percentage = max(0.0, min(float(DIM_MAX_PERCENT), percentage))
    if 0 < percentage < DIM_FLOOR_PERCENT:
        percentage = DIM_FLOOR_PERCENT
    return int(round(percentage))
