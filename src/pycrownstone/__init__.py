"""pycrownstone - Async Crownstone cloud mirror, presence and command dispatch."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pycrownstone")
except PackageNotFoundError:
    __version__ = "0+local"
from pycrownstone.app import CrownstoneApp
from pycrownstone.client import CrownstoneCloud
from pycrownstone.config import CrownstoneConfig, OverlapPolicy
from pycrownstone.dispatcher import CommandDispatcher
from pycrownstone.exceptions import (
    CrownstoneApiError,
    CrownstoneAuthenticationError,
    CrownstoneCommandError,
    CrownstoneConfigError,
    CrownstoneDiscoveryTimeout,
    CrownstoneError,
    CrownstoneFetchError,
    CrownstoneKeyFetchError,
    CrownstoneSessionExpiredError,
    CrownstoneTransportError,
)
from pycrownstone.handler import FlowTrigger, PresenceReconciler
from pycrownstone.models import (
    CommandOutcome,
    CommandResult,
    CommandTransport,
    DeviceRecord,
    Dimmability,
    KeySet,
    Location,
    PresenceEvent,
    RoomRef,
    Sphere,
)
from pycrownstone.state.fast_cache import DeviceView

__all__ = [
    "__version__",
    "CommandDispatcher",
    "CommandOutcome",
    "CommandResult",
    "CommandTransport",
    "CrownstoneApiError",
    "CrownstoneApp",
    "CrownstoneAuthenticationError",
    "CrownstoneCloud",
    "CrownstoneCommandError",
    "CrownstoneConfig",
    "CrownstoneConfigError",
    "CrownstoneDiscoveryTimeout",
    "CrownstoneError",
    "CrownstoneFetchError",
    "CrownstoneKeyFetchError",
    "CrownstoneSessionExpiredError",
    "CrownstoneTransportError",
    "DeviceRecord",
    "DeviceView",
    "Dimmability",
    "FlowTrigger",
    "KeySet",
    "Location",
    "OverlapPolicy",
    "PresenceEvent",
    "PresenceReconciler",
    "RoomRef",
    "Sphere",
]
