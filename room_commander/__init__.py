"""
Room Commander

Provisions and manages short-lived neko rooms on Docker:
- Ownership via canary labels (registry.py)
- UDP port blocks from an ephemeral pool (ports.py)
- Traefik path routing labels (routing.py)
- Lifecycle: create/start/stop/restart/recreate/remove (manager.py)
"""

from .config import RoomConfig
from .errors import (
    RoomError, InvalidSettingsError, InvalidLabelError, RoomNotFoundError,
    PoolExhaustedError, PortConflictError, RuntimeUnavailableError,
    RuntimeCallError, RecreateFailedError,
)
from .manager import RoomManager, LifecycleAction
from .models import RoomSettings, RoomResources, RoomData, RoomStats, PortRange
from .runtime import RoomRuntime, DockerRuntime, UnitSpec, UnitInfo

__version__ = "1.0.0"
