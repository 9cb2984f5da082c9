"""
Room Commander — Room Manager (Lifecycle Orchestrator)
═══════════════════════════════════════════════════════
Sequences room operations against the runtime:

  create   validate → name → allocate ports → translate → re-check → create
  start    no-op when already running
  stop / restart
  remove   stop if running → delete container + volumes
  recreate read → merge override → validate (incl. name) → remove → create → start if it was running

States: absent → created → running ⇄ stopped → absent.

No room state is kept between calls; Docker is the source of truth and every
read is rebuilt from an inspected container. There is no lock either: two
concurrent creates may pick the same port block, the loser gets a
PortConflictError and is expected to call create again.

recreate is not transactional. Once the old container is removed nothing
brings it back; a failure after that point is a RecreateFailedError.
"""

import uuid
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .compose import export_compose
from .config import RoomConfig
from .errors import RoomError, InvalidSettingsError, PortConflictError, RecreateFailedError
from .models import RoomData, RoomSettings, RoomStats, PortRange
from .ports import allocate
from .registry import RoomRegistry
from .runtime import RoomRuntime, UnitInfo
from .translator import validate_settings, to_unit_spec, from_unit, unit_ports

logger = logging.getLogger(__name__)


class LifecycleAction(str, Enum):
    START = "start"
    STOP = "stop"
    RESTART = "restart"
    REMOVE = "remove"


@contextmanager
def _operation(name: str, room_id: str = ""):
    """Log failures with operation and room, then let them propagate."""
    try:
        yield
    except RoomError as e:
        logger.error(f"[Rooms] {name} failed ({room_id or '-'}): {e.kind}: {e}")
        raise


def generate_name() -> str:
    return uuid.uuid4().hex[:8]


class RoomManager:
    """All room operations. Runtime and config are injected."""

    def __init__(self, runtime: RoomRuntime, config: RoomConfig):
        self.runtime = runtime
        self.config = config
        self.registry = RoomRegistry(runtime)

        self._actions: Dict[LifecycleAction, Callable[[str], None]] = {
            LifecycleAction.START: self.start,
            LifecycleAction.STOP: self.stop,
            LifecycleAction.RESTART: self.restart,
            LifecycleAction.REMOVE: self.remove,
        }

    # ── Views ─────────────────────────────────────────────

    def _room_data(self, unit: UnitInfo) -> RoomData:
        settings = from_unit(unit, self.config.traefik_network)
        name = settings.name or unit.name
        return RoomData(
            id=unit.id,
            name=name,
            url=self.config.room_url(name),
            image=unit.image,
            running=unit.running,
            status=unit.status,
            created=unit.created,
            ports=unit_ports(unit),
            settings=settings,
        )

    def list(self, labels: Optional[Dict[str, str]] = None) -> List[RoomData]:
        with _operation("list"):
            return [self._room_data(unit) for unit in self.registry.list(labels)]

    def get_entry(self, room_id: str) -> RoomData:
        with _operation("get_entry", room_id):
            return self._room_data(self.registry.inspect(room_id))

    def get_entry_by_name(self, name: str) -> RoomData:
        with _operation("get_entry_by_name", name):
            return self._room_data(self.registry.find_by_name(name))

    def get_settings(self, room_id: str) -> RoomSettings:
        with _operation("get_settings", room_id):
            unit = self.registry.inspect(room_id)
            return from_unit(unit, self.config.traefik_network)

    def get_stats(self, room_id: str) -> RoomStats:
        with _operation("get_stats", room_id):
            unit = self.registry.inspect(room_id)
            if not unit.running:
                return RoomStats(id=unit.id, running=False)
            return parse_stats(unit.id, self.runtime.stats(unit.id))

    def export_as_docker_compose(self) -> str:
        with _operation("export_as_docker_compose"):
            return export_compose(self.registry.list())

    # ── Lifecycle ─────────────────────────────────────────

    def _ensure_ports_free(self, ports: PortRange) -> None:
        for claimed in self.registry.claimed_ranges():
            if claimed.overlaps(ports):
                raise PortConflictError(
                    f"ports {ports} were claimed by another room ({claimed}), retry create"
                )

    def create(self, settings: RoomSettings) -> str:
        """Create (not start) a room. Returns the container id."""
        with _operation("create", settings.name or ""):
            validate_settings(settings)

            updates: Dict[str, Any] = {}
            if not settings.name:
                updates["name"] = generate_name()
            elif self.registry.name_in_use(settings.name):
                raise InvalidSettingsError(f"room name '{settings.name}' is already in use")
            if not settings.image:
                updates["image"] = self.config.image
            if updates:
                settings = settings.model_copy(update=updates)

            ports = allocate(self.config.epr, settings.max_connections, self.registry.claimed_ranges())
            spec = to_unit_spec(settings, ports, self.config.nat1to1_ips, self.config.routing)

            self._ensure_ports_free(ports)
            room_id = self.runtime.create(spec)

        logger.info(f"[Rooms] Created: {spec.name} ({room_id[:12]}) ports={ports}")
        return room_id

    def start(self, room_id: str) -> None:
        with _operation("start", room_id):
            unit = self.registry.inspect(room_id)
            if unit.running:
                return
            self.runtime.start(unit.id)
        logger.info(f"[Rooms] Started: {room_id[:12]}")

    def stop(self, room_id: str) -> None:
        with _operation("stop", room_id):
            unit = self.registry.inspect(room_id)
            self.runtime.stop(unit.id)
        logger.info(f"[Rooms] Stopped: {room_id[:12]}")

    def restart(self, room_id: str) -> None:
        with _operation("restart", room_id):
            unit = self.registry.inspect(room_id)
            self.runtime.restart(unit.id)
        logger.info(f"[Rooms] Restarted: {room_id[:12]}")

    def remove(self, room_id: str) -> None:
        with _operation("remove", room_id):
            unit = self.registry.inspect(room_id)
            if unit.running:
                self.runtime.stop(unit.id)
            self.runtime.remove(unit.id)
        logger.info(f"[Rooms] Removed: {room_id[:12]}")

    def recreate(self, room_id: str, override: Optional[Dict[str, Any]] = None) -> str:
        """
        Replace a room with a fresh container. `override` is a partial
        settings dict merged onto the stored settings. Returns the new id.
        """
        with _operation("recreate", room_id):
            entry = self.get_entry(room_id)
            settings = entry.settings
            if override:
                try:
                    settings = settings.merged(override)
                except ValueError as e:
                    raise InvalidSettingsError(f"invalid settings override: {e}") from e
            validate_settings(settings)
            if settings.name and settings.name != entry.settings.name \
                    and self.registry.name_in_use(settings.name):
                raise InvalidSettingsError(f"room name '{settings.name}' is already in use")

            self.remove(room_id)

            # from here on the old room is gone
            try:
                new_id = self.create(settings)
                if entry.running:
                    self.start(new_id)
            except RoomError as e:
                raise RecreateFailedError(room_id, e) from e

        logger.info(f"[Rooms] Recreated: {room_id[:12]} → {new_id[:12]}")
        return new_id

    def perform(self, action: LifecycleAction, room_id: str) -> None:
        self._actions[LifecycleAction(action)](room_id)


# ── Stats ─────────────────────────────────────────────────

def parse_stats(room_id: str, stats: Dict[str, Any]) -> RoomStats:
    """Docker stats snapshot → RoomStats."""
    cpu = stats.get("cpu_stats") or {}
    precpu = stats.get("precpu_stats") or {}

    cpu_delta = (cpu.get("cpu_usage") or {}).get("total_usage", 0) - \
                (precpu.get("cpu_usage") or {}).get("total_usage", 0)
    system_delta = cpu.get("system_cpu_usage", 0) - precpu.get("system_cpu_usage", 0)
    num_cpus = cpu.get("online_cpus") or 1
    cpu_percent = (cpu_delta / system_delta) * num_cpus * 100.0 if system_delta > 0 else 0.0

    memory = stats.get("memory_stats") or {}
    networks = (stats.get("networks") or {}).values()

    return RoomStats(
        id=room_id,
        running=True,
        cpu_percent=round(cpu_percent, 1),
        memory_mb=round(memory.get("usage", 0) / (1024 * 1024), 1),
        memory_limit_mb=round(memory.get("limit", 0) / (1024 * 1024), 1),
        network_rx_bytes=sum(n.get("rx_bytes", 0) for n in networks),
        network_tx_bytes=sum(n.get("tx_bytes", 0) for n in networks),
        pids=(stats.get("pids_stats") or {}).get("current", 0),
    )
