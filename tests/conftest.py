"""
Pytest Fixtures - Wiederverwendbare Test-Komponenten.

FakeRuntime simulates the Docker daemon in memory (containers, labels,
port binds at start time), so the whole engine runs without Docker.
"""

import uuid
import pytest
import sys
from pathlib import Path
from typing import Dict, List, Optional

# Add parent dir to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from room_commander.config import RoomConfig
from room_commander.errors import RoomNotFoundError, PortConflictError, RuntimeCallError
from room_commander.labels import EPR_KEY, parse_port_range
from room_commander.manager import RoomManager
from room_commander.models import PortRange
from room_commander.runtime import RoomRuntime, UnitSpec, UnitInfo


# ═══════════════════════════════════════════════════════════
# FAKE RUNTIME
# ═══════════════════════════════════════════════════════════

class FakeRuntime(RoomRuntime):
    """In-memory stand-in for DockerRuntime."""

    def __init__(self):
        self.units: Dict[str, UnitInfo] = {}
        self.specs: Dict[str, UnitSpec] = {}
        self.calls: List[tuple] = []
        self.failures: Dict[str, Exception] = {}

    def fail_next(self, operation: str, error: Exception) -> None:
        self.failures[operation] = error

    def _record(self, operation: str, *args) -> None:
        self.calls.append((operation,) + args)
        error = self.failures.pop(operation, None)
        if error is not None:
            raise error

    def ops(self) -> List[str]:
        return [c[0] for c in self.calls]

    def _get(self, unit_id: str) -> UnitInfo:
        if unit_id not in self.units:
            raise RoomNotFoundError(unit_id)
        return self.units[unit_id]

    def add_foreign(self, name: str = "someone-else", labels: Optional[Dict[str, str]] = None,
                    running: bool = True) -> str:
        """A container the engine does not own."""
        unit_id = uuid.uuid4().hex * 2
        self.units[unit_id] = UnitInfo(
            id=unit_id, name=name, image="nginx:latest", labels=labels or {},
            running=running, status="running" if running else "exited",
        )
        return unit_id

    # ── RoomRuntime ──

    def list(self, label_filters):
        self._record("list", tuple(label_filters))
        wanted = [f.split("=", 1) for f in label_filters]
        return [
            u.model_copy(deep=True) for u in self.units.values()
            if all(u.labels.get(k) == v for k, v in wanted)
        ]

    def inspect(self, unit_id):
        self._record("inspect", unit_id)
        return self._get(unit_id).model_copy(deep=True)

    def create(self, spec):
        self._record("create", spec.name)
        if any(u.name == spec.name for u in self.units.values()):
            raise RuntimeCallError(f"create failed: Conflict. The container name \"/{spec.name}\" is already in use")
        unit_id = uuid.uuid4().hex * 2
        self.specs[unit_id] = spec
        self.units[unit_id] = UnitInfo(
            id=unit_id,
            name=spec.name,
            image=spec.image,
            labels=dict(spec.labels),
            env=["PATH=/usr/local/bin:/usr/bin:/bin"] + list(spec.env),
            running=False,
            status="created",
            created="2026-10-18T12:00:00.000000000Z",
            network_mode=spec.network or "default",
            shm_size=spec.shm_size,
            cpu_shares=spec.cpu_shares,
            nano_cpus=spec.nano_cpus,
            memory=spec.memory,
            cap_add=list(spec.cap_add),
            restart_policy=spec.restart_policy,
        )
        return unit_id

    def start(self, unit_id):
        self._record("start", unit_id)
        unit = self._get(unit_id)
        mine = parse_port_range(unit.labels[EPR_KEY]) if EPR_KEY in unit.labels else None
        for other in self.units.values():
            if other.id == unit_id or not other.running or EPR_KEY not in other.labels:
                continue
            if mine and parse_port_range(other.labels[EPR_KEY]).overlaps(mine):
                raise PortConflictError(f"start: Bind for 0.0.0.0:{mine.start} failed: port is already allocated")
        unit.running = True
        unit.status = "running"

    def stop(self, unit_id):
        self._record("stop", unit_id)
        unit = self._get(unit_id)
        unit.running = False
        unit.status = "exited"

    def restart(self, unit_id):
        self._record("restart", unit_id)
        unit = self._get(unit_id)
        unit.running = True
        unit.status = "running"

    def remove(self, unit_id):
        self._record("remove", unit_id)
        self._get(unit_id)
        del self.units[unit_id]

    def stats(self, unit_id):
        self._record("stats", unit_id)
        self._get(unit_id)
        return {
            "cpu_stats": {"cpu_usage": {"total_usage": 400}, "system_cpu_usage": 2000, "online_cpus": 2},
            "precpu_stats": {"cpu_usage": {"total_usage": 200}, "system_cpu_usage": 1000},
            "memory_stats": {"usage": 256 * 1024 * 1024, "limit": 1024 * 1024 * 1024},
            "networks": {"eth0": {"rx_bytes": 1000, "tx_bytes": 500}},
            "pids_stats": {"current": 42},
        }


# ═══════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════

@pytest.fixture
def runtime():
    return FakeRuntime()


@pytest.fixture
def room_config():
    return RoomConfig(
        epr=PortRange(start=59000, end=59049),
        nat1to1_ips=["203.0.113.7"],
        image="m1k1o/neko:firefox",
        traefik_domain="rooms.example.com",
        traefik_entrypoint="websecure",
        traefik_certresolver="lets-encrypt",
        traefik_network="traefik",
    )


@pytest.fixture
def manager(runtime, room_config):
    return RoomManager(runtime, room_config)
