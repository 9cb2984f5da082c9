"""
Room Commander — Runtime Adapter
═══════════════════════════════════════════════════
The engine talks to the container runtime only through RoomRuntime.
DockerRuntime is the real implementation (Docker SDK); tests pass their own.

DockerRuntime is also the only place that sees docker.errors / requests
exceptions. Every one of them leaves this module as a RoomError:

  docker NotFound            → RoomNotFoundError
  APIError "port ... in use" → PortConflictError
  other APIError             → RuntimeCallError
  DockerException, requests  → RuntimeUnavailableError

The client is built once (DockerRuntime.from_env) and passed in; there is no
module-level singleton.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, List, Optional, Any

import docker
import requests
from docker.errors import DockerException, APIError, NotFound, ImageNotFound
from docker.types import LogConfig
from pydantic import BaseModel, Field

from .errors import (
    RoomNotFoundError, PortConflictError, RuntimeCallError, RuntimeUnavailableError,
)

logger = logging.getLogger(__name__)

STOP_TIMEOUT = 10

_PORT_CONFLICT_MARKERS = (
    "port is already allocated",
    "address already in use",
    "ports are not available",
)


# ── Unit Models ───────────────────────────────────────────

class UnitSpec(BaseModel):
    """Everything needed to create one container."""
    name: str
    image: str
    hostname: str = ""
    env: List[str] = Field(default_factory=list)
    labels: Dict[str, str] = Field(default_factory=dict)
    exposed_ports: List[str] = Field(default_factory=list)     # "8080/tcp", "59000/udp"
    port_bindings: Dict[str, int] = Field(default_factory=dict)  # "59000/udp" → 59000
    network: Optional[str] = None
    shm_size: int = 0
    cpu_shares: int = 0
    nano_cpus: int = 0
    memory: int = 0
    cap_add: List[str] = Field(default_factory=list)
    restart_policy: str = "always"


class UnitInfo(BaseModel):
    """Flattened view of an inspected container."""
    id: str
    name: str = ""
    image: str = ""
    labels: Dict[str, str] = Field(default_factory=dict)
    env: List[str] = Field(default_factory=list)
    running: bool = False
    paused: bool = False
    status: str = ""
    created: str = ""
    network_mode: str = ""
    shm_size: int = 0
    cpu_shares: int = 0
    nano_cpus: int = 0
    memory: int = 0
    cap_add: List[str] = Field(default_factory=list)
    restart_policy: str = ""

    @classmethod
    def from_attrs(cls, attrs: Dict[str, Any]) -> "UnitInfo":
        """Build from the Docker inspect payload."""
        config = attrs.get("Config") or {}
        state = attrs.get("State") or {}
        host_config = attrs.get("HostConfig") or {}
        restart = host_config.get("RestartPolicy") or {}

        return cls(
            id=attrs.get("Id", ""),
            name=(attrs.get("Name") or "").lstrip("/"),
            image=config.get("Image", ""),
            labels=config.get("Labels") or {},
            env=config.get("Env") or [],
            running=bool(state.get("Running", False)),
            paused=bool(state.get("Paused", False)),
            status=state.get("Status", ""),
            created=attrs.get("Created", ""),
            network_mode=host_config.get("NetworkMode") or "",
            shm_size=host_config.get("ShmSize") or 0,
            cpu_shares=host_config.get("CpuShares") or 0,
            nano_cpus=host_config.get("NanoCpus") or 0,
            memory=host_config.get("Memory") or 0,
            cap_add=host_config.get("CapAdd") or [],
            restart_policy=restart.get("Name", ""),
        )


# ── Interface ─────────────────────────────────────────────

class RoomRuntime(ABC):
    """
    Synchronous container runtime operations used by the engine.
    Implementations raise only RoomError subclasses.
    """

    @abstractmethod
    def list(self, label_filters: List[str]) -> List[UnitInfo]:
        """All containers (running or not) matching every "key=value" filter."""

    @abstractmethod
    def inspect(self, unit_id: str) -> UnitInfo:
        """Raises RoomNotFoundError if the runtime does not know the id."""

    @abstractmethod
    def create(self, spec: UnitSpec) -> str:
        """Create (not start) a container, return its id."""

    @abstractmethod
    def start(self, unit_id: str) -> None: ...

    @abstractmethod
    def stop(self, unit_id: str) -> None: ...

    @abstractmethod
    def restart(self, unit_id: str) -> None: ...

    @abstractmethod
    def remove(self, unit_id: str) -> None:
        """Delete the container together with its anonymous volumes."""

    @abstractmethod
    def stats(self, unit_id: str) -> Dict[str, Any]:
        """One-shot stats snapshot in Docker's stats format."""

    def ping(self) -> bool:
        return True


# ── Docker Implementation ────────────────────────────────

@contextmanager
def _docker_call(operation: str, unit_id: str = ""):
    """Translate Docker SDK failures into the engine's error taxonomy."""
    try:
        yield
    except ImageNotFound as e:
        raise RuntimeCallError(f"{operation}: image not found: {e.explanation or e}") from e
    except NotFound as e:
        raise RoomNotFoundError(unit_id) from e
    except APIError as e:
        message = str(e.explanation or e)
        if any(marker in message.lower() for marker in _PORT_CONFLICT_MARKERS):
            raise PortConflictError(f"{operation}: {message}") from e
        raise RuntimeCallError(f"{operation} failed: {message}") from e
    except (DockerException, requests.RequestException) as e:
        raise RuntimeUnavailableError(f"docker unavailable during {operation}: {e}") from e


class DockerRuntime(RoomRuntime):
    """RoomRuntime backed by the Docker Engine API."""

    def __init__(self, client: docker.DockerClient):
        self._client = client

    @classmethod
    def from_env(cls) -> "DockerRuntime":
        """Connect using DOCKER_HOST & co. Fails fast if the daemon is unreachable."""
        with _docker_call("connect"):
            client = docker.from_env()
            client.ping()
        logger.info("[Docker] Connected to docker daemon")
        return cls(client)

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except (DockerException, requests.RequestException) as e:
            logger.warning(f"[Docker] Ping failed: {e}")
            return False

    def list(self, label_filters: List[str]) -> List[UnitInfo]:
        with _docker_call("list"):
            containers = self._client.containers.list(
                all=True,
                filters={"label": list(label_filters)},
            )
            return [UnitInfo.from_attrs(c.attrs) for c in containers]

    def inspect(self, unit_id: str) -> UnitInfo:
        with _docker_call("inspect", unit_id):
            return UnitInfo.from_attrs(self._client.containers.get(unit_id).attrs)

    def _ensure_image(self, image: str) -> None:
        try:
            self._client.images.get(image)
        except ImageNotFound:
            logger.info(f"[Docker] Pulling image: {image}")
            self._client.images.pull(image)

    def create(self, spec: UnitSpec) -> str:
        api = self._client.api
        with _docker_call("create", spec.name):
            self._ensure_image(spec.image)

            host_config = api.create_host_config(
                port_bindings=spec.port_bindings,
                shm_size=spec.shm_size or None,
                cpu_shares=spec.cpu_shares or None,
                nano_cpus=spec.nano_cpus or None,
                mem_limit=spec.memory or None,
                cap_add=spec.cap_add or None,
                restart_policy={"Name": spec.restart_policy},
                log_config=LogConfig(type=LogConfig.types.JSON, config={}),
                network_mode=spec.network,
            )

            networking_config = None
            if spec.network:
                networking_config = api.create_networking_config({
                    spec.network: api.create_endpoint_config(),
                })

            ports = []
            for exposed in spec.exposed_ports:
                port, _, proto = exposed.partition("/")
                ports.append((int(port), proto or "tcp"))

            result = api.create_container(
                spec.image,
                name=spec.name,
                hostname=spec.hostname or spec.name,
                domainname=spec.hostname or spec.name,
                environment=spec.env,
                ports=ports,
                labels=spec.labels,
                host_config=host_config,
                networking_config=networking_config,
            )

        for warning in result.get("Warnings") or []:
            logger.warning(f"[Docker] create {spec.name}: {warning}")
        return result["Id"]

    def start(self, unit_id: str) -> None:
        with _docker_call("start", unit_id):
            self._client.containers.get(unit_id).start()

    def stop(self, unit_id: str) -> None:
        with _docker_call("stop", unit_id):
            self._client.containers.get(unit_id).stop(timeout=STOP_TIMEOUT)

    def restart(self, unit_id: str) -> None:
        with _docker_call("restart", unit_id):
            self._client.containers.get(unit_id).restart(timeout=STOP_TIMEOUT)

    def remove(self, unit_id: str) -> None:
        with _docker_call("remove", unit_id):
            self._client.containers.get(unit_id).remove(v=True, force=True)

    def stats(self, unit_id: str) -> Dict[str, Any]:
        with _docker_call("stats", unit_id):
            return self._client.containers.get(unit_id).stats(stream=False)
