"""
Room Commander — Pydantic Models
═══════════════════════════════════════════════════
Defines the data structures for:
- RoomSettings: declarative, user-supplied room template
- RoomResources: shm, cpu and memory limits copied onto the container
- PortRange: block of host UDP ports owned by one room
- RoomData: read-only view built from an inspected container
- RoomStats: live resource usage of a room

JSON uses camelCase. Decoding matches keys case-insensitively and ignores
underscores, so "MaxConnections", "maxConnections" and "max_connections"
all land on the same field.
"""

from __future__ import annotations
from typing import Optional, Dict, Any, Iterator
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


DEFAULT_MAX_CONNECTIONS = 10
DEFAULT_SHM_SIZE = 2 * 10**9


def _fold(key: str) -> str:
    return key.replace("_", "").replace("-", "").lower()


def normalize_keys(model_cls, data: Any) -> Any:
    """Map incoming keys onto field names, recursing into nested models."""
    if not isinstance(data, dict):
        return data

    lookup = {}
    for name, field in model_cls.model_fields.items():
        lookup[_fold(name)] = name
        if field.alias:
            lookup[_fold(field.alias)] = name

    result = {}
    for key, value in data.items():
        name = lookup.get(_fold(key)) if isinstance(key, str) else None
        if name is None:
            result[key] = value
            continue
        annotation = model_cls.model_fields[name].annotation
        if isinstance(annotation, type) and issubclass(annotation, BaseModel):
            value = normalize_keys(annotation, value)
        result[name] = value
    return result


class _RoomModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _case_insensitive_keys(cls, data: Any) -> Any:
        return normalize_keys(cls, data)


# ── Port Range ─────────────────────────────────────────────

class PortRange(_RoomModel):
    """Inclusive range of ports, text form "start-end"."""
    start: int = Field(..., ge=0, le=65535)
    end: int = Field(..., ge=0, le=65535)

    @model_validator(mode="after")
    def _ordered(self) -> "PortRange":
        if self.start > self.end:
            raise ValueError(f"port range start {self.start} is after end {self.end}")
        return self

    @property
    def width(self) -> int:
        return self.end - self.start + 1

    def overlaps(self, other: "PortRange") -> bool:
        return self.start <= other.end and other.start <= self.end

    def ports(self) -> Iterator[int]:
        return iter(range(self.start, self.end + 1))

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


# ── Settings ───────────────────────────────────────────────

class RoomResources(_RoomModel):
    """Resource limits, copied verbatim onto the container host config."""
    cpu_shares: int = Field(default=0, description="Relative CPU weight (0 = docker default)")
    nano_cpus: int = Field(default=0, description="CPU quota in units of 1e-9 CPUs")
    memory: int = Field(default=0, description="Memory limit in bytes (0 = unlimited)")
    shm_size: int = Field(default=DEFAULT_SHM_SIZE, description="/dev/shm size in bytes")


class RoomSettings(_RoomModel):
    """
    Room template. Everything needed to rebuild the container lives here,
    which is what makes recreate possible without a database.
    """
    name: Optional[str] = Field(default=None, description="Room name, also the URL path segment")
    image: Optional[str] = Field(default=None, description="Container image (defaults to config)")
    max_connections: int = Field(default=DEFAULT_MAX_CONNECTIONS, description="One UDP port per connection")

    user_pass: str = ""
    admin_pass: str = ""
    screen: Optional[str] = Field(default=None, description="e.g. 1280x720@30")

    resources: RoomResources = Field(default_factory=RoomResources)
    network_mode: Optional[str] = Field(default=None, description="Docker network (defaults to traefik network)")

    labels: Dict[str, str] = Field(default_factory=dict)
    envs: Dict[str, str] = Field(default_factory=dict)

    def merged(self, override: Dict[str, Any]) -> "RoomSettings":
        """
        Apply a partial override on top of these settings.
        Fields missing from the override keep their current value; nested
        models merge field by field, plain dicts (labels, envs) are replaced.
        """
        base = self.model_dump()
        patch = normalize_keys(RoomSettings, override)
        for key, value in patch.items():
            if key == "resources" and isinstance(value, dict):
                base[key] = {**base[key], **value}
            else:
                base[key] = value
        return RoomSettings.model_validate(base)


# ── Views ──────────────────────────────────────────────────

class RoomData(_RoomModel):
    """A room as seen right now. Built on every read, never stored."""
    id: str
    name: str
    url: str = ""
    image: str = ""
    running: bool = False
    status: str = ""
    created: str = ""
    ports: Optional[PortRange] = None
    settings: RoomSettings


class RoomStats(_RoomModel):
    """Live resource usage of a room."""
    id: str
    running: bool = False
    cpu_percent: float = 0.0
    memory_mb: float = 0.0
    memory_limit_mb: float = 0.0
    network_rx_bytes: int = 0
    network_tx_bytes: int = 0
    pids: int = 0
