"""
Room Commander — Settings Translator
═══════════════════════════════════════════════════
RoomSettings  ⇄  container definition.

to_unit_spec() is pure: same settings, ports, NAT IPs and routing config
always give the same UnitSpec. from_unit() is the inverse, used on every
read so the container itself stays the only record of a room.

Environment passed to the room service:
  NEKO_BIND             :<frontend port>
  NEKO_EPR              <start>-<end>
  NEKO_NAT1TO1          <ip>,<ip>   (only when NAT IPs are known)
  NEKO_MAX_CONNECTIONS  <n>
  NEKO_PASSWORD / NEKO_PASSWORD_ADMIN / NEKO_SCREEN
  ...followed by user envs (NEKO_* is reserved)
"""

import re
from typing import Dict, List, Optional

from .errors import InvalidSettingsError
from .labels import (
    NAME_KEY, EPR_KEY, check_label_key, ownership_labels,
    decode_user_labels, decode_env_keys, parse_port_range,
)
from .models import RoomSettings, RoomResources, PortRange
from .routing import RoutingConfig, build_rules, container_name
from .runtime import UnitSpec, UnitInfo

ENV_BIND = "NEKO_BIND"
ENV_EPR = "NEKO_EPR"
ENV_NAT1TO1 = "NEKO_NAT1TO1"
ENV_MAX_CONNECTIONS = "NEKO_MAX_CONNECTIONS"
ENV_PASSWORD = "NEKO_PASSWORD"
ENV_PASSWORD_ADMIN = "NEKO_PASSWORD_ADMIN"
ENV_SCREEN = "NEKO_SCREEN"
RESERVED_ENV_PREFIX = "NEKO_"

# screen capture needs it
CAP_ADD = ["SYS_ADMIN"]

FORBIDDEN_NETWORK_MODES = ("host", "none")

_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{0,47}$")
_SCREEN_RE = re.compile(r"^\d+x\d+@\d+$")
_ENV_KEY_RE = re.compile(r"^[A-Z_][A-Z0-9_]*$")


# ── Validation ────────────────────────────────────────────

def validate_settings(settings: RoomSettings) -> None:
    """Raise InvalidSettingsError listing every problem. No side effects."""
    problems = []

    if settings.name is not None and not _NAME_RE.match(settings.name):
        problems.append(
            f"name '{settings.name}' must match [a-z0-9][a-z0-9_-]* (max 48 chars)"
        )
    if settings.image is not None and not settings.image.strip():
        problems.append("image must not be empty")
    if settings.max_connections < 1:
        problems.append("maxConnections must be at least 1")
    if settings.screen and not _SCREEN_RE.match(settings.screen):
        problems.append(f"screen '{settings.screen}' must look like 1280x720@30")

    res = settings.resources
    for field_name in ("cpu_shares", "nano_cpus", "memory", "shm_size"):
        if getattr(res, field_name) < 0:
            problems.append(f"resources.{field_name} must not be negative")

    mode = settings.network_mode
    if mode is not None:
        if not mode.strip() or mode in FORBIDDEN_NETWORK_MODES or mode.startswith("container:"):
            problems.append(f"network mode '{mode}' cannot publish room ports")

    for key in settings.labels:
        if not check_label_key(key):
            problems.append(f"label '{key}' must match [a-z0-9.-]")

    for key in settings.envs:
        if not _ENV_KEY_RE.match(key):
            problems.append(f"env '{key}' must match [A-Z_][A-Z0-9_]*")
        elif key.startswith(RESERVED_ENV_PREFIX):
            problems.append(f"env '{key}' is reserved")

    if problems:
        raise InvalidSettingsError("; ".join(problems))


# ── Settings → Container ─────────────────────────────────

def build_env(
    settings: RoomSettings,
    ports: PortRange,
    nat_ips: List[str],
    frontend_port: int,
) -> List[str]:
    env = [
        f"{ENV_BIND}=:{frontend_port}",
        f"{ENV_EPR}={ports.start}-{ports.end}",
    ]
    if nat_ips:
        env.append(f"{ENV_NAT1TO1}={','.join(nat_ips)}")
    env.append(f"{ENV_MAX_CONNECTIONS}={settings.max_connections}")
    env.append(f"{ENV_PASSWORD}={settings.user_pass}")
    env.append(f"{ENV_PASSWORD_ADMIN}={settings.admin_pass}")
    if settings.screen:
        env.append(f"{ENV_SCREEN}={settings.screen}")

    for key in sorted(settings.envs):
        env.append(f"{key}={settings.envs[key]}")
    return env


def to_unit_spec(
    settings: RoomSettings,
    ports: PortRange,
    nat_ips: List[str],
    routing: RoutingConfig,
) -> UnitSpec:
    """Container definition for a room whose name, image and ports are already decided."""
    validate_settings(settings)
    if not settings.name:
        raise InvalidSettingsError("room name is required")
    if not settings.image:
        raise InvalidSettingsError("image is required")

    name = container_name(settings.name)
    network = settings.network_mode or routing.network

    exposed = [f"{routing.port}/tcp"] + [f"{p}/udp" for p in ports.ports()]
    bindings = {f"{p}/udp": p for p in ports.ports()}

    labels = ownership_labels(
        settings.name, ports,
        user_labels=settings.labels,
        env_keys=sorted(settings.envs),
    )
    labels.update(build_rules(settings.name, routing))

    res = settings.resources
    return UnitSpec(
        name=name,
        image=settings.image,
        hostname=name,
        env=build_env(settings, ports, nat_ips, routing.port),
        labels=labels,
        exposed_ports=exposed,
        port_bindings=bindings,
        network=network,
        shm_size=res.shm_size,
        cpu_shares=res.cpu_shares,
        nano_cpus=res.nano_cpus,
        memory=res.memory,
        cap_add=list(CAP_ADD),
    )


# ── Container → Settings ─────────────────────────────────

def parse_env(env: List[str]) -> Dict[str, str]:
    result = {}
    for item in env:
        key, sep, value = item.partition("=")
        if sep:
            result[key] = value
    return result


def unit_ports(unit: UnitInfo) -> Optional[PortRange]:
    raw = unit.labels.get(EPR_KEY)
    if not raw:
        return None
    try:
        return parse_port_range(raw)
    except ValueError:
        return None


def from_unit(unit: UnitInfo, default_network: Optional[str] = None) -> RoomSettings:
    """Rebuild the RoomSettings a container was created from."""
    env = parse_env(unit.env)

    max_connections = env.get(ENV_MAX_CONNECTIONS, "")
    if max_connections.isdigit():
        max_connections = int(max_connections)
    else:
        ports = unit_ports(unit)
        max_connections = ports.width if ports else RoomSettings().max_connections

    network = unit.network_mode or None
    if network in (default_network, "default"):
        network = None

    return RoomSettings(
        name=unit.labels.get(NAME_KEY),
        image=unit.image or None,
        max_connections=max_connections,
        user_pass=env.get(ENV_PASSWORD, ""),
        admin_pass=env.get(ENV_PASSWORD_ADMIN, ""),
        screen=env.get(ENV_SCREEN) or None,
        resources=RoomResources(
            cpu_shares=unit.cpu_shares,
            nano_cpus=unit.nano_cpus,
            memory=unit.memory,
            shm_size=unit.shm_size,
        ),
        network_mode=network,
        labels=decode_user_labels(unit.labels),
        envs={k: env[k] for k in decode_env_keys(unit.labels) if k in env},
    )
