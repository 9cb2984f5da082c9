"""
Room Commander — Ownership Labels
═══════════════════════════════════════════════════
Docker labels are the only place a room's metadata lives. Everything here is
a flat string, so structured values get an explicit encode/parse pair.

Label schema:
  room_commander.canary          = "room-commander"   (ownership marker)
  room_commander.name            = room name / path segment
  room_commander.epr             = "start-end"        (allocated UDP ports)
  room_commander.envs            = "KEY1,KEY2"        (user supplied env keys)
  room_commander.x-label.<key>   = user label value

A container without the canary value does not exist as far as the engine is
concerned.
"""

import re
from typing import Dict, List, Optional

from .models import PortRange

LABEL_PREFIX = "room_commander"
CANARY_KEY = f"{LABEL_PREFIX}.canary"
CANARY_VALUE = "room-commander"
NAME_KEY = f"{LABEL_PREFIX}.name"
EPR_KEY = f"{LABEL_PREFIX}.epr"
ENVS_KEY = f"{LABEL_PREFIX}.envs"
USER_LABEL_PREFIX = f"{LABEL_PREFIX}.x-label."

_LABEL_KEY_RE = re.compile(r"^[a-z0-9.-]+$")


def check_label_key(key: str) -> bool:
    """True if key only uses [a-z0-9.-] and is not empty."""
    return bool(_LABEL_KEY_RE.match(key or ""))


def is_owned(labels: Optional[Dict[str, str]]) -> bool:
    return (labels or {}).get(CANARY_KEY) == CANARY_VALUE


def canary_filter() -> str:
    return f"{CANARY_KEY}={CANARY_VALUE}"


# ── Port Range Codec ──────────────────────────────────────

def format_port_range(ports: PortRange) -> str:
    return f"{ports.start}-{ports.end}"


def parse_port_range(value: str) -> PortRange:
    """
    Parse "start-end" back into a PortRange.
    Raises ValueError on anything else (missing dash, non-numbers, start > end).
    """
    parts = (value or "").strip().split("-")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError(f"malformed port range '{value}', expected 'start-end'")
    return PortRange(start=int(parts[0]), end=int(parts[1]))


# ── Label Sets ────────────────────────────────────────────

def user_label_key(key: str) -> str:
    return USER_LABEL_PREFIX + key


def ownership_labels(
    name: str,
    ports: PortRange,
    user_labels: Optional[Dict[str, str]] = None,
    env_keys: Optional[List[str]] = None,
) -> Dict[str, str]:
    labels = {
        CANARY_KEY: CANARY_VALUE,
        NAME_KEY: name,
        EPR_KEY: format_port_range(ports),
    }
    if env_keys:
        labels[ENVS_KEY] = ",".join(env_keys)
    for key, value in (user_labels or {}).items():
        labels[user_label_key(key)] = value
    return labels


def decode_user_labels(labels: Dict[str, str]) -> Dict[str, str]:
    return {
        key[len(USER_LABEL_PREFIX):]: value
        for key, value in labels.items()
        if key.startswith(USER_LABEL_PREFIX)
    }


def decode_env_keys(labels: Dict[str, str]) -> List[str]:
    raw = labels.get(ENVS_KEY, "")
    return [k for k in raw.split(",") if k]
