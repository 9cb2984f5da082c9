"""
Room Commander — Ownership Registry
═══════════════════════════════════════════════════
Scopes every runtime read to containers carrying our canary label.

Co-tenant containers on the same daemon are invisible: list() never returns
them and inspect() reports them as not found, even though Docker knows the id.
The canary is checked twice, once as a Docker label filter and once here,
so a runtime that ignores filters still cannot leak foreign containers.
"""

import logging
from typing import Dict, List, Optional

from .errors import InvalidLabelError, RoomNotFoundError
from .labels import (
    EPR_KEY, NAME_KEY, canary_filter, check_label_key, is_owned,
    parse_port_range, user_label_key,
)
from .models import PortRange
from .runtime import RoomRuntime, UnitInfo

logger = logging.getLogger(__name__)


def normalize_label_filter(labels: Optional[Dict[str, str]]) -> Dict[str, str]:
    """Validate filter keys as given. Raises InvalidLabelError on anything outside [a-z0-9.-]."""
    result = {}
    for key, value in (labels or {}).items():
        if not check_label_key(key):
            raise InvalidLabelError(key)
        result[key] = value
    return result


class RoomRegistry:
    """Read side of the engine: discovery and ownership checks."""

    def __init__(self, runtime: RoomRuntime):
        self.runtime = runtime

    def list(self, labels: Optional[Dict[str, str]] = None) -> List[UnitInfo]:
        """
        All owned containers, running or stopped.
        `labels` filters on user labels (exact match); keys are validated
        before the runtime is touched.
        """
        wanted = normalize_label_filter(labels)

        filters = [canary_filter()]
        filters += [f"{user_label_key(k)}={v}" for k, v in wanted.items()]

        units = []
        for unit in self.runtime.list(filters):
            if not is_owned(unit.labels):
                continue
            if any(unit.labels.get(user_label_key(k)) != v for k, v in wanted.items()):
                continue
            units.append(unit)
        return units

    def inspect(self, room_id: str) -> UnitInfo:
        """Owned container by id. Unowned counts as not found."""
        unit = self.runtime.inspect(room_id)
        if not is_owned(unit.labels):
            logger.debug(f"[Registry] {room_id[:12]} exists but is not owned")
            raise RoomNotFoundError(room_id)
        return unit

    def find_by_name(self, name: str) -> UnitInfo:
        filters = [canary_filter(), f"{NAME_KEY}={name}"]
        for unit in self.runtime.list(filters):
            if is_owned(unit.labels) and unit.labels.get(NAME_KEY) == name:
                return unit
        raise RoomNotFoundError(name)

    def name_in_use(self, name: str) -> bool:
        try:
            self.find_by_name(name)
            return True
        except RoomNotFoundError:
            return False

    def claimed_ranges(self) -> List[PortRange]:
        """Port ranges held by every owned container. Unreadable labels are skipped."""
        ranges = []
        for unit in self.list():
            raw = unit.labels.get(EPR_KEY)
            if not raw:
                continue
            try:
                ranges.append(parse_port_range(raw))
            except ValueError as e:
                logger.warning(f"[Registry] Ignoring port label on {unit.id[:12]}: {e}")
        return ranges
