"""
Room Commander — docker-compose Export
═══════════════════════════════════════════════════
Renders every owned room as a docker-compose service, so a set of rooms can
be moved to another host or run without the orchestrator.

Compose interpolates "$", so literal dollars (Traefik regex labels, env
values) are written as "$$".
"""

import logging
from typing import Dict, List, Any

import yaml

from .labels import EPR_KEY, parse_port_range
from .runtime import UnitInfo

logger = logging.getLogger(__name__)


def _escape(value: str) -> str:
    return value.replace("$", "$$")


def unit_to_service(unit: UnitInfo) -> Dict[str, Any]:
    service: Dict[str, Any] = {
        "image": unit.image,
        "container_name": unit.name,
        "hostname": unit.name,
        "restart": unit.restart_policy or "always",
    }

    if unit.shm_size:
        service["shm_size"] = unit.shm_size
    if unit.cap_add:
        service["cap_add"] = list(unit.cap_add)
    if unit.cpu_shares:
        service["cpu_shares"] = unit.cpu_shares
    if unit.nano_cpus:
        service["cpus"] = round(unit.nano_cpus / 1e9, 3)
    if unit.memory:
        service["mem_limit"] = unit.memory

    raw = unit.labels.get(EPR_KEY)
    if raw:
        try:
            ports = parse_port_range(raw)
            service["ports"] = [f"{ports}:{ports}/udp"]
        except ValueError as e:
            logger.warning(f"[Compose] No ports exported for {unit.name}: {e}")

    if unit.network_mode and unit.network_mode not in ("default", "bridge"):
        service["networks"] = [unit.network_mode]

    service["environment"] = [_escape(e) for e in unit.env]
    service["labels"] = {k: _escape(v) for k, v in sorted(unit.labels.items())}
    return service


def export_compose(units: List[UnitInfo]) -> str:
    services = {}
    networks = set()

    for unit in sorted(units, key=lambda u: u.name):
        service = unit_to_service(unit)
        services[unit.name] = service
        networks.update(service.get("networks", []))

    data: Dict[str, Any] = {"services": services}
    if networks:
        data["networks"] = {name: {"external": True} for name in sorted(networks)}

    return yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
