"""
Room Commander — Traefik Routing Rules
═══════════════════════════════════════════════════
Builds the Traefik docker-provider labels that route
  https://<domain>/<room>/...  →  room container :<frontend port>/...

Per room:
  router     room-<name>          Host + PathPrefix match, entrypoint
  middleware room-<name>-rdr      /<name> → /<name>/ redirect
  middleware room-<name>-prf      strip /<name>/ so the service sees /
  service    room-<name>-frontend load balancer to the frontend port

All keys carry the container name, so any number of rooms can share one
Traefik instance. Pure data; no Docker calls.
"""

from dataclasses import dataclass
from typing import Dict, Optional

CONTAINER_PREFIX = "room-"


@dataclass(frozen=True)
class RoutingConfig:
    port: int = 8080
    domain: str = ""
    entrypoint: str = ""
    certresolver: Optional[str] = None
    network: Optional[str] = None


def container_name(path_segment: str) -> str:
    return CONTAINER_PREFIX + path_segment


def build_rules(path_segment: str, routing: RoutingConfig) -> Dict[str, str]:
    name = container_name(path_segment)
    path = f"/{path_segment}"

    rule = f"PathPrefix(`{path}`)"
    if routing.domain:
        rule = f"Host(`{routing.domain}`) && {rule}"

    router = f"traefik.http.routers.{name}"
    labels = {
        "traefik.enable": "true",
        f"traefik.http.services.{name}-frontend.loadbalancer.server.port": str(routing.port),
        f"{router}.rule": rule,
        f"traefik.http.middlewares.{name}-rdr.redirectregex.regex": f"{path}$",
        f"traefik.http.middlewares.{name}-rdr.redirectregex.replacement": f"{path}/",
        f"traefik.http.middlewares.{name}-prf.stripprefix.prefixes": f"{path}/",
        f"{router}.middlewares": f"{name}-rdr,{name}-prf",
        f"{router}.service": f"{name}-frontend",
    }

    if routing.entrypoint:
        labels[f"{router}.entrypoints"] = routing.entrypoint

    if routing.network:
        labels["traefik.docker.network"] = routing.network

    # optional HTTPS
    if routing.certresolver:
        labels[f"{router}.tls"] = "true"
        labels[f"{router}.tls.certresolver"] = routing.certresolver

    return labels
