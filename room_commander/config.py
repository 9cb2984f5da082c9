"""
Room Commander Konfiguration.

Alle Einstellungen zentral an einem Ort.
Kann über Umgebungsvariablen überschrieben werden; gelesen wird einmal beim
Start (RoomConfig.from_env), danach wird die Config explizit weitergereicht.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import requests

from .models import PortRange
from .routing import RoutingConfig

logger = logging.getLogger(__name__)

# ============================================================
# DEFAULTS
# ============================================================

DEFAULT_EPR_MIN = 59000
DEFAULT_EPR_MAX = 59999
DEFAULT_EPR = f"{DEFAULT_EPR_MIN}-{DEFAULT_EPR_MAX}"

DEFAULT_IMAGE = "m1k1o/neko:firefox"
DEFAULT_FRONTEND_PORT = 8080

DEFAULT_TRAEFIK_DOMAIN = "neko.lan"
DEFAULT_TRAEFIK_ENTRYPOINT = "web-secure"
DEFAULT_TRAEFIK_CERTRESOLVER = "lets-encrypt"
DEFAULT_TRAEFIK_NETWORK = "traefik"

PUBLIC_IP_URL = os.getenv("ROOMS_PUBLIC_IP_URL", "https://api.ipify.org")
PUBLIC_IP_TIMEOUT = 5


def parse_epr(value: Optional[str]) -> PortRange:
    """
    "59000-59999" → PortRange. Unparseable halves fall back to the defaults,
    a reversed range is swapped.
    """
    low, high = DEFAULT_EPR_MIN, DEFAULT_EPR_MAX
    parts = (value or "").split("-")
    if len(parts) > 1:
        if parts[0].strip().isdigit():
            low = int(parts[0])
        if parts[1].strip().isdigit():
            high = int(parts[1])

    low, high = min(low, high), max(low, high)
    if high > 65535:
        raise ValueError(f"ephemeral port range '{value}' exceeds 65535")
    return PortRange(start=low, end=high)


def detect_public_ip() -> Optional[str]:
    """Ask an external service for our public address. None on any failure."""
    try:
        resp = requests.get(PUBLIC_IP_URL, timeout=PUBLIC_IP_TIMEOUT)
        resp.raise_for_status()
        ip = resp.text.strip()
        return ip or None
    except requests.RequestException as e:
        logger.warning(f"[Config] Public IP detection failed: {e}")
        return None


def _split_list(value: Optional[str]) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


@dataclass
class RoomConfig:
    epr: PortRange = field(default_factory=lambda: PortRange(start=DEFAULT_EPR_MIN, end=DEFAULT_EPR_MAX))
    nat1to1_ips: List[str] = field(default_factory=list)

    image: str = DEFAULT_IMAGE
    frontend_port: int = DEFAULT_FRONTEND_PORT
    instance_url: Optional[str] = None

    traefik_domain: str = DEFAULT_TRAEFIK_DOMAIN
    traefik_entrypoint: str = DEFAULT_TRAEFIK_ENTRYPOINT
    traefik_certresolver: Optional[str] = DEFAULT_TRAEFIK_CERTRESOLVER
    traefik_network: str = DEFAULT_TRAEFIK_NETWORK

    @classmethod
    def from_env(cls, detect_ip: bool = True) -> "RoomConfig":
        nat_ips = _split_list(os.getenv("ROOMS_NAT1TO1"))

        # if not specified, get public
        if not nat_ips and detect_ip:
            ip = detect_public_ip()
            if ip:
                nat_ips.append(ip)
                logger.info(f"[Config] Using detected public IP {ip} for NAT 1:1")

        return cls(
            epr=parse_epr(os.getenv("ROOMS_EPR", DEFAULT_EPR)),
            nat1to1_ips=nat_ips,
            image=os.getenv("ROOMS_IMAGE", DEFAULT_IMAGE),
            frontend_port=int(os.getenv("ROOMS_FRONTEND_PORT", str(DEFAULT_FRONTEND_PORT))),
            instance_url=os.getenv("ROOMS_INSTANCE_URL") or None,
            traefik_domain=os.getenv("ROOMS_TRAEFIK_DOMAIN", DEFAULT_TRAEFIK_DOMAIN),
            traefik_entrypoint=os.getenv("ROOMS_TRAEFIK_ENTRYPOINT", DEFAULT_TRAEFIK_ENTRYPOINT),
            traefik_certresolver=os.getenv("ROOMS_TRAEFIK_CERTRESOLVER", DEFAULT_TRAEFIK_CERTRESOLVER) or None,
            traefik_network=os.getenv("ROOMS_TRAEFIK_NETWORK", DEFAULT_TRAEFIK_NETWORK),
        )

    @property
    def routing(self) -> RoutingConfig:
        return RoutingConfig(
            port=self.frontend_port,
            domain=self.traefik_domain,
            entrypoint=self.traefik_entrypoint,
            certresolver=self.traefik_certresolver,
            network=self.traefik_network,
        )

    def room_url(self, name: str) -> str:
        if self.instance_url:
            return f"{self.instance_url.rstrip('/')}/{name}/"
        scheme = "https" if self.traefik_certresolver else "http"
        return f"{scheme}://{self.traefik_domain}/{name}/"
