"""
Room Commander API
Provisions short-lived neko rooms on Docker behind Traefik.

Provides:
- Room lifecycle (/rooms/*)
- docker-compose export (/rooms/docker-compose)
- System Health (/health)

Run:
    uvicorn room_commander.app:create_app --factory
"""

import os
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .api import router, room_error_response
from .config import RoomConfig
from .errors import RoomError
from .manager import RoomManager
from .runtime import DockerRuntime

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
VERSION = "1.0.0"

logger = logging.getLogger(__name__)


def create_app(manager: Optional[RoomManager] = None) -> FastAPI:
    """
    Build the app. Without a manager, one is created at startup from the
    environment (docker.from_env + RoomConfig.from_env).
    """
    logging.basicConfig(
        level=LOG_LEVEL,
        format='[%(asctime)s] [%(levelname)s] %(message)s'
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.manager is None:
            config = RoomConfig.from_env()
            app.state.manager = RoomManager(DockerRuntime.from_env(), config)
            logger.info(
                f"[API] Ready: pool={config.epr} domain={config.traefik_domain} "
                f"network={config.traefik_network}"
            )
        yield

    app = FastAPI(
        title="Room Commander",
        description="Short-lived neko rooms on Docker, routed by Traefik",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.manager = manager
    app.add_exception_handler(RoomError, room_error_response)
    app.include_router(router)

    @app.get("/health")
    def health():
        """Health Check."""
        runtime_ok = app.state.manager is not None and app.state.manager.runtime.ping()
        return {
            "status": "ok",
            "service": "room-commander",
            "version": VERSION,
            "docker": "connected" if runtime_ok else "unavailable",
        }

    return app


def main():
    import uvicorn

    port = int(os.getenv("PORT", "8080"))
    uvicorn.run(create_app(), host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
