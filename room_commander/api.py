"""
Room Commander — REST API Routes
═══════════════════════════════════════════════════
FastAPI router over RoomManager. Mounted at /rooms by app.create_app().

Only transport concerns live here: decoding bodies and query strings,
picking status codes, encoding JSON. RoomError subclasses raised by the
manager are turned into {"error": ...} responses by the handler that
create_app() installs (404 only for RoomNotFoundError).

Manager calls block on Docker, so they run in the threadpool.
"""

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .errors import RoomError
from .manager import RoomManager, LifecycleAction
from .models import RoomSettings

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/rooms")


class BodyError(ValueError):
    pass


def get_manager(request: Request) -> RoomManager:
    return request.app.state.manager


async def room_error_response(request: Request, exc: RoomError) -> JSONResponse:
    return JSONResponse({"error": str(exc), "kind": exc.kind}, status_code=exc.status_code)


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=400)


async def _read_json_object(request: Request, optional: bool = False) -> Optional[Dict[str, Any]]:
    raw = await request.body()
    if not raw.strip():
        if optional:
            return None
        raise BodyError("request body is empty")
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise BodyError(f"malformed JSON body: {e}") from e
    if not isinstance(data, dict):
        raise BodyError("request body must be a JSON object")
    return data


def _dump(model) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


# ═══════════════════════════════════════════════════════════
# COLLECTION
# ═══════════════════════════════════════════════════════════

@router.get("")
async def api_list_rooms(request: Request, manager: RoomManager = Depends(get_manager)):
    labels: Dict[str, str] = {}
    for key, value in request.query_params.multi_items():
        labels.setdefault(key.lower(), value)

    rooms = await run_in_threadpool(manager.list, labels)
    return [_dump(room) for room in rooms]


@router.post("")
async def api_create_room(request: Request, manager: RoomManager = Depends(get_manager)):
    try:
        data = await _read_json_object(request)
        settings = RoomSettings.model_validate(data)
    except (BodyError, ValidationError) as e:
        return _bad_request(str(e))

    room_id = await run_in_threadpool(manager.create, settings)
    try:
        await run_in_threadpool(manager.start, room_id)
    except RoomError:
        # drop the unstarted container so its name and ports are free again
        try:
            await run_in_threadpool(manager.remove, room_id)
        except RoomError as e:
            logger.error(f"[API] Cleanup after failed start of {room_id[:12]} failed: {e}")
        raise
    entry = await run_in_threadpool(manager.get_entry, room_id)
    return _dump(entry)


@router.get("/docker-compose")
async def api_docker_compose(manager: RoomManager = Depends(get_manager)):
    content = await run_in_threadpool(manager.export_as_docker_compose)
    return Response(content=content, media_type="text/yaml")


# ═══════════════════════════════════════════════════════════
# SINGLE ROOM
# ═══════════════════════════════════════════════════════════

@router.get("/{room_id}")
async def api_get_room(room_id: str, manager: RoomManager = Depends(get_manager)):
    entry = await run_in_threadpool(manager.get_entry, room_id)
    return _dump(entry)


@router.get("/{room_name}/by-name")
async def api_get_room_by_name(room_name: str, manager: RoomManager = Depends(get_manager)):
    entry = await run_in_threadpool(manager.get_entry_by_name, room_name)
    return _dump(entry)


@router.get("/{room_id}/settings")
async def api_get_room_settings(room_id: str, manager: RoomManager = Depends(get_manager)):
    settings = await run_in_threadpool(manager.get_settings, room_id)
    return _dump(settings)


@router.get("/{room_id}/stats")
async def api_get_room_stats(room_id: str, manager: RoomManager = Depends(get_manager)):
    stats = await run_in_threadpool(manager.get_stats, room_id)
    return _dump(stats)


@router.post("/{room_id}/recreate")
async def api_recreate_room(room_id: str, request: Request, manager: RoomManager = Depends(get_manager)):
    # optional settings payload
    try:
        override = await _read_json_object(request, optional=True)
    except BodyError as e:
        return _bad_request(str(e))

    new_id = await run_in_threadpool(manager.recreate, room_id, override)
    entry = await run_in_threadpool(manager.get_entry, new_id)
    return _dump(entry)


@router.post("/{room_id}/{action}", status_code=204)
async def api_room_action(room_id: str, action: str, manager: RoomManager = Depends(get_manager)):
    try:
        lifecycle_action = LifecycleAction(action)
    except ValueError:
        allowed = ", ".join(a.value for a in LifecycleAction)
        return _bad_request(f"unknown action '{action}', expected one of: {allowed}")

    await run_in_threadpool(manager.perform, lifecycle_action, room_id)
    return Response(status_code=204)
