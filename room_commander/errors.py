"""
Room Commander — Error Taxonomy
═══════════════════════════════════════════════════
Every failure the engine reports is one of these. The Docker adapter wraps
SDK exceptions into them, so nothing above runtime.py ever sees docker.errors.

  InvalidSettingsError     400  caller sent unusable settings
  InvalidLabelError        400  label key outside [a-z0-9.-]
  RoomNotFoundError        404  id absent, or not owned by us
  PoolExhaustedError       500  no free port range (retry later)
  PortConflictError        500  lost a port race (retry create)
  RuntimeUnavailableError  500  Docker daemon unreachable
  RuntimeCallError         500  Docker refused a call
  RecreateFailedError      500  old room removed, new one not created
"""


class RoomError(Exception):
    """Base class for all engine errors."""
    kind = "room_error"
    status_code = 500
    retryable = False


class InvalidSettingsError(RoomError):
    kind = "invalid_settings"
    status_code = 400


class InvalidLabelError(RoomError):
    kind = "invalid_label"
    status_code = 400

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"invalid label name '{key}', allowed characters: [a-z0-9.-]")


class RoomNotFoundError(RoomError):
    kind = "not_found"
    status_code = 404

    def __init__(self, room_id: str):
        self.room_id = room_id
        super().__init__(f"room '{room_id}' not found")


class PoolExhaustedError(RoomError):
    kind = "pool_exhausted"
    retryable = True

    def __init__(self, width: int, pool):
        self.width = width
        self.pool = pool
        super().__init__(f"no free range of {width} ports left in pool {pool}")


class PortConflictError(RoomError):
    kind = "port_conflict"
    retryable = True


class RuntimeUnavailableError(RoomError):
    kind = "runtime_unavailable"


class RuntimeCallError(RoomError):
    kind = "runtime_error"


class RecreateFailedError(RoomError):
    """The old room was removed but its replacement could not be brought up."""
    kind = "recreate_failed"

    def __init__(self, room_id: str, reason: Exception):
        self.room_id = room_id
        self.reason = reason
        super().__init__(
            f"room '{room_id}' was removed but could not be recreated: {reason}"
        )
