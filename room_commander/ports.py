"""
Room Commander — Port Allocator
═══════════════════════════════════════════════════
Hands out blocks of host UDP ports from the ephemeral pool.

Nothing is cached: the caller passes the ranges currently claimed by owned
containers (read from Docker labels), and the allocator returns the lowest
free block of the requested width. Two callers racing for the same block is
possible; the loser finds out at create/bind time (PortConflictError).
"""

from typing import Iterable, List

from .errors import PoolExhaustedError
from .models import PortRange


def free_ranges(pool: PortRange, claimed: Iterable[PortRange]) -> List[PortRange]:
    """Gaps of the pool not covered by any claimed range, in ascending order."""
    gaps = []
    cursor = pool.start

    for used in sorted(claimed, key=lambda r: r.start):
        if used.end < cursor or used.start > pool.end:
            continue
        if used.start > cursor:
            gaps.append(PortRange(start=cursor, end=used.start - 1))
        cursor = max(cursor, used.end + 1)
        if cursor > pool.end:
            break

    if cursor <= pool.end:
        gaps.append(PortRange(start=cursor, end=pool.end))
    return gaps


def allocate(pool: PortRange, width: int, claimed: Iterable[PortRange]) -> PortRange:
    """
    First block of `width` consecutive ports inside `pool` that overlaps no
    claimed range. Lowest start port wins.
    """
    if width < 1:
        raise ValueError(f"port range width must be positive, got {width}")

    for gap in free_ranges(pool, claimed):
        if gap.width >= width:
            return PortRange(start=gap.start, end=gap.start + width - 1)

    raise PoolExhaustedError(width, pool)
