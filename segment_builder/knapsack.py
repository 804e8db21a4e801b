"""
Gap-fill optimizer: bounded subset-sum over the routines eligible for one gap.

Weight and value are the same thing (the routine size), so this picks the
subset with the largest total size that still fits in the gap.

Recurrence over (i routines considered, remaining capacity c):
  f(0, c) = 0
  f(i, 0) = 0
  f(i, c) = f(i-1, c)                      if s_i > c
  take    = f(i-1, c - s_i) + s_i
  f(i, c) = take                           if take == c  (exact fill, skip not evaluated)
          = max(take, f(i-1, c))           otherwise, ties go to take

Taking on ties consumes the larger routine (routines are sorted ascending, so
s_i is the largest still considered) and leaves more small routines for the
tighter gaps that follow.

Tables: one value row per routine is enough to fill the table, plus one
bytearray per routine that records whether (i, c) took routine i. The chosen
subset is rebuilt with a single backward pass over the take table.
"""

from __future__ import annotations
import logging
from typing import List, Sequence

from .errors import InternalInvariantError
from .routines import Routine

__all__ = ['eligible_routines', 'select_routines']

log = logging.getLogger(__name__)


def eligible_routines(pool: Sequence[Routine], capacity: int) -> List[Routine]:
    """Prefix of a size-sorted pool whose routines fit into `capacity`."""
    result = []
    for routine in pool:
        if routine.size > capacity:
            break
        result.append(routine)
    return result


def select_routines(candidates: Sequence[Routine], capacity: int) -> List[Routine]:
    """Choose the subset of `candidates` with the largest total size <= capacity.

    `candidates` must be sorted ascending by size. The result keeps that order.
    """
    routines = [r for r in candidates if r.size <= capacity]
    if not routines or capacity <= 0:
        return []

    sizes = [r.size for r in routines]
    previous = [0] * (capacity + 1)           # f(i-1, c)
    took: List[bytearray] = []                 # took[i][c] == 1 -> f(i+1, c) takes routine i

    for size in sizes:
        current = list(previous)
        take_row = bytearray(capacity + 1)
        for c in range(size, capacity + 1):
            take = previous[c - size] + size
            if take == c or take >= previous[c]:
                current[c] = take
                take_row[c] = 1
        took.append(take_row)
        previous = current

    if len(took) != len(routines):
        raise InternalInvariantError(
            f"decision table has {len(took)} rows for {len(routines)} routines")

    chosen: List[Routine] = []
    c = capacity
    for i in range(len(routines) - 1, -1, -1):
        if took[i][c]:
            chosen.append(routines[i])
            c -= sizes[i]
    chosen.reverse()

    total = sum(r.size for r in chosen)
    if total > capacity or total != previous[capacity]:
        raise InternalInvariantError(
            f"selected {total} bytes, table says {previous[capacity]}, capacity {capacity}")

    log.debug("gap fill: %d of %d bytes from %d candidates (%d chosen)",
              total, capacity, len(routines), len(chosen))
    return chosen
