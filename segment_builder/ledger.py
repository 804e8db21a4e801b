"""
Gap ledger for one segment.

The ledger tracks which parts of the segment's address range are still free
(gaps, keyed by start address) and which are taken (placements, keyed by the
routine's start address). Floating routines wait in a pool until the solver
commits them to an address.

Invariant kept by every mutation:
  gaps + placements + discarded ranges tile [lo, hi] exactly, with no overlap.
  Unplaced floating routines live only in the pool, never in that tiling.

How a fixed routine is registered:
  1. Query: find the gap that contains the routine's start address.
  2. Mutate: remove that gap, then re-insert the prefix before the routine and
     the suffix after it (each only when non-empty).
  The two phases never overlap, so the gap dict is not changed mid-scan.

The floating pool is kept sorted ascending by size. The sort is stable, so
routines of equal size keep their registration order.
"""

from __future__ import annotations
import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import (CapacityError, FitError, InternalInvariantError,
                     OverlapError)
from .routines import AddressRange, Routine
from .trace import Decision, DecisionKind, DecisionTrace

__all__ = ['GapLedger', 'check_capacity']

log = logging.getLogger(__name__)


def check_capacity(address_range: AddressRange, routines: Iterable[Routine]) -> int:
    """Raise CapacityError if the routines need more bytes than the range holds.

    Returns the total number of requested bytes.
    """
    total = sum(r.size for r in routines)
    if total > address_range.length:
        raise CapacityError(total, address_range.length)
    return total


class GapLedger:
    """Free gaps, committed placements and the floating pool of one segment.

    Usage:
        ledger = GapLedger(AddressRange(0xC000, 0xCFFF))
        ledger.add_routine(Routine("irq", 32, fixed_address=0xC000))
        ledger.add_routine(Routine("print", 120))
        Solver(ledger).run()
    """

    def __init__(self, address_range: AddressRange,
                 observer: Optional[Callable[[Decision], None]] = None):
        self.address_range = address_range
        self.gaps: Dict[int, int] = {address_range.lo: address_range.length}  # address -> length
        self.placements: Dict[int, Routine] = {}   # address -> routine
        self.floating: List[Routine] = []          # unplaced, ascending by size
        self.discarded: List[Tuple[int, int]] = [] # (address, length) given up for good
        self.trace = DecisionTrace(observer)

    @classmethod
    def from_routines(cls, address_range: AddressRange, routines: Iterable[Routine],
                      observer: Optional[Callable[[Decision], None]] = None) -> GapLedger:
        """Build a ledger, registering all fixed routines before the floating ones."""
        routines = list(routines)
        ledger = cls(address_range, observer)
        for routine in routines:
            if not routine.is_floating:
                ledger.register_fixed(routine)
        for routine in routines:
            if routine.is_floating:
                ledger.register_floating(routine)
        return ledger

    # ── Queries ──────────────────────────────

    def is_solved(self) -> bool:
        return not self.floating

    def gap_addresses(self) -> List[int]:
        """Gap start addresses in ascending order."""
        return sorted(self.gaps)

    def find_gap(self, address: int) -> Optional[int]:
        """Return the start of the gap containing `address`, or None."""
        for gap_addr in self.gap_addresses():
            if gap_addr <= address < gap_addr + self.gaps[gap_addr]:
                return gap_addr
        return None

    def free_bytes(self) -> int:
        return sum(self.gaps.values())

    def floating_bytes(self) -> int:
        return sum(r.size for r in self.floating)

    def layout(self) -> Dict[int, Routine]:
        """Committed placements, ascending by address."""
        return {addr: self.placements[addr] for addr in sorted(self.placements)}

    # ── Registration ─────────────────────────

    def add_routine(self, routine: Routine):
        if routine.is_floating:
            self.register_floating(routine)
        else:
            self.register_fixed(routine)

    def register_fixed(self, routine: Routine):
        """Carve a fixed routine out of the gap that contains its start address."""
        start = routine.fixed_address
        if start is None:
            raise InternalInvariantError(f"routine '{routine.label}' has no fixed address")

        gap_addr = self.find_gap(start)
        if gap_addr is None:
            raise OverlapError(routine.label, start)

        gap_len = self.gaps[gap_addr]
        gap_end = gap_addr + gap_len
        end = start + routine.size
        if end > gap_end:
            raise FitError(routine.label, start, routine.size, gap_addr, gap_len)

        # Lookup finished; split the gap by key
        del self.gaps[gap_addr]
        self._place(start, routine)
        self.trace.record(DecisionKind.FIXED, start, routine.size, (routine.label,))

        if start > gap_addr:
            self.gaps[gap_addr] = start - gap_addr
            self.trace.record(DecisionKind.SPLIT, gap_addr, start - gap_addr,
                              detail="gap before fixed routine")
        if end < gap_end:
            self.gaps[end] = gap_end - end
            self.trace.record(DecisionKind.SPLIT, end, gap_end - end,
                              detail="gap after fixed routine")

    def register_floating(self, routine: Routine):
        if not routine.is_floating:
            raise InternalInvariantError(f"routine '{routine.label}' is not floating")
        self.floating.append(routine)
        self.sort_floating()

    def sort_floating(self):
        self.floating.sort(key=lambda r: r.size)

    # ── Reduction steps ──────────────────────

    def fill_gap(self, gap_address: int, routines: Sequence[Routine]):
        """Place `routines` back-to-back from `gap_address`, then drop the gap.

        Whatever the routines leave unused at the end of the gap is discarded,
        not re-inserted as a smaller gap.
        """
        if gap_address not in self.gaps:
            raise InternalInvariantError("no such gap", gap_address)
        capacity = self.gaps[gap_address]

        # Validate the whole placement before touching the ledger
        used = 0
        seen = set()
        for routine in routines:
            if routine in seen or routine not in self.floating:
                raise InternalInvariantError(
                    f"routine '{routine.label}' is not in the floating pool", gap_address)
            seen.add(routine)
            used += routine.size
            if used > capacity:
                raise InternalInvariantError(
                    f"placement of '{routine.label}' ends at offset {used}, "
                    f"past the gap size {capacity}", gap_address)

        offset = 0
        for routine in routines:
            self._place(gap_address + offset, routine)
            self.floating.remove(routine)
            offset += routine.size

        del self.gaps[gap_address]
        leftover = capacity - used
        if leftover == 0:
            detail = "filled to the last byte"
        elif self.floating:
            detail = f"filled in - dropped bytes: {leftover}"
        else:
            detail = "out of routines"
        if leftover:
            self.discarded.append((gap_address + used, leftover))
        self.trace.record(DecisionKind.FILL, gap_address, capacity,
                          tuple(r.label for r in routines), detail)

    def perform_obvious_steps(self) -> int:
        """Commit every placement that has only one possible gap.

        Repeatedly looks at the largest floating routine; if exactly one gap can
        hold it, the routine goes to the tail of that gap (the gap keeps its
        start address and shrinks). Returns the number of routines placed.
        """
        placed = 0
        while self.floating and self.gaps:
            routine = self.floating[-1]
            candidates = [addr for addr in self.gap_addresses()
                          if self.gaps[addr] >= routine.size]
            if len(candidates) != 1:
                break

            gap_addr = candidates[0]
            remaining = self.gaps[gap_addr] - routine.size
            target = gap_addr + remaining
            if remaining:
                self.gaps[gap_addr] = remaining
            else:
                del self.gaps[gap_addr]
            self.floating.pop()
            self._place(target, routine)
            self.trace.record(DecisionKind.FORCED, target, routine.size, (routine.label,),
                              f"gap ${gap_addr:04X} reduced to size {remaining}")
            placed += 1
        return placed

    def remove_useless_gaps(self) -> int:
        """Drop every gap smaller than the smallest floating routine."""
        if not self.floating:
            return 0
        min_useful = self.floating[0].size
        useless = [addr for addr in self.gap_addresses() if self.gaps[addr] < min_useful]
        for addr in useless:
            size = self.gaps.pop(addr)
            self.discarded.append((addr, size))
            self.trace.record(DecisionKind.DROP, addr, size,
                              detail=f"smaller than any floating routine ({min_useful})")
        return len(useless)

    # ── Internals ────────────────────────────

    def _place(self, address: int, routine: Routine):
        if address in self.placements:
            raise InternalInvariantError(
                f"'{routine.label}' collides with '{self.placements[address].label}' "
                f"at ${address:04X}")
        routine.assigned_address = address
        self.placements[address] = routine

    def __repr__(self):
        return (f"GapLedger({self.address_range}, gaps={len(self.gaps)}, "
                f"placed={len(self.placements)}, floating={len(self.floating)})")
