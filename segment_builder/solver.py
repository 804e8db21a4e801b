"""
Solver: reduces a GapLedger until every floating routine has an address.

Each pass of the main loop:
  1. places routines that have exactly one possible gap,
  2. drops gaps too small for any remaining routine,
  3. picks the smallest gap (ties: lowest address),
  4. fills it with the best-fitting subset of the floating pool.

Step 4 always removes the selected gap, so the loop runs at most once per
gap in the ledger and terminates. The packing is optimal per gap only, not
across gaps.
"""

from __future__ import annotations
import enum
import logging
from typing import Callable, Dict, Iterable, Optional

from .errors import ConfigError, SegmentError, UnsolvableError
from .knapsack import eligible_routines, select_routines
from .ledger import GapLedger, check_capacity
from .routines import AddressRange, Routine
from .trace import Decision, DecisionKind

__all__ = ['Solver', 'SolverState', 'solve_segment']

log = logging.getLogger(__name__)


class SolverState(enum.Enum):
    REDUCING = "reducing"
    SOLVED = "solved"
    UNSOLVABLE = "unsolvable"


class Solver:
    """Drives one ledger to a complete layout or an UnsolvableError."""

    def __init__(self, ledger: GapLedger):
        self.ledger = ledger
        self.state = SolverState.REDUCING

    def run(self) -> Dict[int, Routine]:
        ledger = self.ledger
        ledger.sort_floating()

        while ledger.gaps and ledger.floating:
            ledger.perform_obvious_steps()
            ledger.remove_useless_gaps()
            if not ledger.gaps or not ledger.floating:
                break

            gap_addr = self.select_gap_to_fill()
            capacity = ledger.gaps[gap_addr]
            ledger.trace.record(DecisionKind.SELECT, gap_addr, capacity)

            candidates = eligible_routines(ledger.floating, capacity)
            ledger.fill_gap(gap_addr, select_routines(candidates, capacity))

        if not ledger.is_solved():
            self.state = SolverState.UNSOLVABLE
            raise UnsolvableError(ledger.floating)

        self.state = SolverState.SOLVED
        log.info("all the routines successfully placed")
        return ledger.layout()

    def select_gap_to_fill(self) -> int:
        """Smallest gap; gap_addresses() is ascending so min() keeps the lowest address on ties."""
        gaps = self.ledger.gaps
        return min(self.ledger.gap_addresses(), key=lambda addr: gaps[addr])


def solve_segment(address_range: AddressRange, routines: Iterable[Routine],
                  observer: Optional[Callable[[Decision], None]] = None) -> Dict[int, Routine]:
    """Assign an address to every routine inside `address_range`.

    Returns {address: routine} in ascending address order. Raises a
    SegmentError subclass on any failure; no partial layout is returned.
    """
    routines = list(routines)
    labels = set()
    for routine in routines:
        if routine.label in labels:
            raise ConfigError(f"duplicate routine label '{routine.label}'")
        labels.add(routine.label)

    check_capacity(address_range, routines)
    try:
        ledger = GapLedger.from_routines(address_range, routines, observer)
        return Solver(ledger).run()
    except SegmentError:
        for routine in routines:
            routine.assigned_address = None
        raise
