"""
Segment Builder
===============
Places assembler routines inside one fixed address range: routines whose
file name carries an address stay exactly there, everything else is packed
into the gaps that remain.

Architecture:
    ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌───────────┐
    │ .s files │───>│ Sources  │───>│  Sizing  │───>│  Ledger  │───>│ Assembler │
    │ (dirs)   │    │ (labels) │    │ (asm run)│    │ + Solver │    │ (binary)  │
    └──────────┘    └──────────┘    └──────────┘    └──────────┘    └───────────┘

    - sources.py:   file discovery, fixed/floating detection, labels
    - toolchain.py: assembler runs (size test + final build)
    - ledger.py:    free gaps, fixed placements, floating pool
    - knapsack.py:  per-gap subset-sum fill
    - solver.py:    reduction loop over the ledger
    - pipeline.py:  all of the above for one segment

The placement core (routines, ledger, knapsack, solver) does no I/O and
never exits the process; `solve_segment` is its entry point.
"""

__version__ = "1.0.0"

from .errors import (SegmentError, ConfigError, OverlapError, FitError,
                     CapacityError, UnsolvableError, InternalInvariantError,
                     SourceError, ToolchainError)
from .routines import Routine, AddressRange
from .trace import Decision, DecisionKind, DecisionTrace
from .ledger import GapLedger, check_capacity
from .knapsack import select_routines
from .solver import Solver, SolverState, solve_segment
from .config import SegmentConfig, parse_address
from .pipeline import build_segment
