"""
Decision trace for one ledger.

Each placement decision the engine takes is recorded as a Decision, logged,
and handed to an optional observer. The trace belongs to a single ledger so
independent segments never share diagnostic state.
"""

from __future__ import annotations
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Tuple

__all__ = ['DecisionKind', 'Decision', 'DecisionTrace']

log = logging.getLogger(__name__)


class DecisionKind(enum.Enum):
    FIXED = "fixed"       # fixed routine registered
    SPLIT = "split"       # gap left over next to a fixed routine
    FORCED = "forced"     # largest floating routine had exactly one candidate gap
    DROP = "drop"         # gap smaller than every floating routine
    SELECT = "select"     # gap chosen for the optimizer
    FILL = "fill"         # gap filled with the optimizer's subset


@dataclass(frozen=True)
class Decision:
    kind: DecisionKind
    address: int
    size: int
    labels: Tuple[str, ...] = ()
    detail: str = ""

    def describe(self) -> str:
        text = f"{self.kind.value:<7} ${self.address:04X}  size: {self.size}"
        if self.labels:
            text += "  [" + ", ".join(self.labels) + "]"
        if self.detail:
            text += f"  {self.detail}"
        return text


class DecisionTrace:
    """Ordered record of decisions, with an optional per-decision callback."""

    def __init__(self, observer: Optional[Callable[[Decision], None]] = None):
        self.decisions: List[Decision] = []
        self._observer = observer

    def record(self, kind: DecisionKind, address: int, size: int,
               labels: Tuple[str, ...] = (), detail: str = "") -> Decision:
        decision = Decision(kind, address, size, tuple(labels), detail)
        self.decisions.append(decision)
        log.info("%s", decision.describe())
        if self._observer is not None:
            self._observer(decision)
        return decision

    def of_kind(self, kind: DecisionKind) -> List[Decision]:
        return [d for d in self.decisions if d.kind is kind]

    def __iter__(self) -> Iterator[Decision]:
        return iter(self.decisions)

    def __len__(self) -> int:
        return len(self.decisions)
