"""
End-to-end build of one segment.

    sources on disk -> size measurement -> gap ledger -> solver -> final assembly
"""

from __future__ import annotations
import logging
from typing import Callable, Dict, List, Optional, Sequence

from .config import SegmentConfig
from .errors import SourceError, ToolchainError
from .ledger import GapLedger, check_capacity
from .solver import Solver
from .sources import SourceFile, check_labels, collect_sources
from .toolchain import compile_segment, measure_sizes
from .trace import Decision

__all__ = ['build_segment', 'problem_report']

log = logging.getLogger(__name__)

BANNER_LINE = "//" + "-" * 91


def _banner(text: str):
    log.info(BANNER_LINE)
    log.info("// %s", text)
    log.info(BANNER_LINE)


def problem_report(sources: Sequence[SourceFile], ledger: GapLedger) -> List[str]:
    """Human-readable description of the binning problem before solving."""
    width = max((len(s.file_name) for s in sources), default=0) + 4
    lines = []
    for source in sources:
        flag = "(floating)    " if source.is_floating else " " * 14
        lines.append(f"file:    {flag}{source.file_name:<{width}}size: {source.size}")
    lines.append("")
    free = ledger.free_bytes() - ledger.floating_bytes()
    lines.append(f"free space (after floating routines are placed):    {free}")
    lines.append(f"number of floating routines:                        {len(ledger.floating)}")
    lines.append(f"number of gaps for the floating routines:           {len(ledger.gaps)}")
    lines.append("")
    for addr in ledger.gap_addresses():
        lines.append(f"gap address: ${addr:X}    size: {ledger.gaps[addr]}")
    return lines


def build_segment(config: SegmentConfig,
                  observer: Optional[Callable[[Decision], None]] = None) -> Dict[int, SourceFile]:
    """Collect, measure, place and assemble one segment.

    Returns {address: source} for every placed routine. Any failure raises a
    SegmentError subclass before the final assembly is attempted.
    """
    _banner(f"Segment '{config.info}' - collecting and analysing routines")

    sources = collect_sources(config.dirs)
    check_labels(sources)
    total = measure_sizes(sources, config)
    if total == 0:
        raise SourceError("total code size is 0")
    check_capacity(config.address_range, (s.to_routine() for s in sources if s.size))

    sources.sort(key=lambda s: s.size)      # stable: ties stay in name order
    no_code = [s for s in sources if s.size == 0]
    with_code = [s for s in sources if s.size > 0]

    _banner(f"Segment '{config.info}' - binning and compiling the assembly")

    by_label = {s.label: s for s in with_code}
    ledger = GapLedger.from_routines(config.address_range,
                                     [s.to_routine() for s in with_code], observer)

    report = problem_report(with_code, ledger)
    for line in report:
        log.info("%s", line)
    report_path = config.tmp_path("_binproblem.log")
    try:
        report_path.write_text("\n".join(report) + "\n", encoding="utf-8")
    except OSError as e:
        raise ToolchainError(f"error writing log file '{report_path}' ({e})") from e

    log.info("trying to solve the routine binning problem")
    layout = Solver(ledger).run()

    placed = {addr: by_label[routine.label] for addr, routine in layout.items()}
    compile_segment(config, placed, no_code)
    return placed
