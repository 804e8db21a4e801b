"""
Driver for the external (KickAssembler-compatible) assembler.

Two runs per segment:
  1. Size test: every source is wrapped in START/END labels and assembled
     from $100 into the null device. The symbol file then gives each
     routine's length.
  2. Final build: definition-only sources first, then every placed routine
     behind a `* = $addr` directive, assembled into the output binary.

The assembler is an opaque synchronous command; only its exit status and
the symbol file it writes are used.
"""

from __future__ import annotations
import logging
import os
import re
import shlex
import subprocess
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .config import SegmentConfig
from .errors import SourceError, ToolchainError
from .sources import SourceFile

__all__ = ['START_PREFIX', 'END_PREFIX', 'size_test_source', 'parse_symbol_file',
           'measure_sizes', 'combined_source', 'compile_segment', 'run_assembler']

log = logging.getLogger(__name__)

START_PREFIX = "__routine_START_"
END_PREFIX = "__routine_END_"

# e.g. ".label __routine_START_print_hex=$1a2f"
_SYMBOL_LINE = re.compile(
    r'^\s*\.label\s+__routine_(START|END)_([A-Za-z0-9_]+)\s*=\s*\$?([0-9A-Fa-f]+)')

_SOURCE_SEPARATOR = "\n\n\n\n"


def _source_banner(source: SourceFile) -> str:
    return f"{_SOURCE_SEPARATOR}// Source file: {source.file_name}\n\n"


def run_assembler(command: str, source_path: Path, output: str):
    """Run `command <source> -symbolfile -o <output>`; raise on failure."""
    argv = shlex.split(command) + [str(source_path), "-symbolfile", "-o", output]
    log.debug("running assembler: %s", " ".join(argv))
    try:
        result = subprocess.run(argv)
    except OSError as e:
        raise ToolchainError(f"unable to start assembler ({e})", " ".join(argv)) from e
    if result.returncode != 0:
        raise ToolchainError(f"assembler running failed (exit {result.returncode})",
                             " ".join(argv))


# ── Size measurement ─────────────────────────

def size_test_source(segment_name: str, sources: Iterable[SourceFile]) -> str:
    # Start at $100 so no local data gets zero-page addressing during this pass
    parts = [f"\n.segment {segment_name} [start=$100, min=$100, max=$FFFF]\n"]
    for source in sources:
        parts.append(_source_banner(source))
        parts.append(f"{START_PREFIX}{source.label}:\n\n")
        parts.append(source.content)
        parts.append(f"\n\n{END_PREFIX}{source.label}:\n")
    return "".join(parts)


def parse_symbol_file(text: str) -> Dict[str, Tuple[Optional[int], Optional[int]]]:
    """Map label -> (start, end) from the assembler's symbol file."""
    found: Dict[str, List[Optional[int]]] = {}
    for line in text.splitlines():
        m = _SYMBOL_LINE.match(line)
        if not m:
            continue
        kind, label, value = m.groups()
        entry = found.setdefault(label, [None, None])
        entry[0 if kind == "START" else 1] = int(value, 16)
    return {label: (start, end) for label, (start, end) in found.items()}


def measure_sizes(sources: Sequence[SourceFile], config: SegmentConfig) -> int:
    """Assemble all sources once and store each one's code length.

    Returns the total code size.
    """
    source_path = config.tmp_path("_sizetest.s")
    symbol_path = config.tmp_path("_sizetest.sym")
    source_path.parent.mkdir(parents=True, exist_ok=True)
    for stale in (source_path, symbol_path):
        if stale.exists():
            stale.unlink()

    try:
        source_path.write_text(size_test_source(config.name, sources), encoding="utf-8")
    except OSError as e:
        raise ToolchainError(f"can't write temporary file '{source_path}' ({e})") from e

    run_assembler(config.assembler, source_path, os.devnull)

    try:
        symbols = parse_symbol_file(symbol_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ToolchainError(f"unable to open results file '{symbol_path}' ({e})") from e

    total = 0
    for source in sources:
        start, end = symbols.get(source.label, (None, None))
        if start is None or end is None or start <= 0 or end <= 0 or start > end:
            raise SourceError(f"unable to determine code length in '{source.file_name}'")
        source.size = end - start
        total += source.size
    return total


# ── Final build ──────────────────────────────

def combined_source(config: SegmentConfig, layout: Mapping[int, SourceFile],
                    no_code: Iterable[SourceFile]) -> str:
    lo = config.address_range.lo
    hi = config.address_range.hi
    parts = [f'\n.segment {config.name} [start=${lo:x}, min=${lo:x}, max=${hi:x}, '
             f'outBin="{config.out_file}", fill]\n']

    # Definition-only files carry no code, they only need to be seen first
    for source in no_code:
        parts.append(_source_banner(source))
        parts.append(source.content)
        parts.append("\n")

    for address in sorted(layout):
        source = layout[address]
        parts.append(_source_banner(source))
        parts.append(f"\t* = ${address:x}\n\n")
        parts.append(source.content)
        parts.append("\n")
    return "".join(parts)


def compile_segment(config: SegmentConfig, layout: Mapping[int, SourceFile],
                    no_code: Iterable[SourceFile]) -> Path:
    """Write the combined source and assemble it into config.out_file."""
    source_path = config.tmp_path("_combined.s")
    source_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        source_path.write_text(combined_source(config, layout, no_code), encoding="utf-8")
    except OSError as e:
        raise ToolchainError(f"can't write temporary file '{source_path}' ({e})") from e

    run_assembler(config.assembler, source_path, config.out_file)
    return source_path
