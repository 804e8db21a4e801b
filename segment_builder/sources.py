"""
Routine source discovery.

Each `.s` file in the input directories is one routine. A file named
`XXXX.<anything>.s`, where XXXX is four hex digits, is fixed at address
$XXXX; every other file is floating.
"""

from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from .errors import SourceError
from .routines import Routine

__all__ = ['SourceFile', 'collect_sources', 'check_labels', 'routine_label',
           'fixed_address_from_name']

log = logging.getLogger(__name__)

_FIXED_NAME = re.compile(r'^([0-9A-Fa-f]{4})\.')


def routine_label(file_name: str) -> str:
    """Assembler-safe label: drop the '.s' suffix, map '.' and ',' to '_'."""
    stem = file_name[:-2] if file_name.endswith(".s") else file_name
    return stem.replace(".", "_").replace(",", "_")


def fixed_address_from_name(file_name: str) -> Optional[int]:
    if len(file_name) < 6:
        return None
    m = _FIXED_NAME.match(file_name)
    return int(m.group(1), 16) if m else None


def _is_source_name(file_name: str) -> bool:
    if len(file_name) < 3:
        return False
    if file_name[0] in "#~":
        return False    # editor backup / lock files
    return file_name.endswith(".s")


@dataclass
class SourceFile:
    """One routine source file and what is known about it so far."""
    file_name: str
    dir_name: str
    content: str
    label: str
    fixed_address: Optional[int] = None
    size: Optional[int] = None      # filled in by the size measurement pass

    @classmethod
    def load(cls, path: Path) -> SourceFile:
        log.info("reading file: %s", path)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise SourceError(f"unable to open file '{path}': {e}") from e
        if not content:
            raise SourceError(f"file '{path}' is empty")
        return cls(
            file_name=path.name,
            dir_name=str(path.parent),
            content=content,
            label=routine_label(path.name),
            fixed_address=fixed_address_from_name(path.name),
        )

    @property
    def path(self) -> Path:
        return Path(self.dir_name) / self.file_name

    @property
    def is_floating(self) -> bool:
        return self.fixed_address is None

    def to_routine(self) -> Routine:
        if self.size is None:
            raise SourceError(f"code length of '{self.file_name}' not measured yet")
        return Routine(self.label, self.size, self.fixed_address)


def collect_sources(dirs: Iterable[str]) -> List[SourceFile]:
    """Load every routine source from `dirs`, sorted by file name."""
    sources: List[SourceFile] = []
    for dir_name in dirs:
        directory = Path(dir_name)
        if not directory.is_dir():
            raise SourceError(f"unable to open directory '{dir_name}'")
        for path in directory.iterdir():
            if path.is_file() and _is_source_name(path.name):
                sources.append(SourceFile.load(path))

    if not sources:
        raise SourceError("no source files found")

    sources.sort(key=lambda s: s.file_name)
    return sources


def check_labels(sources: Iterable[SourceFile]):
    """Two file names must never collapse to the same label."""
    used = {}
    for source in sources:
        if source.label in used:
            raise SourceError(
                f"input file '{source.file_name}' has a name too similar to "
                f"'{used[source.label]}'")
        used[source.label] = source.file_name
