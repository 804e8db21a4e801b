"""Segment build settings."""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from .errors import ConfigError
from .routines import AddressRange

__all__ = ['SegmentConfig', 'parse_address', 'DEFAULT_ASSEMBLER',
           'DEFAULT_LO', 'DEFAULT_HI']

DEFAULT_ASSEMBLER = "java -jar assembler/KickAss.jar"
DEFAULT_LO = 0xC000
DEFAULT_HI = 0xCFFF


def parse_address(value: str) -> int:
    """Parse a hex address: 'C000', '$C000' or '0xC000'."""
    text = value.strip()
    if text.startswith("$"):
        text = text[1:]
    elif text[:2] in ("0x", "0X"):
        text = text[2:]
    try:
        return int(text, 16)
    except ValueError:
        raise ConfigError(f"invalid hex address '{value}'") from None


@dataclass
class SegmentConfig:
    """Everything one segment build needs; one instance per segment."""
    dirs: List[str]
    out_file: str = "OUT.BIN"
    tmp_dir: str = "./out"
    name: str = "MAIN"
    info: str = "(unnamed)"
    address_range: AddressRange = field(
        default_factory=lambda: AddressRange(DEFAULT_LO, DEFAULT_HI))
    assembler: str = DEFAULT_ASSEMBLER

    def __post_init__(self):
        if not self.dirs:
            raise ConfigError("empty directory list")
        if not self.name:
            raise ConfigError("empty segment name")

    def tmp_path(self, suffix: str) -> Path:
        """Scratch file for this segment, e.g. tmp_path('_combined.s')."""
        return Path(self.tmp_dir) / f"{self.name}{suffix}"
