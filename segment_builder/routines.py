"""
Routine and address range records.

A routine is one placeable block of code. It is either *fixed* (its start
address is dictated by the source) or *floating* (the solver picks the
address). Labels are unique across a run and define equality; the ledger
itself keys everything by address.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigError

__all__ = ['Routine', 'AddressRange', 'MAX_ADDRESS']

MAX_ADDRESS = 0xFFFF    # 16-bit address space


@dataclass(eq=False)
class Routine:
    """One code unit to place inside a segment."""
    label: str
    size: int                                 # bytes, > 0
    fixed_address: Optional[int] = None       # None = floating
    assigned_address: Optional[int] = None    # set once the ledger commits it

    def __post_init__(self):
        if not self.label:
            raise ConfigError("routine label must not be empty")
        if self.size <= 0:
            raise ConfigError(f"routine '{self.label}' has non-positive size {self.size}")
        if self.fixed_address is not None and not 0 <= self.fixed_address <= MAX_ADDRESS:
            raise ConfigError(
                f"routine '{self.label}' has fixed address {self.fixed_address:#x} "
                f"outside the 16-bit address space"
            )

    @property
    def is_floating(self) -> bool:
        return self.fixed_address is None

    @property
    def end(self) -> Optional[int]:
        """First address past the routine, once it has been assigned."""
        if self.assigned_address is None:
            return None
        return self.assigned_address + self.size

    def __eq__(self, other):
        if not isinstance(other, Routine):
            return NotImplemented
        return self.label == other.label

    def __hash__(self):
        return hash(self.label)

    def __str__(self):
        where = "floating" if self.is_floating else f"${self.fixed_address:04X}"
        return f"{self.label} ({where}, size {self.size})"


@dataclass(frozen=True)
class AddressRange:
    """Inclusive segment bounds, lo <= hi, both within 0..$FFFF."""
    lo: int
    hi: int

    def __post_init__(self):
        if not (0 <= self.lo <= MAX_ADDRESS and 0 <= self.hi <= MAX_ADDRESS):
            raise ConfigError(
                f"invalid lo/hi address ${self.lo:04X}/${self.hi:04X}: "
                f"outside the 16-bit address space"
            )
        if self.hi < self.lo:
            raise ConfigError(f"invalid lo/hi address: ${self.hi:04X} is below ${self.lo:04X}")

    @property
    def length(self) -> int:
        return self.hi - self.lo + 1

    def __contains__(self, address: int) -> bool:
        return self.lo <= address <= self.hi

    def __str__(self):
        return f"${self.lo:04X}-${self.hi:04X}"
