"""
Error taxonomy for the segment builder.

Every failure is fatal for the run: the engine is deterministic, so retrying
the same input cannot change the outcome. Errors carry enough context
(routine label, gap address, capacity numbers) to fix the input.
"""

from __future__ import annotations
from typing import Optional

__all__ = [
    'SegmentError', 'ConfigError', 'OverlapError', 'FitError',
    'CapacityError', 'UnsolvableError', 'InternalInvariantError',
    'SourceError', 'ToolchainError',
]


class SegmentError(Exception):
    """Base class for every error raised while building a segment."""


class ConfigError(SegmentError, ValueError):
    """Raised on an invalid address range or routine descriptor."""


class OverlapError(SegmentError):
    """Raised when a fixed routine's start address is not inside any free gap."""
    def __init__(self, label: str, address: int):
        self.label = label
        self.address = address
        super().__init__(
            f"start address ${address:04X} of fixed routine '{label}' already occupied"
        )


class FitError(SegmentError):
    """Raised when a fixed routine runs past the end of its containing gap."""
    def __init__(self, label: str, address: int, size: int, gap_address: int, gap_size: int):
        self.label = label
        self.address = address
        self.size = size
        self.gap_address = gap_address
        self.gap_size = gap_size
        super().__init__(
            f"fixed routine '{label}' (${address:04X}, size {size}) won't fit in "
            f"the gap at ${gap_address:04X} (size {gap_size})"
        )


class CapacityError(SegmentError):
    """Raised when the routines need more bytes than the segment holds."""
    def __init__(self, required: int, capacity: int):
        self.required = required
        self.capacity = capacity
        super().__init__(
            f"total code size is {required}, too much for this segment (capacity {capacity})"
        )


class UnsolvableError(SegmentError):
    """Raised when the gaps run out while floating routines remain unplaced."""
    def __init__(self, unplaced):
        self.unplaced = list(unplaced)
        labels = ", ".join(f"{r.label} ({r.size})" for r in self.unplaced)
        super().__init__(f"unable to solve the routine binning problem; unplaced: {labels}")


class InternalInvariantError(SegmentError):
    """Raised when a computed placement contradicts the ledger (a logic defect)."""
    def __init__(self, message: str, gap_address: Optional[int] = None):
        self.gap_address = gap_address
        if gap_address is not None:
            message = f"gap ${gap_address:04X}: {message}"
        super().__init__(f"internal error: {message}")


class SourceError(SegmentError):
    """Raised on unreadable, empty or ambiguous routine source files."""


class ToolchainError(SegmentError):
    """Raised when the external assembler fails or cannot be started."""
    def __init__(self, message: str, command: str = ""):
        self.command = command
        super().__init__(f"{message}: {command}" if command else message)
