"""
Logging setup for the command-line tool.

Console output goes through rich's RichHandler; a plain-text copy of
everything (DEBUG+) lands in a log file next to the segment's scratch files.
"""

from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler

__all__ = ['setup_logging']


def setup_logging(name: str = "segment_builder",
                  console_level: int = logging.INFO,
                  log_file: Optional[Path] = None) -> logging.Logger:
    """Configure the package logger once; later calls return it unchanged."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(logging.DEBUG)

    # ── Console handler ──
    ch = RichHandler(
        level=console_level,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    ch.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(ch)

    # ── File handler: captures everything (DEBUG+) ──
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_file), mode="w", encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        logger.addHandler(fh)

    return logger
