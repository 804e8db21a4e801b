#!/usr/bin/env python3
"""
build_segment - place assembler routines into one segment and assemble it

Usage:
    python build_segment.py [-o <out file>] [-t <temp dir>]
                            [-l <start/low address>] [-h <end/high address>]
                            [-s <segment name>] [-i <segment display info>]
                            [--assembler CMD] [-v] <input dir list>

Files named XXXX.<name>.s (XXXX = hex address) are fixed at $XXXX, all
other .s files float and are packed into the remaining gaps.

Examples:
    python build_segment.py -l C000 -h CFFF -s MAIN -o main.bin src/main
    python build_segment.py -l $E000 -h $FFFF -i "kernal patch" -o kernal.bin src/kernal src/common
"""

import argparse
import logging
import sys
from pathlib import Path

from segment_builder import SegmentConfig, SegmentError, __version__, build_segment, parse_address
from segment_builder.config import DEFAULT_ASSEMBLER, DEFAULT_HI, DEFAULT_LO
from segment_builder.log_setup import setup_logging
from segment_builder.routines import AddressRange

log = logging.getLogger("segment_builder.cli")


def build_parser() -> argparse.ArgumentParser:
    # -h is the high address, so help is --help only
    parser = argparse.ArgumentParser(
        prog="build_segment",
        description="Place fixed and floating routines into one segment",
        add_help=False,
    )
    parser.add_argument("dirs", nargs="*", help="Directories with routine sources (.s)")
    parser.add_argument("-o", dest="out_file", default="OUT.BIN",
                        help="Output binary (default: OUT.BIN)")
    parser.add_argument("-t", dest="tmp_dir", default="./out",
                        help="Directory for temporary files (default: ./out)")
    parser.add_argument("-l", dest="lo", type=parse_address, default=DEFAULT_LO,
                        help="Segment start/low address, hex (default: C000)")
    parser.add_argument("-h", dest="hi", type=parse_address, default=DEFAULT_HI,
                        help="Segment end/high address, hex (default: CFFF)")
    parser.add_argument("-s", dest="name", default="MAIN",
                        help="Segment name (default: MAIN)")
    parser.add_argument("-i", dest="info", default="(unnamed)",
                        help="Segment display info")
    parser.add_argument("--assembler", default=DEFAULT_ASSEMBLER,
                        help=f"Assembler command (default: {DEFAULT_ASSEMBLER})")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Show debug output on the console")
    parser.add_argument("--help", action="help",
                        help="Show this help message and exit")
    parser.add_argument("--version", action="version",
                        version=f"build_segment {__version__}")
    return parser


def config_from_args(args: argparse.Namespace) -> SegmentConfig:
    return SegmentConfig(
        dirs=list(args.dirs),
        out_file=args.out_file,
        tmp_dir=args.tmp_dir,
        name=args.name,
        info=args.info,
        address_range=AddressRange(args.lo, args.hi),
        assembler=args.assembler,
    )


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        console_level=logging.DEBUG if args.verbose else logging.INFO,
        log_file=Path(args.tmp_dir) / f"{args.name}_build.log",
    )

    try:
        config = config_from_args(args)
        layout = build_segment(config)
    except SegmentError as e:
        if not args.dirs:
            parser.print_usage(sys.stderr)
        log.error("FATAL: %s", e)
        return 1
    except Exception as e:
        log.exception("Internal error: %s", e)
        return 2

    log.info("%d routines placed, output written to %s", len(layout), config.out_file)
    return 0


if __name__ == "__main__":
    sys.exit(main())
