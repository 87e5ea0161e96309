"""
Command line entry point: rebase the assets of one compiled HTML file.
"""

import argparse
import logging
from typing import List, Optional

from htmlrebase import __version__
from htmlrebase.core.errors import RebaseError
from htmlrebase.core.logger import initialize_logging, get_logger
from htmlrebase.core.rebaser import create_rebaser
from htmlrebase.utils.file_manager import FileManager


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="htmlrebase",
        description="Rebase relative asset references of compiled HTML using its source map.",
    )
    p.add_argument("input", help="compiled HTML file")
    p.add_argument("--map", default=None, help="source map (default: INPUT.map)")
    p.add_argument("-o", "--output", default=None, help="output file (default: stdout)")
    p.add_argument("--log-dir", default=None, help="also write a rotating log file here")
    p.add_argument("--verbose", action="store_true", help="debug logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    initialize_logging(args.log_dir, logging.DEBUG if args.verbose else logging.INFO)
    logger = get_logger('cli')
    files = FileManager()

    try:
        html, source_map = files.read_inputs(args.input, args.map)
    except OSError as e:
        logger.error(f"Cannot read input: {e}")
        return 1

    rebaser = create_rebaser(source_map)
    rebaser.on("rebase", lambda rebased, resolved: logger.info(f"{resolved} -> {rebased}"))

    try:
        result = rebaser.rebase_sync(html)
    except RebaseError as e:
        logger.error(f"Rebase of {args.input} failed: {e}")
        return 1

    try:
        files.write_output(result.data, args.output)
    except OSError as e:
        logger.error(f"Cannot write output: {e}")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
