#!/usr/bin/env python3
"""rescan/main.py — command-line front end.

Usage examples
--------------
    # One output tuple per input line
    rescan '{} is {} years old' 'String, u8' -i ages.txt

    # Custom patterns, JSON output
    rescan 'One might expect {} to have at least {}.' \\
        'r"[[:alpha:]]+\\s[[:alpha:]]+" as String, r"[[:digit:]]+\\s[[:alpha:]]+" as String' \\
        --format json < sentences.txt

    # Back-to-back scans separated by ","
    echo -n '1,2,3' | rescan '{}' 'i32' --mode multiple --separator ,

    # Show the bound plan and exit
    rescan '{0:n}-{1:n}' 'n = u16' --explain

Exit codes
----------
    0   Success.
    1   One or more scans failed on the input.
    2   Configuration or infrastructure failure (bad template, bad rules,
        binding errors, malformed pattern, unreadable input).

``python -m rescan`` runs the same :func:`main`.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import textwrap
from pathlib import Path
from typing import Any, BinaryIO, Optional, Sequence, TextIO, Tuple

from rescan import __version__
from rescan.errors import RescanError, ScanError
from rescan.scanner import ScanConfig, Scanner

_log = logging.getLogger("rescan")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``rescan`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("rescan")
    for old in list(root.handlers):
        root.removeHandler(old)
    root.setLevel(level)
    root.addHandler(handler)


def _open_input(src: Optional[str]) -> BinaryIO:
    """Binary input stream: *src* ``None`` or ``"-"`` → stdin."""
    if src is None or src == "-":
        return sys.stdin.buffer
    p = Path(src).expanduser().resolve()
    if not p.exists():
        _log.error("input file not found: %s", p)
        raise SystemExit(EXIT_INFRA)
    return open(p, "rb")


def _format_values(values: Tuple[Any, ...], fmt: str) -> str:
    if fmt == "json":
        return json.dumps(list(values), default=str)
    if fmt == "tsv":
        return "\t".join(str(v) for v in values)
    return repr(values)


def _report_error(exc: RescanError, fmt: str, stream: TextIO, prefix: str = "") -> None:
    if fmt == "json":
        stream.write(json.dumps(exc.to_json()) + "\n")
    else:
        stream.write(f"{prefix}error[{exc.code}]: {exc}\n")


# ===========================================================================
# Modes
# ===========================================================================

def _run_lines(scanner: Scanner, stream: BinaryIO, args: argparse.Namespace) -> int:
    lines = scanner.scan_lines(stream, on_error="raise")
    failed = 0
    while True:
        try:
            values = next(lines)
        except StopIteration:
            break
        except ScanError as exc:
            failed += 1
            _report_error(exc, args.format, sys.stderr, prefix=f"line {lines.line_number}: ")
            continue
        sys.stdout.write(_format_values(values, args.format) + "\n")

    _log.info("%d line(s) read, %d failed", lines.line_number, failed)
    return EXIT_ERROR if failed else EXIT_OK


def _run_multiple(scanner: Scanner, stream: BinaryIO, args: argparse.Namespace) -> int:
    results = scanner.scan_multiple(stream, separator=args.separator)
    count = 0
    for values in results:
        count += 1
        sys.stdout.write(_format_values(values, args.format) + "\n")

    _log.info("%d scan(s) succeeded", count)
    if results.error is not None:
        _report_error(results.error, args.format, sys.stderr, prefix=f"scan {count + 1}: ")
        return EXIT_ERROR
    return EXIT_OK


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rescan",
        description=(
            "Reverse formatting: read values back out of text laid out\n"
            "like a format string."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              rescan '{} is {} years old' 'String, u8' -i ages.txt
              rescan '{}' 'i32' --mode multiple --separator , < numbers.txt
              rescan '{0:n}-{1:n}' 'n = u16' --explain
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )
    parser.add_argument("template", help="Template text with {} captures.")
    parser.add_argument(
        "rules",
        nargs="?",
        default="",
        help='Rule list, e.g. \'r"[0-9]+" as u8, name = String\'.',
    )
    parser.add_argument(
        "-i", "--input",
        default=None,
        metavar="FILE",
        help='Input file ("-" or omit for stdin).',
    )
    parser.add_argument(
        "-m", "--mode",
        choices=["lines", "multiple"],
        default="lines",
        help="Scan once per line, or back to back (default: lines).",
    )
    parser.add_argument(
        "-s", "--separator",
        default=None,
        help="Literal expected between scans in multiple mode.",
    )
    parser.add_argument(
        "-f", "--format",
        choices=["json", "tsv", "repr"],
        default="tsv",
        help="Output format (default: tsv).",
    )
    parser.add_argument(
        "--explain",
        action="store_true",
        help="Print the bound plan and exit without reading input.",
    )
    parser.add_argument(
        "--buffer-size",
        type=int,
        default=ScanConfig.buffer_size,
        metavar="BYTES",
        help="Bytes per read (default: %(default)s).",
    )
    parser.add_argument(
        "--eager",
        action="store_true",
        help="Compile patterns before reading any input.",
    )
    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the rescan CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    if args.separator is not None and args.mode != "multiple":
        _log.warning("--separator is ignored in %s mode", args.mode)

    config = ScanConfig(buffer_size=args.buffer_size, eager_compile=args.eager)
    problems = config.validate()
    if problems:
        for problem in problems:
            _log.error("invalid option: %s", problem)
        return EXIT_INFRA

    try:
        scanner = Scanner.from_rule_text(args.template, args.rules, config=config)
        if args.explain:
            scanner.plan.compiled()
            sys.stdout.write(scanner.plan.describe() + "\n")
            return EXIT_OK

        stream = _open_input(args.input)
        try:
            if args.mode == "multiple":
                return _run_multiple(scanner, stream, args)
            return _run_lines(scanner, stream, args)
        finally:
            if args.input not in (None, "-"):
                stream.close()
    except RescanError as exc:
        _report_error(exc, args.format, sys.stderr)
        return EXIT_INFRA if exc.phase.is_configuration() else EXIT_ERROR
    except OSError as exc:
        _log.error("cannot read input: %s", exc)
        return EXIT_INFRA
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
