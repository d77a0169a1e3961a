#!/usr/bin/env python3
"""varfmt/main.py — command-line and cppcheck addon entry point.

Usage examples
--------------
    # Analyse a dump produced by ``cppcheck --dump file.c``
    python -m varfmt file.c.dump

    # As a cppcheck addon: cppcheck runs the script with --cli and reads
    # JSON lines from stdout
    cppcheck --addon=addons/varfmt_addon.py file.c

    # Extra printf-like functions, skip calls with nothing to format
    varfmt --funcs log_msg,die:1 --no-args file.c.dump

    # Settings from a file, S-expression output
    varfmt --config varfmt.sexp --format sexp file.c.dump

Exit codes
----------
    0   No diagnostics, or any result in --cli (addon) mode.
    1   One or more diagnostics were reported (standalone runs only).
    2   Infrastructure failure (missing cppcheckdata, unreadable dump,
        bad configuration).

The module doubles as ``python -m varfmt`` via ``varfmt/__main__.py``.
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, TextIO

from varfmt import __version__
from varfmt.checkers import CheckerRunner, SuppressionManager
from varfmt.config import VarFmtConfig, load_config, parse_funcs
from varfmt.diagnostics import Diagnostic
from varfmt.errors import VarFmtConfigError

_log = logging.getLogger("varfmt")

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2

FORMATS = ("gcc", "json", "sexp")


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``varfmt`` logger.

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

    root = logging.getLogger("varfmt")
    root.setLevel(level)
    if not any(getattr(h, "_varfmt", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
                datefmt="%H:%M:%S",
            )
        )
        handler._varfmt = True  # type: ignore[attr-defined]
        root.addHandler(handler)


def _emit_diagnostics(
    diagnostics: List[Diagnostic],
    fmt: str,
    stream: TextIO,
) -> int:
    """Write *diagnostics* to *stream* in the chosen format; return the count."""
    for diag in diagnostics:
        if fmt == "json":
            stream.write(diag.to_json_str() + "\n")
        elif fmt == "sexp":
            stream.write(diag.to_sexp() + "\n")
        else:
            stream.write(diag.to_gcc_format() + "\n")
    return len(diagnostics)


def _import_cppcheckdata():
    """Import ``cppcheckdata`` with a friendly error on failure."""
    try:
        import cppcheckdata  # type: ignore[import-untyped]
        return cppcheckdata
    except ImportError:
        _log.error(
            "cppcheckdata is not installed.  "
            "Install cppcheck or add its addons directory to PYTHONPATH."
        )
        raise SystemExit(EXIT_INFRA)


def _load_dump(path: str) -> Any:
    cppcheckdata = _import_cppcheckdata()
    p = Path(path).expanduser()
    if not p.exists():
        _log.error("dump file not found: %s", p)
        raise SystemExit(EXIT_INFRA)
    _log.info("Parsing dump file: %s", p)
    try:
        return cppcheckdata.parsedump(str(p))
    except Exception as exc:
        _log.error("Failed to parse dump file %s: %s", p, exc)
        raise SystemExit(EXIT_INFRA)


def build_config(args: argparse.Namespace) -> VarFmtConfig:
    """Defaults, then ``--config``, then the individual flags."""
    config = load_config(args.config) if args.config else VarFmtConfig()
    funcs: Dict[str, Optional[int]] = {}
    for text in args.funcs or []:
        funcs.update(parse_funcs(text))
    return config.merged(
        suppress_no_args=True if args.no_args else None,
        funcs=funcs,
        infer_wrappers=False if args.no_infer else None,
        suppress=args.suppress or [],
    )


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="varfmt",
        description=(
            "varfmt — report variables passed as format strings to\n"
            "printf-like functions, except pass-throughs in wrappers."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              varfmt file.c.dump
              varfmt --funcs log_msg,die:1 --no-args file.c.dump
              varfmt --config varfmt.sexp --format json file.c.dump
        """),
    )
    parser.add_argument("dump_files", nargs="+", metavar="DUMP",
                        help="Cppcheck dump file(s) (cppcheck --dump)")
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
    parser.add_argument(
        "--cli", action="store_true",
        help="cppcheck addon mode: one JSON object per line on stdout.",
    )
    parser.add_argument(
        "--format", choices=FORMATS, default="gcc",
        help="Output format (default: gcc).",
    )
    parser.add_argument(
        "--config", metavar="FILE",
        help="S-expression settings file.",
    )
    parser.add_argument(
        "--no-args", action="store_true",
        help="Do not report calls that pass nothing beyond the format.",
    )
    parser.add_argument(
        "--funcs", action="append", metavar="NAME[:INDEX],...",
        help="Extra printf-like functions; INDEX is the format argument.",
    )
    parser.add_argument(
        "--no-infer", action="store_true",
        help="Do not infer printf wrappers from their definitions.",
    )
    parser.add_argument(
        "--suppress", action="append", metavar="ID_OR_GLOB",
        help="Suppress an error id, or every finding in matching files.",
    )
    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def run(args: argparse.Namespace, stream: Optional[TextIO] = None) -> int:
    stream = stream or sys.stdout
    try:
        config = build_config(args)
    except VarFmtConfigError as exc:
        _log.error("Invalid configuration: %s", exc)
        return EXIT_INFRA

    fmt = "json" if args.cli else args.format
    reported = 0
    for path in args.dump_files:
        data = _load_dump(path)
        suppressions = SuppressionManager()
        for entry in config.suppress:
            suppressions.add(entry)
        runner = CheckerRunner(suppressions=suppressions, options={"config": config})
        results = runner.run_all_configurations(data)
        _log.info("%s: %s", path, results.summary())
        reported += _emit_diagnostics(results.diagnostics, fmt, stream)

    if args.cli:
        # cppcheck treats a non-zero addon status as an addon failure
        return EXIT_OK
    return EXIT_ERROR if reported else EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the varfmt CLI.

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

    try:
        return run(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INFRA
    except Exception as exc:
        _log.error("Unhandled exception: %s", exc, exc_info=True)
        return EXIT_INFRA


if __name__ == "__main__":
    sys.exit(main())
