#!/usr/bin/env python3
"""tapevm/main.py — CLI entry-point for the tapevm toolchain.

Usage examples
--------------
    # Write an obfuscated copy to ./fuxxor.mxc, then run the program
    python -m tapevm run program.mxc

    # Same, reproducibly, without the obfuscated copy
    python -m tapevm run program.mxc --seed 7 --no-obfuscate

    # Only obfuscate, printing the result
    python -m tapevm obfuscate program.mxc --output -

    # Print the normalised form of a program (debugging aid)
    python -m tapevm render program.mxc

Exit codes
----------
    0   Program terminated normally.
    1   Assembly error, machine fault, or obfuscation failure.
    2   Infrastructure failure (missing file, bad arguments).

The module doubles as ``python -m tapevm`` via the companion
``tapevm/__main__.py`` which simply calls :func:`main`.
"""

from __future__ import annotations

import argparse
import logging
import random
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from tapevm import __version__
from tapevm.errors import AssemblyError, ExecutionError, ObfuscationError, TapeVMError
from tapevm.obfuscator import DEFAULT_OUTPUT_PATH, ObfuscationConfig, Obfuscator
from tapevm.parser import parse_file
from tapevm.program import Program
from tapevm.runtime import Interpreter, RuntimeConfig, format_tape

_log = logging.getLogger("tapevm")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``tapevm`` logger.

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
    root = logging.getLogger("tapevm")
    root.setLevel(level)
    root.handlers[:] = [handler]


def _resolve_path(raw: str, label: str = "file") -> Path:
    """Resolve *raw* to an absolute ``Path``, raising on missing files."""
    p = Path(raw).expanduser().resolve()
    if not p.is_file():
        _log.error("%s not found: %s", label, p)
        raise SystemExit(EXIT_INFRA)
    return p


def _load_program(raw: str) -> Program:
    path = _resolve_path(raw, "program file")
    _log.info("Parsing %s", path)
    return parse_file(path)


def _build_obfuscator(args: argparse.Namespace) -> Obfuscator:
    config = ObfuscationConfig()
    if args.density is not None:
        config = config.scaled(args.density)
    rng = random.Random(args.seed) if args.seed is not None else random.Random()
    return Obfuscator(rng=rng, config=config)


def _report(exc: TapeVMError) -> int:
    """Print a fatal error (and its crash report, if any) to stderr."""
    if exc.report:
        sys.stderr.write("\n\n" + exc.report + "\n")
    _log.error("%s", exc)
    return EXIT_ERROR


# ===========================================================================
# Sub-command implementations
# ===========================================================================

# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------

def cmd_run(args: argparse.Namespace) -> int:
    """Parse, write the obfuscated copy, execute, and dump the tape.

    The obfuscated copy is written before execution starts, so it exists
    even when the program itself faults.
    """
    try:
        program = _load_program(args.file)
        if not args.no_obfuscate:
            _build_obfuscator(args).write(program, args.output)
    except (AssemblyError, ObfuscationError) as exc:
        return _report(exc)

    config_kwargs: Dict[str, Any] = {}
    if args.trace:
        config_kwargs["trace"] = True
    if args.no_crash_report:
        config_kwargs["crash_report"] = False
    config = RuntimeConfig(**config_kwargs)

    interpreter = Interpreter(program, config=config)
    try:
        state = interpreter.run()
    except ExecutionError as exc:
        sys.stdout.flush()
        return _report(exc)

    sys.stdout.write(format_tape(state) + "\n")
    sys.stdout.flush()
    return EXIT_OK


# ---------------------------------------------------------------------------
# obfuscate
# ---------------------------------------------------------------------------

def cmd_obfuscate(args: argparse.Namespace) -> int:
    """Write the obfuscated program to ``--output`` (``-`` → stdout)."""
    try:
        program = _load_program(args.file)
        obfuscator = _build_obfuscator(args)
        if args.output == "-":
            data = obfuscator.obfuscate(program)
            sys.stdout.buffer.write(data)
            sys.stdout.buffer.flush()
        else:
            obfuscator.write(program, args.output or DEFAULT_OUTPUT_PATH)
    except TapeVMError as exc:
        return _report(exc)
    return EXIT_OK


# ---------------------------------------------------------------------------
# render
# ---------------------------------------------------------------------------

def cmd_render(args: argparse.Namespace) -> int:
    """Print the canonical rendering of the parsed program."""
    try:
        program = _load_program(args.file)
    except AssemblyError as exc:
        return _report(exc)
    sys.stdout.write(program.render())
    return EXIT_OK


# ===========================================================================
# Argument parser
# ===========================================================================

def _add_obfuscation_flags(sub: argparse.ArgumentParser) -> None:
    sub.add_argument(
        "--seed", type=int, default=None,
        help="Seed for the obfuscator's random source (default: unseeded)",
    )
    sub.add_argument(
        "--density", type=float, default=None,
        help="Scale padding and dead-code quantities by this factor (default: 1.0)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tapevm",
        description="Stack-and-tape VM, assembler and obfuscator.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="Increase log verbosity (-v INFO, -vv DEBUG)",
    )
    subparsers = parser.add_subparsers(title="commands")

    # run -------------------------------------------------------------------
    p_run = subparsers.add_parser("run", help="Obfuscate, then execute a program")
    p_run.add_argument("file", help="Program source file")
    p_run.add_argument(
        "--output", default=None,
        help=f"Where to write the obfuscated copy (default: {DEFAULT_OUTPUT_PATH})",
    )
    p_run.add_argument(
        "--no-obfuscate", action="store_true",
        help="Skip writing the obfuscated copy",
    )
    p_run.add_argument(
        "--trace", action="store_true",
        help="Log every executed instruction (needs -vv to be visible)",
    )
    p_run.add_argument(
        "--no-crash-report", action="store_true",
        help="Do not snapshot machine state for crash reports",
    )
    _add_obfuscation_flags(p_run)
    p_run.set_defaults(func=cmd_run)

    # obfuscate -------------------------------------------------------------
    p_obf = subparsers.add_parser("obfuscate", help="Write an obfuscated copy only")
    p_obf.add_argument("file", help="Program source file")
    p_obf.add_argument(
        "--output", default=None,
        help=f"Output path, '-' for stdout (default: {DEFAULT_OUTPUT_PATH})",
    )
    _add_obfuscation_flags(p_obf)
    p_obf.set_defaults(func=cmd_obfuscate)

    # render ----------------------------------------------------------------
    p_render = subparsers.add_parser("render", help="Print the normalised program")
    p_render.add_argument("file", help="Program source file")
    p_render.set_defaults(func=cmd_render)

    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the tapevm CLI.

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

    # No subcommand given → print help.
    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return args.func(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INFRA
    except Exception as exc:
        _log.error("Unhandled exception: %s", exc, exc_info=True)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
