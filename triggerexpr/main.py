#!/usr/bin/env python3
"""triggerexpr/main.py — command line front-end.

Usage examples
--------------
    # Event types and what they inherit from
    python -m triggerexpr types

    # Convenience symbols available to CDJ status expressions, with help
    python -m triggerexpr bindings cdj-status

    # Compile an expression and show what it binds
    python -m triggerexpr check '(when playing? (* track-bpm pitch-multiplier))' -t cdj-status

    # Run an expression against an event described in JSON
    python -m triggerexpr eval '(> beat-number 32)' -t cdj-status \\
        --event '{"beat-number": 64}'

Exit codes
----------
    0   Success.
    1   The expression did not compile, or failed when run.
    2   Infrastructure failure (bad JSON, unknown event type, etc.).

``python -m triggerexpr`` runs :func:`main` through ``triggerexpr/__main__.py``.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import textwrap
from typing import Any, Dict, Optional, Sequence

from triggerexpr import __version__
from triggerexpr.catalog import EventTypeTag, default_catalog
from triggerexpr.compiler import build_user_expression
from triggerexpr.config import ExpressionConfig
from triggerexpr.errors import CompileError, EvaluationError
from triggerexpr.events import EventRecord
from triggerexpr.reader import to_source
from triggerexpr.resolver import ancestors, resolve
from triggerexpr.state import SharedState

_log = logging.getLogger("triggerexpr")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``triggerexpr`` logger.

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

    root = logging.getLogger("triggerexpr")
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
                datefmt="%H:%M:%S",
            )
        )
        root.addHandler(handler)


def _event_type(raw: str) -> EventTypeTag:
    try:
        return EventTypeTag.parse(raw)
    except ValueError as exc:
        choices = ", ".join(t.value for t in EventTypeTag)
        raise argparse.ArgumentTypeError(f"{exc} (choose from {choices})")


def _read_expression(raw: str) -> str:
    """``-`` reads the expression from stdin."""
    return sys.stdin.read() if raw == "-" else raw


def _load_json(raw: Optional[str], label: str) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        _log.error("Invalid %s JSON: %s", label, exc)
        raise SystemExit(EXIT_INFRA)
    if not isinstance(data, dict):
        _log.error("%s JSON must be an object, got %s", label, type(data).__name__)
        raise SystemExit(EXIT_INFRA)
    return data


def _config_from_args(args: argparse.Namespace) -> ExpressionConfig:
    config = ExpressionConfig(
        max_depth=args.max_depth,
        log_tracebacks=args.verbose > 0,
    )
    for warning in config.validate():
        _log.warning("Config: %s", warning)
    return config


# ===========================================================================
# Subcommands
# ===========================================================================

def cmd_types(args: argparse.Namespace) -> int:
    """List event types, their parents and their own binding counts."""
    catalog = default_catalog()
    for tag, entry in catalog.items():
        parents = ", ".join(p.value for p in entry.inherits) or "-"
        print(f"{tag.value:<14} inherits: {parents:<14} own bindings: {len(entry.bindings)}")
    return EXIT_OK


def cmd_bindings(args: argparse.Namespace) -> int:
    """Print the effective bindings of one event type with their help."""
    table = resolve(args.event_type)
    if args.names_only:
        for name in sorted(table):
            print(name)
        return EXIT_OK

    lineage = " <- ".join(t.value for t in (args.event_type, *ancestors(args.event_type)))
    print(f"{lineage}: {len(table)} bindings\n")
    for name in sorted(table):
        binding = table[name]
        print(f"{name}\n    {binding.code}")
        if binding.doc:
            print(textwrap.indent(textwrap.fill(binding.doc, width=72), "    "))
        print()
    return EXIT_OK


def cmd_check(args: argparse.Namespace) -> int:
    """Compile an expression and show its bindings and synthesized form."""
    source = _read_expression(args.expression)
    try:
        expr = build_user_expression(
            source, args.event_type, args.null_safe, config=_config_from_args(args),
        )
    except CompileError as exc:
        print(exc.to_gcc_format(), file=sys.stderr)
        return EXIT_ERROR

    print(f"binds: {', '.join(expr.bound_symbols) or '(none)'}")
    print(to_source(expr.form))
    return EXIT_OK


def cmd_eval(args: argparse.Namespace) -> int:
    """Compile an expression and run it once."""
    source = _read_expression(args.expression)
    event_data = _load_json(args.event, "event")
    globals_ = SharedState(_load_json(args.globals, "globals"), name="globals")
    event = EventRecord.from_mapping(args.event_type, event_data) if args.event else None

    try:
        expr = build_user_expression(
            source, args.event_type, args.null_safe,
            globals=globals_, config=_config_from_args(args),
        )
        result = expr.evaluate(event)
    except (CompileError, EvaluationError) as exc:
        print(exc.to_gcc_format(), file=sys.stderr)
        return EXIT_ERROR

    print(to_source(result))
    if expr.description is not None:
        print(f"description: {expr.description}")
    return EXIT_OK


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    """Construct the CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="triggerexpr",
        description=(
            "Compile and try out user expressions that run on device events.\n\n"
            "Expressions refer to convenience symbols such as beat-number or\n"
            "track-bpm; only the ones an expression mentions are bound."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              triggerexpr bindings beat
              triggerexpr check '(= device-number 2)' -t beat
              triggerexpr eval 'track-bpm' -t beat --event '{"bpm": 12050}'
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

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    def _add_expression_args(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "expression",
            help='Expression text ("-" reads stdin).',
        )
        p.add_argument(
            "-t", "--type",
            dest="event_type",
            type=_event_type,
            default=EventTypeTag.DEVICE_UPDATE,
            metavar="TYPE",
            help="Event type the expression handles (default: device-update).",
        )
        p.add_argument(
            "--null-safe",
            action="store_true",
            help="Bind convenience symbols to nil when there is no event.",
        )
        p.add_argument(
            "--max-depth",
            type=int,
            default=ExpressionConfig.max_depth,
            metavar="N",
            help="Deepest evaluation nesting allowed (default: %(default)s).",
        )

    # --- types -------------------------------------------------------------
    p_types = subparsers.add_parser(
        "types",
        help="List event types and their inheritance.",
    )
    p_types.set_defaults(func=cmd_types)

    # --- bindings ----------------------------------------------------------
    p_bindings = subparsers.add_parser(
        "bindings",
        help="Show the convenience symbols available for an event type.",
    )
    p_bindings.add_argument(
        "event_type",
        type=_event_type,
        metavar="TYPE",
        help="Event type (" + ", ".join(t.value for t in EventTypeTag) + ").",
    )
    p_bindings.add_argument(
        "--names-only",
        action="store_true",
        help="Print only the symbol names.",
    )
    p_bindings.set_defaults(func=cmd_bindings)

    # --- check -------------------------------------------------------------
    p_check = subparsers.add_parser(
        "check",
        help="Compile an expression and show what it binds.",
    )
    _add_expression_args(p_check)
    p_check.set_defaults(func=cmd_check)

    # --- eval --------------------------------------------------------------
    p_eval = subparsers.add_parser(
        "eval",
        help="Compile an expression and run it against one event.",
    )
    _add_expression_args(p_eval)
    p_eval.add_argument(
        "--event",
        default=None,
        metavar="JSON",
        help="Event members as a JSON object (omit to run with no event).",
    )
    p_eval.add_argument(
        "--globals",
        default=None,
        metavar="JSON",
        help="Initial contents of the globals store as a JSON object.",
    )
    p_eval.set_defaults(func=cmd_eval)

    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the CLI.

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
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INFRA

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
