"""triggerexpr — user expressions for device events.

Compiles short user-written expressions that run whenever a device event
(a beat, a CDJ or mixer status update) arrives.  Expressions refer to
convenience symbols such as ``beat-number`` or ``track-bpm``; only the
symbols an expression mentions are bound, each to extraction code for the
current event.

Submodules
----------
catalog
    ``EventTypeTag``, ``BindingDefinition`` and the read-only
    ``BindingCatalog`` of convenience bindings per event type.

resolver
    Flattens inherited bindings into an effective table for one type.

scanner
    Finds the convenience symbols an expression references.

compiler
    ``compile_expression`` / ``build_user_expression`` and the
    ``CompiledExpression`` callable.

state
    ``SharedState``, the lock-protected Locals and Globals stores.

reader, evaluator, builtins
    The expression language: ``sexpdata`` reader, tree-walking evaluator,
    and the functions every expression can call.

errors
    Exception hierarchy, ``EXPR-NNNN`` error codes and GCC-style
    diagnostics.

main
    CLI entry-point with subcommands: ``types``, ``bindings``, ``check``,
    ``eval``.

Usage
-----
Programmatic::

    from triggerexpr import EventTypeTag, build_user_expression

    expr = build_user_expression("(when playing? track-bpm)", EventTypeTag.CDJ_STATUS)
    bpm = expr(status)
"""

from __future__ import annotations

__version__: str = "0.1.0"
__all__: list[str] = [
    "__version__",
    "EventTypeTag",
    "BindingCatalog",
    "BindingDefinition",
    "CompiledExpression",
    "SharedState",
    "build_user_expression",
    "compile_expression",
    "default_catalog",
    "resolve",
    "shared_globals",
]

from triggerexpr.catalog import (  # noqa: E402
    BindingCatalog,
    BindingDefinition,
    EventTypeTag,
    default_catalog,
)
from triggerexpr.compiler import (  # noqa: E402
    CompiledExpression,
    build_user_expression,
    compile_expression,
)
from triggerexpr.resolver import resolve  # noqa: E402
from triggerexpr.state import SharedState, shared_globals  # noqa: E402
