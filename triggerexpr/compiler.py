#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
triggerexpr/compiler.py
=======================

Turns the text of a user expression into a callable.

For a snippet and the effective binding table of its event type, the
compiler:

1. Reads every top-level form of the snippet and wraps them in ``(do ...)``
2. Rejects malformed special forms such as ``(let [a] a)``, pointing at
   the offending form
3. Scans the tree for convenience symbols known to the table
4. Synthesizes::

       (fn [status locals globals]
         (let [name1 extract1
               name2 extract2 ...]
           (do body...)))

   with the bindings in name order (the ``let`` is omitted when the snippet
   uses none)
5. Evaluates that form once, yielding the closure every later invocation
   calls

Invocation never re-reads or re-scans the snippet.  A
:class:`CompiledExpression` isolates failures: anything raised while the
bindings or the body run is logged and ``None`` comes back to the caller.
Use :meth:`CompiledExpression.evaluate` to have the failure raised instead.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Tuple

from sexpdata import Brackets

from triggerexpr.catalog import BindingCatalog, BindingDefinition, EventTypeTag
from triggerexpr.config import ExpressionConfig
from triggerexpr.errors import (
    CompileError,
    EvaluationError,
    ExprErrorCodes,
    RecursionLimitError,
    SourceSpan,
)
from triggerexpr.evaluator import Evaluator, SpecialFormChecker, root_environment
from triggerexpr.reader import Sexp, list_offsets, read, sym, to_source
from triggerexpr.resolver import resolve
from triggerexpr.scanner import EVENT_SYMBOL, OrderedBindings, scan
from triggerexpr.state import DESCRIPTION_KEY, SharedState, shared_globals

__all__ = [
    "CompiledExpression",
    "compile_expression",
    "build_user_expression",
    "synthesize",
]

logger = logging.getLogger(__name__)

PARAMETERS: Tuple[str, ...] = (EVENT_SYMBOL, "locals", "globals")


def synthesize(forms: List[Sexp], bindings: OrderedBindings) -> Sexp:
    """Build the ``fn`` form that binds *bindings* around *forms*."""
    body: Sexp = [sym("do"), *forms]
    if bindings:
        pairs: List[Sexp] = []
        for binding in bindings:
            pairs.extend((sym(binding.name), binding.extract))
        body = [sym("let"), Brackets(pairs), body]
    return [sym("fn"), Brackets([sym(p) for p in PARAMETERS]), body]


class CompiledExpression:
    """A user expression ready to run against events.

    Attributes
    ----------
    source:
        The snippet text as written by the user.
    name:
        Label used in log messages (a trigger name, say).
    bindings:
        The convenience symbols bound for this snippet, in binding order.
    form:
        The synthesized ``fn`` form.
    locals:
        This expression's own store, passed when the caller supplies none.
    globals:
        The store passed when the caller supplies none.
    """

    def __init__(
        self,
        source: str,
        name: str,
        bindings: OrderedBindings,
        form: Sexp,
        fn: Any,
        globals: SharedState,
        config: ExpressionConfig,
    ) -> None:
        self.source = source
        self.name = name
        self.bindings = bindings
        self.form = form
        self.fn = fn
        self.globals = globals
        self.config = config
        self.locals = SharedState(name=f"{name} locals")

    @property
    def bound_symbols(self) -> Tuple[str, ...]:
        return tuple(b.name for b in self.bindings)

    @property
    def description(self) -> Any:
        """The description most recently published to this expression's locals."""
        return self.locals.get(DESCRIPTION_KEY)

    def __call__(
        self,
        event: Any = None,
        locals: Optional[SharedState] = None,
        globals: Optional[SharedState] = None,
    ) -> Any:
        try:
            return self.fn(
                event,
                self.locals if locals is None else locals,
                self.globals if globals is None else globals,
            )
        except Exception:
            logger.error(
                "Problem running %s with event %r:\n%s",
                self.name, event, self.source,
                exc_info=self.config.log_tracebacks,
            )
            return None

    def evaluate(
        self,
        event: Any = None,
        locals: Optional[SharedState] = None,
        globals: Optional[SharedState] = None,
    ) -> Any:
        """Like calling the expression, but failures raise.

        Raises
        ------
        EvaluationError
            Anything else the expression raised is wrapped, with the
            original exception kept as ``cause``.  Python running out of
            stack is reported as
            :class:`~triggerexpr.errors.RecursionLimitError`.
        """
        try:
            return self.fn(
                event,
                self.locals if locals is None else locals,
                self.globals if globals is None else globals,
            )
        except EvaluationError:
            raise
        except RecursionError as exc:
            raise RecursionLimitError(self.config.max_depth, cause=exc) from exc
        except Exception as exc:
            raise EvaluationError(
                f"{self.name} failed: {type(exc).__name__}: {exc}",
                code=ExprErrorCodes.EXECUTION_ERROR,
                cause=exc,
            ) from exc

    def __repr__(self) -> str:
        return f"<CompiledExpression {self.name} binds={list(self.bound_symbols)}>"


def _check_special_forms(source: str, forms: List[Sexp], name: str) -> None:
    checker = SpecialFormChecker()
    try:
        checker.check(forms)
    except EvaluationError as exc:
        offsets = list_offsets(source)
        index = checker.lists_seen - 1
        if 0 <= index < len(offsets):
            span = SourceSpan.at_offset(source, offsets[index], name)
        else:
            span = SourceSpan(file=name)
        raise CompileError(
            exc.message,
            code=ExprErrorCodes.INVALID_SPECIAL_FORM,
            span=span,
            source_text=source,
            cause=exc,
        ) from exc


def compile_expression(
    source: str,
    table: Mapping[str, BindingDefinition],
    null_safe: bool = False,
    *,
    name: Optional[str] = None,
    globals: Optional[SharedState] = None,
    config: Optional[ExpressionConfig] = None,
    catalog: Optional[BindingCatalog] = None,
) -> CompiledExpression:
    """Compile *source* against an effective binding table.

    Parameters
    ----------
    source:
        Expression text; may hold several top-level forms.
    table:
        Effective bindings for the event type the expression will see,
        usually from :func:`triggerexpr.resolver.resolve`.
    null_safe:
        Make every binding evaluate to ``nil`` when invoked without an event.
    name:
        Label for log and error messages; defaults to ``config.filename``.
    globals:
        Default globals store; the process-wide one when omitted.
    catalog:
        Catalog whose inheritance ``instance?`` follows; the default one
        when omitted.

    Raises
    ------
    CompileError
        When *source* does not read, or holds a malformed special form
        such as ``(let [a] a)``.
    """
    config = config or ExpressionConfig()
    name = name or config.filename
    forms = read(source, filename=name)
    _check_special_forms(source, forms, name)
    bindings = scan(forms, table, nil_status=null_safe)
    logger.debug(
        "Compiling %s: binds %s",
        name, ", ".join(b.name for b in bindings) or "nothing",
    )

    form = synthesize(forms, bindings)
    fn = Evaluator(config).evaluate(form, root_environment(catalog))
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Synthesized %s", to_source(form))

    return CompiledExpression(
        source=source,
        name=name,
        bindings=bindings,
        form=form,
        fn=fn,
        globals=shared_globals() if globals is None else globals,
        config=config,
    )


def build_user_expression(
    source: str,
    tag: EventTypeTag,
    null_safe: bool = False,
    catalog: Optional[BindingCatalog] = None,
    **kwargs: Any,
) -> CompiledExpression:
    """Compile *source* for events of type *tag*.

    Shorthand for resolving *tag* and calling :func:`compile_expression`;
    keyword arguments are passed through.
    """
    return compile_expression(
        source, resolve(tag, catalog), null_safe, catalog=catalog, **kwargs,
    )
