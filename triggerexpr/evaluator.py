#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
triggerexpr/evaluator.py
========================

Tree-walking evaluator for the expression language.

Evaluates the trees produced by :mod:`triggerexpr.reader` in a lexical
:class:`Environment`.  The compiler only depends on three things from this
module: evaluate a tree in a scope, closures built by ``fn`` are ordinary
Python callables, and failures raise
:class:`~triggerexpr.errors.EvaluationError` (or whatever the host code
called from the expression raised).

Evaluation rules
----------------
- Literals (strings, numbers) evaluate to themselves.
- ``:kw`` evaluates to a :class:`~triggerexpr.reader.Keyword`.
- ``nil``, ``true`` and ``false`` are constants; other symbols are looked
  up in the environment chain.
- ``[a b]`` evaluates each element into a Python list.
- ``(head args...)`` is, in order: a special form, a macro from
  :data:`triggerexpr.builtins.MACROS`, a member access when ``head`` is
  ``.name``, or a call of the evaluated head on the evaluated arguments.
- Only ``nil`` and ``false`` are false.

The only per-call state is the depth of the host call in progress, kept
per thread, so one instance may run on many threads at once.  A closure
that host code calls back continues counting from that depth, so
recursion through ``map`` or ``swap!`` still stops at ``max_depth``.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from sexpdata import Brackets, Quoted, Symbol

from triggerexpr.builtins import BUILTINS, MACROS, instance_checker, truthy
from triggerexpr.catalog import BindingCatalog
from triggerexpr.config import ExpressionConfig
from triggerexpr.errors import (
    ArityError,
    EvaluationError,
    ExprErrorCodes,
    InteropError,
    RecursionLimitError,
    UnboundSymbolError,
)
from triggerexpr.reader import (
    Keyword,
    Sexp,
    as_seq,
    is_symbol,
    payload,
    sym_name,
    to_source,
)
from triggerexpr.visitor import FormVisitor

__all__ = [
    "Environment",
    "Closure",
    "Evaluator",
    "SpecialFormChecker",
    "root_environment",
]

_MISSING = object()

_CONSTANTS: Dict[str, Any] = {
    "nil": None,
    "true": True,
    "false": False,
}


# ═══════════════════════════════════════════════════════════════════════════
# ENVIRONMENTS
# ═══════════════════════════════════════════════════════════════════════════

class Environment:
    """One lexical scope, chained to its enclosing scope."""

    __slots__ = ("vars", "parent")

    def __init__(
        self,
        vars: Optional[Dict[str, Any]] = None,
        parent: Optional["Environment"] = None,
    ) -> None:
        self.vars: Dict[str, Any] = vars if vars is not None else {}
        self.parent = parent

    def lookup(self, name: str) -> Any:
        env: Optional[Environment] = self
        while env is not None:
            value = env.vars.get(name, _MISSING)
            if value is not _MISSING:
                return value
            env = env.parent
        raise UnboundSymbolError(name)

    def define(self, name: str, value: Any) -> None:
        self.vars[name] = value

    def child(self, vars: Optional[Dict[str, Any]] = None) -> "Environment":
        return Environment(vars, self)


def root_environment(catalog: Optional[BindingCatalog] = None) -> Environment:
    """A fresh scope holding every builtin function.

    With *catalog*, ``instance?`` follows that catalog's inheritance.
    """
    env = Environment(dict(BUILTINS))
    if catalog is not None:
        env.define("instance?", instance_checker(catalog))
    return env


# ═══════════════════════════════════════════════════════════════════════════
# CLOSURES
# ═══════════════════════════════════════════════════════════════════════════

class Closure:
    """A function value created by ``fn``."""

    __slots__ = ("evaluator", "name", "params", "rest", "body", "env")

    def __init__(
        self,
        evaluator: "Evaluator",
        params: Sequence[str],
        rest: Optional[str],
        body: Sequence[Sexp],
        env: Environment,
        name: str = "fn",
    ) -> None:
        self.evaluator = evaluator
        self.name = name
        self.params = tuple(params)
        self.rest = rest
        self.body = tuple(body)
        self.env = env

    def __call__(self, *args: Any) -> Any:
        # Called back from host code (map, swap!...): continue from the
        # depth at which that host function was entered.
        return self.invoke(args, self.evaluator.host_depth())

    def invoke(self, args: Sequence[Any], depth: int) -> Any:
        """Run the body with *args* bound, *depth* levels below the top."""
        n = len(self.params)
        if len(args) < n or (self.rest is None and len(args) > n):
            expected = f"{n}+" if self.rest else str(n)
            raise ArityError(self.name, expected, len(args))
        scope = self.env.child(dict(zip(self.params, args)))
        if self.rest is not None:
            scope.define(self.rest, list(args[n:]))
        if self.name != "fn":
            scope.define(self.name, self)
        return self.evaluator.evaluate_body(self.body, scope, depth + 1)

    def __repr__(self) -> str:
        return f"<Closure {self.name} [{' '.join(self.params)}]>"


# ═══════════════════════════════════════════════════════════════════════════
# SPECIAL FORMS
# ═══════════════════════════════════════════════════════════════════════════

_SPECIAL_FORMS: Dict[str, Callable[..., Any]] = {}

# Shape checks, run when a special form is evaluated and, for every form of
# a snippet, when the snippet is compiled.
_SHAPE_CHECKS: Dict[str, Callable[[List[Sexp]], Any]] = {}


def _register(table: dict, tag: str):
    """Decorator: register a special-form handler under *tag* in *table*."""
    def deco(fn):
        table[tag] = fn
        return fn
    return deco


def _malformed(form: List[Sexp], why: str) -> EvaluationError:
    return EvaluationError(
        f"Malformed {to_source(form[0])}: {why} in {to_source(form)}",
        code=ExprErrorCodes.INVALID_SPECIAL_FORM,
    )


def _binding_vector(form: List[Sexp]) -> List[Sexp]:
    if len(form) < 2:
        raise _malformed(form, "missing binding vector")
    pairs = as_seq(form[1])
    if pairs is None or len(pairs) % 2:
        raise _malformed(form, "bindings must be a vector of name/value pairs")
    for name in pairs[::2]:
        if not is_symbol(name):
            raise _malformed(form, f"cannot bind {to_source(name)}")
    return pairs


@_register(_SHAPE_CHECKS, "quote")
def _check_quote(form: List[Sexp]) -> None:
    if len(form) != 2:
        raise ArityError("quote", "1", len(form) - 1)


@_register(_SHAPE_CHECKS, "if")
def _check_if(form: List[Sexp]) -> None:
    if len(form) not in (3, 4):
        raise ArityError("if", "2 or 3", len(form) - 1)


@_register(_SHAPE_CHECKS, "when")
@_register(_SHAPE_CHECKS, "when-not")
def _check_when(form: List[Sexp]) -> None:
    if len(form) < 2:
        raise ArityError(sym_name(form[0]), "1+", 0)


@_register(_SHAPE_CHECKS, "let")
def _check_let(form: List[Sexp]) -> List[Sexp]:
    return _binding_vector(form)


@_register(_SHAPE_CHECKS, "when-let")
def _check_when_let(form: List[Sexp]) -> List[Sexp]:
    pairs = _binding_vector(form)
    if len(pairs) != 2:
        raise _malformed(form, "exactly one binding pair required")
    return pairs


@_register(_SHAPE_CHECKS, "if-let")
def _check_if_let(form: List[Sexp]) -> List[Sexp]:
    pairs = _binding_vector(form)
    if len(pairs) != 2 or len(form) not in (3, 4):
        raise _malformed(form, "expected (if-let [name test] then else?)")
    return pairs


@_register(_SHAPE_CHECKS, "cond")
def _check_cond(form: List[Sexp]) -> None:
    if len(form[1:]) % 2:
        raise _malformed(form, "requires an even number of forms")


@_register(_SHAPE_CHECKS, "fn")
def _fn_signature(form: List[Sexp]) -> Tuple[str, List[str], Optional[str], List[Sexp]]:
    """Split ``(fn name? [params] body...)`` into its parts."""
    rest_form = form[1:]
    name = "fn"
    if rest_form and is_symbol(rest_form[0]):
        name = sym_name(rest_form[0])
        rest_form = rest_form[1:]
    params = as_seq(rest_form[0]) if rest_form else None
    if params is None:
        raise _malformed(form, "missing parameter vector")

    names: List[str] = []
    rest: Optional[str] = None
    i = 0
    while i < len(params):
        p = params[i]
        if not is_symbol(p):
            raise _malformed(form, f"bad parameter {to_source(p)}")
        if sym_name(p) == "&":
            if i + 2 != len(params) or not is_symbol(params[i + 1]):
                raise _malformed(form, "& must be followed by exactly one name")
            rest = sym_name(params[i + 1])
            break
        names.append(sym_name(p))
        i += 1
    return name, names, rest, list(rest_form[1:])


class SpecialFormChecker(FormVisitor):
    """Checks the shape of every special form in a tree before it runs.

    Quoted data is not checked.  ``lists_seen`` counts list nodes in the
    order their opening parentheses appear in the text, quoted ones
    included, so after a failure ``lists_seen - 1`` indexes the offending
    form in :func:`triggerexpr.reader.list_offsets`.

    Raises :class:`~triggerexpr.errors.EvaluationError` on the first
    malformed form.
    """

    def __init__(self) -> None:
        self.lists_seen = 0
        self._quoted = 0

    def check(self, forms: Sequence[Sexp]) -> None:
        for form in forms:
            self.visit(form)

    def visit_list(self, node: list) -> None:
        self.lists_seen += 1
        quoting = False
        if not self._quoted and node and isinstance(node[0], Symbol):
            head = sym_name(node[0])
            shape_check = _SHAPE_CHECKS.get(head)
            if shape_check is not None:
                shape_check(node)
            quoting = head == "quote"
        if quoting:
            self._quoted += 1
        try:
            for child in node:
                self.visit(child)
        finally:
            if quoting:
                self._quoted -= 1

    def visit_vector(self, node: Brackets) -> None:
        for child in payload(node):
            self.visit(child)

    def visit_quoted(self, node: Quoted) -> None:
        self._quoted += 1
        try:
            self.visit(payload(node))
        finally:
            self._quoted -= 1


@_register(_SPECIAL_FORMS, "quote")
def _eval_quote(ev: "Evaluator", form: List[Sexp], env: Environment, depth: int) -> Any:
    _check_quote(form)
    return form[1]


@_register(_SPECIAL_FORMS, "if")
def _eval_if(ev: "Evaluator", form: List[Sexp], env: Environment, depth: int) -> Any:
    _check_if(form)
    if truthy(ev.evaluate(form[1], env, depth + 1)):
        return ev.evaluate(form[2], env, depth + 1)
    if len(form) == 4:
        return ev.evaluate(form[3], env, depth + 1)
    return None


@_register(_SPECIAL_FORMS, "when")
def _eval_when(ev: "Evaluator", form: List[Sexp], env: Environment, depth: int) -> Any:
    _check_when(form)
    if truthy(ev.evaluate(form[1], env, depth + 1)):
        return ev.evaluate_body(form[2:], env, depth + 1)
    return None


@_register(_SPECIAL_FORMS, "when-not")
def _eval_when_not(ev: "Evaluator", form: List[Sexp], env: Environment, depth: int) -> Any:
    _check_when(form)
    if not truthy(ev.evaluate(form[1], env, depth + 1)):
        return ev.evaluate_body(form[2:], env, depth + 1)
    return None


@_register(_SPECIAL_FORMS, "and")
def _eval_and(ev: "Evaluator", form: List[Sexp], env: Environment, depth: int) -> Any:
    result: Any = True
    for arg in form[1:]:
        result = ev.evaluate(arg, env, depth + 1)
        if not truthy(result):
            return result
    return result


@_register(_SPECIAL_FORMS, "or")
def _eval_or(ev: "Evaluator", form: List[Sexp], env: Environment, depth: int) -> Any:
    result: Any = None
    for arg in form[1:]:
        result = ev.evaluate(arg, env, depth + 1)
        if truthy(result):
            return result
    return result


@_register(_SPECIAL_FORMS, "do")
def _eval_do(ev: "Evaluator", form: List[Sexp], env: Environment, depth: int) -> Any:
    return ev.evaluate_body(form[1:], env, depth + 1)


@_register(_SPECIAL_FORMS, "let")
def _eval_let(ev: "Evaluator", form: List[Sexp], env: Environment, depth: int) -> Any:
    pairs = _check_let(form)
    scope = env.child()
    for name, value in zip(pairs[::2], pairs[1::2]):
        scope.define(sym_name(name), ev.evaluate(value, scope, depth + 1))
    return ev.evaluate_body(form[2:], scope, depth + 1)


@_register(_SPECIAL_FORMS, "when-let")
def _eval_when_let(ev: "Evaluator", form: List[Sexp], env: Environment, depth: int) -> Any:
    pairs = _check_when_let(form)
    value = ev.evaluate(pairs[1], env, depth + 1)
    if not truthy(value):
        return None
    return ev.evaluate_body(form[2:], env.child({sym_name(pairs[0]): value}), depth + 1)


@_register(_SPECIAL_FORMS, "if-let")
def _eval_if_let(ev: "Evaluator", form: List[Sexp], env: Environment, depth: int) -> Any:
    pairs = _check_if_let(form)
    value = ev.evaluate(pairs[1], env, depth + 1)
    if truthy(value):
        return ev.evaluate(form[2], env.child({sym_name(pairs[0]): value}), depth + 1)
    if len(form) == 4:
        return ev.evaluate(form[3], env, depth + 1)
    return None


@_register(_SPECIAL_FORMS, "cond")
def _eval_cond(ev: "Evaluator", form: List[Sexp], env: Environment, depth: int) -> Any:
    _check_cond(form)
    clauses = form[1:]
    for test, expr in zip(clauses[::2], clauses[1::2]):
        if truthy(ev.evaluate(test, env, depth + 1)):
            return ev.evaluate(expr, env, depth + 1)
    return None


@_register(_SPECIAL_FORMS, "fn")
def _eval_fn(ev: "Evaluator", form: List[Sexp], env: Environment, depth: int) -> Closure:
    name, names, rest, body = _fn_signature(form)
    return Closure(ev, names, rest, body, env, name)


# ═══════════════════════════════════════════════════════════════════════════
# EVALUATOR
# ═══════════════════════════════════════════════════════════════════════════

class Evaluator:
    """Evaluates expression trees.

    Parameters
    ----------
    config:
        Supplies ``max_depth``, the deepest nesting of evaluation allowed
        before :class:`~triggerexpr.errors.RecursionLimitError` is raised.
    """

    def __init__(self, config: Optional[ExpressionConfig] = None) -> None:
        self.config = config or ExpressionConfig()
        self._host = threading.local()

    def host_depth(self) -> int:
        """Depth of the innermost host call running on this thread, else 0."""
        return getattr(self._host, "depth", 0)

    def evaluate(self, form: Sexp, env: Environment, depth: int = 0) -> Any:
        if depth > self.config.max_depth:
            raise RecursionLimitError(self.config.max_depth)
        if isinstance(form, Symbol):
            return self._symbol(form, env)
        if isinstance(form, Brackets):
            return [self.evaluate(x, env, depth + 1) for x in payload(form)]
        if isinstance(form, list):
            return self._combination(form, env, depth)
        if isinstance(form, Quoted):
            return payload(form)
        return form

    def evaluate_body(self, body: Sequence[Sexp], env: Environment, depth: int) -> Any:
        result = None
        for form in body:
            result = self.evaluate(form, env, depth)
        return result

    def apply(self, fn: Any, args: Sequence[Any], head: Sexp = None, depth: int = 0) -> Any:
        if isinstance(fn, Closure):
            return fn.invoke(args, depth)
        if isinstance(fn, Mapping):
            return fn.get(*args)
        if not callable(fn):
            label = to_source(head) if head is not None else repr(fn)
            raise EvaluationError(f"{label} is not a function: {fn!r}")
        return self._call_host(fn, args, depth)

    # -- helpers --------------------------------------------------------

    def _call_host(self, fn: Callable[..., Any], args: Sequence[Any], depth: int) -> Any:
        outer = self.host_depth()
        self._host.depth = depth
        try:
            return fn(*args)
        finally:
            self._host.depth = outer

    def _symbol(self, form: Symbol, env: Environment) -> Any:
        name = sym_name(form)
        if name.startswith(":") and len(name) > 1:
            return Keyword(name[1:])
        constant = _CONSTANTS.get(name, _MISSING)
        if constant is not _MISSING:
            return constant
        return env.lookup(name)

    def _combination(self, form: List[Sexp], env: Environment, depth: int) -> Any:
        if not form:
            return []
        head = form[0]
        if isinstance(head, Symbol):
            name = sym_name(head)
            special = _SPECIAL_FORMS.get(name)
            if special is not None:
                return special(self, form, env, depth)
            expander = MACROS.get(name)
            if expander is not None:
                return self.evaluate(expander(list(form[1:])), env, depth + 1)
            if name.startswith(".") and len(name) > 1:
                return self._member(name[1:], form, env, depth)
        fn = self.evaluate(head, env, depth + 1)
        args = [self.evaluate(arg, env, depth + 1) for arg in form[1:]]
        return self.apply(fn, args, head, depth + 1)

    def _member(self, member: str, form: List[Sexp], env: Environment, depth: int) -> Any:
        if len(form) < 2:
            raise ArityError(f".{member}", "1+", 0)
        target = self.evaluate(form[1], env, depth + 1)
        attr_name = member.replace("-", "_")
        value = getattr(target, attr_name, _MISSING)
        if value is _MISSING:
            raise InteropError(attr_name, target)
        args = [self.evaluate(arg, env, depth + 1) for arg in form[2:]]
        if callable(value):
            return self._call_host(value, args, depth + 1)
        if args:
            raise ArityError(f".{member}", "0", len(args))
        return value
