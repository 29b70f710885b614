"""triggerexpr/reader.py – snippet text → expression tree.

Reads user expression text with ``sexpdata`` into nested Python lists,
:class:`sexpdata.Symbol`, strings, ints, floats, vectors and quoted forms.
The tree is left in that generic shape: the scanner walks it and the
evaluator runs it, so no typed AST is built here.

Design principles
-----------------
* **Delimiters checked first** – ``sexpdata`` reports an unterminated form
  without saying where it started, so a quick pass over the text finds the
  offending delimiter or string and reports its line and column.
* **Fail-fast with location** – every failure becomes a
  :class:`~triggerexpr.errors.CompileError` subclass carrying a
  :class:`~triggerexpr.errors.SourceSpan`.
* **No implicit truth symbols** – ``nil``, ``true`` and ``false`` stay
  symbols and are given meaning by the evaluator, not by the reader.

Public API
----------
``read(text, filename=...) -> list``
    Read every top-level form in *text*.

``read_one(text) -> form``
    Read exactly one form (used for catalog extraction code).

``to_source(form) -> str``
    Render a tree back to text (debug output, CLI ``check``).

Surface syntax
--------------
::

    (head arg ...)        ; list / call
    [a b c]               ; vector
    "text"  42  -1.5      ; literals
    :keyword              ; evaluates to itself
    nil true false        ; constants
    'form                 ; quote
    (.member obj arg ...) ; host member access
"""

from __future__ import annotations

from typing import Any, List, Optional, Tuple

import sexpdata
from sexpdata import Brackets, Quoted, Symbol

from triggerexpr.errors import (
    ExprErrorCodes,
    ReadError,
    SourceSpan,
    UnbalancedFormError,
    UnterminatedStringError,
)

__all__ = [
    "Sexp",
    "Keyword",
    "Symbol",
    "read",
    "read_one",
    "to_source",
    "sym",
    "sym_name",
    "is_symbol",
    "as_seq",
    "payload",
    "list_offsets",
]

# Raw sexpdata output
Sexp = Any  # Union[list, Brackets, Quoted, Symbol, str, int, float]

_OPENERS = {"(": ")", "[": "]"}
_CLOSERS = {")": "(", "]": "["}


# ═══════════════════════════════════════════════════════════════════════
#  Keywords
# ═══════════════════════════════════════════════════════════════════════

class Keyword(str):
    """A keyword value such as ``:player``.

    Compares and hashes like its bare name, so ``Keyword("player")`` finds
    the same map entry as ``"player"``. Calling a keyword looks it up in a
    map, as Clojure keywords do.
    """

    __slots__ = ()

    def __call__(self, mapping: Any, default: Any = None) -> Any:
        if mapping is None:
            return default
        getter = getattr(mapping, "get", None)
        if getter is None:
            return default
        return getter(self, default)

    def __repr__(self) -> str:
        return ":" + str.__str__(self)


# ═══════════════════════════════════════════════════════════════════════
#  Tree helpers
# ═══════════════════════════════════════════════════════════════════════

def sym(name: str) -> Symbol:
    """Build a symbol node."""
    return Symbol(name)


def is_symbol(s: Sexp, name: Optional[str] = None) -> bool:
    """True if *s* is a symbol (optionally with the given *name*)."""
    if not isinstance(s, Symbol):
        return False
    return name is None or sym_name(s) == name


def sym_name(s: Symbol) -> str:
    """Extract the string name from a ``sexpdata.Symbol``."""
    value = getattr(s, "value", None)
    if callable(value):
        return value()
    return str.__str__(s)


def payload(s: Sexp) -> Sexp:
    """What a vector or quoted node wraps.

    ``Brackets`` keeps its items in the ``I`` field and ``Quoted`` keeps
    its form in ``x``; both are namedtuples.
    """
    if isinstance(s, Brackets):
        return list(s.I)
    if isinstance(s, Quoted):
        return s.x
    raise TypeError(f"not a vector or quoted form: {s!r}")


def as_seq(s: Sexp) -> Optional[List[Sexp]]:
    """Return the children of a list or vector node, else ``None``."""
    if isinstance(s, list):
        return s
    if isinstance(s, Brackets):
        return payload(s)
    return None


# ═══════════════════════════════════════════════════════════════════════
#  Delimiter pre-check
# ═══════════════════════════════════════════════════════════════════════

def _check_delimiters(text: str, filename: str) -> List[int]:
    """Raise if *text* has an unterminated string or unbalanced delimiter.

    Returns the offset of every opening parenthesis, in text order.
    """
    stack: List[Tuple[str, int]] = []
    parens: List[int] = []
    i = 0
    n = len(text)
    while i < n:
        c = text[i]
        if c == ";":
            nl = text.find("\n", i)
            i = n if nl < 0 else nl + 1
            continue
        if c == '"':
            start = i
            i += 1
            while i < n and text[i] != '"':
                i += 2 if text[i] == "\\" else 1
            if i >= n:
                raise UnterminatedStringError(
                    span=SourceSpan.at_offset(text, start, filename),
                    source_text=text,
                )
        elif c in _OPENERS:
            stack.append((c, i))
            if c == "(":
                parens.append(i)
        elif c in _CLOSERS:
            if not stack:
                raise UnbalancedFormError(
                    f"Unmatched delimiter: {c}",
                    span=SourceSpan.at_offset(text, i, filename),
                    source_text=text,
                )
            opener, pos = stack.pop()
            if _CLOSERS[c] != opener:
                raise UnbalancedFormError(
                    f"Unmatched delimiter: {c}, expected {_OPENERS[opener]}",
                    span=SourceSpan.at_offset(text, i, filename),
                    expected=_OPENERS[opener],
                    source_text=text,
                )
        i += 1

    if stack:
        opener, pos = stack[-1]
        raise UnbalancedFormError(
            f"EOF while reading, starting at line "
            f"{SourceSpan.at_offset(text, pos).line}",
            span=SourceSpan.at_offset(text, pos, filename),
            expected=_OPENERS[opener],
            code=ExprErrorCodes.UNEXPECTED_EOF,
            source_text=text,
        )
    return parens


# ═══════════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════════

def list_offsets(text: str) -> List[int]:
    """Offsets of the opening parenthesis of every list in *text*.

    Lists are numbered in the order they open, which is the order a
    pre-order walk of the read forms meets them.
    """
    return _check_delimiters(text, "")


def read(text: str, filename: str = "<expression>") -> List[Sexp]:
    """Read all top-level forms from *text*.

    Raises
    ------
    CompileError
        (a subclass of it) when *text* is not well formed.
    """
    _check_delimiters(text, filename)
    if not text.strip():
        return []
    try:
        forms = sexpdata.parse(text, nil=None, true=None)
    except Exception as exc:
        raise ReadError(
            f"Unable to read expression: {exc}",
            span=SourceSpan(file=filename),
            source_text=text,
            cause=exc,
        ) from exc
    return list(forms)


def read_one(text: str, filename: str = "<expression>") -> Sexp:
    """Read exactly one form from *text*."""
    forms = read(text, filename)
    if len(forms) != 1:
        raise ReadError(
            f"Expected exactly one form, found {len(forms)}",
            span=SourceSpan(file=filename),
            source_text=text,
        )
    return forms[0]


def to_source(form: Sexp) -> str:
    """Render *form* back to s-expression text."""
    if isinstance(form, Keyword):
        return repr(form)
    if isinstance(form, Symbol):
        return sym_name(form)
    if isinstance(form, Quoted):
        return "'" + to_source(payload(form))
    if isinstance(form, Brackets):
        return "[" + " ".join(to_source(x) for x in payload(form)) + "]"
    if isinstance(form, list):
        return "(" + " ".join(to_source(x) for x in form) + ")"
    if form is None:
        return "nil"
    if form is True:
        return "true"
    if form is False:
        return "false"
    if isinstance(form, str):
        return '"' + form.replace("\\", "\\\\").replace('"', '\\"') + '"'
    return repr(form)
