"""triggerexpr/scanner.py – find the convenience symbols a snippet uses.

Walks a snippet's tree and returns the bindings whose names occur in it,
together with the extraction expression each one needs.  Only these are
bound when the snippet runs; extraction code for symbols the snippet never
mentions is never evaluated.

The result is sorted by symbol name so that compiling the same snippet
always produces the same binding order.
"""

from __future__ import annotations

from typing import Dict, Mapping, NamedTuple, Tuple

from sexpdata import Symbol

from triggerexpr.catalog import BindingDefinition
from triggerexpr.reader import Sexp, sym, sym_name
from triggerexpr.visitor import PostOrderVisitor

__all__ = [
    "ScannedBinding",
    "OrderedBindings",
    "ReferenceScanner",
    "scan",
    "null_safe",
]

EVENT_SYMBOL = "status"


class ScannedBinding(NamedTuple):
    name: str
    extract: Sexp


OrderedBindings = Tuple[ScannedBinding, ...]


def null_safe(extract: Sexp) -> Sexp:
    """Wrap *extract* so it yields ``nil`` when there is no event."""
    return [sym("when"), sym(EVENT_SYMBOL), extract]


class ReferenceScanner(PostOrderVisitor):
    """Collects symbols that are keys of the binding table."""

    def __init__(self, table: Mapping[str, BindingDefinition]) -> None:
        self.table = table
        self.found: Dict[str, BindingDefinition] = {}

    def visit_symbol(self, node: Symbol) -> None:
        name = sym_name(node)
        binding = self.table.get(name)
        if binding is not None:
            self.found[name] = binding


def scan(
    tree: Sexp,
    table: Mapping[str, BindingDefinition],
    nil_status: bool = False,
) -> OrderedBindings:
    """Bindings of *table* referenced anywhere in *tree*, sorted by name.

    With *nil_status* every extraction is wrapped with :func:`null_safe`.
    """
    scanner = ReferenceScanner(table)
    scanner.walk(tree)
    return tuple(
        ScannedBinding(name, null_safe(b.extract) if nil_status else b.extract)
        for name, b in sorted(scanner.found.items())
    )
