#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
triggerexpr/visitor.py
======================

Visitor infrastructure for expression-tree traversal.

Expression trees are the raw ``sexpdata`` output, so dispatch is on node
shape rather than on node class:

- ``FormVisitor`` — base with one ``visit_X`` hook per node shape
- ``PostOrderVisitor`` — walks every child before its parent
"""

from __future__ import annotations

from typing import Any, List

from sexpdata import Brackets, Quoted, Symbol

from triggerexpr.reader import Keyword, Sexp, payload, sym_name

__all__ = [
    "FormVisitor",
    "PostOrderVisitor",
    "children",
]


def children(node: Sexp) -> List[Sexp]:
    """Direct children of *node*; empty for leaves."""
    if isinstance(node, Brackets):
        return payload(node)
    if isinstance(node, list):
        return node
    if isinstance(node, Quoted):
        return [payload(node)]
    return []


class FormVisitor:
    """Base class for expression-tree visitors.

    ``visit`` dispatches to ``visit_list``, ``visit_vector``,
    ``visit_quoted``, ``visit_symbol``, ``visit_keyword`` or
    ``visit_literal``.  The defaults call ``generic_visit``, which does
    nothing.  Subclasses override the hooks they care about.
    """

    def visit(self, node: Sexp) -> Any:
        """Dispatch to the appropriate visit method."""
        if isinstance(node, Brackets):
            return self.visit_vector(node)
        if isinstance(node, list):
            return self.visit_list(node)
        if isinstance(node, Quoted):
            return self.visit_quoted(node)
        if isinstance(node, Symbol):
            if sym_name(node).startswith(":"):
                return self.visit_keyword(node)
            return self.visit_symbol(node)
        if isinstance(node, Keyword):
            return self.visit_keyword(node)
        return self.visit_literal(node)

    def generic_visit(self, node: Sexp) -> Any:
        return None

    def visit_list(self, node: list) -> Any:
        return self.generic_visit(node)

    def visit_vector(self, node: Brackets) -> Any:
        return self.generic_visit(node)

    def visit_quoted(self, node: Quoted) -> Any:
        return self.generic_visit(node)

    def visit_symbol(self, node: Symbol) -> Any:
        return self.generic_visit(node)

    def visit_keyword(self, node: Any) -> Any:
        return self.generic_visit(node)

    def visit_literal(self, node: Any) -> Any:
        return self.generic_visit(node)


class PostOrderVisitor(FormVisitor):
    """Visits all children before the node itself.

    The shape-specific ``visit_X`` hooks run for inner nodes and leaves
    alike, after the node's children.
    """

    def walk(self, node: Sexp) -> None:
        for child in children(node):
            self.walk(child)
        self.visit(node)
