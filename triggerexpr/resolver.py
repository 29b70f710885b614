"""triggerexpr/resolver.py – flatten inherited bindings for an event type.

Resolution order
----------------
For a tag ``T`` with ``inherits = [P1, P2, ...]``:

1. resolve every parent recursively (post-order),
2. merge the parent tables left to right, so a later-listed parent wins
   over an earlier one when both define the same name,
3. overlay ``T``'s own bindings, which always win over anything inherited.

An unregistered tag resolves to an empty table.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Tuple

from triggerexpr.catalog import (
    BindingCatalog,
    BindingDefinition,
    EventTypeTag,
    default_catalog,
)

__all__ = [
    "EffectiveBindingTable",
    "BindingResolver",
    "resolve",
    "ancestors",
    "is_a",
]

EffectiveBindingTable = Dict[str, BindingDefinition]


class BindingResolver:
    """Resolves tags against one catalog and caches the flattened tables.

    The catalog is immutable, so a cached table never goes stale.  Callers
    always receive a fresh ``dict`` and may modify it freely.
    """

    def __init__(self, catalog: BindingCatalog) -> None:
        self.catalog = catalog
        self._cache: Dict[EventTypeTag, EffectiveBindingTable] = {}
        self._lock = threading.Lock()

    def resolve(self, tag: EventTypeTag) -> EffectiveBindingTable:
        with self._lock:
            table = self._cache.get(tag)
            if table is None:
                table = self._flatten(tag)
                self._cache[tag] = table
        return dict(table)

    def _flatten(self, tag: EventTypeTag) -> EffectiveBindingTable:
        entry = self.catalog.get(tag)
        if entry is None:
            return {}
        merged: EffectiveBindingTable = {}
        for parent in entry.inherits:
            merged.update(self._flatten(parent))
        merged.update(entry.bindings)
        return merged

    def ancestors(self, tag: EventTypeTag) -> Tuple[EventTypeTag, ...]:
        """All types *tag* inherits from, nearest first, without duplicates."""
        seen: List[EventTypeTag] = []
        pending = list(self.catalog.parents(tag))
        while pending:
            parent = pending.pop(0)
            if parent not in seen:
                seen.append(parent)
                pending.extend(self.catalog.parents(parent))
        return tuple(seen)

    def is_a(self, tag: Optional[EventTypeTag], target: EventTypeTag) -> bool:
        if tag is None:
            return False
        return tag is target or target in self.ancestors(tag)


_default: Optional[BindingResolver] = None
_default_lock = threading.Lock()


def _resolver_for(catalog: Optional[BindingCatalog]) -> BindingResolver:
    global _default
    if catalog is not None and catalog is not default_catalog():
        return BindingResolver(catalog)
    with _default_lock:
        if _default is None:
            _default = BindingResolver(default_catalog())
        return _default


def resolve(
    tag: EventTypeTag,
    catalog: Optional[BindingCatalog] = None,
) -> EffectiveBindingTable:
    """Effective bindings for *tag*, inherited ones included."""
    return _resolver_for(catalog).resolve(tag)


def ancestors(
    tag: EventTypeTag,
    catalog: Optional[BindingCatalog] = None,
) -> Tuple[EventTypeTag, ...]:
    return _resolver_for(catalog).ancestors(tag)


def is_a(
    tag: Optional[EventTypeTag],
    target: EventTypeTag,
    catalog: Optional[BindingCatalog] = None,
) -> bool:
    """True if *tag* is *target* or inherits from it."""
    return _resolver_for(catalog).is_a(tag, target)
