"""triggerexpr/state.py – mutable stores shared with user expressions.

Two kinds of store exist:

* **Globals** — one store shared by every compiled expression in the
  process, for user-defined cross-expression state.  Entries persist until
  user code removes them.
* **Locals** — one store per compiled expression, through which the
  expression hands auxiliary results (such as a description to display)
  back to its caller.

Both are :class:`SharedState` instances.  Every operation is atomic on its
key; nothing spans several keys, so user code that needs a consistent group
of values stores them together under one key.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Hashable, Iterator, Optional, Sequence

__all__ = [
    "DESCRIPTION_KEY",
    "SharedState",
    "shared_globals",
]

#: Reserved Locals key for the description published by an expression.
DESCRIPTION_KEY = "track-description"

_MISSING = object()


class SharedState:
    """A lock-protected key/value store.

    The lock is re-entrant so that the function given to :meth:`update` may
    read the same store.
    """

    def __init__(self, initial: Optional[Dict[Hashable, Any]] = None, name: str = "") -> None:
        self.name = name
        self._data: Dict[Hashable, Any] = dict(initial or {})
        self._lock = threading.RLock()

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def get_in(self, path: Sequence[Hashable], default: Any = None) -> Any:
        """Follow *path* through nested mappings, starting at this store."""
        if not path:
            return default
        value = self.get(path[0], _MISSING)
        for key in path[1:]:
            if value is _MISSING or value is None:
                break
            getter = getattr(value, "get", None)
            value = getter(key, _MISSING) if getter is not None else _MISSING
        return default if value is _MISSING or value is None else value

    def set(self, key: Hashable, value: Any) -> Any:
        with self._lock:
            self._data[key] = value
        return value

    def remove(self, key: Hashable) -> Any:
        """Delete *key*, returning its previous value (``None`` if absent)."""
        with self._lock:
            return self._data.pop(key, None)

    def update(self, key: Hashable, fn: Callable[..., Any], *args: Any) -> Any:
        """Atomically replace the value at *key* with ``fn(old, *args)``."""
        with self._lock:
            value = fn(self._data.get(key), *args)
            self._data[key] = value
            return value

    def compare_and_set(self, key: Hashable, expected: Any, value: Any) -> bool:
        """Set *key* to *value* only if it currently holds *expected*."""
        with self._lock:
            if self._data.get(key) != expected:
                return False
            self._data[key] = value
            return True

    def snapshot(self) -> Dict[Hashable, Any]:
        """A shallow copy of the current contents."""
        with self._lock:
            return dict(self._data)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self.snapshot())

    def __repr__(self) -> str:
        label = f" {self.name}" if self.name else ""
        return f"<SharedState{label} {self.snapshot()!r}>"


_GLOBALS = SharedState(name="globals")


def shared_globals() -> SharedState:
    """The process-wide globals store used when no other is supplied."""
    return _GLOBALS
