#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
triggerexpr/builtins.py
=======================

Functions and macros available to every user expression.

This module is the standard library that expressions and binding
extraction code can reference without defining anything.

Built-in Functions
------------------
- **Arithmetic**: ``+ - * / mod quot inc dec max min abs``
- **Comparison**: ``= not= < > <= >=``
- **Predicates**: ``not nil? some? zero? pos? neg? even? odd? ...``
- **Strings**: ``str format name keyword``
- **Collections**: ``list vector hash-map get get-in assoc dissoc ...``
- **Devices**: ``instance? pitch->multiplier pitch->percentage
  track-source-slot track-type track-matches* find-track*``
- **Shared state**: ``fetch store! forget! swap! compare-and-set!
  set-description!``

Built-in Macros
---------------
- ``(track-matches source-key rekordbox-id)`` →
  ``(track-matches* status globals source-key rekordbox-id)``
- ``(find-track source-key [description-fn])`` →
  ``(find-track* status locals globals source-key description-fn)``

The macros refer to ``status``, ``locals`` and ``globals`` by name, so they
pick up whatever the compiled expression bound to those symbols.
"""

from __future__ import annotations

import enum
import functools
import operator
from typing import Any, Callable, Dict, List, Optional

from triggerexpr.catalog import BindingCatalog, EventTypeTag
from triggerexpr.reader import Keyword, Sexp, sym, to_source
from triggerexpr.resolver import is_a
from triggerexpr.state import DESCRIPTION_KEY

__all__ = [
    "BUILTINS",
    "MACROS",
    "NEUTRAL_PITCH",
    "truthy",
    "member_value",
    "instance_checker",
]

#: Raw pitch value at which a player runs at normal speed.
NEUTRAL_PITCH = 0x100000

BUILTINS: Dict[str, Callable[..., Any]] = {}
MACROS: Dict[str, Callable[[List[Sexp]], Sexp]] = {}

_MISSING = object()


def builtin(*names: str):
    """Decorator: register a function under each of *names*."""
    def deco(fn):
        for name in names:
            BUILTINS[name] = fn
        return fn
    return deco


def macro(name: str):
    """Decorator: register a form rewriter under *name*."""
    def deco(fn):
        MACROS[name] = fn
        return fn
    return deco


def truthy(value: Any) -> bool:
    """Only ``nil`` and ``false`` are false."""
    return value is not None and value is not False


def member_value(obj: Any, name: str) -> Any:
    """Read a member of a host object, calling it if it is a method."""
    value = getattr(obj, name)
    return value() if callable(value) else value


# ═══════════════════════════════════════════════════════════════════════════
# ARITHMETIC
# ═══════════════════════════════════════════════════════════════════════════

@builtin("+")
def _add(*args):
    return sum(args, 0)


@builtin("-")
def _sub(first, *rest):
    if not rest:
        return -first
    return functools.reduce(operator.sub, rest, first)


@builtin("*")
def _mul(*args):
    return functools.reduce(operator.mul, args, 1)


@builtin("/")
def _div(first, *rest):
    if not rest:
        return 1 / first
    return functools.reduce(operator.truediv, rest, first)


@builtin("quot")
def _quot(a, b):
    return int(a / b)


@builtin("mod")
def _mod(a, b):
    return a % b


@builtin("inc")
def _inc(x):
    return x + 1


@builtin("dec")
def _dec(x):
    return x - 1


BUILTINS["max"] = max
BUILTINS["min"] = min
BUILTINS["abs"] = abs


# ═══════════════════════════════════════════════════════════════════════════
# COMPARISON AND PREDICATES
# ═══════════════════════════════════════════════════════════════════════════

def _chain(op: Callable[[Any, Any], bool]) -> Callable[..., bool]:
    def compare(first, *rest):
        prev = first
        for item in rest:
            if not op(prev, item):
                return False
            prev = item
        return True
    return compare


BUILTINS["="] = _chain(operator.eq)
BUILTINS["<"] = _chain(operator.lt)
BUILTINS[">"] = _chain(operator.gt)
BUILTINS["<="] = _chain(operator.le)
BUILTINS[">="] = _chain(operator.ge)


@builtin("not=")
def _not_eq(*args):
    return not BUILTINS["="](*args)


@builtin("not")
def _not(x):
    return not truthy(x)


@builtin("nil?")
def _is_nil(x):
    return x is None


@builtin("some?")
def _is_some(x):
    return x is not None


@builtin("true?")
def _is_true(x):
    return x is True


@builtin("false?")
def _is_false(x):
    return x is False


@builtin("zero?")
def _is_zero(x):
    return x == 0


@builtin("pos?")
def _is_pos(x):
    return x > 0


@builtin("neg?")
def _is_neg(x):
    return x < 0


@builtin("even?")
def _is_even(x):
    return x % 2 == 0


@builtin("odd?")
def _is_odd(x):
    return x % 2 == 1


@builtin("number?")
def _is_number(x):
    return isinstance(x, (int, float)) and not isinstance(x, bool)


@builtin("string?")
def _is_string(x):
    return isinstance(x, str) and not isinstance(x, Keyword)


@builtin("keyword?")
def _is_keyword(x):
    return isinstance(x, Keyword)


# ═══════════════════════════════════════════════════════════════════════════
# STRINGS
# ═══════════════════════════════════════════════════════════════════════════

def _to_str(x: Any) -> str:
    if x is None:
        return ""
    if isinstance(x, Keyword):
        return repr(x)
    if isinstance(x, str):
        return x
    if x is True or x is False:
        return "true" if x else "false"
    if isinstance(x, (list, dict)):
        return to_source(x) if isinstance(x, list) else repr(x)
    return str(x)


@builtin("str")
def _str(*args):
    return "".join(_to_str(a) for a in args)


@builtin("format")
def _format(fmt, *args):
    return fmt % args


@builtin("name")
def _name(x):
    return str.__str__(x) if isinstance(x, str) else str(x)


@builtin("keyword")
def _keyword(x):
    return Keyword(str(x).lstrip(":"))


# ═══════════════════════════════════════════════════════════════════════════
# COLLECTIONS
# ═══════════════════════════════════════════════════════════════════════════

def lookup(coll: Any, key: Any, default: Any = None) -> Any:
    """``get`` over maps, stores, sequences and ``nil``."""
    if coll is None:
        return default
    if isinstance(coll, (list, tuple)) and not isinstance(key, bool) and isinstance(key, int):
        return coll[key] if -len(coll) <= key < len(coll) else default
    getter = getattr(coll, "get", None)
    if getter is None:
        return default
    return getter(key, default)


BUILTINS["get"] = lookup


@builtin("get-in")
def _get_in(coll, path, default=None):
    value = coll
    for key in path:
        value = lookup(value, key, _MISSING)
        if value is _MISSING:
            return default
    return value


@builtin("list", "vector")
def _list(*items):
    return list(items)


@builtin("hash-map")
def _hash_map(*kvs):
    if len(kvs) % 2:
        raise ValueError("hash-map requires an even number of arguments")
    return dict(zip(kvs[::2], kvs[1::2]))


@builtin("assoc")
def _assoc(m, *kvs):
    if len(kvs) % 2:
        raise ValueError("assoc requires key/value pairs")
    result = dict(m) if m is not None else {}
    for k, v in zip(kvs[::2], kvs[1::2]):
        result[k] = v
    return result


@builtin("dissoc")
def _dissoc(m, *keys):
    result = dict(m) if m is not None else {}
    for k in keys:
        result.pop(k, None)
    return result


@builtin("contains?")
def _contains(coll, key):
    if coll is None:
        return False
    if isinstance(coll, (list, tuple)):
        return isinstance(key, int) and 0 <= key < len(coll)
    return key in coll


@builtin("count")
def _count(coll):
    return 0 if coll is None else len(coll)


@builtin("empty?")
def _is_empty(coll):
    return coll is None or len(coll) == 0


@builtin("first")
def _first(coll):
    return coll[0] if coll else None


@builtin("second")
def _second(coll):
    return coll[1] if coll is not None and len(coll) > 1 else None


@builtin("rest")
def _rest(coll):
    return list(coll[1:]) if coll else []


@builtin("nth")
def _nth(coll, index, *default):
    if coll is not None and 0 <= index < len(coll):
        return coll[index]
    if default:
        return default[0]
    raise IndexError(f"Index {index} out of bounds")


@builtin("conj")
def _conj(coll, *items):
    return list(coll or []) + list(items)


@builtin("keys")
def _keys(m):
    return list(m.keys()) if m else None


@builtin("vals")
def _vals(m):
    return list(m.values()) if m else None


@builtin("map")
def _map(fn, coll):
    return [fn(x) for x in (coll or [])]


@builtin("filter")
def _filter(pred, coll):
    return [x for x in (coll or []) if truthy(pred(x))]


@builtin("some")
def _some(pred, coll):
    for x in coll or []:
        result = pred(x)
        if truthy(result):
            return result
    return None


@builtin("reduce")
def _reduce(fn, *args):
    if len(args) == 1:
        return functools.reduce(fn, args[0])
    init, coll = args
    return functools.reduce(fn, coll, init)


@builtin("apply")
def _apply(fn, *args):
    spread = list(args[:-1]) + list(args[-1] or []) if args else []
    return fn(*spread)


# ═══════════════════════════════════════════════════════════════════════════
# DEVICES
# ═══════════════════════════════════════════════════════════════════════════

_SLOTS = frozenset({"no-track", "cd-slot", "sd-slot", "usb-slot", "collection"})
_TRACK_TYPES = frozenset({"no-track", "cd-digital-audio", "rekordbox"})


def _enum_keyword(value: Any, allowed: frozenset) -> Keyword:
    """Turn an enum member or name such as ``USB_SLOT`` into ``:usb-slot``."""
    if isinstance(value, enum.Enum):
        value = value.name
    name = str(value).lstrip(":").lower().replace("_", "-")
    return Keyword(name if name in allowed else "unknown")


def instance_checker(catalog: Optional[BindingCatalog] = None) -> Callable[[Any, Any], bool]:
    """``instance?`` with ancestry taken from *catalog*.

    The builtin registered here uses the default catalog; expressions
    compiled against another catalog get their own checker.
    """
    def instance(tag, obj):
        target = tag if isinstance(tag, EventTypeTag) else EventTypeTag.parse(tag)
        return is_a(EventTypeTag.of(obj), target, catalog)
    return instance


builtin("instance?")(instance_checker())


@builtin("pitch->multiplier")
def _pitch_to_multiplier(pitch):
    return pitch / NEUTRAL_PITCH


@builtin("pitch->percentage")
def _pitch_to_percentage(pitch):
    return (pitch - NEUTRAL_PITCH) * 100.0 / NEUTRAL_PITCH


@builtin("track-source-slot")
def track_source_slot(status):
    """The slot a track was loaded from, as a keyword."""
    return _enum_keyword(member_value(status, "track_source_slot"), _SLOTS)


@builtin("track-type")
def track_type(status):
    """The kind of track loaded, as a keyword."""
    return _enum_keyword(member_value(status, "track_type"), _TRACK_TYPES)


@builtin("track-matches*")
def track_matches(status, globals_, source_key, rekordbox_id):
    """Does the status's track match the media map stored under *source_key*?

    The map must have ``:player`` and ``:slot`` entries describing where the
    media is mounted.
    """
    media = lookup(globals_, source_key)
    return (
        member_value(status, "track_source_player") == lookup(media, "player")
        and track_source_slot(status) == lookup(media, "slot")
        and member_value(status, "rekordbox_id") == rekordbox_id
    )


@builtin("find-track*")
def find_track(status, locals_, globals_, source_key, description_fn=None):
    """Look up the status's track in a nested map held in globals.

    The path is ``source_key → player → slot → rekordbox id``.  When a
    track is found and *description_fn* is given, its result on the track
    becomes the published description; otherwise any description is
    cleared.
    """
    path = [
        source_key,
        member_value(status, "track_source_player"),
        track_source_slot(status),
        member_value(status, "rekordbox_id"),
    ]
    result = _get_in(globals_, path)
    if source_key is not None:
        if truthy(result) and description_fn is not None:
            locals_.set(DESCRIPTION_KEY, description_fn(result))
        else:
            locals_.remove(DESCRIPTION_KEY)
    return result


@macro("track-matches")
def _track_matches_macro(args: List[Sexp]) -> Sexp:
    return [sym("track-matches*"), sym("status"), sym("globals"), *args]


@macro("find-track")
def _find_track_macro(args: List[Sexp]) -> Sexp:
    return [sym("find-track*"), sym("status"), sym("locals"), sym("globals"), *args]


# ═══════════════════════════════════════════════════════════════════════════
# SHARED STATE
# ═══════════════════════════════════════════════════════════════════════════

@builtin("fetch")
def _fetch(store, key, default=None):
    return store.get(key, default)


@builtin("store!")
def _store(store, key, value):
    return store.set(key, value)


@builtin("forget!")
def _forget(store, key):
    return store.remove(key)


@builtin("swap!")
def _swap(store, key, fn, *args):
    return store.update(key, fn, *args)


@builtin("compare-and-set!")
def _compare_and_set(store, key, expected, value):
    return store.compare_and_set(key, expected, value)


@builtin("set-description!")
def set_description(locals_, text):
    """Publish *text* for the embedding UI to display."""
    locals_.set(DESCRIPTION_KEY, text)
    return text
