"""triggerexpr/catalog.py – convenience bindings by event type.

Identifies the symbols a user expression may use when it processes a
particular kind of device event, the extraction code that is bound to the
symbol when the expression mentions it, and the documentation shown to the
user for it.

Every extraction expression is written in the expression language itself
and is evaluated with ``status`` bound to the current event.  Event
objects expose snake_case members (``device_number``, ``is_playing``...),
which may be attributes or zero-argument methods; the ``(.member obj)``
form reaches either.

Design invariants
-----------------
* The catalog is built once and never mutated afterwards.
* Inheritance between event types is acyclic and every parent is
  registered; violations raise :class:`~triggerexpr.errors.CatalogError`
  when the catalog is built.
* ``BindingDefinition`` and ``BindingSet`` are frozen dataclasses.
"""

from __future__ import annotations

import enum
import functools
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import (
    Any,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

from triggerexpr.errors import CatalogError, CompileError, ExprErrorCodes
from triggerexpr.reader import Sexp, read_one

__all__ = [
    "EventTypeTag",
    "BindingDefinition",
    "BindingSet",
    "BindingCatalog",
    "CONVENIENCE_BINDINGS",
    "build_catalog",
    "default_catalog",
]

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
#  Event types
# ═══════════════════════════════════════════════════════════════════════

class EventTypeTag(enum.Enum):
    """The closed set of device event categories."""

    DEVICE_UPDATE = "device-update"
    BEAT = "beat"
    MIXER_STATUS = "mixer-status"
    CDJ_STATUS = "cdj-status"

    @property
    def keyword(self) -> str:
        """The ``:keyword`` spelling used inside expressions."""
        return ":" + self.value

    @classmethod
    def parse(cls, text: str) -> "EventTypeTag":
        """Accept ``beat``, ``:beat``, ``BEAT`` or a class name like ``Beat``."""
        key = str(text).strip().lstrip(":")
        for tag in cls:
            if key in (tag.value, tag.name) or key.lower() == tag.value:
                return tag
        tag = _CLASS_NAMES.get(key)
        if tag is not None:
            return tag
        raise ValueError(f"Unknown event type: {text!r}")

    @classmethod
    def of(cls, event: Any) -> Optional["EventTypeTag"]:
        """Classify a runtime event object.

        An explicit ``event_type`` attribute wins; otherwise the class names
        along the event's MRO are matched against the device library's
        names (``Beat``, ``CdjStatus``, ``MixerStatus``, ``DeviceUpdate``).
        """
        if event is None:
            return None
        declared = getattr(event, "event_type", None)
        if isinstance(declared, cls):
            return declared
        if isinstance(declared, str):
            try:
                return cls.parse(declared)
            except ValueError:
                pass
        for klass in type(event).__mro__:
            tag = _CLASS_NAMES.get(klass.__name__)
            if tag is not None:
                return tag
        return None


_CLASS_NAMES: Dict[str, EventTypeTag] = {
    "DeviceUpdate": EventTypeTag.DEVICE_UPDATE,
    "Beat": EventTypeTag.BEAT,
    "MixerStatus": EventTypeTag.MIXER_STATUS,
    "CdjStatus": EventTypeTag.CDJ_STATUS,
}


# ═══════════════════════════════════════════════════════════════════════
#  Bindings
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BindingDefinition:
    """One convenience symbol.

    ``code`` is the extraction expression source; ``extract`` is its parsed
    tree, read from ``code`` when not given.  Equality is decided by name,
    code and doc.
    """

    name: str
    code: str
    doc: str = ""
    extract: Sexp = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.extract is not None:
            return
        try:
            extract = read_one(self.code, filename=f"<binding {self.name}>")
        except CompileError as exc:
            raise CatalogError(
                f"Extraction code for {self.name!r} does not read: {exc.message}",
                code=ExprErrorCodes.INVALID_BINDING,
                cause=exc,
            ) from exc
        object.__setattr__(self, "extract", extract)

    @classmethod
    def build(cls, name: str, code: str, doc: str = "") -> "BindingDefinition":
        return cls(name=name, code=code, doc=doc)


@dataclass(frozen=True)
class BindingSet:
    """Own bindings of one event type, plus the types it inherits from."""

    bindings: Mapping[str, BindingDefinition]
    inherits: Tuple[EventTypeTag, ...] = ()

    @classmethod
    def build(
        cls,
        bindings: Mapping[str, Tuple[str, str]],
        inherits: Sequence[EventTypeTag] = (),
    ) -> "BindingSet":
        """Build from ``{name: (code, doc)}``."""
        defs = {
            name: BindingDefinition.build(name, code, doc)
            for name, (code, doc) in bindings.items()
        }
        return cls(bindings=MappingProxyType(defs), inherits=tuple(inherits))


class BindingCatalog(Mapping[EventTypeTag, BindingSet]):
    """Read-only table ``EventTypeTag -> BindingSet``.

    Validated on construction: every inherited tag must be registered and
    the inheritance graph must be acyclic.
    """

    def __init__(self, entries: Mapping[EventTypeTag, BindingSet]) -> None:
        self._entries: Mapping[EventTypeTag, BindingSet] = MappingProxyType(dict(entries))
        self._validate()
        logger.debug(
            "Binding catalog built: %s",
            ", ".join(f"{t.value}={len(s.bindings)}" for t, s in self._entries.items()),
        )

    def __getitem__(self, tag: EventTypeTag) -> BindingSet:
        return self._entries[tag]

    def __iter__(self) -> Iterator[EventTypeTag]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def parents(self, tag: EventTypeTag) -> Tuple[EventTypeTag, ...]:
        entry = self._entries.get(tag)
        return entry.inherits if entry is not None else ()

    def _validate(self) -> None:
        for tag, entry in self._entries.items():
            for parent in entry.inherits:
                if parent not in self._entries:
                    raise CatalogError(
                        f"{tag.value} inherits from unregistered type {parent.value}",
                        code=ExprErrorCodes.UNKNOWN_PARENT,
                    )

        # Depth-first cycle check: 0 = unvisited, 1 = on stack, 2 = done
        state: Dict[EventTypeTag, int] = {}

        def visit(tag: EventTypeTag, path: List[EventTypeTag]) -> None:
            mark = state.get(tag, 0)
            if mark == 2:
                return
            if mark == 1:
                cycle = " -> ".join(t.value for t in path + [tag])
                raise CatalogError(
                    f"Inheritance cycle: {cycle}",
                    code=ExprErrorCodes.CIRCULAR_INHERITANCE,
                )
            state[tag] = 1
            for parent in self._entries[tag].inherits:
                visit(parent, path + [tag])
            state[tag] = 2

        for tag in self._entries:
            visit(tag, [])


# ═══════════════════════════════════════════════════════════════════════
#  The default catalog
# ═══════════════════════════════════════════════════════════════════════

_RAW_BPM = (
    "(.bpm status)",
    "The raw track BPM at the time of the update. An integer representing "
    "the BPM times 100, so a track running at 120.5 BPM is represented by "
    "12050.",
)
_TRACK_BPM = (
    "(/ (.bpm status) 100.0)",
    "The track BPM at the time of the update, a floating point value from "
    "0.0 to 65,535. See `effective-tempo` for the speed at which it is "
    "currently playing.",
)
_PITCH_MULTIPLIER = (
    "(pitch->multiplier (.pitch status))",
    "The current device pitch (playback speed) as a multiplier from 0.0 to "
    "2.0, where normal, unadjusted pitch is 1.0 and zero means stopped.",
)
_PITCH_PERCENT = (
    "(pitch->percentage (.pitch status))",
    "The current device pitch (playback speed) as a percentage from -100% "
    "to +100%, where normal, unadjusted pitch is 0%.",
)
_RAW_PITCH = (
    "(.pitch status)",
    "The raw device pitch, an integer from 0 to 2,097,152, which corresponds "
    "to a range between completely stopped and twice normal tempo. See "
    "`pitch-multiplier` and `pitch-percent` for more useful forms.",
)

CONVENIENCE_BINDINGS: Dict[EventTypeTag, Dict[str, Any]] = {
    EventTypeTag.DEVICE_UPDATE: {
        "bindings": {
            "address": (
                "(.address status)",
                "The address of the device from which this update was received.",
            ),
            "beat?": (
                "(instance? :beat status)",
                "Will be `true` if this update is announcing a new beat.",
            ),
            "beat-within-bar": (
                "(.beat-within-bar status)",
                "The position within a measure of music at which the most "
                "recent beat fell (1 to 4, where 1 is the down beat). Only "
                "meaningful from players whose track was configured in "
                "rekordbox; check `bar-meaningful?`.",
            ),
            "bar-meaningful?": (
                "(.is-beat-within-bar-meaningful status)",
                "Will be `true` if `beat-within-bar` can be expected to have "
                "musical significance for this device.",
            ),
            "cdj?": (
                "(or (instance? :cdj-status status)"
                " (and (instance? :beat status) (< (.device-number status) 17)))",
                "Will be `true` if this update is reporting the status of a CDJ.",
            ),
            "device-name": (
                "(.device-name status)",
                "The name reported by the device sending the update.",
            ),
            "device-number": (
                "(.device-number status)",
                "The player/device number sending the update.",
            ),
            "effective-tempo": (
                "(.effective-tempo status)",
                "The effective tempo reflected by this update, which reflects "
                "both its track BPM and pitch as needed.",
            ),
            "mixer?": (
                "(or (instance? :mixer-status status)"
                " (and (instance? :beat status) (> (.device-number status) 32)))",
                "Will be `true` if this update is reporting the status of a mixer.",
            ),
            "timestamp": (
                "(.timestamp status)",
                "Records the millisecond at which we received this update.",
            ),
        },
    },
    EventTypeTag.BEAT: {
        "inherits": [EventTypeTag.DEVICE_UPDATE],
        "bindings": {
            "pitch-multiplier": _PITCH_MULTIPLIER,
            "pitch-percent": _PITCH_PERCENT,
            "raw-bpm": _RAW_BPM,
            "raw-pitch": _RAW_PITCH,
            "tempo-master?": (
                "(.is-tempo-master status)",
                "Was this beat sent by the current tempo master?",
            ),
            "track-bpm": _TRACK_BPM,
        },
    },
    EventTypeTag.MIXER_STATUS: {
        "inherits": [EventTypeTag.DEVICE_UPDATE],
        "bindings": {
            "raw-bpm": _RAW_BPM,
            "tempo-master?": (
                "(.is-tempo-master status)",
                "Is this mixer the current tempo master?",
            ),
            "track-bpm": _TRACK_BPM,
        },
    },
    EventTypeTag.CDJ_STATUS: {
        "inherits": [EventTypeTag.DEVICE_UPDATE],
        "bindings": {
            "at-end?": (
                "(.is-at-end status)",
                "Is the player currently stopped at the end of a track?",
            ),
            "beat-number": (
                "(.beat-number status)",
                "The beat of the track being played. Starts at 1 and increments "
                "on each beat; 0 while paused at the start of the track, and -1 "
                "when the track was not analyzed by rekordbox.",
            ),
            "busy?": (
                "(.is-busy status)",
                "Will be `true` if the player is doing anything.",
            ),
            "cue-countdown": (
                "(.cue-countdown status)",
                "How many beats away is the next cue point in the track? 511 "
                "when there is none within 64 bars; counts down to 0 on the "
                "beat of the cue point.",
            ),
            "cue-countdown-text": (
                "(.format-cue-countdown status)",
                "`cue-countdown` formatted the way it is displayed on the player.",
            ),
            "cued?": (
                "(.is-cued status)",
                "Is the player currently cued (paused at the cue point)?",
            ),
            "looping?": (
                "(.is-looping status)",
                "Is the player currently playing a loop?",
            ),
            "on-air?": (
                "(.is-on-air status)",
                "Is the CDJ on the air? A player is on the air when it is "
                "connected to a mixer channel that is not faded out.",
            ),
            "paused?": (
                "(.is-paused status)",
                "Is the player currently paused?",
            ),
            "pitch-multiplier": _PITCH_MULTIPLIER,
            "pitch-percent": _PITCH_PERCENT,
            "playing?": (
                "(.is-playing status)",
                "Is the player currently playing a track?",
            ),
            "raw-bpm": _RAW_BPM,
            "raw-pitch": _RAW_PITCH,
            "rekordbox-id": (
                "(.rekordbox-id status)",
                "The rekordbox id of the loaded track; 0 if no track is loaded, "
                "or the track number for an ordinary audio CD.",
            ),
            "synced?": (
                "(.is-synced status)",
                "Is the player currently in Sync mode?",
            ),
            "tempo-master?": (
                "(.is-tempo-master status)",
                "Is this player the current tempo master?",
            ),
            "track-bpm": _TRACK_BPM,
            "track-number": (
                "(.track-number status)",
                "The track number of the loaded track within a playlist or "
                "other scrolling list in the player's browse interface.",
            ),
            "track-source-player": (
                "(.track-source-player status)",
                "Which player was the track loaded from? The device number, or "
                "0 if there is no track loaded.",
            ),
            "track-source-slot": (
                "(track-source-slot status)",
                "Which slot was the track loaded from? One of `:no-track`, "
                "`:cd-slot`, `:sd-slot`, `:usb-slot`, `:collection` or `:unknown`.",
            ),
            "track-type": (
                "(track-type status)",
                "What kind of track was loaded? One of `:no-track`, "
                "`:cd-digital-audio`, `:rekordbox` or `:unknown`.",
            ),
        },
    },
}


def build_catalog(raw: Mapping[EventTypeTag, Mapping[str, Any]]) -> BindingCatalog:
    """Build a :class:`BindingCatalog` from the dictionary layout above."""
    return BindingCatalog({
        tag: BindingSet.build(entry.get("bindings", {}), entry.get("inherits", ()))
        for tag, entry in raw.items()
    })


@functools.lru_cache(maxsize=None)
def default_catalog() -> BindingCatalog:
    """The catalog of the device events this package knows about."""
    return build_catalog(CONVENIENCE_BINDINGS)
