"""Plain stand-ins for device events.

Expressions only touch events through ``(.member status)``, so any object
with the right attributes will do.  :class:`EventRecord` is such an object
built from a dictionary; the CLI reads one from JSON.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

from triggerexpr.catalog import EventTypeTag

__all__ = ["EventRecord"]


class EventRecord:
    """An event whose members are given as keyword arguments.

    >>> beat = EventRecord(EventTypeTag.BEAT, device_number=2, bpm=12800)
    >>> beat.device_number
    2
    """

    def __init__(self, event_type: EventTypeTag, **members: Any) -> None:
        self.event_type = event_type
        self.__dict__.update(members)

    @classmethod
    def from_mapping(cls, tag: EventTypeTag, data: Mapping[str, Any]) -> "EventRecord":
        """Build from a mapping; ``device-number`` style keys are accepted."""
        members: Dict[str, Any] = {
            str(key).replace("-", "_"): value for key, value in data.items()
        }
        members.pop("event_type", None)
        return cls(tag, **members)

    def __repr__(self) -> str:
        fields = ", ".join(
            f"{k}={v!r}" for k, v in sorted(vars(self).items()) if k != "event_type"
        )
        return f"<{type(self).__name__} {self.event_type.value} {fields}>"
