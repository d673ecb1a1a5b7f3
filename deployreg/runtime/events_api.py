"""
deployreg.runtime.events_api — event collection and delivery for one call.

Contracts announce state changes with `stdlib.events.emit(name, args)`. The
active frame's EventSink validates the event, records it for the receipt and
hands it to every host observer before `emit` returns, so an observer sees a
claim made early in a batch even if a later element of the same batch fails.

Accepted shapes
---------------
name   non-empty bytes, at most MAX_EVENT_NAME_BYTES
keys   identifier-like str (letters, digits, underscore; no leading digit)
values bytes (<= MAX_BYTES_LEN), bool, or int (<= MAX_INT_BITS bits)

Anything else raises EventError and fails the call.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Sequence, Tuple

from deployreg.errors import EventError
from deployreg.runtime.context import current_frame

log = logging.getLogger(__name__)

MAX_EVENT_NAME_BYTES = 64
MAX_KEY_LEN = 64
MAX_BYTES_LEN = 4096
MAX_INT_BITS = 256

_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# Canonical receipt tags: bytes, integer, boolean.
TAG_BYTES = "b"
TAG_INT = "i"
TAG_BOOL = "z"


@dataclass(frozen=True)
class Event:
    name: bytes
    args: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view: name as text, bytes args as 0x-hex."""
        return {
            "name": self.name.decode("utf-8", errors="replace"),
            "args": {k: _hex_if_bytes(v) for k, v in self.args.items()},
        }


@dataclass(frozen=True)
class CanonicalEvent:
    """Receipt log entry: 0x-hex name and ordered [{"k", "t", "v"}, ...] args."""

    name: str
    args: Sequence[Mapping[str, Any]]


Observer = Callable[[Event], None]


def _hex_if_bytes(v: Any) -> Any:
    return "0x" + bytes(v).hex() if isinstance(v, (bytes, bytearray)) else v


def _invalid(msg: str, where: str, **extra: Any) -> EventError:
    return EventError(msg, context={"where": where, **extra})


def _validate_name(name: Any) -> bytes:
    if not isinstance(name, (bytes, bytearray)):
        raise _invalid("event name must be bytes", "name_type")
    if not name:
        raise _invalid("event name is empty", "name_empty")
    if len(name) > MAX_EVENT_NAME_BYTES:
        raise _invalid("event name too long", "name_length", len=len(name))
    return bytes(name)


def _validate_key(key: Any) -> str:
    if not isinstance(key, str):
        raise _invalid("event arg key must be str", "key_type")
    if not 0 < len(key) <= MAX_KEY_LEN:
        raise _invalid("event arg key length out of range", "key_length", len=len(key))
    if _IDENT.fullmatch(key) is None:
        raise _invalid("event arg key is not an identifier", "key_grammar", key=key)
    return key


def _validate_value(value: Any) -> Any:
    # bool before int: bool is an int subclass.
    if isinstance(value, bool):
        return value
    if isinstance(value, (bytes, bytearray)):
        if len(value) > MAX_BYTES_LEN:
            raise _invalid("event bytes arg too long", "value_bytes_length", len=len(value))
        return bytes(value)
    if isinstance(value, int):
        if value.bit_length() > MAX_INT_BITS:
            raise _invalid("event int arg out of range", "value_int_bits", bits=value.bit_length())
        return value
    raise _invalid("unsupported event arg type", "value_type", py_type=type(value).__name__)


class EventSink:
    """
    Per-call event collector.

    Observers run synchronously, in subscription order, after the event is
    recorded. An observer that raises is logged and skipped; it never fails
    the call or stops later observers.
    """

    def __init__(self, *, max_events: int, observers: Sequence[Observer] = ()) -> None:
        self._events: List[Event] = []
        self._max_events = int(max_events)
        self._observers: Tuple[Observer, ...] = tuple(observers)

    def emit(self, name: bytes, args: Mapping[str, Any]) -> Event:
        bname = _validate_name(name)
        if not isinstance(args, Mapping):
            raise _invalid("event args must be a mapping", "args_type")
        if len(self._events) >= self._max_events:
            raise _invalid("too many events in one call", "max_events", max=self._max_events)

        ev = Event(bname, {_validate_key(k): _validate_value(v) for k, v in args.items()})
        self._events.append(ev)
        for obs in self._observers:
            try:
                obs(ev)
            except Exception:
                log.exception("event observer %r failed on %s", obs, bname.decode("utf-8", "replace"))
        return ev

    def iter_events(self) -> Tuple[Event, ...]:
        return tuple(self._events)

    def __len__(self) -> int:
        return len(self._events)


def emit(name: bytes, args: Mapping[str, Any]) -> None:
    """Emit into the sink of the active call frame."""
    current_frame().events.emit(name, args)


def _canonical_arg(k: str, v: Any) -> Dict[str, Any]:
    if isinstance(v, bytes):
        return {"k": k, "t": TAG_BYTES, "v": "0x" + v.hex()}
    if isinstance(v, bool):
        return {"k": k, "t": TAG_BOOL, "v": v}
    return {"k": k, "t": TAG_INT, "v": int(v)}


def canonicalize(events: Sequence[Event]) -> List[CanonicalEvent]:
    """Receipt logs for `events`, preserving emission order and arg order."""
    return [
        CanonicalEvent(
            name="0x" + ev.name.hex(),
            args=tuple(_canonical_arg(k, v) for k, v in ev.args.items()),
        )
        for ev in events
    ]


__all__ = [
    "Event",
    "CanonicalEvent",
    "Observer",
    "EventSink",
    "emit",
    "canonicalize",
    "MAX_EVENT_NAME_BYTES",
    "MAX_KEY_LEN",
    "MAX_BYTES_LEN",
    "MAX_INT_BITS",
]
