"""
minimint.runtime.events — validated domain events and the append-only log.

Components emit events through :meth:`Runtime.emit`; the event is validated
here, buffered in the current journal checkpoint and only appended to the
:class:`EventLog` when the outermost call commits.

Arguments are restricted to deterministic, serializable types: bytes, int,
bool, str and tuples of those. ``to_receipt`` renders an event with the
``{"k","t","v"}`` tagging used for JSON output.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional

from .context import to_hex

MAX_EVENT_NAME_LEN = 64
MAX_KEY_LEN = 64
MAX_BYTES_LEN = 4096
MAX_INT_BITS = 256

_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9]*$")
_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class EventError(Exception):
    """Malformed event name or argument."""


@dataclass(frozen=True)
class Event:
    contract: bytes
    name: str
    args: Mapping[str, Any]
    tx_nonce: int
    block_height: int

    def __getitem__(self, key: str) -> Any:
        return self.args[key]


def _check_name(name: Any) -> str:
    if not isinstance(name, str) or not name:
        raise EventError("event name must be a non-empty str")
    if len(name) > MAX_EVENT_NAME_LEN or not _NAME_RE.match(name):
        raise EventError(f"invalid event name: {name!r}")
    return name


def _check_value(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        b = bytes(value)
        if len(b) > MAX_BYTES_LEN:
            raise EventError("event bytes arg too long")
        return b
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value.bit_length() > MAX_INT_BITS:
            raise EventError("event int arg out of range")
        return value
    if isinstance(value, str):
        return value
    if isinstance(value, (tuple, list)):
        return tuple(_check_value(v) for v in value)
    raise EventError(f"unsupported event arg type: {type(value).__name__}")


def validate_args(args: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in args.items():
        if not isinstance(k, str) or len(k) > MAX_KEY_LEN or not _KEY_RE.match(k):
            raise EventError(f"invalid event key: {k!r}")
        out[k] = _check_value(v)
    return out


def make_event(contract: bytes, name: str, args: Mapping[str, Any], *, tx_nonce: int, block_height: int) -> Event:
    return Event(
        contract=bytes(contract),
        name=_check_name(name),
        args=validate_args(args),
        tx_nonce=tx_nonce,
        block_height=block_height,
    )


def _tag(v: Any) -> Dict[str, Any]:
    if isinstance(v, bytes):
        return {"t": "b", "v": to_hex(v)}
    if isinstance(v, bool):
        return {"t": "z", "v": v}
    if isinstance(v, int):
        return {"t": "i", "v": v}
    if isinstance(v, str):
        return {"t": "s", "v": v}
    return {"t": "a", "v": [_tag(x) for x in v]}


def to_receipt(ev: Event) -> Dict[str, Any]:
    return {
        "contract": to_hex(ev.contract),
        "name": ev.name,
        "tx_nonce": ev.tx_nonce,
        "block_height": ev.block_height,
        "args": [dict(k=k, **_tag(v)) for k, v in ev.args.items()],
    }


class EventLog:
    """Append-only list of committed events."""

    def __init__(self) -> None:
        self._events: List[Event] = []

    def extend(self, events: List[Event]) -> None:
        self._events.extend(events)

    def __iter__(self) -> Iterator[Event]:
        return iter(list(self._events))

    def __len__(self) -> int:
        return len(self._events)

    def filter(self, name: Optional[str] = None, *, contract: Optional[bytes] = None) -> List[Event]:
        return [
            e
            for e in self._events
            if (name is None or e.name == name) and (contract is None or e.contract == contract)
        ]

    def last(self, name: Optional[str] = None) -> Event:
        matches = self.filter(name)
        if not matches:
            raise LookupError(f"no event named {name!r}")
        return matches[-1]

    def names(self) -> List[str]:
        return [e.name for e in self._events]


__all__ = [
    "Event",
    "EventError",
    "EventLog",
    "make_event",
    "validate_args",
    "to_receipt",
]
