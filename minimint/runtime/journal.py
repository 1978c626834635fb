"""
minimint.runtime.journal — namespaced key/value state with nested checkpoints.

All component state lives in one :class:`StateDB`, split into named tables
(``"ledger.owners"``, ``"access.whitelist"`` ...). Writes go to the top
overlay of a checkpoint stack; reads consult overlays from top to base.
`commit()` merges the top overlay into the next layer (or the base tables
when it is the last layer). `revert()` discards the top overlay together with
every event buffered inside it.

Key properties
--------------
- Pure Python, no I/O except explicit ``save``/``load``.
- Values must be immutable (int, str, bytes, bool, None, tuples of those) so
  that overlays never alias mutable objects held by lower layers.
- Deletions are explicit markers inside an overlay.
- Events travel with the overlay that emitted them, so a reverted call leaves
  nothing in the event log.
- Persistence is deterministic CBOR (cbor2): tables and keys are sorted by
  their canonical encoding.

Intended usage
--------------
    db = StateDB()
    db.begin()
    db.set("ledger.owners", 0, alice)
    db.buffer_event(ev)
    published = db.commit()      # [ev] when this was the outermost checkpoint
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Hashable, Iterator, List, Optional, Tuple

import cbor2

STATE_FORMAT_VERSION = 1


class JournalError(Exception):
    """Misuse of the checkpoint stack or an unreadable state file."""


_DELETED = object()

_IMMUTABLE_SCALARS = (int, str, bytes, bool, type(None))


def _check_value(value: Any) -> Any:
    if isinstance(value, _IMMUTABLE_SCALARS):
        return value
    if isinstance(value, tuple):
        for v in value:
            _check_value(v)
        return value
    raise TypeError(f"state values must be immutable, got {type(value).__name__}")


def _freeze(obj: Any) -> Any:
    """CBOR arrays decode as lists; turn them back into tuples."""
    if isinstance(obj, list):
        return tuple(_freeze(x) for x in obj)
    return obj


# =============================================================================
# Overlay model
# =============================================================================


@dataclass
class _Overlay:
    """
    One checkpoint layer.

    - `writes`: table -> key -> value (or `_DELETED`).
    - `events`: events emitted while this layer was on top.
    """

    writes: Dict[str, Dict[Hashable, Any]] = field(default_factory=dict)
    events: List[Any] = field(default_factory=list)

    def lookup(self, table: str, key: Hashable) -> Any:
        t = self.writes.get(table)
        if t is None:
            return None
        return t.get(key, None)

    def merge_into(self, parent: "_Overlay") -> None:
        for table, entries in self.writes.items():
            parent.writes.setdefault(table, {}).update(entries)
        parent.events.extend(self.events)


class StateDB:
    def __init__(self, tables: Optional[Dict[str, Dict[Hashable, Any]]] = None) -> None:
        self._base: Dict[str, Dict[Hashable, Any]] = {
            name: dict(entries) for name, entries in (tables or {}).items()
        }
        self._stack: List[_Overlay] = []
        self._lock = threading.RLock()

    # ---- checkpoints ----

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def in_checkpoint(self) -> bool:
        return bool(self._stack)

    def begin(self) -> int:
        self._lock.acquire()
        self._stack.append(_Overlay())
        return len(self._stack)

    def commit(self) -> List[Any]:
        """
        Merge the top layer downwards. Returns the events that became final,
        which is non-empty only when the outermost checkpoint is committed.
        """
        if not self._stack:
            raise JournalError("commit without checkpoint")
        try:
            top = self._stack.pop()
            if self._stack:
                top.merge_into(self._stack[-1])
                return []
            for table, entries in top.writes.items():
                base = self._base.setdefault(table, {})
                for k, v in entries.items():
                    if v is _DELETED:
                        base.pop(k, None)
                    else:
                        base[k] = v
                if not base:
                    del self._base[table]
            return list(top.events)
        finally:
            self._lock.release()

    def revert(self) -> None:
        if not self._stack:
            raise JournalError("revert without checkpoint")
        try:
            self._stack.pop()
        finally:
            self._lock.release()

    def buffer_event(self, event: Any) -> None:
        if not self._stack:
            raise JournalError("events can only be emitted inside a checkpoint")
        self._stack[-1].events.append(event)

    # ---- reads ----

    def get(self, table: str, key: Hashable, default: Any = None) -> Any:
        for layer in reversed(self._stack):
            v = layer.lookup(table, key)
            if v is _DELETED:
                return default
            if v is not None:
                return v
        return self._base.get(table, {}).get(key, default)

    def contains(self, table: str, key: Hashable) -> bool:
        return self.get(table, key, _DELETED) is not _DELETED

    def items(self, table: str) -> Iterator[Tuple[Hashable, Any]]:
        merged: Dict[Hashable, Any] = dict(self._base.get(table, {}))
        for layer in self._stack:
            for k, v in layer.writes.get(table, {}).items():
                if v is _DELETED:
                    merged.pop(k, None)
                else:
                    merged[k] = v
        return iter(list(merged.items()))

    def tables(self) -> List[str]:
        names = set(self._base)
        for layer in self._stack:
            names.update(layer.writes)
        return sorted(names)

    # ---- writes ----

    def set(self, table: str, key: Hashable, value: Any) -> None:
        if value is None:
            raise TypeError("None cannot be stored; use delete()")
        _check_value(value)
        if not self._stack:
            raise JournalError("writes require an open checkpoint")
        self._stack[-1].writes.setdefault(table, {})[key] = value

    def delete(self, table: str, key: Hashable) -> None:
        if not self._stack:
            raise JournalError("writes require an open checkpoint")
        self._stack[-1].writes.setdefault(table, {})[key] = _DELETED

    # ---- persistence ----

    def dump(self) -> bytes:
        if self._stack:
            raise JournalError("cannot serialize with open checkpoints")
        tables = {}
        for name in sorted(self._base):
            rows = [[k, v] for k, v in self._base[name].items()]
            rows.sort(key=lambda kv: cbor2.dumps(kv[0], canonical=True))
            tables[name] = rows
        return cbor2.dumps({"version": STATE_FORMAT_VERSION, "tables": tables}, canonical=True)

    @classmethod
    def loads(cls, blob: bytes) -> "StateDB":
        try:
            doc = cbor2.loads(blob)
        except cbor2.CBORDecodeError as e:
            raise JournalError(f"state file is not valid CBOR: {e}") from e
        if not isinstance(doc, dict) or doc.get("version") != STATE_FORMAT_VERSION:
            raise JournalError("unsupported state file version")
        tables: Dict[str, Dict[Hashable, Any]] = {}
        for name, rows in doc.get("tables", {}).items():
            tables[name] = {_freeze(k): _freeze(v) for k, v in rows}
        return cls(tables)

    def save(self, path: str | os.PathLike) -> Path:
        """Atomically write the state file (tmp + rename)."""
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp = p.with_suffix(p.suffix + ".tmp")
        tmp.write_bytes(self.dump())
        os.replace(tmp, p)
        return p

    @classmethod
    def load(cls, path: str | os.PathLike) -> "StateDB":
        return cls.loads(Path(path).read_bytes())


class Table:
    """View over one named table of a StateDB."""

    __slots__ = ("db", "name")

    def __init__(self, db: StateDB, name: str) -> None:
        self.db = db
        self.name = name

    def get(self, key: Hashable, default: Any = None) -> Any:
        return self.db.get(self.name, key, default)

    def __getitem__(self, key: Hashable) -> Any:
        v = self.db.get(self.name, key, _DELETED)
        if v is _DELETED:
            raise KeyError(key)
        return v

    def __setitem__(self, key: Hashable, value: Any) -> None:
        self.db.set(self.name, key, value)

    def __delitem__(self, key: Hashable) -> None:
        self.db.delete(self.name, key)

    def __contains__(self, key: Hashable) -> bool:
        return self.db.contains(self.name, key)

    def items(self) -> Iterator[Tuple[Hashable, Any]]:
        return self.db.items(self.name)

    def keys(self) -> List[Hashable]:
        return [k for k, _ in self.db.items(self.name)]

    def __len__(self) -> int:
        return sum(1 for _ in self.db.items(self.name))

    def __repr__(self) -> str:  # pragma: no cover
        return f"Table({self.name!r})"


__all__ = ["StateDB", "Table", "JournalError", "STATE_FORMAT_VERSION"]
