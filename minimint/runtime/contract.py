"""
minimint.runtime.contract — base class for stateful components.

A component owns a set of named tables inside the runtime's StateDB, has a
deterministic 20-byte address derived from its name, and exposes
``@external`` methods that take the caller identity explicitly:

    class Counter(Contract):
        NAME = "counter"

        def __init__(self, runtime):
            super().__init__(runtime)
            self._count = self.table("count")

        @external
        def inc(self, caller):
            self._count["n"] = self._count.get("n", 0) + 1
            self.emit("Inc", by=caller)

Cross-component calls pass ``self.address`` as the caller, which is how the
receiving component recognises an authorized peer.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional

from minimint.errors import InputError, StateError, require

from .context import ContextError, ZERO_ADDRESS, to_address
from .executor import Runtime
from .hash import keccak256
from .journal import Table

_ADDRESS_DOMAIN = b"minimint:contract:"


def contract_address(name: str) -> bytes:
    return keccak256(_ADDRESS_DOMAIN + name.encode("utf-8"))[-20:]


class Contract:
    NAME: str = "contract"

    def __init__(self, runtime: Runtime, name: Optional[str] = None) -> None:
        self.runtime = runtime
        self.name = name or self.NAME
        self.address = contract_address(self.name)
        self._slots = self.table("slots")

    # ---- storage ----

    def table(self, suffix: str) -> Table:
        return Table(self.runtime.db, f"{self.name}.{suffix}")

    def slot(self, key: str, default: Any = None) -> Any:
        return self._slots.get(key, default)

    def set_slot(self, key: str, value: Any) -> None:
        self._slots[key] = value

    @property
    def initialized(self) -> bool:
        return self.slot("initialized", False)

    def _mark_initialized(self) -> None:
        require(not self.initialized, "already initialized")
        self.set_slot("initialized", True)

    def _require_initialized(self) -> None:
        if not self.initialized:
            raise StateError("not initialized", {"contract": self.name})

    # ---- helpers ----

    def emit(self, name: str, **args: Any) -> None:
        self.runtime.emit(self.address, name, **args)

    @property
    def now(self) -> int:
        return self.runtime.block.timestamp

    @staticmethod
    def _address_arg(value: Any, name: str = "address") -> bytes:
        try:
            return to_address(value)
        except ContextError as e:
            raise InputError("invalid address", {"argument": name, "detail": str(e)}) from e

    def _nonzero_address(self, value: Any, name: str = "address") -> bytes:
        addr = self._address_arg(value, name)
        if addr == ZERO_ADDRESS:
            raise InputError("zero address", {"argument": name})
        return addr

    def _address_list(self, values: Iterable[Any], name: str) -> List[bytes]:
        return [self._nonzero_address(v, name) for v in values]

    def __repr__(self) -> str:  # pragma: no cover
        return f"<{type(self).__name__} {self.name} 0x{self.address.hex()}>"


__all__ = ["Contract", "contract_address"]
