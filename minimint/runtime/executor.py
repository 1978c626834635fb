"""
minimint.runtime.executor — serialized, atomic application of calls.

:class:`Runtime` is the execution environment every component runs in:

- a :class:`~minimint.runtime.journal.StateDB` holding all component tables,
- a :class:`~minimint.runtime.context.BlockEnv` clock advanced explicitly,
- the :class:`~minimint.runtime.context.TxEnv` of the call in flight,
- the committed :class:`~minimint.runtime.events.EventLog`.

Each external method runs inside :meth:`Runtime.call`, which opens a journal
checkpoint. Raising anything inside the call reverts the checkpoint (state and
buffered events) and re-raises; returning normally commits it. Nested calls
(controller -> ledger -> policy) nest checkpoints, so the outermost call
decides whether anything becomes visible.

Public API
----------
- Runtime(chain_id=..., timestamp=..., db=None)
- Runtime.call(contract, method, caller, value=0) -> context manager
- Runtime.emit(contract_address, name, **args)
- Runtime.advance(seconds=0, blocks=1)
- external(fn) / external(payable=True)(fn)
"""

from __future__ import annotations

import functools
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, TypeVar

from minimint.errors import MintError
from minimint.logging import bind_call_context, clear_call_context, get_logger

from .context import BlockEnv, TxEnv, to_address
from .events import EventLog, make_event
from .hash import encode_packed, keccak256
from .journal import StateDB

log = get_logger(__name__)

DEFAULT_GENESIS_TIMESTAMP = 1_700_000_000
_CLOCK_TABLE = "runtime.clock"

F = TypeVar("F", bound=Callable[..., Any])


class Runtime:
    def __init__(
        self,
        *,
        chain_id: int = 1337,
        timestamp: int = DEFAULT_GENESIS_TIMESTAMP,
        height: int = 0,
        db: Optional[StateDB] = None,
    ) -> None:
        self.db = db if db is not None else StateDB()
        self.events = EventLog()
        self.block = BlockEnv(height=height, timestamp=timestamp, chain_id=chain_id)
        self._tx: Optional[TxEnv] = None
        self._nonce = 0
        self._lock = threading.RLock()

    # ---- persistence ----

    def save(self, path: Any) -> Any:
        """Persist state plus the clock and call counter."""
        with self._lock:
            if self._tx is not None:
                raise RuntimeError("cannot save while a call is in flight")
            self.db.begin()
            self.db.set(_CLOCK_TABLE, "height", self.block.height)
            self.db.set(_CLOCK_TABLE, "timestamp", self.block.timestamp)
            self.db.set(_CLOCK_TABLE, "chain_id", self.block.chain_id)
            self.db.set(_CLOCK_TABLE, "nonce", self._nonce)
            self.db.commit()
            return self.db.save(path)

    @classmethod
    def load(cls, path: Any) -> "Runtime":
        db = StateDB.load(path)
        rt = cls(
            chain_id=db.get(_CLOCK_TABLE, "chain_id", 1337),
            timestamp=db.get(_CLOCK_TABLE, "timestamp", DEFAULT_GENESIS_TIMESTAMP),
            height=db.get(_CLOCK_TABLE, "height", 0),
            db=db,
        )
        rt._nonce = db.get(_CLOCK_TABLE, "nonce", 0)
        return rt

    # ---- clock ----

    def advance(self, seconds: int = 0, blocks: int = 1) -> BlockEnv:
        self.block = self.block.advanced(seconds=seconds, blocks=blocks)
        return self.block

    @property
    def timestamp(self) -> int:
        return self.block.timestamp

    @property
    def chain_id(self) -> int:
        return self.block.chain_id

    # ---- calls ----

    @property
    def tx(self) -> TxEnv:
        if self._tx is None:
            raise RuntimeError("no call in flight")
        return self._tx

    @property
    def in_call(self) -> bool:
        return self._tx is not None

    def _derive_tx_hash(self, sender: bytes, contract: str, method: str) -> bytes:
        return keccak256(
            encode_packed(
                ("uint256", self.block.chain_id),
                ("uint256", self.block.height),
                ("uint256", self._nonce),
                ("address", sender),
                ("string", f"{contract}.{method}"),
            )
        )

    @contextmanager
    def call(self, contract: str, method: str, caller: Any, value: int = 0) -> Iterator[TxEnv]:
        """
        Apply one call atomically. The outermost call defines the TxEnv
        (sender and attached value); nested calls reuse it.

        Calls from different threads are serialized on a re-entrant lock
        held for the whole outermost call, so a nested call is always one
        made by the thread that opened the outer one.
        """
        with self._lock:
            outer = self._tx is None
            if outer:
                sender = to_address(caller)
                self._tx = TxEnv(
                    tx_hash=self._derive_tx_hash(sender, contract, method),
                    sender=sender,
                    value=value,
                    nonce=self._nonce,
                )
                self._nonce += 1
                bind_call_context(tx_nonce=self._tx.nonce, sender="0x" + sender.hex())
            tx = self._tx
            self.db.begin()
            try:
                yield tx
            except BaseException as exc:
                self.db.revert()
                if outer:
                    fields = exc.to_dict() if isinstance(exc, MintError) else {"error": repr(exc)}
                    log.info(
                        "call_reverted",
                        contract=contract,
                        method=method,
                        tx_nonce=tx.nonce,
                        **fields,
                    )
                raise
            else:
                published = self.db.commit()
                if published:
                    self.events.extend(published)
                if outer:
                    log.debug("call_committed", contract=contract, method=method, tx_nonce=tx.nonce, events=len(published))
            finally:
                if outer:
                    self._tx = None
                    clear_call_context("tx_nonce", "sender")

    def emit(self, contract_address: bytes, name: str, **args: Any) -> None:
        ev = make_event(
            contract_address,
            name,
            args,
            tx_nonce=self.tx.nonce,
            block_height=self.block.height,
        )
        self.db.buffer_event(ev)


def external(fn: Optional[F] = None, *, payable: bool = False) -> Any:
    """
    Mark a component method as an atomic entry point.

    The wrapped method must take ``caller`` as its first argument after
    ``self``. Payable methods additionally accept a keyword-only ``value``
    which becomes the call's attached payment when it is the outermost call.
    """

    def decorate(f: F) -> F:
        @functools.wraps(f)
        def wrapper(self: Any, caller: Any, *args: Any, **kwargs: Any) -> Any:
            if not payable and "value" in kwargs:
                raise TypeError(f"{f.__name__} is not payable")
            value = kwargs.get("value", 0)
            caller = self._address_arg(caller, "caller")
            with self.runtime.call(self.name, f.__name__, caller, value):
                return f(self, caller, *args, **kwargs)

        wrapper.__minimint_external__ = True  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    if fn is not None:
        return decorate(fn)
    return decorate


__all__ = ["Runtime", "external", "DEFAULT_GENESIS_TIMESTAMP"]
