"""
minimint.contracts.bridge
=========================

BridgeLock: lock/unlock state machine for cross-chain transfers.

States per token::

    Unlocked --create_bridge_request--> Locked
    Locked --process(success=True)--> Locked forever (exported)
    Locked --process(success=False)--> Unlocked

The bridge is one of the ledger's transfer guards: the ledger consults
:meth:`BridgeLock.is_token_locked` on every transfer and rejects with
"token locked for bridging" while a token is locked. A token some other guard
holds (a staked token) cannot be bridged. Request ids
are sequential from 1. Only the designated operator processes requests; a
request is processed at most once.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from minimint.errors import AuthorizationError, InputError, StateError, require
from minimint.logging import get_logger
from minimint.runtime import ZERO_ADDRESS, external

from .ledger import TokenLedger
from .roles import Ownable

log = get_logger(__name__)


@dataclass(frozen=True)
class BridgeRequest:
    request_id: int
    token_id: int
    owner: bytes
    destination_chain_id: int
    created_at: int
    processed: bool
    success: bool

    @property
    def locked(self) -> bool:
        return not self.processed or self.success

    def to_row(self) -> tuple:
        return (
            self.token_id,
            self.owner,
            self.destination_chain_id,
            self.created_at,
            self.processed,
            self.success,
        )

    @classmethod
    def from_row(cls, request_id: int, row: tuple) -> "BridgeRequest":
        token_id, owner, dest, created_at, processed, success = row
        return cls(request_id, token_id, owner, dest, created_at, processed, success)


class BridgeLock(Ownable):
    NAME = "bridge"
    LOCK_REASON = "token locked for bridging"

    def __init__(self, runtime, ledger: TokenLedger, name: Optional[str] = None) -> None:
        super().__init__(runtime, name)
        self.ledger = ledger
        self._chains = self.table("supported_chains")
        self._requests = self.table("requests")
        self._locked = self.table("locked")

    @external
    def initialize(self, caller: bytes, operator: Optional[bytes] = None) -> None:
        self._mark_initialized()
        self._init_owner(caller)
        self.set_slot("next_request_id", 1)
        if operator is not None:
            self.set_slot("operator", self._nonzero_address(operator, "operator"))

    # ---- reads ----

    def bridge_operator(self) -> bytes:
        return self.slot("operator", ZERO_ADDRESS)

    def is_chain_supported(self, chain_id: int) -> bool:
        return self._chains.get(chain_id, False)

    def is_token_locked(self, token_id: int) -> bool:
        return self._locked.get(token_id, False)

    def get_bridge_request(self, request_id: int) -> BridgeRequest:
        row = self._requests.get(request_id)
        if row is None:
            raise InputError("unknown request", {"request_id": request_id})
        return BridgeRequest.from_row(request_id, row)

    def request_count(self) -> int:
        return self.slot("next_request_id", 1) - 1

    # ---- admin ----

    @external
    def set_bridge_operator(self, caller: bytes, operator: bytes) -> None:
        self._only_owner(caller)
        operator = self._nonzero_address(operator, "operator")
        self.set_slot("operator", operator)
        self.emit("BridgeOperatorUpdated", operator=operator)

    @external
    def set_supported_chain(self, caller: bytes, chain_id: int, supported: bool) -> None:
        self._only_owner(caller)
        require(chain_id > 0, "invalid chain id", error=InputError)
        require(chain_id != self.runtime.chain_id, "cannot bridge to the local chain", error=InputError)
        if supported:
            self._chains[chain_id] = True
        elif chain_id in self._chains:
            del self._chains[chain_id]
        self.emit("SupportedChainUpdated", chain_id=chain_id, supported=bool(supported))

    # ---- lifecycle ----

    @external
    def create_bridge_request(self, caller: bytes, token_id: int, destination_chain_id: int) -> int:
        if not self.is_chain_supported(destination_chain_id):
            raise StateError("chain not supported", {"chain_id": destination_chain_id})
        owner = self.ledger.owner_of(token_id)
        if owner != caller:
            raise AuthorizationError("not token owner", {"token_id": token_id})
        locked = self.is_token_locked(token_id) or self.ledger.is_token_locked(token_id)
        require(not locked, "token already locked", data={"token_id": token_id})

        request_id = self.slot("next_request_id", 1)
        self.set_slot("next_request_id", request_id + 1)
        req = BridgeRequest(
            request_id=request_id,
            token_id=token_id,
            owner=owner,
            destination_chain_id=destination_chain_id,
            created_at=self.now,
            processed=False,
            success=False,
        )
        self._requests[request_id] = req.to_row()
        self._locked[token_id] = True
        self.emit(
            "BridgeRequestCreated",
            request_id=request_id,
            token_id=token_id,
            owner=owner,
            destination_chain_id=destination_chain_id,
        )
        log.info("bridge_request_created", request_id=request_id, token_id=token_id, chain_id=destination_chain_id)
        return request_id

    @external
    def process_bridge_request(self, caller: bytes, request_id: int, success: bool) -> None:
        operator = self.bridge_operator()
        if operator == ZERO_ADDRESS or caller != operator:
            raise AuthorizationError("not bridge operator")
        req = self.get_bridge_request(request_id)
        require(not req.processed, "request already processed", data={"request_id": request_id})

        done = BridgeRequest(
            request_id=req.request_id,
            token_id=req.token_id,
            owner=req.owner,
            destination_chain_id=req.destination_chain_id,
            created_at=req.created_at,
            processed=True,
            success=bool(success),
        )
        self._requests[request_id] = done.to_row()
        if not success:
            del self._locked[req.token_id]
        self.emit("BridgeRequestProcessed", request_id=request_id, success=bool(success))
        log.info("bridge_request_processed", request_id=request_id, success=bool(success))


__all__ = ["BridgeLock", "BridgeRequest"]
