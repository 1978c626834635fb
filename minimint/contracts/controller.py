"""
minimint.contracts.controller
=============================

MintController: the entry point most callers use. Each operation runs the
same chain inside one atomic call:

    AccessGate.can_mint -> payment -> TokenLedger.mint
        -> CollectionPolicy.check_and_increment -> AccessGate.record_mint
        [-> MetadataStore.set_attribute] -> event

Any failure anywhere in the chain reverts every write made by the earlier
steps, so no component can believe a mint happened that another rejected.
The controller acts on the other components with its own address as caller,
which they recognise through their minter / authorized-caller lists.

Paid mints
----------
Public mints are payable. The attached value must equal
``mint_fee * quantity`` exactly (``mint_cost``), else PaymentError
"incorrect payment". Payments accrue as proceeds the owner withdraws.
Admin airdrops are free.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from minimint.errors import AuthorizationError, InputError, PaymentError, StateError, require
from minimint.logging import get_logger
from minimint.runtime import external
from minimint.runtime.hash import UINT256_MAX

from .access import AccessGate
from .collection import CollectionPolicy
from .ledger import TokenLedger
from .metadata import MetadataStore
from .roles import Ownable

log = get_logger(__name__)


class MintController(Ownable):
    NAME = "controller"

    def __init__(
        self,
        runtime,
        ledger: TokenLedger,
        access: AccessGate,
        policy: CollectionPolicy,
        metadata: MetadataStore,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(runtime, name)
        self.ledger = ledger
        self.access = access
        self.policy = policy
        self.metadata = metadata

    @external
    def initialize(self, caller: bytes, mint_fee: int = 0) -> None:
        self._mark_initialized()
        self._init_owner(caller)
        self.set_slot("mint_fee", self._check_fee(mint_fee))
        self.set_slot("proceeds", 0)

    # ---- reads ----

    def mint_fee(self) -> int:
        return self.slot("mint_fee", 0)

    def mint_cost(self, quantity: int) -> int:
        require(quantity >= 0, "quantity must be non-negative", error=InputError)
        return self.mint_fee() * quantity

    def proceeds(self) -> int:
        return self.slot("proceeds", 0)

    # ---- internals ----

    @staticmethod
    def _check_fee(fee: int) -> int:
        require(0 <= fee <= UINT256_MAX, "value out of range", error=InputError, data={"fee": fee})
        return int(fee)

    def _check_batch(self, n: int) -> None:
        require(n > 0, "empty uris", error=InputError)
        limit = self.ledger.max_batch_size()
        require(n <= limit, f"max {limit} per batch", error=InputError, data={"size": n})

    def _check_supply(self, quantity: int) -> None:
        if self.policy.remaining_supply() < quantity:
            raise StateError(
                "exceeds max supply",
                {"quantity": quantity, "remaining": self.policy.remaining_supply()},
            )

    def _collect(self, quantity: int, value: int) -> None:
        expected = self.mint_cost(quantity)
        if value != expected:
            raise PaymentError("incorrect payment", {"expected": expected, "value": value})
        if value:
            self.set_slot("proceeds", self.proceeds() + value)

    def _mint_one(self, payer: bytes, to: bytes, uri: str, value: int) -> int:
        self.access.require_can_mint(payer, 1)
        self._collect(1, value)
        token_id = self.ledger.mint(self.address, to, uri, creator=payer)
        self.policy.check_and_increment(self.address, 1)
        self.access.record_mint(self.address, payer, 1)
        return token_id

    # ---- entry points ----

    @external(payable=True)
    def mint(self, caller: bytes, uri: str, *, value: int = 0) -> int:
        token_id = self._mint_one(caller, caller, uri, value)
        self.emit("Minted", to=caller, token_id=token_id, uri=uri)
        log.info("minted", token_id=token_id, to=caller, paid=value)
        return token_id

    @external(payable=True)
    def mint_to(self, caller: bytes, to: bytes, uri: str, *, value: int = 0) -> int:
        """Mint on the caller's eligibility and wallet allowance, delivered to `to`."""
        to = self._nonzero_address(to, "to")
        token_id = self._mint_one(caller, to, uri, value)
        self.emit("Minted", to=to, token_id=token_id, uri=uri)
        log.info("minted", token_id=token_id, to=to, payer=caller, paid=value)
        return token_id

    @external(payable=True)
    def batch_mint(self, caller: bytes, uris: Sequence[str], *, value: int = 0) -> int:
        uris = list(uris)
        quantity = len(uris)
        self._check_batch(quantity)
        self.access.require_can_mint(caller, quantity)
        self._check_supply(quantity)
        self._collect(quantity, value)

        start_id = self.ledger.batch_mint(self.address, caller, uris, creator=caller)
        self.policy.check_and_increment(self.address, quantity)
        self.access.record_mint(self.address, caller, quantity)
        self.emit("BatchMinted", to=caller, start_id=start_id, quantity=quantity)
        log.info("batch_minted", to=caller, start_id=start_id, quantity=quantity, paid=value)
        return start_id

    @external(payable=True)
    def mint_with_attribute(self, caller: bytes, uri: str, key: str, attr_value: str, *, value: int = 0) -> int:
        token_id = self._mint_one(caller, caller, uri, value)
        self.metadata.set_attribute(self.address, token_id, key, attr_value)
        self.emit("Minted", to=caller, token_id=token_id, uri=uri)
        return token_id

    @external
    def airdrop(self, caller: bytes, recipients: Sequence[bytes], uris: Sequence[str]) -> List[int]:
        """
        Admin-only direct mints to arbitrary recipients. Free of charge and
        wallet counters are not touched; pause and the supply cap still apply.
        """
        if not self.access.is_admin(caller):
            raise AuthorizationError("caller is not an admin", {"contract": self.name})
        recipients = self._address_list(recipients, "recipients")
        uris = list(uris)
        require(len(recipients) == len(uris), "length mismatch", error=InputError,
                data={"recipients": len(recipients), "uris": len(uris)})
        self._check_batch(len(uris))
        self.access.require_not_paused()
        self._check_supply(len(uris))

        ids = [
            self.ledger.mint(self.address, to, uri, creator=caller)
            for to, uri in zip(recipients, uris)
        ]
        self.policy.check_and_increment(self.address, len(ids))
        self.emit("Airdropped", recipients=tuple(recipients), token_ids=tuple(ids))
        log.info("airdropped", count=len(ids), by=caller)
        return ids

    # ---- treasury ----

    @external
    def set_mint_fee(self, caller: bytes, fee: int) -> None:
        self._only_owner(caller)
        fee = self._check_fee(fee)
        self.set_slot("mint_fee", fee)
        self.emit("MintFeeUpdated", fee=fee)

    @external
    def withdraw(self, caller: bytes, to: bytes) -> int:
        self._only_owner(caller)
        to = self._nonzero_address(to, "to")
        amount = self.proceeds()
        require(amount > 0, "nothing to withdraw")
        self.set_slot("proceeds", 0)
        self.emit("ProceedsWithdrawn", to=to, amount=amount)
        log.info("proceeds_withdrawn", to=to, amount=amount)
        return amount


__all__ = ["MintController"]
