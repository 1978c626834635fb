"""
minimint.contracts.ledger
=========================

TokenLedger: the non-fungible token id space, ownership map, approvals and
per-address minter authorization.

Design goals
------------
- **Sole writer** of ownership and id issuance. Ids start at 0 and come from a
  monotonically increasing counter; explicit-id mints (vouchers, random
  allocation) claim a specific id and the counter skips ids already taken.
  An id is never reissued.
- **Reserved range**: before the first issuance the owner may hand the ids
  ``[0, count)`` to one holder (the random minter). The counter starts above
  the range and nobody else can claim an id inside it.
- **Minter allowlist**: only the ledger owner and authorized minters issue tokens.
- **Transfer guards**: every attached guard (bridge lock, staking vault) is
  consulted on every transfer; the first guard that holds a token rejects the
  move with that guard's reason.
- **Permits**: holders sign an approval off-line and any relayer submits it.
  The signer is recovered from the signature and must be the holder. A
  per-token nonce is consumed on success and the deadline is compared with
  the runtime clock.
- **Provenance**: mints and transfers append to a per-token history; minters
  may add sale records.
- **Rentals**: an owner may grant a time-limited user role; a transfer clears it.

Public API
----------
Mutations (``caller`` first):
- mint(caller, to, uri, creator=None) -> token_id
- batch_mint(caller, to, uris, creator=None) -> start_id
- mint_id(caller, to, token_id, uri, creator=None)
- reserve_ids(caller, count, holder)
- transfer(caller, from_addr, to, token_id)
- batch_transfer(caller, from_addr, to, token_ids)
- batch_transfer_to_many(caller, from_addr, recipients, token_ids)
- approve(caller, spender, token_id) / set_approval_for_all(caller, operator, approved)
- permit(caller, spender, token_id, deadline, signature)
- record_sale(caller, token_id, from_addr, to, price)
- set_user(caller, token_id, user, expires) / clear_user(caller, token_id)
- authorize_minter(caller, account) / revoke_minter(caller, account)
- set_token_uri(caller, token_id, uri) / set_base_uri(caller, uri)
- add_transfer_guard(caller, guard) / remove_transfer_guard(caller, guard_address)

Reads: owner_of, token_uri, balance_of, exists, total_supply, total_minted,
creator_of, minted_at, token_creation_info, tokens_of_owner, get_approved,
is_approved_for_all, is_minter_authorized, nonces, permit_digest,
reserved_count, reserve_holder, transfer_guards, is_token_locked,
provenance_count, provenance_record, user_of, user_expires, has_active_rental.

Events
------
- Transfer {"from", "to", "token_id"}            (from = zero address on mint)
- TokenMinted {"to", "token_id", "creator", "uri"}
- Approval / ApprovalForAll / MinterUpdated / TokenURIUpdated / BaseURIUpdated
- TransferGuardUpdated {"guard", "enabled"} / IdsReserved {"holder", "count"}
- SaleRecorded {"token_id", "from", "to", "price"}
- UpdateUser {"token_id", "user", "expires"}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence

from minimint.errors import AuthorizationError, CryptoError, InputError, StateError, require
from minimint.logging import get_logger
from minimint.runtime import ZERO_ADDRESS, external
from minimint.runtime.hash import UINT256_MAX, eip191_hash, encode_packed, keccak256
from minimint.signing import recover_address

from .roles import Ownable

log = get_logger(__name__)

DEFAULT_MAX_BATCH = 50
PERMIT_DOMAIN = "minimint.permit/v1"

PROVENANCE_MINT = "mint"
PROVENANCE_TRANSFER = "transfer"
PROVENANCE_SALE = "sale"


class TransferGuard(Protocol):
    address: bytes
    LOCK_REASON: str

    def is_token_locked(self, token_id: int) -> bool: ...


@dataclass(frozen=True)
class TokenInfo:
    token_id: int
    owner: bytes
    creator: bytes
    uri: str
    minted_at: int


@dataclass(frozen=True)
class ProvenanceRecord:
    from_addr: bytes
    to: bytes
    kind: str
    price: int
    timestamp: int


def permit_digest(
    *,
    chain_id: int,
    ledger: bytes,
    spender: bytes,
    token_id: int,
    nonce: int,
    deadline: int,
) -> bytes:
    """EIP-191 message hash a holder signs to grant `spender` approval of `token_id`."""
    inner = keccak256(
        encode_packed(
            ("string", PERMIT_DOMAIN),
            ("uint256", chain_id),
            ("address", ledger),
            ("address", spender),
            ("uint256", token_id),
            ("uint256", nonce),
            ("uint256", deadline),
        )
    )
    return eip191_hash(inner)


class TokenLedger(Ownable):
    NAME = "ledger"

    def __init__(self, runtime, name: Optional[str] = None) -> None:
        super().__init__(runtime, name)
        self._owners = self.table("owners")
        self._uris = self.table("uris")
        self._creators = self.table("creators")
        self._minted_at = self.table("minted_at")
        self._balances = self.table("balances")
        self._approvals = self.table("approvals")
        self._operators = self.table("operators")
        self._minters = self.table("minters")
        self._nonces = self.table("permit_nonces")
        self._guard_table = self.table("transfer_guards")
        self._provenance = self.table("provenance")
        self._provenance_len = self.table("provenance_len")
        self._users = self.table("users")
        self._guards: Dict[bytes, TransferGuard] = {}

    # ---- setup ----

    @external
    def initialize(
        self,
        caller: bytes,
        name: str = "Minimint",
        symbol: str = "MINT",
        max_batch_size: int = DEFAULT_MAX_BATCH,
        base_uri: str = "",
    ) -> None:
        self._mark_initialized()
        require(max_batch_size >= 1, "max batch size must be positive", error=InputError)
        self._init_owner(caller)
        self.set_slot("name", name)
        self.set_slot("symbol", symbol)
        self.set_slot("max_batch", int(max_batch_size))
        self.set_slot("next_id", 0)
        self.set_slot("total_supply", 0)
        if base_uri:
            self.set_slot("base_uri", base_uri)

    # ---- reads ----

    def collection_name(self) -> str:
        return self.slot("name", "")

    def symbol(self) -> str:
        return self.slot("symbol", "")

    def max_batch_size(self) -> int:
        return self.slot("max_batch", DEFAULT_MAX_BATCH)

    def exists(self, token_id: int) -> bool:
        return token_id in self._owners

    def _require_exists(self, token_id: int) -> bytes:
        owner = self._owners.get(token_id)
        if owner is None:
            raise StateError("token does not exist", {"token_id": token_id})
        return owner

    def owner_of(self, token_id: int) -> bytes:
        return self._require_exists(token_id)

    def token_uri(self, token_id: int) -> str:
        self._require_exists(token_id)
        uri = self._uris.get(token_id, "")
        if uri:
            return uri
        base = self.slot("base_uri", "")
        return f"{base}{token_id}" if base else ""

    def base_uri(self) -> str:
        return self.slot("base_uri", "")

    def balance_of(self, owner: bytes) -> int:
        owner = self._nonzero_address(owner, "owner")
        return self._balances.get(owner, 0)

    def total_supply(self) -> int:
        return self.slot("total_supply", 0)

    def total_minted(self) -> int:
        # No burn path exists, so every issued token is still circulating.
        return self.total_supply()

    def next_token_id(self) -> int:
        nxt = max(self.slot("next_id", 0), self.reserved_count())
        while nxt in self._owners:
            nxt += 1
        return nxt

    def reserved_count(self) -> int:
        return self.slot("reserved", 0)

    def reserve_holder(self) -> bytes:
        return self.slot("reserve_holder", ZERO_ADDRESS)

    def creator_of(self, token_id: int) -> bytes:
        self._require_exists(token_id)
        return self._creators[token_id]

    def minted_at(self, token_id: int) -> int:
        self._require_exists(token_id)
        return self._minted_at[token_id]

    def token_creation_info(self, token_id: int) -> TokenInfo:
        owner = self._require_exists(token_id)
        return TokenInfo(
            token_id=token_id,
            owner=owner,
            creator=self._creators[token_id],
            uri=self.token_uri(token_id),
            minted_at=self._minted_at[token_id],
        )

    def all_token_ids(self) -> List[int]:
        return sorted(k for k in self._owners.keys())

    def tokens_of_owner(self, owner: bytes) -> List[int]:
        owner = self._address_arg(owner, "owner")
        return sorted(tid for tid, o in self._owners.items() if o == owner)

    def get_approved(self, token_id: int) -> bytes:
        self._require_exists(token_id)
        return self._approvals.get(token_id, ZERO_ADDRESS)

    def is_approved_for_all(self, owner: bytes, operator: bytes) -> bool:
        return self._operators.get((self._address_arg(owner), self._address_arg(operator)), False)

    def is_minter_authorized(self, account: bytes) -> bool:
        account = self._address_arg(account)
        return account == self.owner() or self._minters.get(account, False)

    def nonces(self, token_id: int) -> int:
        self._require_exists(token_id)
        return self._nonces.get(token_id, 0)

    def transfer_guards(self) -> List[bytes]:
        return sorted(self._guard_table.keys())

    def _lock_reason(self, token_id: int) -> Optional[str]:
        for addr in self.transfer_guards():
            guard = self._guards.get(addr)
            if guard is None:
                raise StateError("transfer guard unavailable", {"guard": addr})
            if guard.is_token_locked(token_id):
                return guard.LOCK_REASON
        return None

    def is_token_locked(self, token_id: int) -> bool:
        return self._lock_reason(token_id) is not None

    def permit_digest(self, spender: bytes, token_id: int, deadline: int) -> bytes:
        require(0 <= deadline <= UINT256_MAX, "value out of range", error=InputError, data={"deadline": deadline})
        return permit_digest(
            chain_id=self.runtime.chain_id,
            ledger=self.address,
            spender=self._address_arg(spender, "spender"),
            token_id=token_id,
            nonce=self.nonces(token_id),
            deadline=deadline,
        )

    def provenance_count(self, token_id: int) -> int:
        self._require_exists(token_id)
        return self._provenance_len.get(token_id, 0)

    def provenance_record(self, token_id: int, index: int) -> ProvenanceRecord:
        count = self.provenance_count(token_id)
        if not 0 <= index < count:
            raise InputError("invalid index", {"token_id": token_id, "index": index, "count": count})
        return ProvenanceRecord(*self._provenance[(token_id, index)])

    def user_of(self, token_id: int) -> bytes:
        """Current renter, or the zero address once the rental has expired."""
        self._require_exists(token_id)
        row = self._users.get(token_id)
        if row is None or row[1] < self.now:
            return ZERO_ADDRESS
        return row[0]

    def user_expires(self, token_id: int) -> int:
        self._require_exists(token_id)
        row = self._users.get(token_id)
        return 0 if row is None else row[1]

    def has_active_rental(self, token_id: int) -> bool:
        return self.user_of(token_id) != ZERO_ADDRESS

    # ---- issuance ----

    def _only_minter(self, caller: bytes) -> None:
        if not self.is_minter_authorized(caller):
            raise AuthorizationError("not authorized minter", {"caller": caller})

    def _record(self, token_id: int, from_addr: bytes, to: bytes, kind: str, price: int = 0) -> None:
        index = self._provenance_len.get(token_id, 0)
        self._provenance[(token_id, index)] = (from_addr, to, kind, price, self.now)
        self._provenance_len[token_id] = index + 1

    def _issue(self, minter: bytes, to: bytes, token_id: int, uri: str, creator: bytes) -> None:
        require(token_id >= 0, "token id must be non-negative", error=InputError)
        require(token_id <= UINT256_MAX, "value out of range", error=InputError, data={"token_id": token_id})
        if token_id < self.reserved_count() and minter != self.reserve_holder():
            raise StateError("token id reserved", {"token_id": token_id, "reserved": self.reserved_count()})
        require(token_id not in self._owners, "token already minted", data={"token_id": token_id})
        self._owners[token_id] = to
        self._creators[token_id] = creator
        self._minted_at[token_id] = self.now
        if uri:
            self._uris[token_id] = uri
        self._balances[to] = self._balances.get(to, 0) + 1
        self.set_slot("total_supply", self.total_supply() + 1)
        if token_id == self.slot("next_id", 0):
            self.set_slot("next_id", token_id + 1)
        self._record(token_id, ZERO_ADDRESS, to, PROVENANCE_MINT)
        self.emit("Transfer", **{"from": ZERO_ADDRESS, "to": to, "token_id": token_id})
        self.emit("TokenMinted", to=to, token_id=token_id, creator=creator, uri=uri)
        log.debug("token_minted", token_id=token_id, to=to, creator=creator)

    def _mint_next(self, minter: bytes, to: bytes, uri: str, creator: bytes) -> int:
        token_id = self.next_token_id()
        self.set_slot("next_id", token_id)
        self._issue(minter, to, token_id, uri, creator)
        return token_id

    @external
    def mint(self, caller: bytes, to: bytes, uri: str, creator: Optional[bytes] = None) -> int:
        self._only_minter(caller)
        to = self._nonzero_address(to, "to")
        creator = caller if creator is None else self._nonzero_address(creator, "creator")
        return self._mint_next(caller, to, uri, creator)

    @external
    def batch_mint(
        self,
        caller: bytes,
        to: bytes,
        uris: Sequence[str],
        creator: Optional[bytes] = None,
    ) -> int:
        """
        Mint ``len(uris)`` tokens to `to` and return the first id issued.
        Ids are consecutive unless explicit-id mints already occupy the range.
        """
        self._only_minter(caller)
        to = self._nonzero_address(to, "to")
        uris = list(uris)
        require(len(uris) > 0, "empty uris", error=InputError)
        self._check_batch_size(len(uris))
        creator = caller if creator is None else self._nonzero_address(creator, "creator")
        ids = [self._mint_next(caller, to, uri, creator) for uri in uris]
        return ids[0]

    @external
    def mint_id(
        self,
        caller: bytes,
        to: bytes,
        token_id: int,
        uri: str,
        creator: Optional[bytes] = None,
    ) -> int:
        self._only_minter(caller)
        to = self._nonzero_address(to, "to")
        creator = caller if creator is None else self._nonzero_address(creator, "creator")
        self._issue(caller, to, int(token_id), uri, creator)
        return int(token_id)

    @external
    def reserve_ids(self, caller: bytes, count: int, holder: bytes) -> None:
        """
        Hand ids ``[0, count)`` to ``holder`` (the random minter). Only allowed
        once and before anything has been issued.
        """
        self._only_owner(caller)
        holder = self._nonzero_address(holder, "holder")
        require(count > 0, "reserve count must be positive", error=InputError)
        require(self.reserved_count() == 0, "ids already reserved")
        require(
            self.total_supply() == 0 and self.slot("next_id", 0) == 0,
            "issuance already started",
            data={"total_supply": self.total_supply()},
        )
        self.set_slot("reserved", int(count))
        self.set_slot("reserve_holder", holder)
        self.set_slot("next_id", int(count))
        self.emit("IdsReserved", holder=holder, count=int(count))

    # ---- transfers & approvals ----

    def _check_batch_size(self, n: int) -> None:
        limit = self.max_batch_size()
        require(n <= limit, f"max {limit} per batch", error=InputError, data={"size": n})

    def _is_approved_or_owner(self, spender: bytes, token_id: int, owner: bytes) -> bool:
        return (
            spender == owner
            or self._approvals.get(token_id, ZERO_ADDRESS) == spender
            or self._operators.get((owner, spender), False)
        )

    def _transfer(self, caller: bytes, from_addr: bytes, to: bytes, token_id: int) -> None:
        owner = self._require_exists(token_id)
        require(from_addr == owner, "from is not owner", error=InputError, data={"token_id": token_id})
        if not self._is_approved_or_owner(caller, token_id, owner):
            raise AuthorizationError("not owner nor approved", {"token_id": token_id})
        reason = self._lock_reason(token_id)
        if reason is not None:
            raise StateError(reason, {"token_id": token_id})

        if token_id in self._approvals:
            del self._approvals[token_id]
        if token_id in self._users:
            del self._users[token_id]
            self.emit("UpdateUser", token_id=token_id, user=ZERO_ADDRESS, expires=0)
        self._balances[owner] = self._balances[owner] - 1
        self._balances[to] = self._balances.get(to, 0) + 1
        self._owners[token_id] = to
        self._record(token_id, owner, to, PROVENANCE_TRANSFER)
        self.emit("Transfer", **{"from": owner, "to": to, "token_id": token_id})

    @external
    def transfer(self, caller: bytes, from_addr: bytes, to: bytes, token_id: int) -> None:
        self._require_exists(token_id)
        from_addr = self._address_arg(from_addr, "from")
        to = self._nonzero_address(to, "to")
        self._transfer(caller, from_addr, to, token_id)

    @external
    def batch_transfer(self, caller: bytes, from_addr: bytes, to: bytes, token_ids: Sequence[int]) -> None:
        """Move every token in ``token_ids`` from `from_addr` to `to`, all or nothing."""
        from_addr = self._address_arg(from_addr, "from")
        to = self._nonzero_address(to, "to")
        token_ids = [int(t) for t in token_ids]
        require(len(token_ids) > 0, "empty token ids", error=InputError)
        self._check_batch_size(len(token_ids))
        for token_id in token_ids:
            self._transfer(caller, from_addr, to, token_id)
        log.info("batch_transferred", count=len(token_ids), to=to)

    @external
    def batch_transfer_to_many(
        self,
        caller: bytes,
        from_addr: bytes,
        recipients: Sequence[bytes],
        token_ids: Sequence[int],
    ) -> None:
        """Send ``token_ids[i]`` to ``recipients[i]``, all or nothing."""
        from_addr = self._address_arg(from_addr, "from")
        recipients = self._address_list(recipients, "recipients")
        token_ids = [int(t) for t in token_ids]
        require(
            len(recipients) == len(token_ids),
            "length mismatch",
            error=InputError,
            data={"recipients": len(recipients), "token_ids": len(token_ids)},
        )
        require(len(token_ids) > 0, "empty token ids", error=InputError)
        self._check_batch_size(len(token_ids))
        for to, token_id in zip(recipients, token_ids):
            self._transfer(caller, from_addr, to, token_id)
        log.info("batch_transferred", count=len(token_ids), recipients=len(set(recipients)))

    def _set_approval(self, owner: bytes, spender: bytes, token_id: int) -> None:
        if spender == ZERO_ADDRESS:
            if token_id in self._approvals:
                del self._approvals[token_id]
        else:
            self._approvals[token_id] = spender
        self.emit("Approval", owner=owner, spender=spender, token_id=token_id)

    @external
    def approve(self, caller: bytes, spender: bytes, token_id: int) -> None:
        owner = self._require_exists(token_id)
        spender = self._address_arg(spender, "spender")
        require(spender != owner, "approval to current owner", error=InputError)
        if caller != owner and not self._operators.get((owner, caller), False):
            raise AuthorizationError("not owner nor approved for all", {"token_id": token_id})
        self._set_approval(owner, spender, token_id)

    @external
    def set_approval_for_all(self, caller: bytes, operator: bytes, approved: bool) -> None:
        operator = self._nonzero_address(operator, "operator")
        require(operator != caller, "approve to caller", error=InputError)
        if approved:
            self._operators[(caller, operator)] = True
        elif (caller, operator) in self._operators:
            del self._operators[(caller, operator)]
        self.emit("ApprovalForAll", owner=caller, operator=operator, approved=bool(approved))

    @external
    def permit(
        self,
        caller: bytes,
        spender: bytes,
        token_id: int,
        deadline: int,
        signature: bytes,
    ) -> None:
        """
        Set ``spender`` as the approved address of ``token_id`` using the
        holder's off-line signature. Any caller may relay it; the signer is
        recovered from ``signature`` and must be the current owner.
        """
        owner = self._require_exists(token_id)
        spender = self._address_arg(spender, "spender")
        require(spender != owner, "approval to current owner", error=InputError)
        require(self.now <= deadline, "permit expired", data={"deadline": deadline, "now": self.now})
        digest = self.permit_digest(spender, token_id, deadline)
        if recover_address(digest, signature) != owner:
            raise CryptoError("invalid signature", {"token_id": token_id})
        self._nonces[token_id] = self._nonces.get(token_id, 0) + 1
        self._set_approval(owner, spender, token_id)

    # ---- provenance & rentals ----

    @external
    def record_sale(self, caller: bytes, token_id: int, from_addr: bytes, to: bytes, price: int) -> int:
        """Append a sale to the token's history; returns the record index."""
        self._only_minter(caller)
        self._require_exists(token_id)
        from_addr = self._nonzero_address(from_addr, "from")
        to = self._nonzero_address(to, "to")
        require(0 <= price <= UINT256_MAX, "value out of range", error=InputError, data={"price": price})
        index = self._provenance_len.get(token_id, 0)
        self._record(token_id, from_addr, to, PROVENANCE_SALE, int(price))
        self.emit("SaleRecorded", **{"token_id": token_id, "from": from_addr, "to": to, "price": int(price)})
        return index

    @external
    def set_user(self, caller: bytes, token_id: int, user: bytes, expires: int) -> None:
        owner = self._require_exists(token_id)
        if not self._is_approved_or_owner(caller, token_id, owner):
            raise AuthorizationError("not owner nor approved", {"token_id": token_id})
        user = self._address_arg(user, "user")
        require(0 <= expires <= UINT256_MAX, "value out of range", error=InputError, data={"expires": expires})
        self._users[token_id] = (user, int(expires))
        self.emit("UpdateUser", token_id=token_id, user=user, expires=int(expires))

    @external
    def clear_user(self, caller: bytes, token_id: int) -> None:
        owner = self._require_exists(token_id)
        if not self._is_approved_or_owner(caller, token_id, owner):
            raise AuthorizationError("not owner nor approved", {"token_id": token_id})
        if token_id in self._users:
            del self._users[token_id]
        self.emit("UpdateUser", token_id=token_id, user=ZERO_ADDRESS, expires=0)

    # ---- admin ----

    @external
    def authorize_minter(self, caller: bytes, account: bytes) -> None:
        self._only_owner(caller)
        account = self._nonzero_address(account, "account")
        self._minters[account] = True
        self.emit("MinterUpdated", account=account, authorized=True)

    @external
    def revoke_minter(self, caller: bytes, account: bytes) -> None:
        self._only_owner(caller)
        account = self._address_arg(account, "account")
        if account in self._minters:
            del self._minters[account]
        self.emit("MinterUpdated", account=account, authorized=False)

    @external
    def set_token_uri(self, caller: bytes, token_id: int, uri: str) -> None:
        self._only_minter(caller)
        self._require_exists(token_id)
        if uri:
            self._uris[token_id] = uri
        elif token_id in self._uris:
            del self._uris[token_id]
        self.emit("TokenURIUpdated", token_id=token_id, uri=uri)

    @external
    def set_base_uri(self, caller: bytes, uri: str) -> None:
        self._only_owner(caller)
        if uri:
            self.set_slot("base_uri", uri)
        elif "base_uri" in self._slots:
            del self._slots["base_uri"]
        self.emit("BaseURIUpdated", uri=uri)

    def bind_transfer_guard(self, guard: TransferGuard) -> None:
        """Reattach an in-process guard object after loading persisted state."""
        self._guards[guard.address] = guard

    @external
    def add_transfer_guard(self, caller: bytes, guard: TransferGuard) -> None:
        self._only_owner(caller)
        self._guards[guard.address] = guard
        self._guard_table[guard.address] = True
        self.emit("TransferGuardUpdated", guard=guard.address, enabled=True)

    @external
    def remove_transfer_guard(self, caller: bytes, guard: bytes) -> None:
        self._only_owner(caller)
        guard = self._address_arg(guard, "guard")
        require(guard in self._guard_table, "unknown transfer guard", error=InputError, data={"guard": guard})
        del self._guard_table[guard]
        self.emit("TransferGuardUpdated", guard=guard, enabled=False)


__all__ = [
    "TokenLedger",
    "TokenInfo",
    "ProvenanceRecord",
    "TransferGuard",
    "permit_digest",
    "PERMIT_DOMAIN",
]
