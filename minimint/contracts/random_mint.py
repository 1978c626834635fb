"""
minimint.contracts.random_mint
==============================

Randomized allocation of a fixed id range.

RandomAllocator
---------------
Keeps a logical array ``[0, max_supply)`` of unassigned ids without
materializing it: a sparse ``index -> token_id`` override map plus the count
of ``remaining`` ids. ``allocate(seed)``:

    index    = seed mod remaining
    token_id = overrides.get(index, index)
    overrides[index] = overrides.get(remaining - 1, remaining - 1)
    del overrides[remaining - 1]
    remaining -= 1

That is one Fisher–Yates step, so across ``max_supply`` calls every id is
returned exactly once, using O(1) state per call.

Seed source
-----------
Block-derived values are predictable to whoever orders the calls, so seeds
come from a commit–reveal beacon instead. The owner publishes

    commitment = keccak256(domain_tag || owner || secret)

before the drop and reveals ``secret`` in a later block. Each allocation then
uses ``keccak256(secret || tx_hash || recipient || counter)``. The owner still
knows the secret once committed; what it cannot do is choose it after seeing
who mints when. Minting is refused until a secret has been revealed.

RandomMinter
------------
Entry point tying the beacon, the allocator, the ledger and the supply policy
together: ``random_mint(caller, to, uri)`` (authorized minters of the drop).
"""

from __future__ import annotations

from typing import Optional

from minimint.errors import AuthorizationError, CryptoError, InputError, StateError, require
from minimint.logging import get_logger
from minimint.runtime import external
from minimint.runtime.hash import encode_packed, keccak256

from .access import AccessGate
from .collection import CollectionPolicy
from .ledger import TokenLedger
from .roles import CallerRegistry, Ownable

log = get_logger(__name__)

SEED_COMMIT_DOMAIN = b"minimint-seed-commit-v1"
MIN_SECRET_LEN = 16


def build_commitment(committer: bytes, secret: bytes) -> bytes:
    if not isinstance(secret, (bytes, bytearray)) or len(secret) < MIN_SECRET_LEN:
        raise InputError(f"secret must be at least {MIN_SECRET_LEN} bytes")
    return keccak256(SEED_COMMIT_DOMAIN + bytes(committer) + bytes(secret))


class RandomAllocator(CallerRegistry):
    NAME = "random_pool"

    def __init__(self, runtime, name: Optional[str] = None) -> None:
        super().__init__(runtime, name)
        self._overrides = self.table("overrides")

    @external
    def initialize(self, caller: bytes, max_supply: int) -> None:
        self._mark_initialized()
        require(max_supply >= 0, "max supply must be non-negative", error=InputError)
        self._init_owner(caller)
        self.set_slot("max_supply", int(max_supply))
        self.set_slot("remaining", int(max_supply))

    def random_max_supply(self) -> int:
        return self.slot("max_supply", 0)

    def remaining_tokens(self) -> int:
        return self.slot("remaining", 0)

    def _take(self, seed: int) -> int:
        remaining = self.remaining_tokens()
        if remaining == 0:
            raise StateError("no tokens remaining")
        require(seed >= 0, "seed must be non-negative", error=InputError)
        index = seed % remaining
        last = remaining - 1
        token_id = self._overrides.get(index, index)
        if index != last:
            self._overrides[index] = self._overrides.get(last, last)
        if last in self._overrides:
            del self._overrides[last]
        self.set_slot("remaining", last)
        return token_id

    @external
    def allocate(self, caller: bytes, seed: int) -> int:
        self._only_authorized_caller(caller)
        return self._take(int(seed))


class RandomMinter(Ownable):
    NAME = "random_minter"

    def __init__(
        self,
        runtime,
        allocator: RandomAllocator,
        ledger: TokenLedger,
        policy: CollectionPolicy,
        access: AccessGate,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(runtime, name)
        self.allocator = allocator
        self.ledger = ledger
        self.policy = policy
        self.access = access
        self._minters = self.table("minters")

    @external
    def initialize(self, caller: bytes) -> None:
        self._mark_initialized()
        self._init_owner(caller)
        self.set_slot("counter", 0)

    # ---- beacon ----

    def commitment(self) -> Optional[bytes]:
        return self.slot("commitment")

    def is_seed_revealed(self) -> bool:
        return self.slot("secret") is not None

    @external
    def commit_seed(self, caller: bytes, commitment: bytes) -> None:
        self._only_owner(caller)
        if not isinstance(commitment, (bytes, bytearray)) or len(commitment) != 32:
            raise InputError("malformed commitment")
        require(self.slot("commitment") is None or self.is_seed_revealed(), "commitment pending reveal")
        self.set_slot("commitment", bytes(commitment))
        self.set_slot("commit_height", self.runtime.block.height)
        if "secret" in self._slots:
            del self._slots["secret"]
        self.emit("SeedCommitted", commitment=bytes(commitment))

    @external
    def reveal_seed(self, caller: bytes, secret: bytes) -> None:
        self._only_owner(caller)
        commitment = self.slot("commitment")
        require(commitment is not None, "no seed committed")
        require(not self.is_seed_revealed(), "seed already revealed")
        require(self.runtime.block.height > self.slot("commit_height", 0), "reveal too early")
        if build_commitment(self.owner(), secret) != commitment:
            raise CryptoError("reveal does not match commitment")
        self.set_slot("secret", bytes(secret))
        self.emit("SeedRevealed", commitment=commitment)

    def _next_seed(self, to: bytes) -> int:
        secret = self.slot("secret")
        if secret is None:
            raise StateError("seed not revealed")
        counter = self.slot("counter", 0)
        self.set_slot("counter", counter + 1)
        digest = keccak256(
            encode_packed(
                ("bytes", secret),
                ("bytes32", self.runtime.tx.tx_hash),
                ("address", to),
                ("uint256", counter),
            )
        )
        return int.from_bytes(digest, "big")

    # ---- minting ----

    def is_random_minter(self, account: bytes) -> bool:
        account = self._address_arg(account)
        return account == self.owner() or self._minters.get(account, False)

    @external
    def set_random_minter(self, caller: bytes, account: bytes, enabled: bool) -> None:
        self._only_owner(caller)
        account = self._nonzero_address(account, "account")
        if enabled:
            self._minters[account] = True
        elif account in self._minters:
            del self._minters[account]
        self.emit("RandomMinterUpdated", account=account, enabled=bool(enabled))

    @external
    def random_mint(self, caller: bytes, to: bytes, uri: str = "") -> int:
        if not self.is_random_minter(caller):
            raise AuthorizationError("not authorized minter", {"caller": caller})
        to = self._nonzero_address(to, "to")
        self.access.require_not_paused()
        seed = self._next_seed(to)
        token_id = self.allocator.allocate(self.address, seed)
        self.ledger.mint_id(self.address, to, token_id, uri, creator=caller)
        self.policy.check_and_increment(self.address, 1)
        self.emit("RandomMinted", to=to, token_id=token_id)
        log.info("random_minted", to=to, token_id=token_id)
        return token_id


__all__ = ["RandomAllocator", "RandomMinter", "build_commitment", "SEED_COMMIT_DOMAIN"]
