"""
minimint.claims.allowlist
=========================

Merkle-proven mint entry points.

- :class:`AllowlistClaim` — leaf ``keccak(address)``; each address claims one
  token, once. A second claim reverts "already claimed".
- :class:`AllowanceClaim` — leaf ``keccak(address || allowance)``; each
  address may claim repeatedly while its cumulative count stays within the
  proven allowance, otherwise "allowance exceeded".

Both reject an unset root, a disabled switch, a paused gate and a proof that
does not reduce to the stored root ("invalid proof"). Successful claims mint
through the ledger and count against the collection supply cap in the same
atomic call.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from minimint.contracts.access import AccessGate
from minimint.contracts.collection import CollectionPolicy
from minimint.contracts.ledger import TokenLedger
from minimint.contracts.roles import Ownable
from minimint.errors import CryptoError, InputError, StateError, require
from minimint.logging import get_logger
from minimint.runtime import external
from minimint.runtime.hash import UINT256_MAX

from .merkle import leaf_for, leaf_for_allowance, verify_proof

log = get_logger(__name__)

_ROOT_LEN = 32


class _MerkleGated(Ownable):
    DISABLED_REASON = "claiming disabled"

    def __init__(
        self,
        runtime,
        ledger: TokenLedger,
        policy: CollectionPolicy,
        access: AccessGate,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(runtime, name)
        self.ledger = ledger
        self.policy = policy
        self.access = access

    @external
    def initialize(self, caller: bytes, merkle_root: Optional[bytes] = None, enabled: bool = False) -> None:
        self._mark_initialized()
        self._init_owner(caller)
        if merkle_root is not None:
            self.set_slot("root", self._check_root(merkle_root))
        self.set_slot("enabled", bool(enabled))

    @staticmethod
    def _check_root(root: bytes) -> bytes:
        if not isinstance(root, (bytes, bytearray)) or len(root) != _ROOT_LEN:
            raise InputError("malformed merkle root")
        return bytes(root)

    def merkle_root(self) -> Optional[bytes]:
        return self.slot("root")

    def is_enabled(self) -> bool:
        return self.slot("enabled", False)

    @external
    def set_merkle_root(self, caller: bytes, root: bytes) -> None:
        self._only_owner(caller)
        root = self._check_root(root)
        self.set_slot("root", root)
        self.emit("MerkleRootUpdated", root=root)

    @external
    def set_enabled(self, caller: bytes, enabled: bool) -> None:
        self._only_owner(caller)
        self.set_slot("enabled", bool(enabled))
        self.emit("ClaimStatusChanged", enabled=bool(enabled))

    def _check_open(self) -> bytes:
        root = self.merkle_root()
        if root is None:
            raise StateError("merkle root not set")
        if not self.is_enabled():
            raise StateError(self.DISABLED_REASON)
        self.access.require_not_paused()
        return root

    @staticmethod
    def _check_proof_shape(proof: Sequence[bytes]) -> List[bytes]:
        out = []
        for node in proof:
            if not isinstance(node, (bytes, bytearray)) or len(node) != 32:
                raise InputError("malformed proof")
            out.append(bytes(node))
        return out

    def _verify(self, root: bytes, leaf: bytes, proof: Sequence[bytes], account: bytes) -> None:
        if not verify_proof(self._check_proof_shape(proof), root, leaf):
            raise CryptoError("invalid proof", {"account": account})


class AllowlistClaim(_MerkleGated):
    NAME = "allowlist"
    DISABLED_REASON = "allowlist mint disabled"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._claimed = self.table("claimed")

    def has_claimed(self, account: bytes) -> bool:
        return self._claimed.get(self._address_arg(account), False)

    @external
    def allowlist_mint(self, caller: bytes, proof: Sequence[bytes], uri: str = "") -> int:
        root = self._check_open()
        require(not self._claimed.get(caller, False), "already claimed", data={"account": caller})
        self._verify(root, leaf_for(caller), proof, caller)

        token_id = self.ledger.mint(self.address, caller, uri, creator=caller)
        self.policy.check_and_increment(self.address, 1)
        self._claimed[caller] = True
        self.emit("AllowlistClaimed", account=caller, token_id=token_id)
        log.info("allowlist_claimed", account=caller, token_id=token_id)
        return token_id


class AllowanceClaim(_MerkleGated):
    NAME = "allowance"
    DISABLED_REASON = "allowance mint disabled"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._claimed = self.table("claimed")

    def allowance_claimed(self, account: bytes) -> int:
        return self._claimed.get(self._address_arg(account), 0)

    @external
    def claim(self, caller: bytes, quantity: int, allowance: int, proof: Sequence[bytes]) -> List[int]:
        root = self._check_open()
        require(quantity >= 1, "quantity must be positive", error=InputError)
        limit = self.ledger.max_batch_size()
        require(quantity <= limit, f"max {limit} per batch", error=InputError)
        require(allowance >= 0, "allowance must be non-negative", error=InputError)
        require(allowance <= UINT256_MAX, "value out of range", error=InputError, data={"allowance": allowance})
        self._verify(root, leaf_for_allowance(caller, allowance), proof, caller)
        already = self._claimed.get(caller, 0)
        if already + quantity > allowance:
            raise StateError(
                "allowance exceeded",
                {"account": caller, "claimed": already, "quantity": quantity, "allowance": allowance},
            )

        ids = [self.ledger.mint(self.address, caller, "", creator=caller) for _ in range(quantity)]
        self.policy.check_and_increment(self.address, quantity)
        total = already + quantity
        self._claimed[caller] = total
        self.emit("AllowanceClaimed", account=caller, quantity=quantity, total=total)
        log.info("allowance_claimed", account=caller, quantity=quantity, total=total)
        return ids


__all__ = ["AllowlistClaim", "AllowanceClaim"]
