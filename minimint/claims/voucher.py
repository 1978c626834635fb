"""
minimint.claims.voucher
=======================

Signature vouchers ("lazy minting"): a trusted signer authorizes a specific
mint off-line and anyone holding the voucher may redeem it once by paying
exactly its price.

Voucher digest
--------------
    digest  = keccak256(uint256 token_id || string uri || uint256 price || address creator)
    message = EIP-191 personal-message hash of digest

The signer signs ``message`` with a secp256k1 key, producing a 65-byte
recoverable signature. The redeemer stores only the trusted signer's address
(:meth:`VoucherRedeemer.voucher_signer`) and compares it with the address
recovered from each voucher.

Redemption checks, in order
---------------------------
1. signature recovers to the trusted signer   else CryptoError  "invalid voucher"
2. digest not in the used set                  else StateError   "voucher already used"
3. attached value == price                      else PaymentError "incorrect payment"

Then: mint ``token_id`` with ``uri`` to the caller, count it against the
supply cap, mark the digest used, accrue the payment as proceeds and emit
``VoucherRedeemed(token_id, buyer, creator)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from cryptography.hazmat.primitives.asymmetric import ec

from minimint.contracts.access import AccessGate
from minimint.contracts.collection import CollectionPolicy
from minimint.contracts.ledger import TokenLedger
from minimint.contracts.roles import Ownable
from minimint.errors import CryptoError, InputError, PaymentError, require
from minimint.logging import get_logger
from minimint.runtime import ZERO_ADDRESS, external, to_address, to_bytes, to_hex
from minimint.runtime.hash import UINT256_MAX, eip191_hash, encode_packed, keccak256
from minimint.signing import sign_digest, verify_digest

log = get_logger(__name__)


# ---- voucher model ----


@dataclass(frozen=True)
class Voucher:
    token_id: int
    uri: str
    price: int
    creator: bytes
    signature: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "creator", to_address(self.creator))
        object.__setattr__(self, "signature", to_bytes(self.signature))
        if self.token_id < 0 or self.price < 0:
            raise InputError("voucher fields must be non-negative")
        if self.token_id > UINT256_MAX or self.price > UINT256_MAX:
            raise InputError("value out of range", {"token_id": self.token_id, "price": self.price})

    @property
    def digest(self) -> bytes:
        return voucher_digest(self.token_id, self.uri, self.price, self.creator)

    @property
    def message_hash(self) -> bytes:
        return eip191_hash(self.digest)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token_id": self.token_id,
            "uri": self.uri,
            "price": self.price,
            "creator": to_hex(self.creator),
            "signature": to_hex(self.signature),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Voucher":
        return cls(
            token_id=int(d["token_id"]),
            uri=str(d.get("uri", "")),
            price=int(d.get("price", 0)),
            creator=to_address(d["creator"]),
            signature=to_bytes(d.get("signature", b"")),
        )


def voucher_digest(token_id: int, uri: str, price: int, creator: bytes) -> bytes:
    return keccak256(
        encode_packed(
            ("uint256", token_id),
            ("string", uri),
            ("uint256", price),
            ("address", creator),
        )
    )


def sign_voucher(
    private_key: ec.EllipticCurvePrivateKey,
    token_id: int,
    uri: str,
    price: int,
    creator: bytes,
) -> Voucher:
    """Off-line helper: build and sign a voucher."""
    unsigned = Voucher(token_id=token_id, uri=uri, price=price, creator=creator)
    return Voucher(
        token_id=token_id,
        uri=uri,
        price=price,
        creator=unsigned.creator,
        signature=sign_digest(private_key, unsigned.message_hash),
    )


# ---- redeemer ----


class VoucherRedeemer(Ownable):
    NAME = "vouchers"

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
        self._used = self.table("used")

    @external
    def initialize(self, caller: bytes, signer: Optional[bytes] = None) -> None:
        self._mark_initialized()
        self._init_owner(caller)
        self.set_slot("proceeds", 0)
        if signer is not None:
            self.set_slot("signer", self._nonzero_address(signer, "signer"))

    # ---- reads ----

    def voucher_signer(self) -> bytes:
        return self.slot("signer", ZERO_ADDRESS)

    def verify_voucher(self, voucher: Voucher) -> bool:
        signer = self.slot("signer")
        if signer is None or not voucher.signature:
            return False
        return verify_digest(signer, voucher.message_hash, voucher.signature)

    def is_voucher_used(self, digest: bytes) -> bool:
        return self._used.get(bytes(digest), False)

    def proceeds(self) -> int:
        return self.slot("proceeds", 0)

    # ---- mutations ----

    @external
    def set_voucher_signer(self, caller: bytes, signer: bytes) -> None:
        self._only_owner(caller)
        signer = self._nonzero_address(signer, "signer")
        self.set_slot("signer", signer)
        self.emit("VoucherSignerUpdated", signer=signer)

    @external(payable=True)
    def redeem(self, caller: bytes, voucher: Voucher, *, value: int = 0) -> int:
        require(self.slot("signer") is not None, "voucher signer not set")
        self.access.require_not_paused()
        if not self.verify_voucher(voucher):
            raise CryptoError("invalid voucher", {"token_id": voucher.token_id})
        digest = voucher.digest
        require(not self._used.get(digest, False), "voucher already used", data={"digest": digest})
        if value != voucher.price:
            raise PaymentError("incorrect payment", {"expected": voucher.price, "value": value})

        token_id = self.ledger.mint_id(self.address, caller, voucher.token_id, voucher.uri, creator=voucher.creator)
        self.policy.check_and_increment(self.address, 1)
        self._used[digest] = True
        self.set_slot("proceeds", self.proceeds() + value)
        self.emit("VoucherRedeemed", token_id=token_id, buyer=caller, creator=voucher.creator)
        log.info("voucher_redeemed", token_id=token_id, buyer=caller, price=voucher.price)
        return token_id

    @external
    def withdraw_proceeds(self, caller: bytes, to: bytes) -> int:
        self._only_owner(caller)
        to = self._nonzero_address(to, "to")
        amount = self.proceeds()
        require(amount > 0, "nothing to withdraw")
        self.set_slot("proceeds", 0)
        self.emit("ProceedsWithdrawn", to=to, amount=amount)
        return amount


__all__ = ["Voucher", "voucher_digest", "sign_voucher", "VoucherRedeemer"]
