"""
minimint.signing — secp256k1 keys, recoverable signatures and addresses.

Vouchers and permits are signed off-line with secp256k1 keys, the same curve
Ethereum wallets use, so a signer's identity is its Ethereum-style address:
``keccak256(uncompressed_point[1:])[-20:]``.

Signatures are 65 bytes ``r || s || v`` over a 32-byte digest (Keccak-256 of
the EIP-191 personal-message envelope, computed by the caller). ``v`` is the
recovery id, written as 27/28; 0/1 are accepted on input. Components store the
signer's *address* and compare it with the address recovered from the
signature, the way a wallet-signed voucher is checked on chain.

Key objects come from `cryptography`; recovery uses libsecp256k1 through
`coincurve`, which `cryptography` does not expose.

Public API
----------
- generate_private_key() / derive_private_key(secret_int)
- public_key_bytes(key) -> 65-byte uncompressed point
- load_public_key(data) -> EllipticCurvePublicKey   (raises CryptoError)
- address_from_public_key(key_or_bytes) / address_of(private_key) -> 20 bytes
- sign_digest(private_key, digest) -> 65-byte recoverable signature
- recover_address(digest, signature) -> 20 bytes     (raises CryptoError)
- verify_digest(signer_address, digest, signature) -> bool
"""

from __future__ import annotations

from typing import Union

import coincurve
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from minimint.errors import CryptoError
from minimint.runtime.hash import keccak256

CURVE = ec.SECP256K1()
# group order n; signatures with s > n/2 are malleable duplicates
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SIGNATURE_LEN = 65

PublicKeyLike = Union[ec.EllipticCurvePublicKey, bytes, bytearray]


def generate_private_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(CURVE)


def derive_private_key(secret: int) -> ec.EllipticCurvePrivateKey:
    """Deterministic key from an integer scalar (test and devnet use)."""
    return ec.derive_private_key(secret, CURVE)


def public_key_bytes(key: Union[ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey]) -> bytes:
    if isinstance(key, ec.EllipticCurvePrivateKey):
        key = key.public_key()
    return key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)


def load_public_key(data: PublicKeyLike) -> ec.EllipticCurvePublicKey:
    if isinstance(data, ec.EllipticCurvePublicKey):
        return data
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(CURVE, bytes(data))
    except (ValueError, TypeError) as e:
        raise CryptoError("invalid public key", {"detail": str(e)}) from e


def _address_from_point(point: bytes) -> bytes:
    return keccak256(point[1:])[-20:]


def address_from_public_key(key: PublicKeyLike) -> bytes:
    return _address_from_point(public_key_bytes(load_public_key(key)))


def address_of(private_key: ec.EllipticCurvePrivateKey) -> bytes:
    return address_from_public_key(private_key.public_key())


def _check_digest(digest: bytes) -> bytes:
    if not isinstance(digest, (bytes, bytearray)) or len(digest) != 32:
        raise CryptoError("digest must be 32 bytes")
    return bytes(digest)


def sign_digest(private_key: ec.EllipticCurvePrivateKey, digest: bytes) -> bytes:
    """Recoverable signature ``r || s || v`` with ``v`` in {27, 28}."""
    scalar = private_key.private_numbers().private_value.to_bytes(32, "big")
    raw = coincurve.PrivateKey(scalar).sign_recoverable(_check_digest(digest), hasher=None)
    return raw[:64] + bytes([raw[64] + 27])


def recover_address(digest: bytes, signature: bytes) -> bytes:
    """
    Address whose key produced ``signature`` over ``digest``.

    Rejects anything but 65 bytes, ``v`` outside {0, 1, 27, 28} and high-s
    signatures.
    """
    digest = _check_digest(digest)
    sig = bytes(signature)
    if len(sig) != SIGNATURE_LEN:
        raise CryptoError("invalid signature", {"detail": f"expected {SIGNATURE_LEN} bytes, got {len(sig)}"})
    v = sig[64]
    if v >= 27:
        v -= 27
    if v not in (0, 1):
        raise CryptoError("invalid signature", {"detail": f"bad recovery id {sig[64]}"})
    s = int.from_bytes(sig[32:64], "big")
    if s > SECP256K1_N // 2:
        raise CryptoError("invalid signature", {"detail": "high s"})
    try:
        pub = coincurve.PublicKey.from_signature_and_message(sig[:64] + bytes([v]), digest, hasher=None)
    except ValueError as e:
        raise CryptoError("invalid signature", {"detail": str(e)}) from e
    return _address_from_point(pub.format(compressed=False))


def verify_digest(signer: bytes, digest: bytes, signature: bytes) -> bool:
    """True when ``signature`` over ``digest`` recovers to address ``signer``."""
    try:
        return recover_address(digest, signature) == bytes(signer)
    except CryptoError:
        return False


__all__ = [
    "CURVE",
    "SIGNATURE_LEN",
    "generate_private_key",
    "derive_private_key",
    "public_key_bytes",
    "load_public_key",
    "address_from_public_key",
    "address_of",
    "sign_digest",
    "recover_address",
    "verify_digest",
]
