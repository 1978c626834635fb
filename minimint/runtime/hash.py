"""
minimint.runtime.hash — Keccak-256 and tight ("packed") ABI encoding.

Goals
-----
- Strictly bytes-in, bytes-out.
- Byte-compatible with the Ethereum tooling that produces allowlists and
  vouchers off-line: Merkle leaves, voucher digests and EIP-191 message hashes
  computed here equal the ones produced by ``solidityPackedKeccak256`` and
  ``signMessage`` on the client side.

Provided APIs
-------------
- keccak256(data) -> bytes32, keccak256_hex(data) -> str
- pack_address / pack_uint256 / pack_string / pack_bytes32
- encode_packed(*(kind, value)) -> bytes
- eip191_hash(message) -> bytes32   ("\\x19Ethereum Signed Message:\\n" || len || message)
"""

from __future__ import annotations

from typing import Any, Tuple

from Crypto.Hash import keccak

from .context import ADDRESS_LEN

UINT256_MAX = (1 << 256) - 1
_EIP191_PREFIX = b"\x19Ethereum Signed Message:\n"


def _ensure_bytes(buf: object, name: str) -> bytes:
    if isinstance(buf, (bytes, bytearray, memoryview)):
        return bytes(buf)
    raise TypeError(f"{name} must be bytes-like (got {type(buf).__name__})")


# ------------------------------ Keccak --------------------------------------- #

def keccak256(data: bytes | bytearray | memoryview) -> bytes:
    h = keccak.new(digest_bits=256)
    h.update(_ensure_bytes(data, "data"))
    return h.digest()


def keccak256_hex(data: bytes | bytearray | memoryview) -> str:
    return "0x" + keccak256(data).hex()


# ------------------------------ Packed encoding ------------------------------ #

def pack_address(addr: bytes) -> bytes:
    b = _ensure_bytes(addr, "address")
    if len(b) != ADDRESS_LEN:
        raise ValueError(f"address must be {ADDRESS_LEN} bytes")
    return b


def pack_uint256(n: int) -> bytes:
    if isinstance(n, bool) or not isinstance(n, int):
        raise TypeError("uint256 must be int")
    if n < 0 or n > UINT256_MAX:
        raise ValueError("uint256 out of range")
    return n.to_bytes(32, "big")


def pack_string(s: str) -> bytes:
    return s.encode("utf-8")


def pack_bytes32(b: bytes) -> bytes:
    b = _ensure_bytes(b, "bytes32")
    if len(b) != 32:
        raise ValueError("bytes32 must be 32 bytes")
    return b


_PACKERS = {
    "address": pack_address,
    "uint256": pack_uint256,
    "string": pack_string,
    "bytes32": pack_bytes32,
    "bytes": lambda b: _ensure_bytes(b, "bytes"),
}


def encode_packed(*fields: Tuple[str, Any]) -> bytes:
    """
    Tight encoding of ``(kind, value)`` pairs, no padding or length prefixes:

        encode_packed(("address", alice), ("uint256", 2))
    """
    out = bytearray()
    for kind, value in fields:
        try:
            packer = _PACKERS[kind]
        except KeyError:
            raise ValueError(f"unsupported packed type: {kind!r}") from None
        out += packer(value)
    return bytes(out)


def eip191_hash(message: bytes) -> bytes:
    """Personal-message hash used by wallet ``signMessage``."""
    message = _ensure_bytes(message, "message")
    return keccak256(_EIP191_PREFIX + str(len(message)).encode("ascii") + message)


__all__ = [
    "UINT256_MAX",
    "keccak256",
    "keccak256_hex",
    "pack_address",
    "pack_uint256",
    "pack_string",
    "pack_bytes32",
    "encode_packed",
    "eip191_hash",
]
