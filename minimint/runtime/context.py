"""
minimint.runtime.context — BlockEnv/TxEnv and address helpers.

``BlockEnv`` is the clock every call sees: mint timestamps, permit deadlines
and the commit–reveal delay all read it. ``TxEnv`` is who is calling and what
they attached. Both are frozen; the runtime replaces them rather than mutating.

Addresses are 20 raw bytes everywhere inside the package. Hex text (with or
without ``0x``) is accepted at the edges through :func:`to_address`.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Union

ADDRESS_LEN = 20
ZERO_ADDRESS = bytes(ADDRESS_LEN)

BytesLike = Union[bytes, bytearray, memoryview, str]


class ContextError(Exception):
    """Bad environment field or address."""


def to_bytes(value: BytesLike) -> bytes:
    """Copy bytes-like input, or decode hex text (``0x`` optional, even length)."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if not isinstance(value, str):
        raise ContextError(f"expected bytes or hex str, got {type(value).__name__}")
    text = value.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    if len(text) % 2:
        raise ContextError(f"odd-length hex: {value!r}")
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise ContextError(f"not hex: {value!r}") from e


def to_hex(b: Union[bytes, bytearray, memoryview]) -> str:
    return "0x" + bytes(b).hex()


def to_address(value: BytesLike) -> bytes:
    raw = to_bytes(value)
    if len(raw) != ADDRESS_LEN:
        raise ContextError(f"address must be {ADDRESS_LEN} bytes, got {len(raw)}")
    return raw


def _uint(name: str, v: Any) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(v, bool) or not isinstance(v, int) or v < 0:
        raise ContextError(f"{name} must be a non-negative int, got {v!r}")
    return v


class _Env:
    """Checks every int field of a frozen dataclass on construction."""

    def __post_init__(self) -> None:
        for f in fields(self):  # type: ignore[arg-type]
            if f.type in ("int", int):
                _uint(f.name, getattr(self, f.name))


@dataclass(frozen=True)
class BlockEnv(_Env):
    height: int
    timestamp: int
    chain_id: int

    def advanced(self, *, seconds: int = 0, blocks: int = 1) -> "BlockEnv":
        return BlockEnv(
            height=self.height + _uint("blocks", blocks),
            timestamp=self.timestamp + _uint("seconds", seconds),
            chain_id=self.chain_id,
        )


@dataclass(frozen=True)
class TxEnv(_Env):
    """
    tx_hash is derived by the runtime from chain id, height, call nonce,
    sender and entry point, so two calls never share one.
    """

    tx_hash: bytes
    sender: bytes
    value: int
    nonce: int

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, "tx_hash", to_bytes(self.tx_hash))
        object.__setattr__(self, "sender", to_address(self.sender))


__all__ = [
    "ADDRESS_LEN",
    "ZERO_ADDRESS",
    "ContextError",
    "to_bytes",
    "to_hex",
    "to_address",
    "BlockEnv",
    "TxEnv",
]
