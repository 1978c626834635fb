"""
minimint.runtime — the in-process execution environment.

Re-exports the pieces components and tests use most:

    from minimint.runtime import Runtime, Contract, external, to_address
"""

from __future__ import annotations

from .context import ZERO_ADDRESS, BlockEnv, ContextError, TxEnv, to_address, to_bytes, to_hex
from .contract import Contract, contract_address
from .events import Event, EventLog
from .executor import Runtime, external
from .hash import encode_packed, keccak256
from .journal import JournalError, StateDB, Table

__all__ = [
    "ZERO_ADDRESS",
    "BlockEnv",
    "TxEnv",
    "ContextError",
    "to_address",
    "to_bytes",
    "to_hex",
    "Contract",
    "contract_address",
    "Event",
    "EventLog",
    "Runtime",
    "external",
    "encode_packed",
    "keccak256",
    "JournalError",
    "StateDB",
    "Table",
]
