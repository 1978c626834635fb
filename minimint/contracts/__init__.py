"""
minimint.contracts — the stateful components of a collection.

Leaf first: TokenLedger, AccessGate, CollectionPolicy, MetadataStore,
MintController, plus BridgeLock, StakingVault and the random-allocation pair.
"""

from __future__ import annotations

from .access import AccessGate
from .bridge import BridgeLock, BridgeRequest
from .collection import CollectionPolicy
from .controller import MintController
from .ledger import TokenLedger
from .metadata import MetadataStore
from .random_mint import RandomAllocator, RandomMinter
from .staking import StakingVault

__all__ = [
    "AccessGate",
    "BridgeLock",
    "BridgeRequest",
    "CollectionPolicy",
    "MintController",
    "TokenLedger",
    "MetadataStore",
    "RandomAllocator",
    "RandomMinter",
    "StakingVault",
]
