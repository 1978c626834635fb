"""
minimint.snapshot — holder snapshots and collection stats from read accessors.

Everything here goes through public reads only (``owner_of``, ``token_uri``,
``get_attribute``, ``total_supply`` ...), so a snapshot can be taken from a
loaded state file without write access.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List

from minimint.runtime import to_hex

from .deploy import Collection


@dataclass(frozen=True)
class CollectionStats:
    total_supply: int
    max_supply: int
    remaining_supply: int
    unique_owners: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def collection_stats(col: Collection) -> CollectionStats:
    owners = {col.ledger.owner_of(t) for t in col.ledger.all_token_ids()}
    return CollectionStats(
        total_supply=col.ledger.total_supply(),
        max_supply=col.policy.max_supply(),
        remaining_supply=col.policy.remaining_supply(),
        unique_owners=len(owners),
    )


def take_snapshot(col: Collection) -> Dict[str, Any]:
    """
    Token and holder listing:

        {"name", "symbol", "total_supply", "block_height", "timestamp",
         "tokens": [{"token_id", "owner", "uri", "attributes"}],
         "holders": {owner_hex: [token_id, ...]}}
    """
    ledger = col.ledger
    tokens: List[Dict[str, Any]] = []
    holders: Dict[str, List[int]] = {}
    for token_id in ledger.all_token_ids():
        owner = to_hex(ledger.owner_of(token_id))
        tokens.append(
            {
                "token_id": token_id,
                "owner": owner,
                "uri": ledger.token_uri(token_id),
                "attributes": col.metadata.get_attributes(token_id),
            }
        )
        holders.setdefault(owner, []).append(token_id)
    return {
        "name": ledger.collection_name(),
        "symbol": ledger.symbol(),
        "total_supply": ledger.total_supply(),
        "block_height": col.runtime.block.height,
        "timestamp": col.runtime.block.timestamp,
        "tokens": tokens,
        "holders": dict(sorted(holders.items())),
    }


__all__ = ["CollectionStats", "collection_stats", "take_snapshot"]
