"""
minimint.contracts.collection
=============================

CollectionPolicy: the supply cap and the royalty table.

Invariants
----------
- ``current_supply <= max_supply <= supply_ceiling`` at all times.
- ``max_supply`` may be lowered to any value not below ``current_supply``; it
  may be raised only up to the ceiling fixed at initialization (by default the
  initial cap, which makes the cap non-raisable).
- Royalty basis points are in ``[0, max_royalty_bps]`` with the cap itself
  never above 1000 (10%).

Royalty lookup (``royalty_info``) prefers the per-token override and falls
back to the default; with nothing configured it returns the zero address and
a zero amount.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from minimint.config import ROYALTY_HARD_CAP_BPS
from minimint.errors import InputError, StateError, require
from minimint.runtime import ZERO_ADDRESS, external

from .roles import CallerRegistry

BPS_DENOMINATOR = 10_000


@dataclass(frozen=True)
class SupplyInfo:
    max_supply: int
    current_supply: int
    remaining_supply: int
    supply_ceiling: int


class CollectionPolicy(CallerRegistry):
    NAME = "collection"

    def __init__(self, runtime, name: Optional[str] = None) -> None:
        super().__init__(runtime, name)
        self._token_royalty = self.table("token_royalty")

    @external
    def initialize(
        self,
        caller: bytes,
        max_supply: int,
        supply_ceiling: Optional[int] = None,
        max_royalty_bps: int = ROYALTY_HARD_CAP_BPS,
    ) -> None:
        self._mark_initialized()
        require(max_supply >= 0, "max supply must be non-negative", error=InputError)
        ceiling = max_supply if supply_ceiling is None else supply_ceiling
        require(ceiling >= max_supply, "ceiling below max supply", error=InputError)
        require(
            0 <= max_royalty_bps <= ROYALTY_HARD_CAP_BPS,
            "royalty cap out of range",
            error=InputError,
        )
        self._init_owner(caller)
        self.set_slot("max_supply", int(max_supply))
        self.set_slot("current_supply", 0)
        self.set_slot("ceiling", int(ceiling))
        self.set_slot("max_royalty_bps", int(max_royalty_bps))

    # ---- supply ----

    def max_supply(self) -> int:
        return self.slot("max_supply", 0)

    def current_supply(self) -> int:
        return self.slot("current_supply", 0)

    def supply_ceiling(self) -> int:
        return self.slot("ceiling", 0)

    def remaining_supply(self) -> int:
        return self.max_supply() - self.current_supply()

    def supply_info(self) -> SupplyInfo:
        return SupplyInfo(
            max_supply=self.max_supply(),
            current_supply=self.current_supply(),
            remaining_supply=self.remaining_supply(),
            supply_ceiling=self.supply_ceiling(),
        )

    @external
    def check_and_increment(self, caller: bytes, quantity: int = 1) -> int:
        self._only_authorized_caller(caller)
        require(quantity >= 1, "quantity must be positive", error=InputError)
        current = self.current_supply()
        if current + quantity > self.max_supply():
            raise StateError(
                "exceeds max supply",
                {"current": current, "quantity": quantity, "max": self.max_supply()},
            )
        self.set_slot("current_supply", current + quantity)
        return current + quantity

    @external
    def set_max_supply(self, caller: bytes, new_max: int) -> None:
        self._only_owner(caller)
        require(new_max >= 0, "max supply must be non-negative", error=InputError)
        if new_max < self.current_supply():
            raise StateError("new max below current supply", {"new_max": new_max, "current": self.current_supply()})
        if new_max > self.supply_ceiling():
            raise StateError("cannot raise max supply above ceiling", {"new_max": new_max, "ceiling": self.supply_ceiling()})
        old = self.max_supply()
        self.set_slot("max_supply", int(new_max))
        self.emit("MaxSupplyUpdated", old_max=old, new_max=new_max)

    # ---- royalties ----

    def _check_royalty(self, receiver: bytes, bps: int) -> bytes:
        receiver = self._nonzero_address(receiver, "receiver")
        require(bps >= 0, "royalty must be non-negative", error=InputError)
        cap = self.slot("max_royalty_bps", ROYALTY_HARD_CAP_BPS)
        require(bps <= cap, "royalty too high", error=InputError, data={"bps": bps, "max": cap})
        return receiver

    def default_royalty(self) -> Tuple[bytes, int]:
        return self.slot("default_royalty", (ZERO_ADDRESS, 0))

    def royalty_info(self, token_id: int, sale_price: int) -> Tuple[bytes, int]:
        require(sale_price >= 0, "sale price must be non-negative", error=InputError)
        receiver, bps = self._token_royalty.get(token_id) or self.default_royalty()
        return receiver, sale_price * bps // BPS_DENOMINATOR

    @external
    def set_default_royalty(self, caller: bytes, receiver: bytes, bps: int) -> None:
        self._only_owner(caller)
        receiver = self._check_royalty(receiver, bps)
        self.set_slot("default_royalty", (receiver, int(bps)))
        self.emit("DefaultRoyaltySet", receiver=receiver, bps=bps)

    @external
    def set_token_royalty(self, caller: bytes, token_id: int, receiver: bytes, bps: int) -> None:
        self._only_owner(caller)
        receiver = self._check_royalty(receiver, bps)
        self._token_royalty[token_id] = (receiver, int(bps))
        self.emit("TokenRoyaltySet", token_id=token_id, receiver=receiver, bps=bps)

    @external
    def reset_token_royalty(self, caller: bytes, token_id: int) -> None:
        self._only_owner(caller)
        require(token_id in self._token_royalty, "no token royalty set")
        del self._token_royalty[token_id]
        self.emit("TokenRoyaltyReset", token_id=token_id)


__all__ = ["CollectionPolicy", "SupplyInfo", "BPS_DENOMINATOR"]
