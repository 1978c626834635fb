"""
minimint.contracts.staking
==========================

StakingVault: holders flag a token as staked to start a staking clock. The
token never leaves its owner, but the vault is one of the ledger's transfer
guards, so a staked token cannot move ("token is staked") or be bridged until
it is unstaked.

- set_staking_enabled(caller, enabled)     owner only; unstaking always works
- stake(caller, token_id)                  token owner only
- unstake(caller, token_id)                the staker only
- is_staked / staked_at / staking_duration reads

Events: StakingToggled {"enabled"}, TokenStaked / TokenUnstaked
{"token_id", "owner", ["duration"]}.
"""

from __future__ import annotations

from typing import Optional

from minimint.errors import AuthorizationError, StateError, require
from minimint.logging import get_logger
from minimint.runtime import external

from .ledger import TokenLedger
from .roles import Ownable

log = get_logger(__name__)


class StakingVault(Ownable):
    NAME = "staking"
    LOCK_REASON = "token is staked"

    def __init__(self, runtime, ledger: TokenLedger, name: Optional[str] = None) -> None:
        super().__init__(runtime, name)
        self.ledger = ledger
        self._stakes = self.table("stakes")

    @external
    def initialize(self, caller: bytes, enabled: bool = False) -> None:
        self._mark_initialized()
        self._init_owner(caller)
        self.set_slot("enabled", bool(enabled))

    # ---- reads ----

    def staking_enabled(self) -> bool:
        return self.slot("enabled", False)

    def is_staked(self, token_id: int) -> bool:
        return token_id in self._stakes

    def is_token_locked(self, token_id: int) -> bool:
        return self.is_staked(token_id)

    def staked_at(self, token_id: int) -> int:
        row = self._stakes.get(token_id)
        return 0 if row is None else row[1]

    def staking_duration(self, token_id: int) -> int:
        row = self._stakes.get(token_id)
        return 0 if row is None else self.now - row[1]

    # ---- mutations ----

    @external
    def set_staking_enabled(self, caller: bytes, enabled: bool) -> None:
        self._only_owner(caller)
        self.set_slot("enabled", bool(enabled))
        self.emit("StakingToggled", enabled=bool(enabled))

    @external
    def stake(self, caller: bytes, token_id: int) -> None:
        require(self.staking_enabled(), "staking disabled")
        if self.ledger.owner_of(token_id) != caller:
            raise AuthorizationError("not owner", {"token_id": token_id})
        require(not self.is_staked(token_id), "token already staked", data={"token_id": token_id})
        require(not self.ledger.is_token_locked(token_id), "token locked", data={"token_id": token_id})
        self._stakes[token_id] = (caller, self.now)
        self.emit("TokenStaked", token_id=token_id, owner=caller)
        log.info("token_staked", token_id=token_id, owner=caller)

    @external
    def unstake(self, caller: bytes, token_id: int) -> int:
        """Release ``token_id`` and return how long it was staked, in seconds."""
        row = self._stakes.get(token_id)
        if row is None:
            raise StateError("token not staked", {"token_id": token_id})
        if row[0] != caller:
            raise AuthorizationError("not owner", {"token_id": token_id})
        duration = self.now - row[1]
        del self._stakes[token_id]
        self.emit("TokenUnstaked", token_id=token_id, owner=caller, duration=duration)
        log.info("token_unstaked", token_id=token_id, owner=caller, duration=duration)
        return duration


__all__ = ["StakingVault"]
