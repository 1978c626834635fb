"""
minimint.contracts.access
=========================

AccessGate: admin set, authorized callers, whitelist, per-wallet mint
counters, the pause switch and the public-mint / whitelist-enabled flags.

Design goals
------------
- **Pure decision function**: :meth:`AccessGate.can_mint` never mutates and
  reports the first failing check as a reason string.
- **Sole writer** of ``minted_per_wallet``; only authorized callers (the
  controller and claim entry points) may call :meth:`record_mint`, and they
  call it only after the ledger mint in the same atomic call succeeded.
- **Admins**: the owner is always an admin and cannot be removed; admins may
  manage every flag, the whitelist and the authorized-caller list.

Decision order for ``can_mint(address, quantity)``
--------------------------------------------------
1. paused                                                   -> "minting paused"
2. not (public_mint_open or (whitelist_enabled and listed)) -> "not eligible"
3. minted + quantity > wallet_mint_limit (0 = unlimited)    -> "wallet limit exceeded"
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from minimint.errors import AuthorizationError, InputError, StateError, require
from minimint.runtime import external

from .roles import CallerRegistry

REASON_PAUSED = "minting paused"
REASON_NOT_ELIGIBLE = "not eligible"
REASON_WALLET_LIMIT = "wallet limit exceeded"

DEFAULT_MAX_BATCH = 50


@dataclass(frozen=True)
class AccessInfo:
    paused: bool
    public_mint_open: bool
    whitelist_enabled: bool
    wallet_mint_limit: int
    whitelist_count: int


class AccessGate(CallerRegistry):
    NAME = "access"

    def __init__(self, runtime, name: Optional[str] = None) -> None:
        super().__init__(runtime, name)
        self._admins = self.table("admins")
        self._whitelist = self.table("whitelist")
        self._minted = self.table("minted")

    @external
    def initialize(
        self,
        caller: bytes,
        wallet_mint_limit: int = 0,
        max_batch_size: int = DEFAULT_MAX_BATCH,
    ) -> None:
        self._mark_initialized()
        require(wallet_mint_limit >= 0, "wallet limit must be non-negative", error=InputError)
        self._init_owner(caller)
        self._admins[caller] = True
        self.set_slot("wallet_mint_limit", int(wallet_mint_limit))
        self.set_slot("max_batch", int(max_batch_size))
        self.set_slot("paused", False)
        self.set_slot("public_mint_open", False)
        self.set_slot("whitelist_enabled", False)
        self.set_slot("whitelist_count", 0)

    # ---- reads ----

    def is_admin(self, account: bytes) -> bool:
        account = self._address_arg(account)
        return account == self.owner() or self._admins.get(account, False)

    def is_whitelisted(self, account: bytes) -> bool:
        return self._whitelist.get(self._address_arg(account), False)

    def whitelist_count(self) -> int:
        return self.slot("whitelist_count", 0)

    def minted_per_wallet(self, account: bytes) -> int:
        return self._minted.get(self._address_arg(account), 0)

    def wallet_mint_limit(self) -> int:
        return self.slot("wallet_mint_limit", 0)

    def is_paused(self) -> bool:
        return self.slot("paused", False)

    def is_public_mint_open(self) -> bool:
        return self.slot("public_mint_open", False)

    def is_whitelist_enabled(self) -> bool:
        return self.slot("whitelist_enabled", False)

    def access_info(self) -> AccessInfo:
        return AccessInfo(
            paused=self.is_paused(),
            public_mint_open=self.is_public_mint_open(),
            whitelist_enabled=self.is_whitelist_enabled(),
            wallet_mint_limit=self.wallet_mint_limit(),
            whitelist_count=self.whitelist_count(),
        )

    def remaining_for_wallet(self, account: bytes) -> Optional[int]:
        """Mints left under the wallet limit, or None when unlimited."""
        limit = self.wallet_mint_limit()
        if limit == 0:
            return None
        return max(0, limit - self.minted_per_wallet(account))

    def can_mint(self, account: bytes, quantity: int = 1) -> Tuple[bool, str]:
        account = self._address_arg(account)
        if self.is_paused():
            return False, REASON_PAUSED
        listed = self.is_whitelist_enabled() and self._whitelist.get(account, False)
        if not (self.is_public_mint_open() or listed):
            return False, REASON_NOT_ELIGIBLE
        limit = self.wallet_mint_limit()
        if limit and self._minted.get(account, 0) + quantity > limit:
            return False, REASON_WALLET_LIMIT
        return True, ""

    def require_can_mint(self, account: bytes, quantity: int = 1) -> None:
        ok, reason = self.can_mint(account, quantity)
        if not ok:
            raise StateError(reason, {"account": account, "quantity": quantity})

    def require_not_paused(self) -> None:
        if self.is_paused():
            raise StateError(REASON_PAUSED)

    # ---- guards ----

    def _only_admin(self, caller: bytes) -> None:
        if not self.is_admin(caller):
            raise AuthorizationError("caller is not an admin", {"contract": self.name})

    def _only_manager(self, caller: bytes) -> None:
        self._only_admin(caller)

    # ---- authorized callers ----

    @external
    def record_mint(self, caller: bytes, account: bytes, quantity: int = 1) -> int:
        self._only_authorized_caller(caller)
        account = self._nonzero_address(account, "account")
        require(quantity >= 1, "quantity must be positive", error=InputError)
        total = self._minted.get(account, 0) + int(quantity)
        self._minted[account] = total
        self.emit("MintRecorded", account=account, quantity=quantity, total=total)
        return total

    # ---- whitelist ----

    def _whitelist_add(self, account: bytes) -> bool:
        if self._whitelist.get(account, False):
            return False
        self._whitelist[account] = True
        self.set_slot("whitelist_count", self.whitelist_count() + 1)
        self.emit("AddedToWhitelist", account=account)
        return True

    @external
    def add_to_whitelist(self, caller: bytes, account: bytes) -> None:
        self._only_admin(caller)
        account = self._nonzero_address(account, "account")
        require(self._whitelist_add(account), "already whitelisted")

    @external
    def batch_add_to_whitelist(self, caller: bytes, accounts: Sequence[bytes]) -> int:
        """Add every address not yet listed; returns how many were new."""
        self._only_admin(caller)
        accounts = self._address_list(accounts, "accounts")
        require(len(accounts) > 0, "empty address list", error=InputError)
        limit = self.slot("max_batch", DEFAULT_MAX_BATCH)
        require(len(accounts) <= limit, f"max {limit} per batch", error=InputError)
        return sum(1 for a in accounts if self._whitelist_add(a))

    @external
    def remove_from_whitelist(self, caller: bytes, account: bytes) -> None:
        self._only_admin(caller)
        account = self._address_arg(account, "account")
        require(self._whitelist.get(account, False), "not whitelisted")
        del self._whitelist[account]
        self.set_slot("whitelist_count", self.whitelist_count() - 1)
        self.emit("RemovedFromWhitelist", account=account)

    # ---- flags ----

    @external
    def set_public_mint_open(self, caller: bytes, open_: bool) -> None:
        self._only_admin(caller)
        self.set_slot("public_mint_open", bool(open_))
        self.emit("PublicMintStatusChanged", open=bool(open_))

    @external
    def set_whitelist_enabled(self, caller: bytes, enabled: bool) -> None:
        self._only_admin(caller)
        self.set_slot("whitelist_enabled", bool(enabled))
        self.emit("WhitelistStatusChanged", enabled=bool(enabled))

    @external
    def set_wallet_mint_limit(self, caller: bytes, limit: int) -> None:
        self._only_admin(caller)
        require(limit >= 0, "wallet limit must be non-negative", error=InputError)
        self.set_slot("wallet_mint_limit", int(limit))
        self.emit("WalletMintLimitUpdated", limit=limit)

    @external
    def pause(self, caller: bytes) -> None:
        self._only_admin(caller)
        require(not self.is_paused(), "already paused")
        self.set_slot("paused", True)
        self.emit("Paused", account=caller)

    @external
    def unpause(self, caller: bytes) -> None:
        self._only_admin(caller)
        require(self.is_paused(), "not paused")
        self.set_slot("paused", False)
        self.emit("Unpaused", account=caller)

    # ---- admins ----

    @external
    def set_admin(self, caller: bytes, account: bytes, enabled: bool) -> None:
        self._only_admin(caller)
        account = self._nonzero_address(account, "account")
        if enabled:
            self._admins[account] = True
        else:
            require(account != self.owner(), "cannot remove owner")
            if account in self._admins:
                del self._admins[account]
        self.emit("AdminUpdated", account=account, enabled=bool(enabled))


__all__ = [
    "AccessGate",
    "AccessInfo",
    "REASON_PAUSED",
    "REASON_NOT_ELIGIBLE",
    "REASON_WALLET_LIMIT",
]
