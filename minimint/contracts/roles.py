"""
minimint.contracts.roles
========================

Ownership and authorized-caller helpers shared by every component.

Design goals
------------
- **Single owner** per component, set at initialization; ownership can be
  handed over but never renounced to the zero address.
- **Authorized callers**: an explicit allowlist of peer component addresses
  (the controller, claim entry points) that may invoke privileged
  cross-component operations such as ``record_mint`` or ``check_and_increment``.
- **Idempotent grants**: authorizing an already-authorized caller or revoking
  a missing one changes nothing and emits nothing.

API surface
-----------
- `owner() -> bytes`
- `transfer_ownership(caller, new_owner)`
- `authorize_caller(caller, account)` / `revoke_caller(caller, account)`
- `is_authorized_caller(account) -> bool`

Events
------
- **OwnershipTransferred**    : {"previous_owner", "new_owner"}
- **AuthorizedCallerUpdated** : {"account", "authorized"}
"""

from __future__ import annotations

from minimint.errors import AuthorizationError
from minimint.runtime import ZERO_ADDRESS, Contract, external


class Ownable(Contract):
    def _init_owner(self, owner: bytes) -> None:
        owner = self._nonzero_address(owner, "owner")
        self.set_slot("owner", owner)
        self.emit("OwnershipTransferred", previous_owner=ZERO_ADDRESS, new_owner=owner)

    def owner(self) -> bytes:
        return self.slot("owner", ZERO_ADDRESS)

    def _only_owner(self, caller: bytes) -> None:
        if caller != self.owner():
            raise AuthorizationError("caller is not the owner", {"contract": self.name})

    @external
    def transfer_ownership(self, caller: bytes, new_owner: bytes) -> None:
        self._only_owner(caller)
        new_owner = self._nonzero_address(new_owner, "new_owner")
        previous = self.owner()
        self.set_slot("owner", new_owner)
        self.emit("OwnershipTransferred", previous_owner=previous, new_owner=new_owner)


class CallerRegistry(Ownable):
    """Ownable plus an allowlist of peer components."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._callers = self.table("callers")

    def is_authorized_caller(self, account: bytes) -> bool:
        return self._callers.get(self._address_arg(account), False)

    def _only_manager(self, caller: bytes) -> None:
        self._only_owner(caller)

    def _only_authorized_caller(self, caller: bytes) -> None:
        if not self._callers.get(caller, False):
            raise AuthorizationError("not authorized caller", {"contract": self.name})

    @external
    def authorize_caller(self, caller: bytes, account: bytes) -> None:
        self._only_manager(caller)
        account = self._nonzero_address(account, "account")
        if not self._callers.get(account, False):
            self._callers[account] = True
            self.emit("AuthorizedCallerUpdated", account=account, authorized=True)

    @external
    def revoke_caller(self, caller: bytes, account: bytes) -> None:
        self._only_manager(caller)
        account = self._address_arg(account, "account")
        if self._callers.get(account, False):
            del self._callers[account]
            self.emit("AuthorizedCallerUpdated", account=account, authorized=False)


__all__ = ["Ownable", "CallerRegistry"]
