"""
minimint.contracts.metadata
===========================

MetadataStore: per-token attribute key/value pairs, the collection-level
contract URI and one-way freeze flags.

- Writers are the owner and authorized callers (the controller writes the
  attribute of ``mint_with_attribute``).
- Freezing is permanent: ``freeze_metadata`` blocks every attribute write and
  the contract URI; ``freeze_token_metadata`` blocks one token. Freezing an
  already frozen scope is rejected.
- Attribute keys keep insertion order per token; removing a key drops it from
  the order and reads return "".
"""

from __future__ import annotations

from typing import Dict, List, Optional

from minimint.errors import AuthorizationError, InputError, StateError, require
from minimint.runtime import external

from .ledger import TokenLedger
from .roles import CallerRegistry

MAX_KEY_LEN = 64
MAX_VALUE_LEN = 1024


class MetadataStore(CallerRegistry):
    NAME = "metadata"

    def __init__(self, runtime, ledger: TokenLedger, name: Optional[str] = None) -> None:
        super().__init__(runtime, name)
        self.ledger = ledger
        self._attrs = self.table("attributes")
        self._keys = self.table("keys")
        self._frozen_tokens = self.table("frozen_tokens")

    @external
    def initialize(self, caller: bytes, contract_uri: str = "") -> None:
        self._mark_initialized()
        self._init_owner(caller)
        self.set_slot("frozen", False)
        if contract_uri:
            self.set_slot("contract_uri", contract_uri)

    # ---- reads ----

    def get_attribute(self, token_id: int, key: str) -> str:
        return self._attrs.get((token_id, key), "")

    def get_attribute_keys(self, token_id: int) -> List[str]:
        return list(self._keys.get(token_id, ()))

    def get_attributes(self, token_id: int) -> Dict[str, str]:
        return {k: self.get_attribute(token_id, k) for k in self.get_attribute_keys(token_id)}

    def is_frozen(self) -> bool:
        return self.slot("frozen", False)

    def is_token_frozen(self, token_id: int) -> bool:
        return self.is_frozen() or self._frozen_tokens.get(token_id, False)

    def contract_uri(self) -> str:
        return self.slot("contract_uri", "")

    # ---- guards ----

    def _only_writer(self, caller: bytes) -> None:
        if caller != self.owner() and not self._callers.get(caller, False):
            raise AuthorizationError("not metadata editor", {"contract": self.name})

    def _check_writable(self, token_id: int) -> None:
        if self.is_frozen() or self._frozen_tokens.get(token_id, False):
            raise StateError("metadata frozen", {"token_id": token_id})
        if not self.ledger.exists(token_id):
            raise StateError("token does not exist", {"token_id": token_id})

    @staticmethod
    def _check_key(key: str) -> None:
        require(isinstance(key, str) and key != "", "empty attribute key", error=InputError)
        require(len(key) <= MAX_KEY_LEN, "attribute key too long", error=InputError)

    # ---- attributes ----

    @external
    def set_attribute(self, caller: bytes, token_id: int, key: str, value: str) -> None:
        self._only_writer(caller)
        self._check_key(key)
        require(len(value) <= MAX_VALUE_LEN, "attribute value too long", error=InputError)
        self._check_writable(token_id)
        keys = self._keys.get(token_id, ())
        if key not in keys:
            self._keys[token_id] = keys + (key,)
        self._attrs[(token_id, key)] = value
        self.emit("AttributeSet", token_id=token_id, key=key, value=value)

    @external
    def remove_attribute(self, caller: bytes, token_id: int, key: str) -> None:
        self._only_writer(caller)
        self._check_key(key)
        self._check_writable(token_id)
        keys = self._keys.get(token_id, ())
        require(key in keys, "attribute not set", data={"token_id": token_id, "key": key})
        remaining = tuple(k for k in keys if k != key)
        if remaining:
            self._keys[token_id] = remaining
        else:
            del self._keys[token_id]
        del self._attrs[(token_id, key)]
        self.emit("AttributeRemoved", token_id=token_id, key=key)

    @external
    def set_contract_uri(self, caller: bytes, uri: str) -> None:
        self._only_owner(caller)
        require(not self.is_frozen(), "metadata frozen")
        self.set_slot("contract_uri", uri)
        self.emit("ContractURIUpdated", uri=uri)

    # ---- freezing ----

    @external
    def freeze_metadata(self, caller: bytes) -> None:
        self._only_owner(caller)
        require(not self.is_frozen(), "already frozen")
        self.set_slot("frozen", True)
        self.emit("MetadataFrozen")

    @external
    def freeze_token_metadata(self, caller: bytes, token_id: int) -> None:
        self._only_owner(caller)
        require(self.ledger.exists(token_id), "token does not exist", data={"token_id": token_id})
        require(not self.is_token_frozen(token_id), "already frozen", data={"token_id": token_id})
        self._frozen_tokens[token_id] = True
        self.emit("TokenMetadataFrozen", token_id=token_id)


__all__ = ["MetadataStore"]
