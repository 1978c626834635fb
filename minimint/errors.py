"""
minimint.errors — structured failure taxonomy for ledger calls.

Every check that can abort a call raises a subclass of :class:`MintError`.
The runtime treats any exception escaping a call as a revert: the journal
checkpoint opened for the call is discarded and the error propagates to the
caller unchanged.

Categories
----------
- AuthorizationError: caller lacks the minter/admin/operator/authorized-caller role.
- StateError:         paused, ineligible, wallet limit, supply exhausted, frozen,
                      already claimed/used, chain unsupported, token locked...
- InputError:         null address, empty/oversized arrays, length mismatch,
                      malformed proof or unknown identifiers.
- PaymentError:       attached value does not match the required price.
- CryptoError:        signature or Merkle proof does not verify.

Every error carries a stable lowercase ``reason`` string (what a UI renders),
a machine ``code`` of the form ``CATEGORY:REASON`` and optional ``data``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type


@dataclass(eq=False)
class MintError(Exception):
    """Base class for every revert raised by minimint components."""

    reason: str
    data: Dict[str, Any] = field(default_factory=dict)

    category = "error"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.reason)

    @property
    def code(self) -> str:
        slug = "_".join(self.reason.upper().split())
        return f"{self.category.upper()}:{slug}"

    def __str__(self) -> str:
        return self.reason

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "code": self.code,
            "reason": self.reason,
            "data": dict(self.data),
        }


class AuthorizationError(MintError):
    category = "authorization"


class StateError(MintError):
    category = "state"


class InputError(MintError):
    category = "input"


class PaymentError(MintError):
    category = "payment"


class CryptoError(MintError):
    category = "crypto"


def require(
    condition: Any,
    reason: str,
    *,
    error: Type[MintError] = StateError,
    data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Raise ``error(reason)`` unless ``condition`` is truthy.

        require(owner == caller, "not token owner", error=AuthorizationError)
    """
    if not condition:
        raise error(reason, dict(data or {}))


__all__ = [
    "MintError",
    "AuthorizationError",
    "StateError",
    "InputError",
    "PaymentError",
    "CryptoError",
    "require",
]
