"""
minimint.claims — Merkle allowlists and signature vouchers.

The pure verification helpers live in :mod:`minimint.claims.merkle` and
:func:`minimint.claims.voucher.voucher_digest`; the stateful entry points
(:class:`AllowlistClaim`, :class:`AllowanceClaim`, :class:`VoucherRedeemer`)
consume claims and mint through the ledger.
"""

from __future__ import annotations

from .allowlist import AllowanceClaim, AllowlistClaim
from .merkle import MerkleTree, leaf_for, leaf_for_allowance, verify_proof
from .voucher import Voucher, VoucherRedeemer, sign_voucher, voucher_digest

__all__ = [
    "AllowanceClaim",
    "AllowlistClaim",
    "MerkleTree",
    "leaf_for",
    "leaf_for_allowance",
    "verify_proof",
    "Voucher",
    "VoucherRedeemer",
    "sign_voucher",
    "voucher_digest",
]
