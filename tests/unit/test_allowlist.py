# SPDX-License-Identifier: MIT
"""
Merkle-gated claims:
- AllowlistClaim: one token per listed address
- AllowanceClaim: up to a per-address allowance, claimable in parts
"""
from __future__ import annotations

import pytest

from minimint.claims.merkle import MerkleTree, leaf_for, leaf_for_allowance
from minimint.errors import AuthorizationError, CryptoError, InputError, StateError


@pytest.fixture
def allowlist_tree(alice, bob, carol):
    return MerkleTree([leaf_for(a) for a in (alice, bob, carol)])


@pytest.fixture
def live_allowlist(col, owner, allowlist_tree):
    col.allowlist.set_merkle_root(owner, allowlist_tree.root)
    col.allowlist.set_enabled(owner, True)
    return col


# ---------- single claim ----------

def test_listed_address_claims_once(live_allowlist, allowlist_tree, alice):
    col = live_allowlist
    token_id = col.allowlist.allowlist_mint(alice, allowlist_tree.proof(0), "ipfs://wl")
    assert col.ledger.owner_of(token_id) == alice
    assert col.ledger.token_uri(token_id) == "ipfs://wl"
    assert col.allowlist.has_claimed(alice)
    assert col.policy.current_supply() == 1
    ev = col.runtime.events.last("AllowlistClaimed")
    assert ev["account"] == alice and ev["token_id"] == token_id

    with pytest.raises(StateError, match="already claimed"):
        col.allowlist.allowlist_mint(alice, allowlist_tree.proof(0))
    assert col.ledger.total_supply() == 1


def test_proof_is_bound_to_caller(live_allowlist, allowlist_tree, bob):
    with pytest.raises(CryptoError, match="invalid proof"):
        live_allowlist.allowlist.allowlist_mint(bob, allowlist_tree.proof(0))
    assert not live_allowlist.allowlist.has_claimed(bob)


def test_unlisted_address_rejected(live_allowlist, allowlist_tree):
    stranger = b"\x77" * 20
    with pytest.raises(CryptoError, match="invalid proof"):
        live_allowlist.allowlist.allowlist_mint(stranger, allowlist_tree.proof(1))


def test_claim_gates(col, owner, allowlist_tree, alice):
    with pytest.raises(StateError, match="merkle root not set"):
        col.allowlist.allowlist_mint(alice, allowlist_tree.proof(0))
    col.allowlist.set_merkle_root(owner, allowlist_tree.root)
    with pytest.raises(StateError, match="allowlist mint disabled"):
        col.allowlist.allowlist_mint(alice, allowlist_tree.proof(0))
    col.allowlist.set_enabled(owner, True)
    col.access.pause(owner)
    with pytest.raises(StateError, match="minting paused"):
        col.allowlist.allowlist_mint(alice, allowlist_tree.proof(0))


def test_malformed_input(live_allowlist, owner, alice):
    with pytest.raises(InputError, match="malformed proof"):
        live_allowlist.allowlist.allowlist_mint(alice, [b"\x01" * 31])
    with pytest.raises(InputError, match="malformed merkle root"):
        live_allowlist.allowlist.set_merkle_root(owner, b"\x00" * 31)


def test_root_management_is_owner_only(col, alice, allowlist_tree):
    with pytest.raises(AuthorizationError):
        col.allowlist.set_merkle_root(alice, allowlist_tree.root)
    with pytest.raises(AuthorizationError):
        col.allowlist.set_enabled(alice, True)


def test_allowlist_claim_respects_supply(deploy, owner, allowlist_tree, alice, bob):
    col = deploy(max_supply=1)
    col.allowlist.set_merkle_root(owner, allowlist_tree.root)
    col.allowlist.set_enabled(owner, True)
    col.allowlist.allowlist_mint(alice, allowlist_tree.proof(0))
    with pytest.raises(StateError, match="exceeds max supply"):
        col.allowlist.allowlist_mint(bob, allowlist_tree.proof(1))
    assert not col.allowlist.has_claimed(bob)
    assert col.ledger.total_supply() == 1


# ---------- allowance ----------

@pytest.fixture
def allowance_tree(alice, bob):
    return MerkleTree([leaf_for_allowance(alice, 2), leaf_for_allowance(bob, 5)])


@pytest.fixture
def live_allowance(col, owner, allowance_tree):
    col.allowance.set_merkle_root(owner, allowance_tree.root)
    col.allowance.set_enabled(owner, True)
    return col


def test_allowance_claimed_in_parts(live_allowance, allowance_tree, alice):
    col = live_allowance
    proof = allowance_tree.proof(0)
    assert col.allowance.claim(alice, 1, 2, proof) == [0]
    assert col.allowance.allowance_claimed(alice) == 1
    assert col.allowance.claim(alice, 1, 2, proof) == [1]
    with pytest.raises(StateError, match="allowance exceeded"):
        col.allowance.claim(alice, 1, 2, proof)
    assert col.ledger.tokens_of_owner(alice) == [0, 1]
    ev = col.runtime.events.last("AllowanceClaimed")
    assert (ev["quantity"], ev["total"]) == (1, 2)


def test_allowance_in_one_claim(live_allowance, allowance_tree, bob):
    col = live_allowance
    with pytest.raises(StateError, match="allowance exceeded"):
        col.allowance.claim(bob, 6, 5, allowance_tree.proof(1))
    assert col.allowance.claim(bob, 5, 5, allowance_tree.proof(1)) == [0, 1, 2, 3, 4]
    assert col.policy.current_supply() == 5


def test_allowance_proof_binds_address_and_amount(live_allowance, allowance_tree, alice, bob):
    col = live_allowance
    with pytest.raises(CryptoError, match="invalid proof"):
        col.allowance.claim(bob, 1, 2, allowance_tree.proof(0))
    with pytest.raises(CryptoError, match="invalid proof"):
        col.allowance.claim(alice, 1, 5, allowance_tree.proof(0))


def test_allowance_gates(col, owner, allowance_tree, alice):
    with pytest.raises(StateError, match="merkle root not set"):
        col.allowance.claim(alice, 1, 2, allowance_tree.proof(0))
    col.allowance.set_merkle_root(owner, allowance_tree.root)
    with pytest.raises(StateError, match="allowance mint disabled"):
        col.allowance.claim(alice, 1, 2, allowance_tree.proof(0))
    col.allowance.set_enabled(owner, True)
    with pytest.raises(InputError, match="quantity must be positive"):
        col.allowance.claim(alice, 0, 2, allowance_tree.proof(0))


def test_allowance_above_uint256_rejected(live_allowance, allowance_tree, alice):
    col = live_allowance
    with pytest.raises(InputError, match="value out of range"):
        col.allowance.claim(alice, 1, 2**256, allowance_tree.proof(0))
    assert col.allowance.allowance_claimed(alice) == 0
