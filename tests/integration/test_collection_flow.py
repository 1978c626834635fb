# SPDX-License-Identifier: MIT
"""
End-to-end collection lifecycle on one runtime:

  deploy -> whitelist phase -> allowlist claims -> public sale with wallet
  limit -> voucher sale -> random drop -> airdrop -> bridge -> save/reload

Checks the cross-component invariants at every step: ledger supply equals
policy supply, wallet counters never exceed the limit, failed calls leave no
trace in state or in the event log.
"""
from __future__ import annotations

import pytest

from minimint.claims.merkle import MerkleTree, leaf_for
from minimint.claims.voucher import sign_voucher
from minimint.contracts.random_mint import build_commitment
from minimint.deploy import load_collection
from minimint.errors import AuthorizationError, MintError, StateError
from minimint.snapshot import collection_stats, take_snapshot

pytestmark = pytest.mark.integration


def _check_invariants(col, *wallets):
    assert col.ledger.total_supply() == col.policy.current_supply() <= col.policy.max_supply()
    limit = col.access.wallet_mint_limit()
    if limit:
        for w in wallets:
            assert col.access.minted_per_wallet(w) <= limit


def _expect_revert(col, exc_type, fn, *args, **kwargs):
    events_before = len(col.runtime.events)
    supply_before = col.ledger.total_supply()
    with pytest.raises(exc_type):
        fn(*args, **kwargs)
    assert len(col.runtime.events) == events_before
    assert col.ledger.total_supply() == supply_before


def test_full_drop(deploy, owner, alice, bob, carol, operator, signer_key, runtime, tmp_path):
    col = deploy(random_supply=4, max_supply=30, wallet_mint_limit=3)

    # Random drop owns ids 0..3; sequential mints start after them.
    secret = b"integration-secret-0001"
    col.random_minter.commit_seed(owner, build_commitment(owner, secret))
    runtime.advance(seconds=12)
    col.random_minter.reveal_seed(owner, secret)
    drop_ids = [col.random_minter.random_mint(owner, carol) for _ in range(4)]
    assert sorted(drop_ids) == [0, 1, 2, 3]
    _check_invariants(col)

    # Whitelist phase.
    col.access.batch_add_to_whitelist(owner, [alice, bob])
    col.access.set_whitelist_enabled(owner, True)
    _expect_revert(col, StateError, col.controller.mint, carol, "nope")
    first = col.controller.mint(alice, "ipfs://wl/alice")
    assert first == 4
    _check_invariants(col, alice)

    # Allowlist claim, counted against supply but not the wallet limit.
    tree = MerkleTree([leaf_for(a) for a in (alice, carol)])
    col.allowlist.set_merkle_root(owner, tree.root)
    col.allowlist.set_enabled(owner, True)
    col.allowlist.allowlist_mint(carol, tree.proof(1))
    _expect_revert(col, MintError, col.allowlist.allowlist_mint, bob, tree.proof(0))

    # Public sale with a wallet limit of 3.
    col.access.set_whitelist_enabled(owner, False)
    col.access.set_public_mint_open(owner, True)
    col.controller.batch_mint(alice, ["a", "b"])
    _expect_revert(col, StateError, col.controller.mint, alice, "over")
    col.controller.mint_to(bob, carol, "gift")
    _check_invariants(col, alice, bob)

    # Voucher sale for an explicit id above the sequential range.
    v = sign_voucher(signer_key, 25, "ipfs://v/25", 10, carol)
    col.vouchers.redeem(bob, v, value=10)
    _expect_revert(col, StateError, col.vouchers.redeem, alice, v, value=10)

    # Airdrop by an admin, paused sale blocks everyone.
    col.controller.airdrop(owner, [alice, bob], ["drop1", "drop2"])
    col.access.pause(owner)
    _expect_revert(col, StateError, col.controller.mint, bob, "paused")
    _expect_revert(col, StateError, col.controller.airdrop, owner, [bob], ["x"])
    col.access.unpause(owner)
    _check_invariants(col, alice, bob, carol)

    # Bridge one of carol's drop tokens.
    col.bridge.set_supported_chain(owner, 137, True)
    token = drop_ids[0]
    request_id = col.bridge.create_bridge_request(carol, token, 137)
    _expect_revert(col, StateError, col.ledger.transfer, carol, carol, alice, token)
    _expect_revert(col, AuthorizationError, col.bridge.process_bridge_request, alice, request_id, True)
    col.bridge.process_bridge_request(operator, request_id, True)

    stats = collection_stats(col)
    assert stats.total_supply == col.ledger.total_supply() == 12
    assert stats.remaining_supply == 30 - 12

    # Persist, reload, and keep going.
    path = tmp_path / "drop.cbor"
    col.save(path)
    again = load_collection(path)
    assert take_snapshot(again) == take_snapshot(col)
    assert again.ledger.is_token_locked(token)
    assert again.vouchers.is_voucher_used(v.digest)
    assert again.controller.mint(carol, "after-reload") not in drop_ids
    _check_invariants(again, alice, bob, carol)
