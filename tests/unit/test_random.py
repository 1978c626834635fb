# SPDX-License-Identifier: MIT
"""
Random drop: Fisher-Yates allocation and the commit-reveal seeded minter.
"""
from __future__ import annotations

import pytest

from minimint.contracts.random_mint import RandomAllocator, build_commitment
from minimint.errors import AuthorizationError, CryptoError, InputError, StateError
from minimint.runtime import Runtime

SECRET = b"sixteen-byte-secret!"


def _allocator(owner: bytes, size: int) -> RandomAllocator:
    alloc = RandomAllocator(Runtime())
    alloc.initialize(owner, size)
    alloc.authorize_caller(owner, owner)
    return alloc


# ---------- allocator ----------

def test_allocation_trace_is_deterministic(owner):
    alloc = _allocator(owner, 5)
    assert [alloc.allocate(owner, s) for s in (0, 0, 1, 1, 5)] == [0, 4, 1, 2, 3]
    assert alloc.remaining_tokens() == 0


def test_allocator_exhaustion(owner):
    alloc = _allocator(owner, 3)
    got = {alloc.allocate(owner, 7) for _ in range(3)}
    assert got == {0, 1, 2}
    with pytest.raises(StateError, match="no tokens remaining"):
        alloc.allocate(owner, 7)


def test_allocator_requires_authorized_caller(owner, alice):
    alloc = _allocator(owner, 3)
    with pytest.raises(AuthorizationError, match="not authorized caller"):
        alloc.allocate(alice, 1)
    assert alloc.remaining_tokens() == 3


# ---------- commit / reveal ----------

@pytest.fixture
def drop(deploy):
    return deploy(random_supply=5)


def _reveal(col, owner, runtime):
    col.random_minter.commit_seed(owner, build_commitment(owner, SECRET))
    runtime.advance(seconds=12)
    col.random_minter.reveal_seed(owner, SECRET)


def test_short_secret_rejected(owner):
    with pytest.raises(InputError):
        build_commitment(owner, b"short")


def test_mint_before_reveal_fails(drop, owner, alice):
    with pytest.raises(StateError, match="seed not revealed"):
        drop.random_minter.random_mint(owner, alice)
    drop.random_minter.commit_seed(owner, build_commitment(owner, SECRET))
    with pytest.raises(StateError, match="seed not revealed"):
        drop.random_minter.random_mint(owner, alice)


def test_reveal_rules(drop, owner, runtime):
    rm = drop.random_minter
    with pytest.raises(StateError, match="no seed committed"):
        rm.reveal_seed(owner, SECRET)
    rm.commit_seed(owner, build_commitment(owner, SECRET))
    with pytest.raises(StateError, match="commitment pending reveal"):
        rm.commit_seed(owner, build_commitment(owner, SECRET))
    with pytest.raises(StateError, match="reveal too early"):
        rm.reveal_seed(owner, SECRET)
    runtime.advance(blocks=1)
    with pytest.raises(CryptoError, match="reveal does not match commitment"):
        rm.reveal_seed(owner, b"a-different-secret!!")
    rm.reveal_seed(owner, SECRET)
    assert rm.is_seed_revealed()
    with pytest.raises(StateError, match="seed already revealed"):
        rm.reveal_seed(owner, SECRET)


def test_random_mint_covers_range(drop, owner, alice, runtime):
    _reveal(drop, owner, runtime)
    ids = [drop.random_minter.random_mint(owner, alice, f"ipfs://{i}") for i in range(5)]
    assert sorted(ids) == [0, 1, 2, 3, 4]
    assert drop.ledger.tokens_of_owner(alice) == [0, 1, 2, 3, 4]
    assert drop.policy.current_supply() == 5
    with pytest.raises(StateError, match="no tokens remaining"):
        drop.random_minter.random_mint(owner, alice)
    assert len(drop.runtime.events.filter("RandomMinted")) == 5


def test_random_minter_role(drop, owner, alice, bob, runtime):
    _reveal(drop, owner, runtime)
    with pytest.raises(AuthorizationError, match="not authorized minter"):
        drop.random_minter.random_mint(alice, bob)
    drop.random_minter.set_random_minter(owner, alice, True)
    token_id = drop.random_minter.random_mint(alice, bob)
    assert drop.ledger.owner_of(token_id) == bob
    assert drop.ledger.creator_of(token_id) == alice


def test_random_mint_respects_pause(drop, owner, alice, runtime):
    _reveal(drop, owner, runtime)
    drop.access.pause(owner)
    with pytest.raises(StateError, match="minting paused"):
        drop.random_minter.random_mint(owner, alice)
    assert drop.allocator.remaining_tokens() == 5


def test_sequential_mints_never_take_pool_ids(drop, owner, alice, bob, runtime):
    _reveal(drop, owner, runtime)
    drop.access.set_public_mint_open(owner, True)
    assert drop.ledger.reserved_count() == 5
    assert drop.ledger.reserve_holder() == drop.random_minter.address

    sequential, drawn = [], []
    for i in range(5):
        sequential.append(drop.controller.mint(bob, f"ipfs://seq/{i}"))
        drawn.append(drop.random_minter.random_mint(owner, alice))
    sequential.append(drop.controller.mint(bob, "ipfs://seq/5"))

    assert sequential == [5, 6, 7, 8, 9, 10]
    assert sorted(drawn) == [0, 1, 2, 3, 4]
    assert drop.allocator.remaining_tokens() == 0
    assert drop.policy.current_supply() == 11


def test_pool_ids_rejected_outside_random_minter(drop, owner, alice, runtime):
    _reveal(drop, owner, runtime)
    with pytest.raises(StateError, match="token id reserved"):
        drop.ledger.mint_id(owner, alice, 2, "")
    assert drop.allocator.remaining_tokens() == 5
    assert drop.random_minter.random_mint(owner, alice) in range(5)


def test_drop_not_configured(col, owner, alice, runtime):
    assert not col.random_enabled
    _reveal(col, owner, runtime)
    with pytest.raises(AuthorizationError):
        col.random_minter.random_mint(owner, alice)
