# SPDX-License-Identifier: MIT
"""
StakingVault: opt-in staking that pins a token to its owner.
"""
from __future__ import annotations

import pytest

from minimint.deploy import load_collection
from minimint.errors import AuthorizationError, StateError

POLYGON = 137


@pytest.fixture
def staked(deploy, owner, alice):
    col = deploy(staking_enabled=True)
    col.ledger.mint(owner, alice, "ipfs://0")
    return col


def test_stake_and_duration(staked, alice, runtime):
    col = staked
    col.staking.stake(alice, 0)
    assert col.staking.is_staked(0)
    assert col.staking.staked_at(0) == runtime.timestamp
    assert col.ledger.is_token_locked(0)
    runtime.advance(seconds=90)
    assert col.staking.staking_duration(0) == 90
    assert col.runtime.events.last("TokenStaked")["owner"] == alice


def test_only_owner_stakes(staked, owner):
    with pytest.raises(AuthorizationError, match="not owner"):
        staked.staking.stake(owner, 0)
    assert not staked.staking.is_staked(0)


def test_staking_disabled(deploy, owner, alice):
    col = deploy()
    col.ledger.mint(owner, alice, "x")
    assert not col.staking.staking_enabled()
    with pytest.raises(StateError, match="staking disabled"):
        col.staking.stake(alice, 0)
    with pytest.raises(AuthorizationError):
        col.staking.set_staking_enabled(alice, True)
    col.staking.set_staking_enabled(owner, True)
    col.staking.stake(alice, 0)
    assert col.staking.is_staked(0)


def test_staked_token_cannot_move(staked, alice, bob):
    col = staked
    col.staking.stake(alice, 0)
    with pytest.raises(StateError, match="token is staked"):
        col.ledger.transfer(alice, alice, bob, 0)
    with pytest.raises(StateError, match="token is staked"):
        col.ledger.batch_transfer(alice, alice, bob, [0])
    with pytest.raises(StateError, match="token already staked"):
        col.staking.stake(alice, 0)


def test_unstake_releases_token(staked, alice, bob, runtime):
    col = staked
    col.staking.stake(alice, 0)
    runtime.advance(seconds=30)
    with pytest.raises(AuthorizationError, match="not owner"):
        col.staking.unstake(bob, 0)
    assert col.staking.unstake(alice, 0) == 30
    ev = col.runtime.events.last("TokenUnstaked")
    assert (ev["token_id"], ev["owner"], ev["duration"]) == (0, alice, 30)
    assert not col.staking.is_staked(0)
    assert col.staking.staking_duration(0) == 0
    col.ledger.transfer(alice, alice, bob, 0)
    assert col.ledger.owner_of(0) == bob
    with pytest.raises(StateError, match="token not staked"):
        col.staking.unstake(bob, 0)


def test_unstake_allowed_after_staking_closes(staked, owner, alice):
    col = staked
    col.staking.stake(alice, 0)
    col.staking.set_staking_enabled(owner, False)
    col.staking.unstake(alice, 0)
    assert not col.staking.is_staked(0)


def test_staking_and_bridging_exclude_each_other(staked, owner, alice):
    col = staked
    col.bridge.set_supported_chain(owner, POLYGON, True)
    col.staking.stake(alice, 0)
    with pytest.raises(StateError, match="token already locked"):
        col.bridge.create_bridge_request(alice, 0, POLYGON)

    col.staking.unstake(alice, 0)
    col.bridge.create_bridge_request(alice, 0, POLYGON)
    with pytest.raises(StateError, match="token locked"):
        col.staking.stake(alice, 0)
    assert not col.staking.is_staked(0)


def test_stake_survives_reload(staked, alice, bob, tmp_path):
    staked.staking.stake(alice, 0)
    path = tmp_path / "state.cbor"
    staked.save(path)
    again = load_collection(path)
    assert again.staking.is_staked(0)
    with pytest.raises(StateError, match="token is staked"):
        again.ledger.transfer(alice, alice, bob, 0)
