# SPDX-License-Identifier: MIT
"""
AccessGate: eligibility decisions, whitelist management, flags and admins.
"""
from __future__ import annotations

import pytest

from minimint.errors import AuthorizationError, InputError, StateError


def test_initial_flags(col, owner):
    info = col.access.access_info()
    assert not info.paused
    assert not info.public_mint_open
    assert not info.whitelist_enabled
    assert info.wallet_mint_limit == 0
    assert info.whitelist_count == 0
    assert col.access.is_admin(owner)


def test_closed_mint_is_not_eligible(col, alice):
    assert col.access.can_mint(alice, 1) == (False, "not eligible")
    with pytest.raises(StateError, match="not eligible"):
        col.access.require_can_mint(alice, 1)


def test_public_mint_open(col, owner, alice):
    col.access.set_public_mint_open(owner, True)
    assert col.access.can_mint(alice, 5) == (True, "")
    assert col.runtime.events.last("PublicMintStatusChanged")["open"] is True


def test_pause_takes_precedence(col, owner, alice):
    col.access.set_public_mint_open(owner, True)
    col.access.pause(owner)
    assert col.access.can_mint(alice, 1) == (False, "minting paused")
    with pytest.raises(StateError, match="already paused"):
        col.access.pause(owner)
    col.access.unpause(owner)
    assert col.access.can_mint(alice, 1) == (True, "")
    with pytest.raises(StateError, match="not paused"):
        col.access.unpause(owner)


def test_whitelist_only_counts_when_enabled(col, owner, alice, bob):
    col.access.add_to_whitelist(owner, alice)
    assert col.access.can_mint(alice, 1) == (False, "not eligible")
    col.access.set_whitelist_enabled(owner, True)
    assert col.access.can_mint(alice, 1) == (True, "")
    assert col.access.can_mint(bob, 1) == (False, "not eligible")


def test_wallet_limit(col, owner, alice):
    col.access.set_public_mint_open(owner, True)
    col.access.set_wallet_mint_limit(owner, 2)
    assert col.access.can_mint(alice, 2) == (True, "")
    assert col.access.can_mint(alice, 3) == (False, "wallet limit exceeded")
    assert col.access.remaining_for_wallet(alice) == 2
    col.access.set_wallet_mint_limit(owner, 0)
    assert col.access.remaining_for_wallet(alice) is None
    assert col.access.can_mint(alice, 1000) == (True, "")


def test_whitelist_add_remove(col, owner, alice, bob, carol):
    access = col.access
    access.add_to_whitelist(owner, alice)
    with pytest.raises(StateError, match="already whitelisted"):
        access.add_to_whitelist(owner, alice)
    assert access.batch_add_to_whitelist(owner, [alice, bob, carol, bob]) == 2
    assert access.whitelist_count() == 3
    access.remove_from_whitelist(owner, bob)
    assert not access.is_whitelisted(bob)
    assert access.whitelist_count() == 2
    with pytest.raises(StateError, match="not whitelisted"):
        access.remove_from_whitelist(owner, bob)
    names = col.runtime.events.names()
    assert names.count("AddedToWhitelist") == 3
    assert names.count("RemovedFromWhitelist") == 1


def test_batch_whitelist_bounds(col, owner):
    with pytest.raises(InputError, match="empty address list"):
        col.access.batch_add_to_whitelist(owner, [])
    many = [bytes([1, i // 256, i % 256]) + b"\x00" * 17 for i in range(51)]
    with pytest.raises(InputError, match="max 50 per batch"):
        col.access.batch_add_to_whitelist(owner, many)
    assert col.access.whitelist_count() == 0


def test_non_admin_cannot_manage(col, alice, bob):
    access = col.access
    for call in (
        lambda: access.pause(alice),
        lambda: access.set_public_mint_open(alice, True),
        lambda: access.set_whitelist_enabled(alice, True),
        lambda: access.set_wallet_mint_limit(alice, 1),
        lambda: access.add_to_whitelist(alice, bob),
        lambda: access.set_admin(alice, bob, True),
        lambda: access.authorize_caller(alice, bob),
    ):
        with pytest.raises(AuthorizationError, match="caller is not an admin"):
            call()


def test_admins(col, owner, alice):
    access = col.access
    access.set_admin(owner, alice, True)
    access.pause(alice)
    assert access.is_paused()
    with pytest.raises(StateError, match="cannot remove owner"):
        access.set_admin(alice, owner, False)
    access.set_admin(owner, alice, False)
    assert not access.is_admin(alice)


def test_record_mint_requires_authorized_caller(col, owner, alice):
    with pytest.raises(AuthorizationError, match="not authorized caller"):
        col.access.record_mint(owner, alice, 1)
    assert col.access.is_authorized_caller(col.controller.address)
