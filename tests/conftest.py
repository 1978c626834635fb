# SPDX-License-Identifier: MIT
"""
Shared pytest fixtures:
- Deterministic environment (hash seed, timezone, no stray MINIMINT_* vars)
- Deterministic 20-byte addresses derived from tags (owner, alice, bob, ...)
- A fresh Runtime per test and a fully deployed Collection on top of it
- A voucher signer key derived from a fixed scalar
"""
from __future__ import annotations

import hashlib
import os
from typing import Callable

import pytest

from minimint.config import Settings, get_settings
from minimint.deploy import Collection, deploy_collection
from minimint.runtime import Runtime
from minimint.signing import address_of, derive_private_key

os.environ.setdefault("PYTHONHASHSEED", "0")
os.environ.setdefault("TZ", "UTC")


def _det_address(tag: str) -> bytes:
    return hashlib.sha3_256(tag.encode()).digest()[:20]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):
    for key in list(os.environ):
        if key.startswith("MINIMINT_"):
            monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ---------- ACCOUNTS ----------

@pytest.fixture
def owner() -> bytes:
    return _det_address("owner")


@pytest.fixture
def alice() -> bytes:
    return _det_address("alice")


@pytest.fixture
def bob() -> bytes:
    return _det_address("bob")


@pytest.fixture
def carol() -> bytes:
    return _det_address("carol")


@pytest.fixture
def operator() -> bytes:
    return _det_address("bridge-operator")


@pytest.fixture
def signer_key():
    return derive_private_key(0x5EED_CAFE)


# ---------- RUNTIME / DEPLOYMENT ----------

@pytest.fixture
def settings() -> Settings:
    return Settings(
        collection_name="Test Collection",
        symbol="TST",
        max_supply=100,
        max_batch_size=50,
        base_uri="ipfs://base/",
    )


@pytest.fixture
def runtime() -> Runtime:
    return Runtime(chain_id=1337, timestamp=1_700_000_000)


@pytest.fixture
def deploy(runtime, owner, signer_key, operator) -> Callable[..., Collection]:
    """Factory: deploy a collection with overridable settings."""

    def _deploy(random_supply: int = 0, with_signer: bool = True, **overrides) -> Collection:
        base = dict(
            collection_name="Test Collection",
            symbol="TST",
            max_supply=100,
            max_batch_size=50,
            base_uri="ipfs://base/",
        )
        base.update(overrides)
        return deploy_collection(
            runtime,
            owner,
            Settings(**base),
            signer=address_of(signer_key) if with_signer else None,
            bridge_operator=operator,
            random_supply=random_supply,
        )

    return _deploy


@pytest.fixture
def col(deploy) -> Collection:
    return deploy()


@pytest.fixture
def open_mint(col, owner) -> Collection:
    """Deployed collection with public minting open."""
    col.access.set_public_mint_open(owner, True)
    return col
