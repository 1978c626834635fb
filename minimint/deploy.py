"""
minimint.deploy — build, link and reattach a collection.

``deploy_collection`` creates every component inside one atomic call and
wires the authorization graph:

- ledger minters:     controller, allowlist, allowance, vouchers, random minter
- access callers:     controller
- policy callers:     controller, allowlist, allowance, vouchers, random minter
- metadata callers:   controller
- allocator callers:  random minter
- ledger transfer guards: bridge, staking vault
- ledger reserved ids: [0, random_supply) held by the random minter

If any step fails nothing is left behind. ``attach_collection`` rebuilds the
component objects over a loaded :class:`StateDB` without writing anything.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from minimint.claims.allowlist import AllowanceClaim, AllowlistClaim
from minimint.claims.voucher import VoucherRedeemer
from minimint.config import Settings, get_settings
from minimint.contracts import (
    AccessGate,
    BridgeLock,
    CollectionPolicy,
    MetadataStore,
    MintController,
    RandomAllocator,
    RandomMinter,
    StakingVault,
    TokenLedger,
)
from minimint.logging import get_logger
from minimint.runtime import Runtime, to_address

log = get_logger(__name__)


@dataclass
class Collection:
    runtime: Runtime
    ledger: TokenLedger
    access: AccessGate
    policy: CollectionPolicy
    metadata: MetadataStore
    controller: MintController
    allowlist: AllowlistClaim
    allowance: AllowanceClaim
    vouchers: VoucherRedeemer
    bridge: BridgeLock
    staking: StakingVault
    allocator: RandomAllocator
    random_minter: RandomMinter

    @property
    def random_enabled(self) -> bool:
        return self.allocator.initialized

    def save(self, path) -> None:
        self.runtime.save(path)


def _build(runtime: Runtime) -> Collection:
    ledger = TokenLedger(runtime)
    access = AccessGate(runtime)
    policy = CollectionPolicy(runtime)
    metadata = MetadataStore(runtime, ledger)
    allocator = RandomAllocator(runtime)
    return Collection(
        runtime=runtime,
        ledger=ledger,
        access=access,
        policy=policy,
        metadata=metadata,
        controller=MintController(runtime, ledger, access, policy, metadata),
        allowlist=AllowlistClaim(runtime, ledger, policy, access),
        allowance=AllowanceClaim(runtime, ledger, policy, access),
        vouchers=VoucherRedeemer(runtime, ledger, policy, access),
        bridge=BridgeLock(runtime, ledger),
        staking=StakingVault(runtime, ledger),
        allocator=allocator,
        random_minter=RandomMinter(runtime, allocator, ledger, policy, access),
    )


def deploy_collection(
    runtime: Runtime,
    owner: Any,
    settings: Optional[Settings] = None,
    *,
    signer: Optional[bytes] = None,
    bridge_operator: Optional[bytes] = None,
    random_supply: int = 0,
) -> Collection:
    """
    Deploy and link a full collection owned by `owner`.

    ``random_supply > 0`` also initializes the random drop over ids
    ``[0, random_supply)`` and reserves that range in the ledger for the
    random minter; sequential mints start at ``random_supply``. ``signer``
    is the voucher signer's address.
    """
    s = settings or get_settings()
    owner = to_address(owner)
    col = _build(runtime)

    with runtime.call("deploy", "deploy_collection", owner):
        col.ledger.initialize(
            owner,
            name=s.collection_name,
            symbol=s.symbol,
            max_batch_size=s.max_batch_size,
            base_uri=s.base_uri,
        )
        col.access.initialize(owner, wallet_mint_limit=s.wallet_mint_limit, max_batch_size=s.max_batch_size)
        col.policy.initialize(
            owner,
            max_supply=s.max_supply,
            supply_ceiling=s.effective_ceiling,
            max_royalty_bps=s.max_royalty_bps,
        )
        col.controller.initialize(owner, mint_fee=s.mint_fee)
        col.metadata.initialize(owner)
        col.allowlist.initialize(owner)
        col.allowance.initialize(owner)
        col.vouchers.initialize(owner, signer=signer)
        col.bridge.initialize(owner, operator=bridge_operator)
        col.staking.initialize(owner, enabled=s.staking_enabled)
        col.random_minter.initialize(owner)
        if random_supply:
            col.allocator.initialize(owner, random_supply)
            col.ledger.reserve_ids(owner, random_supply, col.random_minter.address)
            col.allocator.authorize_caller(owner, col.random_minter.address)

        for peer in (col.controller, col.allowlist, col.allowance, col.vouchers, col.random_minter):
            col.ledger.authorize_minter(owner, peer.address)
            col.policy.authorize_caller(owner, peer.address)
        col.access.authorize_caller(owner, col.controller.address)
        col.metadata.authorize_caller(owner, col.controller.address)
        col.ledger.add_transfer_guard(owner, col.bridge)
        col.ledger.add_transfer_guard(owner, col.staking)

    log.info(
        "collection_deployed",
        owner=owner,
        name=s.collection_name,
        max_supply=s.max_supply,
        random_supply=random_supply,
    )
    return col


def attach_collection(runtime: Runtime) -> Collection:
    """Rebind component objects to state that was deployed earlier."""
    col = _build(runtime)
    if not col.ledger.initialized:
        raise ValueError("state holds no deployed collection")
    col.ledger.bind_transfer_guard(col.bridge)
    col.ledger.bind_transfer_guard(col.staking)
    return col


def load_collection(path) -> Collection:
    return attach_collection(Runtime.load(path))


__all__ = ["Collection", "deploy_collection", "attach_collection", "load_collection"]
