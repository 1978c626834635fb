"""
minimint — an access-controlled token-issuance ledger.

    from minimint.deploy import deploy_collection
    from minimint.runtime import Runtime

    rt = Runtime()
    col = deploy_collection(rt, owner)
    col.access.set_public_mint_open(owner, True)
    token_id = col.controller.mint(alice, "ipfs://token-0")
"""

from .version import __version__

__all__ = ["__version__"]
