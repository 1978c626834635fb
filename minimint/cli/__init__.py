"""
minimint.cli
------------
Command-line entrypoints for a collection state file:

- init     : deploy a fresh collection and save its state
- stats    : print supply / holder statistics as JSON
- snapshot : print (or write) the holder snapshot as JSON
- merkle   : build an allowlist root and per-address proofs

Usage:
  python -m minimint.cli init state.cbor --owner 0x...
  minimint stats state.cbor
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from minimint.claims.merkle import MerkleTree, leaf_for, leaf_for_allowance
from minimint.config import get_settings
from minimint.deploy import deploy_collection, load_collection
from minimint.logging import setup_logging
from minimint.runtime import ContextError, Runtime, to_address, to_hex
from minimint.runtime.hash import UINT256_MAX
from minimint.snapshot import collection_stats, take_snapshot
from minimint.version import __version__

__all__ = ["build_app", "main", "__version__"]


def _echo_json(obj: Any) -> None:
    typer.echo(json.dumps(obj, indent=2, sort_keys=False))


def _parse_address(value: str, what: str) -> bytes:
    try:
        return to_address(value)
    except ContextError as e:
        raise typer.BadParameter(f"{what}: {e}") from e


def _load(state: Optional[Path]):
    path = state or get_settings().state_path
    if not path.exists():
        raise typer.BadParameter(f"state file not found: {path}")
    return load_collection(path)


def build_merkle_document(entries: Any) -> Dict[str, Any]:
    """
    ``entries`` is either a list of addresses (single-claim allowlist) or a
    mapping ``address -> allowance`` (allowance allowlist).
    """
    if isinstance(entries, dict):
        items = [(_parse_address(a, "address"), int(n)) for a, n in entries.items()]
        if any(not 0 <= n <= UINT256_MAX for _, n in items):
            raise typer.BadParameter("allowance out of range")
        if not items:
            raise typer.BadParameter("allowlist is empty")
        leaves = [leaf_for_allowance(a, n) for a, n in items]
        tree = MerkleTree(leaves)
        proofs = {
            to_hex(a): {"allowance": n, "proof": [to_hex(p) for p in tree.proof(i)]}
            for i, (a, n) in enumerate(items)
        }
        kind = "allowance"
    elif isinstance(entries, list):
        addrs = [_parse_address(a, "address") for a in entries]
        if not addrs:
            raise typer.BadParameter("allowlist is empty")
        tree = MerkleTree([leaf_for(a) for a in addrs])
        proofs = {to_hex(a): {"proof": [to_hex(p) for p in tree.proof(i)]} for i, a in enumerate(addrs)}
        kind = "allowlist"
    else:
        raise typer.BadParameter("allowlist must be a JSON list or object")
    return {"kind": kind, "root": to_hex(tree.root), "leaves": len(tree.leaves), "proofs": proofs}


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"minimint {__version__}")
        raise typer.Exit(0)


def build_app() -> typer.Typer:
    app = typer.Typer(
        name="minimint",
        help="Collection tools: deploy, inspect and snapshot minimint state files",
        no_args_is_help=True,
        add_completion=False,
    )

    @app.callback()
    def _meta(
        version: bool = typer.Option(
            False, "--version", "-V", help="Print version and exit", is_eager=True, callback=_print_version
        ),
    ) -> None:
        s = get_settings()
        setup_logging(level=s.log_level, log_format=s.log_format)

    @app.command("init")
    def init_cmd(
        state: Optional[Path] = typer.Argument(None, help="State file to create (default: MINIMINT_STATE_PATH)"),
        owner: str = typer.Option(..., "--owner", help="Owner address (hex)"),
        max_supply: Optional[int] = typer.Option(None, "--max-supply", min=0),
        random_supply: int = typer.Option(0, "--random-supply", min=0),
        signer: Optional[str] = typer.Option(None, "--signer", help="Voucher signer address (hex)"),
        mint_fee: Optional[int] = typer.Option(None, "--mint-fee", min=0, help="Controller price per token"),
        bridge_operator: Optional[str] = typer.Option(None, "--bridge-operator"),
        force: bool = typer.Option(False, "--force", help="Overwrite an existing state file"),
    ) -> None:
        """Deploy a fresh collection and save its state."""
        s = get_settings()
        state = state or s.state_path
        if state.exists() and not force:
            typer.echo(f"refusing to overwrite {state} (use --force)", err=True)
            raise typer.Exit(1)
        if max_supply is not None:
            ceiling = s.supply_ceiling if s.supply_ceiling is not None and s.supply_ceiling >= max_supply else None
            s = s.model_copy(update={"max_supply": max_supply, "supply_ceiling": ceiling})
        if mint_fee is not None:
            s = s.model_copy(update={"mint_fee": mint_fee})
        runtime = Runtime(chain_id=s.chain_id, timestamp=s.genesis_timestamp)
        col = deploy_collection(
            runtime,
            _parse_address(owner, "--owner"),
            s,
            signer=_parse_address(signer, "--signer") if signer else None,
            bridge_operator=_parse_address(bridge_operator, "--bridge-operator") if bridge_operator else None,
            random_supply=random_supply,
        )
        col.save(state)
        _echo_json(
            {
                "state": str(state),
                "owner": to_hex(col.ledger.owner()),
                "ledger": to_hex(col.ledger.address),
                "controller": to_hex(col.controller.address),
                "max_supply": col.policy.max_supply(),
                "mint_fee": col.controller.mint_fee(),
                "voucher_signer": to_hex(col.vouchers.voucher_signer()),
            }
        )

    @app.command("stats")
    def stats_cmd(state: Optional[Path] = typer.Argument(None, exists=True, dir_okay=False)) -> None:
        """Print supply and holder statistics."""
        _echo_json(collection_stats(_load(state)).to_dict())

    @app.command("snapshot")
    def snapshot_cmd(
        state: Optional[Path] = typer.Argument(None, exists=True, dir_okay=False),
        out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write JSON here instead of stdout"),
    ) -> None:
        """Dump every token with its owner, URI and attributes."""
        snap = take_snapshot(_load(state))
        if out is None:
            _echo_json(snap)
            return
        out.write_text(json.dumps(snap, indent=2) + "\n", encoding="utf-8")
        typer.echo(f"wrote {len(snap['tokens'])} tokens to {out}")

    @app.command("merkle")
    def merkle_cmd(
        allowlist: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON list or {address: allowance}"),
    ) -> None:
        """Compute the Merkle root and proofs for an allowlist file."""
        try:
            entries = json.loads(allowlist.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise typer.BadParameter(f"invalid JSON: {e}") from e
        _echo_json(build_merkle_document(entries))

    return app


def main(argv: Optional[List[str]] = None) -> None:
    app = build_app()
    app(args=argv, prog_name="minimint")
