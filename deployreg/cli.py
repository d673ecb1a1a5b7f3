"""
deployreg — command line for a deployment registry kept in a local state file.

Global options:
  --state PATH              State file (.json, or .db/.sqlite for SQLite)
                            [env: DEPLOYREG_STATE, default ~/.deployreg/state.json]
  --json                    Print the full call receipt as JSON
  --verbose / -v            Debug logging

Examples:
  deployreg claim op-mainnet --admin 0xaaaa...aaaa
  deployreg claim-batch op-sepolia base-mainnet --admin 0xaaaa...aaaa
  deployreg register op-mainnet L2StandardBridge=0x2222...2222 --caller 0xaaaa...aaaa
  deployreg query op-mainnet L2StandardBridge Unknown
  deployreg is-admin op-mainnet 0xaaaa...aaaa

Exit codes: 0 ok, 1 contract revert or storage failure, 2 invalid arguments.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence

import typer

from deployreg.config import load_config
from deployreg.runtime.context import ZERO_ADDRESS, to_hex
from deployreg.runtime.host import STATUS_INVALID, Host, Receipt
from deployreg.runtime.storage_api import open_backend
from deployreg.version import __version__

log = logging.getLogger(__name__)

_CALLER_ENV = "DEPLOYREG_CALLER"

app = typer.Typer(
    name="deployreg",
    help="Claim deployment namespaces and register name -> address entries.",
    no_args_is_help=True,
    add_completion=False,
)


class GlobalContext:
    def __init__(self) -> None:
        self.state: Optional[Path] = None
        self.json_output: bool = False


_ctx = GlobalContext()


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    state: Optional[Path] = typer.Option(
        None,
        "--state",
        help="Registry state file (.json, or .db/.sqlite for SQLite)",
        envvar="DEPLOYREG_STATE",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print the call receipt as JSON",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
) -> None:
    """
    Deployment registry CLI.

    Every command opens the state file, runs exactly one registry call as the
    given caller and writes the state back (also when the call reverts, so
    namespaces claimed earlier in a failing claim-batch stay claimed).
    """
    cfg = load_config()
    logging.basicConfig(
        level=logging.DEBUG if verbose else cfg.log_level_no,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _ctx.state = state or cfg.state_path
    _ctx.json_output = json_output


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(method: str, args: Sequence[Any], *, sender: str) -> Receipt:
    assert _ctx.state is not None
    log.debug("opening state %s", _ctx.state)
    host = Host(backend=open_backend(_ctx.state))
    try:
        return host.execute(method, args, sender=sender)
    finally:
        host.close()


def _finish(receipt: Receipt) -> Receipt:
    if _ctx.json_output:
        typer.echo(json.dumps(receipt.to_dict(), indent=2))
    if receipt.error is not None:
        if not _ctx.json_output:
            typer.echo(f"error: {receipt.error}", err=True)
        raise typer.Exit(code=2 if receipt.status == STATUS_INVALID else 1)
    return receipt


def _parse_entry(raw: str) -> List[str]:
    name, sep, addr = raw.rpartition("=")
    if not sep:
        raise typer.BadParameter(f"expected NAME=ADDRESS, got {raw!r}")
    return [name, addr]


def _echo_claims(receipt: Receipt) -> None:
    for ev in receipt.events:
        ns = ev.args["namespace"].decode("utf-8", errors="replace")
        typer.echo(f"Claimed {ns} for {to_hex(ev.args['admin'])}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def claim(
    namespace: str = typer.Argument(..., help="Deployment namespace to claim"),
    admin: str = typer.Option(..., "--admin", help="Address to make admin (0x-hex)"),
    caller: str = typer.Option(
        to_hex(ZERO_ADDRESS), "--caller", envvar=_CALLER_ENV, help="Invoking address"
    ),
) -> None:
    """Claim an unclaimed namespace for ADMIN."""
    receipt = _finish(_run("claim", [namespace, admin], sender=caller))
    if not _ctx.json_output:
        _echo_claims(receipt)


@app.command("claim-batch")
def claim_batch(
    namespaces: List[str] = typer.Argument(..., help="Namespaces to claim, in order"),
    admin: str = typer.Option(..., "--admin", help="Address to make admin (0x-hex)"),
    caller: str = typer.Option(
        to_hex(ZERO_ADDRESS), "--caller", envvar=_CALLER_ENV, help="Invoking address"
    ),
) -> None:
    """Claim several namespaces for ADMIN; stops at the first already-claimed one."""
    receipt = _run("claim_batch", [namespaces, admin], sender=caller)
    if not _ctx.json_output:
        # Claims before a failing element are committed; report them either way.
        _echo_claims(receipt)
    _finish(receipt)


@app.command("is-admin")
def is_admin(
    namespace: str = typer.Argument(...),
    address: str = typer.Argument(..., help="Address to check (0x-hex)"),
) -> None:
    """Print true/false: is ADDRESS an admin of NAMESPACE."""
    receipt = _finish(_run("is_admin", [namespace, address], sender=to_hex(ZERO_ADDRESS)))
    if not _ctx.json_output:
        typer.echo("true" if receipt.return_value else "false")


@app.command()
def register(
    namespace: str = typer.Argument(...),
    entries: List[str] = typer.Argument(..., help="NAME=ADDRESS pairs, applied in order"),
    caller: str = typer.Option(..., "--caller", envvar=_CALLER_ENV, help="Invoking admin address"),
) -> None:
    """Register NAME=ADDRESS entries in NAMESPACE (caller must be an admin)."""
    pairs = [_parse_entry(e) for e in entries]
    _finish(_run("register", [namespace, pairs], sender=caller))
    if not _ctx.json_output:
        typer.echo(f"Registered {len(pairs)} entr{'y' if len(pairs) == 1 else 'ies'} in {namespace}")


@app.command()
def query(
    namespace: str = typer.Argument(...),
    names: List[str] = typer.Argument(..., help="Entry names to resolve"),
) -> None:
    """Resolve NAMES in NAMESPACE; unset names print the zero address."""
    receipt = _finish(_run("query", [namespace, names], sender=to_hex(ZERO_ADDRESS)))
    if not _ctx.json_output:
        for name, addr in zip(names, receipt.return_value):
            typer.echo(f"{name}\t{addr}")


def main() -> None:  # pragma: no cover - console entry point
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
