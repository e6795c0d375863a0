"""CLI entry point for macaroon-auth.

Invoked as::

    macaroon-auth [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m macaroon_auth.cli.main

Commands
--------
mint       Mint a new macaroon, optionally with first-party caveats
restrict   Add first-party caveats to an existing macaroon
inspect    Show the contents of a macaroon
verify     Verify a macaroon and its discharges
version    Show version information

TOKEN arguments accept the base64url transport form (padded or not) or a
JSON object. Pass ``-`` to read the token from standard input.
"""
from __future__ import annotations

import logging
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from macaroon_auth.core.macaroon import Macaroon
from macaroon_auth.errors import MacaroonError

console = Console()


# ------------------------------------------------------------------
# Root group
# ------------------------------------------------------------------


@click.group()
@click.version_option(package_name="macaroon-auth")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging level for library diagnostics.",
)
def cli(log_level: str) -> None:
    """Mint, attenuate, inspect and verify macaroons"""
    logging.basicConfig(level=getattr(logging, log_level.upper()))


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from macaroon_auth import __version__

    console.print(f"[bold]macaroon-auth[/bold] v{__version__}")


# ------------------------------------------------------------------
# mint
# ------------------------------------------------------------------


@cli.command(name="mint")
@click.option("--root-key", required=True, help="Root key (UTF-8 text).")
@click.option("--id", "identifier", required=True, help="Macaroon identifier.")
@click.option("--location", default="", help="Location hint.")
@click.option(
    "--caveat",
    "-c",
    multiple=True,
    help="First-party caveat condition (repeatable).",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["base64", "json"]),
    default="base64",
    show_default=True,
    help="Output encoding.",
)
def mint_command(
    root_key: str,
    identifier: str,
    location: str,
    caveat: tuple[str, ...],
    output_format: str,
) -> None:
    """Mint a new macaroon and print it."""
    try:
        macaroon = Macaroon.new(root_key.encode("utf-8"), identifier, location)
        for condition in caveat:
            macaroon.add_first_party_caveat(condition)
    except MacaroonError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        sys.exit(1)

    click.echo(_encode(macaroon, output_format))


# ------------------------------------------------------------------
# restrict
# ------------------------------------------------------------------


@cli.command(name="restrict")
@click.argument("token")
@click.option(
    "--caveat",
    "-c",
    multiple=True,
    required=True,
    help="First-party caveat condition to add (repeatable).",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["base64", "json"]),
    default="base64",
    show_default=True,
    help="Output encoding.",
)
def restrict_command(token: str, caveat: tuple[str, ...], output_format: str) -> None:
    """Add first-party caveats to TOKEN. No root key is needed."""
    macaroon = _load_token(token)
    try:
        for condition in caveat:
            macaroon.add_first_party_caveat(condition)
    except MacaroonError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        sys.exit(1)

    click.echo(_encode(macaroon, output_format))


# ------------------------------------------------------------------
# inspect
# ------------------------------------------------------------------


@cli.command(name="inspect")
@click.argument("token")
def inspect_command(token: str) -> None:
    """Show the location, identifier, caveats and signature of TOKEN."""
    macaroon = _load_token(token)

    console.print(f"  Location:   {macaroon.location or '(none)'}", markup=False)
    console.print(f"  Identifier: {macaroon.id}", markup=False)
    console.print(f"  Signature:  {macaroon.signature_hex}", markup=False)

    table = Table(title="Caveats", show_header=True)
    table.add_column("#", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("Caveat ID")
    table.add_column("Location")

    for index, cav in enumerate(macaroon.caveats):
        table.add_row(
            str(index),
            "third-party" if cav.is_third_party else "first-party",
            escape(cav.id),
            escape(cav.location) or "-",
        )

    console.print(table)
    console.print(f"\nTotal: {len(macaroon.caveats)} caveat(s)")


# ------------------------------------------------------------------
# verify
# ------------------------------------------------------------------


@cli.command(name="verify")
@click.argument("token")
@click.option("--root-key", required=True, help="Root key the macaroon was minted with.")
@click.option(
    "--discharge",
    "-d",
    multiple=True,
    help="Bound discharge macaroon (repeatable).",
)
@click.option(
    "--allow",
    "-a",
    multiple=True,
    help="First-party condition to accept, matched exactly (repeatable).",
)
@click.option(
    "--allow-any",
    is_flag=True,
    default=False,
    help="Accept every first-party condition (signature check only).",
)
@click.option(
    "--match-location",
    is_flag=True,
    default=False,
    help="Require discharge locations to match caveat locations.",
)
def verify_command(
    token: str,
    root_key: str,
    discharge: tuple[str, ...],
    allow: tuple[str, ...],
    allow_any: bool,
    match_location: bool,
) -> None:
    """Verify TOKEN against ROOT_KEY and the supplied discharges."""
    from macaroon_auth.verification import VerificationPolicy, Verifier

    macaroon = _load_token(token)
    discharges = [_load_token(d) for d in discharge]
    allowed = frozenset(allow)

    def check(condition: str) -> bool:
        return allow_any or condition in allowed

    verifier = Verifier(VerificationPolicy(match_discharge_location=match_location))
    try:
        verifier.verify(macaroon, root_key.encode("utf-8"), check, discharges)
    except MacaroonError as exc:
        console.print(f"  [red]FAIL[/red]  {type(exc).__name__}: {escape(str(exc))}")
        sys.exit(1)

    console.print(f"  [green]PASS[/green]  Macaroon {escape(repr(macaroon.id))} verified successfully.")


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _load_token(token: str) -> Macaroon:
    """Decode a token given on the command line, exiting on failure."""
    text = sys.stdin.read() if token == "-" else token
    text = text.strip()
    try:
        if text.startswith("{"):
            return Macaroon.from_json(text)
        return Macaroon.deserialize(text)
    except MacaroonError as exc:
        console.print(f"[red]Error:[/red] cannot decode macaroon: {escape(str(exc))}")
        sys.exit(1)


def _encode(macaroon: Macaroon, output_format: str) -> str:
    if output_format == "json":
        return macaroon.to_json()
    return macaroon.serialize()


if __name__ == "__main__":
    cli()
