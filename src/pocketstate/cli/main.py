"""CLI entry point."""

from __future__ import annotations

import logging

import click


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log adapter lifecycle at DEBUG level.")
def cli(verbose: bool) -> None:
    """pocketstate: reactive record and collection state over a document store."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Register command modules (must be after cli group is defined)
# ---------------------------------------------------------------------------
from pocketstate.cli import replay_cmds as _replay_cmds  # noqa: E402, F401

if __name__ == "__main__":
    cli()
