"""msgbridge CLI entrypoint."""

from __future__ import annotations

import logging

import click

from msgbridge import __version__


@click.group()
@click.version_option(version=__version__, prog_name="msgbridge")
@click.option("-v", "--verbose", is_flag=True, help="Log stream state transitions.")
def main(verbose: bool) -> None:
    """msgbridge: inspect provider payloads and replay recorded streams."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


# Register subcommands
from msgbridge.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
