"""Dockship CLI entry point."""

import click

from dockship import __version__
from dockship.cli.commands.deploy import deploy


@click.group()
@click.version_option(__version__, prog_name="dockship")
def main() -> None:
    """Dockship - deploy Dockerized repositories to remote hosts over SSH."""


main.add_command(deploy)


if __name__ == "__main__":
    main()
