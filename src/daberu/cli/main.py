"""CLI entry point for daberu."""

import logging

import click

from daberu import __version__
from daberu.cli.chat_cmd import chat_cmd
from daberu.cli.log_cmd import last_cmd, show_cmd
from daberu.cli.presets_cmd import presets_cmd


@click.group()
@click.version_option(version=__version__, prog_name="daberu")
@click.option("--verbose", "-v", is_flag=True, help="Log progress and HTTP details to stderr.")
def cli(verbose: bool) -> None:
    """daberu: talk to hosted chat LLMs from the shell."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


cli.add_command(chat_cmd)
cli.add_command(last_cmd)
cli.add_command(show_cmd)
cli.add_command(presets_cmd)


if __name__ == "__main__":
    cli()
