"""CLI commands for reading a conversation log: daberu last, daberu show."""

from __future__ import annotations

from pathlib import Path

import click

from daberu.core.transcript import StoreError, TranscriptStore

_log_option = click.option(
    "--log",
    "-l",
    "log_path",
    type=click.Path(path_type=Path, dir_okay=False),
    required=True,
    envvar="DABERU_LOG_PATH",
    help="JSON log file holding the conversation history.",
)


def _read(log_path: Path):
    try:
        return TranscriptStore().read(log_path)
    except StoreError as e:
        raise click.ClickException(str(e)) from e


@click.command("last")
@_log_option
def last_cmd(log_path: Path) -> None:
    """Print the content of the last message in the log."""
    transcript = _read(log_path)
    if transcript:
        click.echo(transcript[-1].content)


@click.command("show")
@_log_option
def show_cmd(log_path: Path) -> None:
    """Print the whole conversation with a header per message."""
    transcript = _read(log_path)
    if not transcript:
        click.echo("Log is empty.")
        return

    for i, message in enumerate(transcript):
        if i:
            click.echo("")
        click.echo(f"## {message.role.value.capitalize()}")
        click.echo("")
        click.echo(message.content)
