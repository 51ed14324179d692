"""CLI presets command: daberu presets."""

from __future__ import annotations

from pathlib import Path

import click

from daberu.core.config import ConfigError, load_config, preset_specs
from daberu.core.models import FileSpec


@click.command("presets")
@click.option("--config", "config_file", type=click.Path(path_type=Path, dir_okay=False),
              default=None, envvar="DABERU_CONFIG", help="Path to config.yaml.")
def presets_cmd(config_file: Path | None) -> None:
    """List the resource presets defined in config.yaml."""
    config = load_config(config_file)
    names = sorted(config.get("resource_presets") or {})

    if not names:
        click.echo("No resource presets configured.")
        return

    for name in names:
        try:
            specs = preset_specs(config, name)
        except ConfigError as e:
            click.echo(f"{name}: invalid ({e})")
            continue
        click.echo(f"{name}:")
        for spec in specs:
            if isinstance(spec, FileSpec):
                click.echo(f"  file   {spec.path}")
            else:
                click.echo(f"  shell  {spec.command}")
