"""CLI chat command: daberu chat."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from daberu.core.config import ConfigError, load_config, preset_specs
from daberu.core.conversation import ConversationEngine, RunError
from daberu.core.models import FileSpec, ResourceSpec, RunConfig, ShellSpec
from daberu.core.resource import CommandFailedError
from daberu.providers.base import HttpxTransport
from daberu.providers.registry import get_provider, infer_provider

log = logging.getLogger(__name__)


def _get_api_key(provider: str) -> str | None:
    """Retrieve an API key from the system keyring."""
    try:
        import keyring

        return keyring.get_password("daberu", f"{provider}_api_key")
    except Exception:
        log.debug("Keyring lookup failed for %s", provider, exc_info=True)
        return None


def request_timeout(config: dict) -> float:
    """Read the HTTP timeout in seconds from the config."""
    value = config.get("timeout")
    try:
        timeout = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"timeout must be a number of seconds, got {value!r}") from e
    if timeout <= 0:
        raise ConfigError(f"timeout must be positive, got {timeout}")
    return timeout


def build_run_config(
    config: dict,
    *,
    provider: str | None,
    model: str | None,
    api_keys: dict[str, str | None],
    system: str | None,
    log_path: Path | None,
    continue_mode: bool,
    files: tuple[Path, ...] = (),
    shell_commands: tuple[str, ...] = (),
    presets: tuple[str, ...] = (),
    resource_size_limit: int | None = None,
    shell_executable: str | None = None,
    allow_partial_output: bool = False,
) -> RunConfig:
    """Resolve command-line values over config-file values into a RunConfig.

    Resources are ordered: presets, then files, then shell commands, each in
    the order given.
    """
    use_model = model or config["model"]
    use_provider = get_provider(provider or config.get("provider") or infer_provider(use_model)).name
    shell = shell_executable or config["shell_executable"]

    specs: list[ResourceSpec] = []
    for name in presets:
        specs.extend(preset_specs(config, name, shell))
    specs.extend(FileSpec(p) for p in files)
    specs.extend(ShellSpec(command=c, shell=shell) for c in shell_commands)

    limit = config["resource_size_limit"] if resource_size_limit is None else resource_size_limit
    try:
        limit = int(limit)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"resource_size_limit must be an integer, got {limit!r}") from e
    if limit < 0:
        raise ConfigError(f"resource_size_limit must be >= 0, got {limit}")

    api_key = api_keys.get(use_provider) or _get_api_key(use_provider)

    return RunConfig(
        provider=use_provider,
        model=use_model,
        api_key=api_key,
        system=system,
        log_path=log_path,
        continue_mode=continue_mode,
        resources=specs,
        resource_size_limit=limit,
        allow_partial_output=allow_partial_output,
        provider_options=dict(config.get("providers", {}).get(use_provider, {})),
    )


@click.command("chat")
@click.option("--provider", default=None, envvar="DABERU_PROVIDER",
              help="Provider: openai or anthropic (inferred from the model by default).")
@click.option("--model", "-m", default=None, envvar="DABERU_MODEL", help="Model name.")
@click.option("--log", "-l", "log_path", type=click.Path(path_type=Path, dir_okay=False),
              default=None, envvar="DABERU_LOG_PATH",
              help="JSON log file holding the conversation history.")
@click.option("--continue", "-c", "continue_mode", is_flag=True,
              help="Continue the conversation in --log instead of starting over.")
@click.option("--system", "-s", default=None, envvar="DABERU_SYSTEM_MESSAGE",
              help="System message placed at the start of the conversation.")
@click.option("--resource", "-r", "files", multiple=True, type=click.Path(path_type=Path),
              help="Attach a file's contents (repeatable).")
@click.option("--shell-command", "-x", "shell_commands", multiple=True,
              help="Attach a shell command's output (repeatable).")
@click.option("--preset", "-p", "presets", multiple=True,
              help="Attach the resources of a configured preset (repeatable).")
@click.option("--resource-size-limit", type=click.IntRange(min=0), default=None,
              help="Maximum bytes kept per resource.")
@click.option("--shell-executable", default=None, help="Shell used for --shell-command.")
@click.option("--allow-partial-output", is_flag=True,
              help="Show captured output of a failing shell command on stderr.")
@click.option("--openai-api-key", default=None, envvar="OPENAI_API_KEY", show_envvar=True)
@click.option("--anthropic-api-key", default=None, envvar="ANTHROPIC_API_KEY", show_envvar=True)
@click.option("--config", "config_file", type=click.Path(path_type=Path, dir_okay=False),
              default=None, envvar="DABERU_CONFIG", help="Path to config.yaml.")
@click.option("--echo-input", "-e", is_flag=True, help="Print the prompt before the reply.")
def chat_cmd(
    provider: str | None,
    model: str | None,
    log_path: Path | None,
    continue_mode: bool,
    system: str | None,
    files: tuple[Path, ...],
    shell_commands: tuple[str, ...],
    presets: tuple[str, ...],
    resource_size_limit: int | None,
    shell_executable: str | None,
    allow_partial_output: bool,
    openai_api_key: str | None,
    anthropic_api_key: str | None,
    config_file: Path | None,
    echo_input: bool,
) -> None:
    """Send stdin as a prompt and print the reply.

    Example: git diff | daberu chat -x 'git log -3' -l log.json
    """
    config = load_config(config_file)

    try:
        run_config = build_run_config(
            config,
            provider=provider,
            model=model,
            api_keys={"openai": openai_api_key, "anthropic": anthropic_api_key},
            system=system,
            log_path=log_path,
            continue_mode=continue_mode,
            files=files,
            shell_commands=shell_commands,
            presets=presets,
            resource_size_limit=resource_size_limit,
            shell_executable=shell_executable,
            allow_partial_output=allow_partial_output,
        )
        timeout = request_timeout(config)
    except (ConfigError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    stdin_text = click.get_text_stream("stdin").read()
    if echo_input:
        click.echo(stdin_text)

    engine = ConversationEngine(transport=HttpxTransport(timeout=timeout))
    try:
        outcome = engine.run(run_config, stdin_text)
    except RunError as e:
        partial = getattr(e.cause, "partial", None)
        if isinstance(e.cause, CommandFailedError) and partial is not None:
            click.echo(f"[partial output of `{partial.provenance}`]", err=True)
            click.echo(partial.text, err=True)
        raise click.ClickException(str(e)) from e

    click.echo(outcome.assistant_text)
