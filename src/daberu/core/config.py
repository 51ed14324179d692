"""Configuration loader for daberu."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml

from daberu import DaberuError
from daberu.core.models import FileSpec, ResourceSpec, ShellSpec

log = logging.getLogger(__name__)

DEFAULTS: dict = {
    "provider": None,  # None: inferred from the model name
    "model": "gpt-4o",
    "resource_size_limit": 102400,
    "shell_executable": "sh",
    "timeout": 120.0,
    "providers": {
        "openai": {"base_url": "https://api.openai.com"},
        "anthropic": {
            "base_url": "https://api.anthropic.com",
            "max_tokens": 4096,
        },
    },
    # name -> list of {"type": "file", "path": ...} / {"type": "shell", "command": ...}
    "resource_presets": {},
}


class ConfigError(DaberuError):
    """Configuration values are present but invalid."""


def config_path() -> Path:
    """Resolve the config file: $DABERU_CONFIG > $XDG_CONFIG_HOME > ~/.config."""
    env_path = os.environ.get("DABERU_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg).expanduser() if xdg else Path("~/.config").expanduser()
    return base / "daberu" / "config.yaml"


def load_config(path: Path | None = None) -> dict:
    """Load config.yaml and merge with defaults.

    Args:
        path: Explicit path to config.yaml. If None, uses default location.

    Returns:
        Merged configuration dict.
    """
    if path is None:
        path = config_path()

    user_config: dict = {}
    if path.exists():
        try:
            raw = path.read_text(encoding="utf-8")
            user_config = yaml.safe_load(raw) or {}
        except (OSError, UnicodeDecodeError, yaml.YAMLError):
            log.warning("Failed to read config at %s, using defaults", path, exc_info=True)
        if not isinstance(user_config, dict):
            log.warning("Config at %s is not a mapping, using defaults", path)
            user_config = {}

    return _deep_merge(DEFAULTS, user_config)


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def preset_specs(config: dict, name: str, shell: str | None = None) -> list[ResourceSpec]:
    """Expand a named resource preset into resource specs.

    Raises:
        ConfigError: Unknown preset or malformed entry.
    """
    presets = config.get("resource_presets") or {}
    if name not in presets:
        available = ", ".join(sorted(presets)) or "(none)"
        raise ConfigError(f"Unknown resource preset '{name}'. Available: {available}")

    shell = shell or config.get("shell_executable", "sh")
    specs: list[ResourceSpec] = []
    for i, entry in enumerate(presets[name] or []):
        if not isinstance(entry, dict):
            raise ConfigError(f"Preset '{name}': entry {i} must be a mapping")
        kind = entry.get("type")
        if kind == "file" and entry.get("path"):
            specs.append(FileSpec(Path(str(entry["path"])).expanduser()))
        elif kind == "shell" and entry.get("command"):
            specs.append(ShellSpec(command=str(entry["command"]), shell=shell))
        else:
            raise ConfigError(
                f"Preset '{name}': entry {i} needs type 'file' with 'path' "
                "or type 'shell' with 'command'"
            )
    return specs
