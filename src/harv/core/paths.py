from __future__ import annotations

import os
from pathlib import Path

APP_NAME = "harv"
LEGACY_APP_NAME = "harjira"


def xdg_config_home() -> Path:
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def config_dir(home: Path | None = None) -> Path:
    # The config file always lives under $HOME/.config, regardless of XDG.
    return (home or Path.home()) / ".config" / APP_NAME


def legacy_config_dir(home: Path | None = None) -> Path:
    return (home or Path.home()) / ".config" / LEGACY_APP_NAME


def default_config_path() -> Path:
    return config_dir() / "config.toml"


def default_usage_path() -> Path:
    return xdg_config_home() / APP_NAME / "usage.json"
