from __future__ import annotations

import logging
import os
import shutil
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from harv.core.errors import ConfigError
from harv.core.paths import config_dir, default_config_path, legacy_config_dir

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "anthropic", "claude")
CONTINUE_MODES = ("restart", "new", "ask")


@dataclass(frozen=True)
class HarvestConfig:
    access_token: str
    account_id: str
    user_agent: str
    project_id: int | None = None
    task_id: int | None = None


@dataclass(frozen=True)
class JiraConfig:
    access_token: str
    base_url: str


@dataclass(frozen=True)
class GitConfig:
    repositories: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Settings:
    auto_start: bool = False
    auto_stop: bool = False
    auto_select_single: bool = True
    continue_days: int | None = None
    continue_mode: str | None = None


@dataclass(frozen=True)
class TicketFilterConfig:
    denylist: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AiConfig:
    enabled: bool = False
    provider: str = "openai"
    api_key: str = ""
    model: str | None = None
    target_hours: float = 8.0


@dataclass(frozen=True)
class Config:
    harvest: HarvestConfig
    jira: JiraConfig
    git: GitConfig = field(default_factory=GitConfig)
    settings: Settings = field(default_factory=Settings)
    ticket_filter: TicketFilterConfig = field(default_factory=TicketFilterConfig)
    ai: AiConfig = field(default_factory=AiConfig)


TEMPLATE = """\
# harv configuration file
# Harvest API docs: https://help.getharvest.com/api-v2/
# Jira API docs: https://developer.atlassian.com/cloud/jira/platform/rest/v3/

[harvest]
# Get your access token from: https://id.getharvest.com/developers
access_token = "your_harvest_access_token_here"
account_id = "your_account_id_here"
user_agent = "harv (your.email@example.com)"

# Optional default project and task for timers started by `harv sync`
# project_id = 12345678
# task_id = 87654321

[jira]
# https://id.atlassian.com/manage-profile/security/api-tokens
access_token = "your_jira_personal_access_token_here"
base_url = "https://your-company.atlassian.net"

[git]
# Leave empty to use the current working directory
repositories = []
# repositories = ["/home/user/projects/backend", "/home/user/projects/frontend"]

[settings]
# Start timers without prompting
auto_start = false
# Stop an existing timer without prompting
auto_stop = false
# Pick the ticket automatically when only one is found
auto_select_single = true
# Days to look back for `harv continue` (1 = today only)
# continue_days = 1
# How `harv continue` resumes work: "new" (new timer today), "restart"
# (restart the selected entry) or "ask"
# continue_mode = "new"

[ticket_filter]
# Prefixes that look like tickets but are not Jira keys
denylist = ["CWE", "CVE"]

[ai]
enabled = false
# "openai" or "anthropic"
provider = "openai"
api_key = ""
# model = "gpt-4o"
target_hours = 8.0
"""


def _table(obj: dict[str, Any], name: str, *, required: bool = False) -> dict[str, Any]:
    raw = obj.get(name)
    if raw is None:
        if required:
            raise ConfigError(f"missing [{name}] section")
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"[{name}] must be a table")
    return raw


def _opt_int(raw: dict[str, Any], key: str) -> int | None:
    v = raw.get(key)
    if v is None:
        return None
    if isinstance(v, bool) or not isinstance(v, int):
        raise ConfigError(f"{key} must be an integer")
    return v


def _str_list(raw: dict[str, Any], key: str) -> list[str]:
    v = raw.get(key, [])
    if not isinstance(v, list) or not all(isinstance(x, str) for x in v):
        raise ConfigError(f"{key} must be a list of strings")
    return list(v)


def parse_config(obj: dict[str, Any]) -> Config:
    h = _table(obj, "harvest", required=True)
    j = _table(obj, "jira", required=True)
    g = _table(obj, "git")
    s = _table(obj, "settings")
    tf = _table(obj, "ticket_filter")
    ai = _table(obj, "ai")

    try:
        harvest = HarvestConfig(
            access_token=str(h["access_token"]),
            account_id=str(h["account_id"]),
            user_agent=str(h["user_agent"]),
            project_id=_opt_int(h, "project_id"),
            task_id=_opt_int(h, "task_id"),
        )
        jira = JiraConfig(access_token=str(j["access_token"]), base_url=str(j["base_url"]))
    except KeyError as e:
        raise ConfigError(f"missing required key {e.args[0]!r}") from e

    model = ai.get("model")
    return Config(
        harvest=harvest,
        jira=jira,
        git=GitConfig(repositories=_str_list(g, "repositories")),
        settings=Settings(
            auto_start=bool(s.get("auto_start", False)),
            auto_stop=bool(s.get("auto_stop", False)),
            auto_select_single=bool(s.get("auto_select_single", True)),
            continue_days=_opt_int(s, "continue_days"),
            continue_mode=s.get("continue_mode"),
        ),
        ticket_filter=TicketFilterConfig(denylist=_str_list(tf, "denylist")),
        ai=AiConfig(
            enabled=bool(ai.get("enabled", False)),
            provider=str(ai.get("provider", "openai")),
            api_key=str(ai.get("api_key", "")),
            model=str(model) if model else None,
            target_hours=float(ai.get("target_hours", 8.0)),
        ),
    )


def apply_env_overrides(config: Config, env: Mapping[str, str]) -> Config:
    harvest = config.harvest
    if "HARVEST_ACCESS_TOKEN" in env:
        harvest = replace(harvest, access_token=env["HARVEST_ACCESS_TOKEN"])
    if "HARVEST_ACCOUNT_ID" in env:
        harvest = replace(harvest, account_id=env["HARVEST_ACCOUNT_ID"])

    jira = config.jira
    if "JIRA_ACCESS_TOKEN" in env:
        jira = replace(jira, access_token=env["JIRA_ACCESS_TOKEN"])
    if "JIRA_BASE_URL" in env:
        jira = replace(jira, base_url=env["JIRA_BASE_URL"])

    ai = config.ai
    if "AI_ENABLED" in env:
        ai = replace(ai, enabled=env["AI_ENABLED"].strip().lower() == "true")
    if "AI_PROVIDER" in env:
        ai = replace(ai, provider=env["AI_PROVIDER"])
    if "AI_API_KEY" in env:
        ai = replace(ai, api_key=env["AI_API_KEY"])
    if "AI_MODEL" in env:
        ai = replace(ai, model=env["AI_MODEL"])
    if "AI_TARGET_HOURS" in env:
        try:
            ai = replace(ai, target_hours=float(env["AI_TARGET_HOURS"]))
        except ValueError:
            logger.warning("ignoring non-numeric AI_TARGET_HOURS=%r", env["AI_TARGET_HOURS"])

    settings = config.settings
    if "CONTINUE_MODE" in env:
        settings = replace(settings, continue_mode=env["CONTINUE_MODE"])

    return replace(config, harvest=harvest, jira=jira, ai=ai, settings=settings)


def validate(config: Config) -> None:
    h = config.harvest
    if not h.access_token or "your_harvest" in h.access_token:
        raise ConfigError("Harvest access token not configured. Please update your config file.")
    if not h.account_id or "your_account" in h.account_id:
        raise ConfigError("Harvest account ID not configured. Please update your config file.")

    j = config.jira
    if not j.access_token or "your_jira" in j.access_token:
        raise ConfigError("Jira access token not configured. Please update your config file.")
    if not j.base_url or "your-company" in j.base_url:
        raise ConfigError("Jira base URL not configured. Please update your config file.")
    if not j.base_url.startswith("http"):
        raise ConfigError("Jira base URL must start with http:// or https://")

    ai = config.ai
    if ai.enabled:
        if not ai.api_key or "your_" in ai.api_key:
            raise ConfigError(
                "AI is enabled but API key not configured. Please update your config file."
            )
        if ai.provider.lower() not in SUPPORTED_PROVIDERS:
            raise ConfigError(
                f"Unsupported AI provider: {ai.provider}. Supported: openai, anthropic"
            )
        if ai.target_hours <= 0 or ai.target_hours > 24:
            raise ConfigError("AI target_hours must be between 0 and 24")

    mode = config.settings.continue_mode
    if mode is not None and mode not in CONTINUE_MODES:
        raise ConfigError(
            f"Invalid continue_mode: '{mode}'. Must be 'restart', 'new', or 'ask'"
        )

    days = config.settings.continue_days
    if days is not None and days < 1:
        raise ConfigError("continue_days must be >= 1")


def load_config(path: Path | None = None, env: Mapping[str, str] | None = None) -> Config:
    """Load, override from the environment and validate the config file."""
    if path is None:
        migrate_legacy_config()
        path = default_config_path()
    if env is None:
        env = os.environ

    if not path.exists():
        raise ConfigError(
            f"Configuration file not found at {path}. Run 'harv config init' to create one."
        )

    try:
        obj = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"invalid TOML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e

    config = apply_env_overrides(parse_config(obj), env)
    validate(config)
    return config


def write_template(path: Path | None = None) -> Path:
    path = path or default_config_path()
    if path.exists():
        raise ConfigError(f"Configuration file already exists at {path}")

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(TEMPLATE, encoding="utf-8")
    if os.name == "posix":
        path.chmod(0o600)
    return path


def migrate_legacy_config(home: Path | None = None) -> bool:
    """Copy ~/.config/harjira to ~/.config/harv once. Never raises."""
    old = legacy_config_dir(home)
    new = config_dir(home)
    if not old.is_dir() or new.exists():
        return False

    try:
        shutil.copytree(old, new)
    except OSError as e:
        logger.warning("failed to migrate config from %s to %s: %s", old, new, e)
        return False

    logger.info("migrated config from %s to %s", old, new)
    return True


def _mask(secret: str) -> str:
    return f"{secret[:8]}***"


def describe(config: Config) -> list[str]:
    h, j, s, ai = config.harvest, config.jira, config.settings, config.ai
    lines = [
        "Harvest Configuration:",
        f"  Account ID: {h.account_id}",
        f"  Access Token: {_mask(h.access_token)}",
        f"  User Agent: {h.user_agent}",
    ]
    if h.project_id is not None:
        lines.append(f"  Default Project ID: {h.project_id}")
    if h.task_id is not None:
        lines.append(f"  Default Task ID: {h.task_id}")

    lines += [
        "",
        "Jira Configuration:",
        f"  Base URL: {j.base_url}",
        f"  Access Token: {_mask(j.access_token)}",
        "",
        "Git Configuration:",
    ]
    if config.git.repositories:
        lines.append("  Repositories:")
        lines += [f"    - {r}" for r in config.git.repositories]
    else:
        lines.append("  Repositories: Using current working directory")

    lines += [
        "",
        "Settings:",
        f"  Auto-start timers: {str(s.auto_start).lower()}",
        f"  Auto-stop timers: {str(s.auto_stop).lower()}",
        f"  Auto-select single ticket: {str(s.auto_select_single).lower()}",
    ]
    if s.continue_days is not None:
        lines.append(f"  Continue days: {s.continue_days}")
    if s.continue_mode is not None:
        lines.append(f"  Continue mode: {s.continue_mode}")
    if config.ticket_filter.denylist:
        lines.append(f"  Ticket denylist: {', '.join(config.ticket_filter.denylist)}")

    lines += ["", "AI Configuration:", f"  Enabled: {str(ai.enabled).lower()}"]
    if ai.enabled:
        lines.append(f"  Provider: {ai.provider}")
        lines.append(f"  API Key: {_mask(ai.api_key) if ai.api_key else '(not set)'}")
        if ai.model:
            lines.append(f"  Model: {ai.model}")
        lines.append(f"  Target hours: {ai.target_hours}")
    return lines
