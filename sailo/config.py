"""Project (.sailo.yaml) and user (~/.sailo/config.yaml) configuration."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

PROJECT_CONFIG_NAME = ".sailo.yaml"
DEFAULT_ENV_PASSTHROUGH = ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GITHUB_TOKEN")


class ConfigError(Exception):
    """Raised when a configuration file cannot be read, parsed or written."""


class _SchemaError(ValueError):
    """A YAML document does not have the expected shape."""


@dataclass
class ProjectConfig:
    """Settings from a project's .sailo.yaml."""

    version: int = 1
    image: str = ""
    services: list[str] = field(default_factory=list)
    ports: dict[int, str] = field(default_factory=dict)
    env: dict[str, str] = field(default_factory=dict)
    setup: list[str] = field(default_factory=list)
    test: str = ""


@dataclass
class Defaults:
    """Default values used when creating workspaces."""

    from_branch: str = ""
    cleanup_after: str = ""
    port_range: str = ""


@dataclass
class Agent:
    """An agent shortcut."""

    command: str = ""
    mount: list[str] = field(default_factory=list)


@dataclass
class GitConfig:
    """Git-related settings."""

    credentials: str = ""
    auto_push: bool = False


@dataclass
class UserConfig:
    """Settings from the user's ~/.sailo/config.yaml."""

    defaults: Defaults = field(default_factory=Defaults)
    env_passthrough: list[str] = field(default_factory=list)
    agents: dict[str, Agent] = field(default_factory=dict)
    git: GitConfig = field(default_factory=GitConfig)


# --- decoding helpers -------------------------------------------------------


def _mapping(value: Any, where: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise _SchemaError(f"{where}: expected a mapping, got {type(value).__name__}")
    return value


def _string(value: Any, where: str) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float, datetime.date)):
        return str(value)
    raise _SchemaError(f"{where}: expected a string, got {type(value).__name__}")


def _integer(value: Any, where: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise _SchemaError(f"{where}: expected an integer, got {value!r}")
    return value


def _boolean(value: Any, where: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise _SchemaError(f"{where}: expected a boolean, got {value!r}")
    return value


def _string_list(value: Any, where: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise _SchemaError(f"{where}: expected a list, got {type(value).__name__}")
    return [_string(item, where) for item in value]


def _string_map(value: Any, where: str) -> dict[str, str]:
    return {
        _string(key, where): _string(item, f"{where}.{key}")
        for key, item in _mapping(value, where).items()
    }


def _read_document(path: Path, what: str) -> Any:
    """Return the parsed YAML at path; FileNotFoundError passes through."""
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        raise
    except OSError as exc:
        raise ConfigError(f"read {what}: {exc}") from exc
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigError(f"parse {what}: {exc}") from exc


def _write_document(path: Path, data: dict, what: str) -> None:
    text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"write {what}: {exc}") from exc


# --- project config ---------------------------------------------------------


def _project_from_data(data: Any) -> ProjectConfig:
    doc = _mapping(data, "document")
    ports: dict[int, str] = {}
    for key, value in _mapping(doc.get("ports"), "ports").items():
        if isinstance(key, bool) or not isinstance(key, int):
            raise _SchemaError(f"ports: invalid port {key!r}")
        ports[key] = _string(value, f"ports.{key}")
    return ProjectConfig(
        version=_integer(doc.get("version"), "version"),
        image=_string(doc.get("image"), "image"),
        services=_string_list(doc.get("services"), "services"),
        ports=ports,
        env=_string_map(doc.get("env"), "env"),
        setup=_string_list(doc.get("setup"), "setup"),
        test=_string(doc.get("test"), "test"),
    )


def _project_to_data(cfg: ProjectConfig) -> dict:
    data: dict[str, Any] = {"version": cfg.version}
    if cfg.image:
        data["image"] = cfg.image
    if cfg.services:
        data["services"] = list(cfg.services)
    if cfg.ports:
        data["ports"] = dict(sorted(cfg.ports.items()))
    if cfg.env:
        data["env"] = dict(sorted(cfg.env.items()))
    if cfg.setup:
        data["setup"] = list(cfg.setup)
    if cfg.test:
        data["test"] = cfg.test
    return data


def load_project_config(directory) -> ProjectConfig | None:
    """Load .sailo.yaml from directory, or return None if there is none."""
    path = Path(directory) / PROJECT_CONFIG_NAME
    try:
        data = _read_document(path, "project config")
    except FileNotFoundError:
        return None
    try:
        cfg = _project_from_data(data)
    except _SchemaError as exc:
        raise ConfigError(f"parse project config: {exc}") from exc
    if cfg.version == 0:
        cfg.version = 1
    return cfg


def save_project_config(directory, cfg: ProjectConfig) -> None:
    """Write cfg to .sailo.yaml in directory."""
    _write_document(Path(directory) / PROJECT_CONFIG_NAME, _project_to_data(cfg), "project config")


# --- user config ------------------------------------------------------------


def default_user_config() -> UserConfig:
    """Return the built-in user configuration."""
    return UserConfig(
        defaults=Defaults(from_branch="main", cleanup_after="24h", port_range="3001-3999"),
        env_passthrough=list(DEFAULT_ENV_PASSTHROUGH),
        git=GitConfig(credentials="ssh-agent", auto_push=True),
    )


def _user_from_data(data: Any) -> UserConfig:
    doc = _mapping(data, "document")
    defaults = _mapping(doc.get("defaults"), "defaults")
    git = _mapping(doc.get("git"), "git")
    agents = {}
    for name, spec in _mapping(doc.get("agents"), "agents").items():
        agent = _mapping(spec, f"agents.{name}")
        agents[_string(name, "agents")] = Agent(
            command=_string(agent.get("command"), f"agents.{name}.command"),
            mount=_string_list(agent.get("mount"), f"agents.{name}.mount"),
        )
    return UserConfig(
        defaults=Defaults(
            from_branch=_string(defaults.get("from"), "defaults.from"),
            cleanup_after=_string(defaults.get("cleanup_after"), "defaults.cleanup_after"),
            port_range=_string(defaults.get("port_range"), "defaults.port_range"),
        ),
        env_passthrough=_string_list(doc.get("env_passthrough"), "env_passthrough"),
        agents=agents,
        git=GitConfig(
            credentials=_string(git.get("credentials"), "git.credentials"),
            auto_push=_boolean(git.get("auto_push"), "git.auto_push"),
        ),
    )


def _user_to_data(cfg: UserConfig) -> dict:
    data: dict[str, Any] = {
        "defaults": {
            "from": cfg.defaults.from_branch,
            "cleanup_after": cfg.defaults.cleanup_after,
            "port_range": cfg.defaults.port_range,
        },
        "env_passthrough": list(cfg.env_passthrough),
    }
    if cfg.agents:
        agents = {}
        for name, agent in sorted(cfg.agents.items()):
            spec: dict[str, Any] = {"command": agent.command}
            if agent.mount:
                spec["mount"] = list(agent.mount)
            agents[name] = spec
        data["agents"] = agents
    data["git"] = {"credentials": cfg.git.credentials, "auto_push": cfg.git.auto_push}
    return data


def user_config_path() -> Path:
    """Return the path of the user's config file."""
    try:
        home = Path.home()
    except (RuntimeError, KeyError) as exc:
        raise ConfigError(f"get home directory: {exc}") from exc
    return home / ".sailo" / "config.yaml"


def load_user_config() -> UserConfig:
    """Load ~/.sailo/config.yaml, falling back to the defaults."""
    return load_user_config_from(user_config_path())


def load_user_config_from(path) -> UserConfig:
    """Load user config from path; missing files give the defaults."""
    defaults = default_user_config()
    try:
        data = _read_document(Path(path), "user config")
    except FileNotFoundError:
        return defaults
    try:
        cfg = _user_from_data(data)
    except _SchemaError as exc:
        raise ConfigError(f"parse user config: {exc}") from exc

    cfg.defaults.from_branch = cfg.defaults.from_branch or defaults.defaults.from_branch
    cfg.defaults.cleanup_after = cfg.defaults.cleanup_after or defaults.defaults.cleanup_after
    cfg.defaults.port_range = cfg.defaults.port_range or defaults.defaults.port_range
    cfg.git.credentials = cfg.git.credentials or defaults.git.credentials
    if not cfg.env_passthrough:
        cfg.env_passthrough = defaults.env_passthrough
    return cfg


def save_user_config(cfg: UserConfig) -> None:
    """Write cfg to ~/.sailo/config.yaml."""
    save_user_config_to(user_config_path(), cfg)


def save_user_config_to(path, cfg: UserConfig) -> None:
    """Write cfg to path, creating its directory."""
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigError(f"create config directory: {exc}") from exc
    _write_document(target, _user_to_data(cfg), "user config")