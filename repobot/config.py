"""
Configuration management for Repobot.

Loads and validates repobot.yml:
- ai: LLM provider used to summarize reports
- telegram: bot credentials for report delivery
- reporting: schedule and default report template
- repository: discovery globs and ignore rule files

Secrets may be left out of the file and read from the environment.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError

CONFIG_FILENAME = "repobot.yml"


@dataclass
class AIConfig:
    """LLM configuration using LiteLLM."""
    enabled: bool = True
    provider: str = "openai"
    model: str = "gpt-4"
    temperature: float = 0.3
    max_tokens: int = 1500
    # API keys are read from environment (OPENAI_API_KEY, ANTHROPIC_API_KEY, etc.)

    @property
    def litellm_model(self) -> str:
        """Model string in LiteLLM's `provider/model` form."""
        if "/" in self.model or self.provider in ("", "openai"):
            return self.model
        return f"{self.provider}/{self.model}"


@dataclass
class TelegramConfig:
    """Telegram bot used to deliver reports."""
    bot_token: str | None = None
    chat_id: str | None = None

    @property
    def resolved_token(self) -> str | None:
        return self.bot_token or os.environ.get("TELEGRAM_BOT_TOKEN")

    @property
    def resolved_chat_id(self) -> str | None:
        return self.chat_id or os.environ.get("TELEGRAM_CHAT_ID")

    @property
    def configured(self) -> bool:
        return bool(self.resolved_token and self.resolved_chat_id)


@dataclass
class ReportingConfig:
    """Report defaults. The schedule is read by an external cron runner."""
    schedule: str = "0 9 * * 1-5"  # weekdays at 9 AM
    template: str = "daily"


@dataclass
class PathsConfig:
    """Glob patterns for document discovery, relative to the repo root."""
    todos: list[str] = field(default_factory=lambda: ["**/TODO.md", "**/TODO"])
    documentation: list[str] = field(default_factory=lambda: ["**/*.md"])


@dataclass
class IgnoreConfig:
    """Ignore rule sources, read in order: primary, then extra files."""
    primary: str = ".gitignore"
    extra: list[str] = field(default_factory=list)
    require_primary: bool = False


@dataclass
class RepositoryConfig:
    root: str | None = None  # defaults to the current git root
    paths: PathsConfig = field(default_factory=PathsConfig)
    ignore: IgnoreConfig = field(default_factory=IgnoreConfig)


@dataclass
class RepobotConfig:
    """Complete Repobot configuration."""
    ai: AIConfig = field(default_factory=AIConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    reporting: ReportingConfig = field(default_factory=ReportingConfig)
    repository: RepositoryConfig = field(default_factory=RepositoryConfig)
    # where the file was (or would be) loaded from
    config_path: Path | None = field(default=None, repr=False, compare=False)

    def get_repo_path(self) -> Path:
        """Get the repository path, resolving relative paths against the config file."""
        if self.repository.root:
            path = Path(self.repository.root).expanduser()
            if not path.is_absolute():
                base = self.config_path.parent if self.config_path else get_repo_root()
                path = base / path
            return path.resolve()
        if self.config_path:
            return self.config_path.parent.resolve()
        return get_repo_root()

    @classmethod
    def load(cls, repo_root: Path) -> "RepobotConfig":
        """Load configuration from repo root directory. Missing file means defaults."""
        config_path = repo_root / CONFIG_FILENAME
        if not config_path.exists():
            config = cls()
            config.config_path = config_path
            return config

        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read {config_path}: {e}") from e

        config = cls.from_dict(data)
        config.config_path = config_path
        return config

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RepobotConfig":
        """Build a validated config from parsed YAML, filling in defaults."""
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration root must be a mapping")
        config = _build(cls, data, "")
        config.validate()
        return config

    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data.pop("config_path", None)
        return data

    def save(self, path: Path | None = None) -> Path:
        """Write the configuration back as YAML."""
        path = path or self.config_path
        if path is None:
            raise ConfigurationError("No configuration file path to save to")
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)
        self.config_path = path
        return path

    def validate(self) -> None:
        """Check value types. Raises ConfigurationError on the first problem."""
        if not self.ai.provider:
            raise ConfigurationError("ai.provider must not be empty")
        if not self.ai.model:
            raise ConfigurationError("ai.model must not be empty")
        for key in ("todos", "documentation"):
            patterns = getattr(self.repository.paths, key)
            if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
                raise ConfigurationError(f"repository.paths.{key} must be a list of glob strings")
        if not isinstance(self.repository.ignore.extra, list):
            raise ConfigurationError("repository.ignore.extra must be a list of file names")

    def get_value(self, key: str) -> Any:
        """Get a value by dotted key, e.g. `repository.paths.todos`."""
        node: Any = self
        for part in key.split("."):
            if not dataclasses.is_dataclass(node) or part not in _field_names(node):
                raise ConfigurationError(f"Unknown configuration key: {key}")
            node = getattr(node, part)
        if dataclasses.is_dataclass(node):
            return dataclasses.asdict(node)
        return node

    def set_value(self, key: str, raw: str) -> Any:
        """
        Set a leaf value by dotted key, coercing the string to the field's type.

        Lists are comma-separated. Sections cannot be replaced wholesale.
        """
        *parents, leaf = key.split(".")
        node: Any = self
        for part in parents:
            if not dataclasses.is_dataclass(node) or part not in _field_names(node):
                raise ConfigurationError(f"Unknown configuration key: {key}")
            node = getattr(node, part)
        if not dataclasses.is_dataclass(node) or leaf not in _field_names(node):
            raise ConfigurationError(f"Unknown configuration key: {key}")

        current = getattr(node, leaf)
        if dataclasses.is_dataclass(current):
            raise ConfigurationError(f"{key} is a section; set one of its fields instead")

        value = _coerce(key, current, raw)
        setattr(node, leaf, value)
        self.validate()
        return value


def _field_names(obj: Any) -> set[str]:
    return {f.name for f in dataclasses.fields(obj) if f.name != "config_path"}


def _build(cls: type, data: dict[str, Any], prefix: str) -> Any:
    """Instantiate a config dataclass from a dict, recursing into sections."""
    if not isinstance(data, dict):
        raise ConfigurationError(f"{prefix.rstrip('.')} must be a mapping")

    defaults = cls()
    kwargs: dict[str, Any] = {}
    for f in dataclasses.fields(cls):
        if f.name == "config_path" or f.name not in data:
            continue
        value = data[f.name]
        default = getattr(defaults, f.name)
        if dataclasses.is_dataclass(default):
            kwargs[f.name] = _build(type(default), value or {}, f"{prefix}{f.name}.")
        else:
            kwargs[f.name] = _check_type(f"{prefix}{f.name}", default, value)
    return cls(**kwargs)


def _check_type(key: str, default: Any, value: Any) -> Any:
    if value is None or default is None:
        return value
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigurationError(f"{key} must be true or false")
        return value
    if isinstance(default, float) and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if isinstance(default, list) and isinstance(value, str):
        return [value]
    if not isinstance(value, type(default)):
        raise ConfigurationError(f"{key} must be of type {type(default).__name__}")
    return value


def _coerce(key: str, current: Any, raw: str) -> Any:
    """Convert a CLI string into the type of the current value."""
    if isinstance(current, bool):
        lowered = raw.strip().lower()
        if lowered in ("true", "yes", "1", "on"):
            return True
        if lowered in ("false", "no", "0", "off"):
            return False
        raise ConfigurationError(f"{key} expects true or false, got {raw!r}")
    if isinstance(current, int):
        try:
            return int(raw)
        except ValueError:
            raise ConfigurationError(f"{key} expects an integer, got {raw!r}") from None
    if isinstance(current, float):
        try:
            return float(raw)
        except ValueError:
            raise ConfigurationError(f"{key} expects a number, got {raw!r}") from None
    if isinstance(current, list):
        return [item.strip() for item in raw.split(",") if item.strip()]
    if raw.strip() == "null":
        return None
    return raw


def get_repo_root() -> Path:
    """Find the repository root (directory containing .git)."""
    current = Path.cwd()
    while current != current.parent:
        if (current / ".git").exists():
            return current
        current = current.parent
    # No .git found, use current directory
    return Path.cwd()
