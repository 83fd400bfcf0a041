"""Configuration loading and management for review-approver.

Settings come from an optional JSON file and are then overridden by
REVIEW_APPROVER_* environment variables (a local .env file is loaded by the
CLI before settings are read).
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from review_approver.errors import ConfigurationError

DEFAULT_DENYLIST = ["fee", "nee", "cruul", "leent"]
# Whitespace plus common punctuation; backtick is \x60
DEFAULT_SPLIT_PATTERN = r"[.,\/#!$%\^&\*;:{}=\-_\x60~()\s]"


class RedisSettings(BaseModel):
    """Connection settings for the queue store."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: str | None = None
    # Upper bound on pooled connections shared by overlapping workers
    max_connections: int = 50
    # Per-call timeouts in seconds
    socket_timeout: float = 5.0
    connect_timeout: float = 5.0


class QueueSettings(BaseModel):
    """Names of the broker lists and worker scheduling."""

    request: str = "req_queue"
    processing: str = "proc_queue"
    dead_letter: str = "dead_queue"
    poll_seconds: float = Field(default=5.0, gt=0)
    # A job is rejected for good once attempts + 1 reaches this
    max_attempts: int = Field(default=1, ge=1)
    max_workers: int = Field(default=8, ge=1)


class ReviewerSettings(BaseModel):
    """Content policy settings."""

    denylist: list[str] = Field(default_factory=lambda: list(DEFAULT_DENYLIST))
    split_pattern: str = DEFAULT_SPLIT_PATTERN

    @field_validator("split_pattern")
    @classmethod
    def _compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid split pattern: {e}") from e
        return value


class NotifierSettings(BaseModel):
    """Identity used when writing back to submitters."""

    sender: str = "Bob"
    company: str = "Foo Incorporated"
    guidelines_url: str = "foo.inc/guidelines/community-practices.html"


class ApproverSettings(BaseModel):
    """Top-level settings for the approver worker."""

    redis: RedisSettings = Field(default_factory=RedisSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    reviewers: ReviewerSettings = Field(default_factory=ReviewerSettings)
    notifiers: NotifierSettings = Field(default_factory=NotifierSettings)


ENV_PREFIX = "REVIEW_APPROVER_"

# Environment variable suffix -> (section, field)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "REDIS_HOST": ("redis", "host"),
    "REDIS_PORT": ("redis", "port"),
    "REDIS_DB": ("redis", "db"),
    "REDIS_PASSWORD": ("redis", "password"),
    "REDIS_MAX_CONNECTIONS": ("redis", "max_connections"),
    "REDIS_SOCKET_TIMEOUT": ("redis", "socket_timeout"),
    "REDIS_CONNECT_TIMEOUT": ("redis", "connect_timeout"),
    "REQUEST_QUEUE": ("queue", "request"),
    "PROCESSING_QUEUE": ("queue", "processing"),
    "DEAD_LETTER_QUEUE": ("queue", "dead_letter"),
    "POLL_SECONDS": ("queue", "poll_seconds"),
    "MAX_ATTEMPTS": ("queue", "max_attempts"),
    "MAX_WORKERS": ("queue", "max_workers"),
    "SPLIT_PATTERN": ("reviewers", "split_pattern"),
    "SENDER": ("notifiers", "sender"),
}


def _apply_env(data: dict[str, Any], environ: dict[str, str]) -> dict[str, Any]:
    for suffix, (section, key) in _ENV_OVERRIDES.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value is not None:
            data.setdefault(section, {})[key] = value

    denylist = environ.get(ENV_PREFIX + "DENYLIST")
    if denylist is not None:
        data.setdefault("reviewers", {})["denylist"] = [
            word.strip() for word in denylist.split(",") if word.strip()
        ]
    return data


def load_settings(
    path: Path | str | None = None,
    environ: dict[str, str] | None = None,
) -> ApproverSettings:
    """Load settings from a JSON file and the environment.

    Args:
        path: Optional JSON settings file
        environ: Environment mapping (defaults to os.environ)

    Returns:
        ApproverSettings with overrides applied

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError(
                f"Settings file not found: {config_path}",
                context={"path": str(config_path)},
            )
        try:
            with open(config_path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Settings file is not valid JSON: {e}",
                context={"path": str(config_path)},
            ) from e

    data = _apply_env(data, dict(os.environ if environ is None else environ))

    try:
        return ApproverSettings(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e


def save_settings(path: Path | str, settings: ApproverSettings) -> Path:
    """Save settings to JSON with atomic write.

    Args:
        path: Target file
        settings: Settings to save

    Returns:
        Path to the saved file
    """
    config_path = Path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = config_path.with_name(config_path.name + ".tmp")

    # Atomic write: write to temp file, then rename
    with open(temp_path, "w", encoding="utf-8") as f:
        json.dump(settings.model_dump(), f, indent=2)

    temp_path.replace(config_path)
    return config_path


def apply_overrides(settings: ApproverSettings, **overrides: Any) -> ApproverSettings:
    """Return new settings with `section__field` overrides applied.

    None values are skipped. The result is validated like a loaded file.

    Raises:
        ConfigurationError: If an override names an unknown field or is invalid
    """
    data = settings.model_dump()
    for key, value in overrides.items():
        if value is None:
            continue
        section, _, name = key.partition("__")
        if section not in data or name not in data[section]:
            raise ConfigurationError(f"Unknown setting: {key}")
        data[section][name] = value

    try:
        return ApproverSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e
