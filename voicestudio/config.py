"""Persisted configuration management."""

from __future__ import annotations

import json
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any, Optional

from .models import Config, Provider

APP_DIR = Path.home() / ".voicestudio"
CONFIG_PATH = (APP_DIR / "config.json").expanduser()

API_KEY_ENV = {
    Provider.OPENAI: "OPENAI_API_KEY",
    Provider.DEEPGRAM: "DEEPGRAM_API_KEY",
    Provider.GEMINI: "GEMINI_API_KEY",
}


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded or saved."""


def load_config() -> Config:
    if not CONFIG_PATH.exists():
        return Config()
    try:
        payload = json.loads(CONFIG_PATH.read_text())
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Failed to parse configuration file: {exc}") from exc
    try:
        return Config(**payload)
    except TypeError as exc:
        raise ConfigError(f"Invalid configuration file: {exc}") from exc


def save_config(config: Config) -> None:
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    data = {k: v for k, v in asdict(config).items() if v is not None}
    CONFIG_PATH.write_text(json.dumps(data, indent=2))


def update_config(**kwargs: Any) -> Config:
    config = load_config()
    for key, value in kwargs.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            raise ConfigError(f"Unknown configuration key: {key}")
    if kwargs.get("default_provider") is not None:
        try:
            Provider(config.default_provider)
        except ValueError as exc:
            raise ConfigError(f"Unknown provider: {config.default_provider}") from exc
    if kwargs.get("max_chunk_seconds") is not None and config.max_chunk_seconds <= 0:
        raise ConfigError("max_chunk_seconds must be positive")
    save_config(config)
    return config


def api_key_for(provider: Provider, config: Config) -> Optional[str]:
    """Return the configured key for ``provider``, falling back to its environment variable."""

    stored = getattr(config, f"{Provider(provider).value}_api_key")
    if stored:
        return stored
    return os.getenv(API_KEY_ENV[Provider(provider)]) or None


def recordings_root(config: Config) -> Path:
    if config.recordings_dir:
        return Path(config.recordings_dir).expanduser()
    return APP_DIR / "recordings"
