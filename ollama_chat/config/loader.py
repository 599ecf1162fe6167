"""Load configuration from YAML and environment variables. No hardcoded secrets."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Default config lives next to this module
_DEFAULT_CONFIG_PATH = Path(__file__).parent / "default.yaml"

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant. Keep responses concise and friendly."

# env var -> (section, field)
_ENV_OVERRIDES = {
    "REDIS_URL": ("redis", "url"),
    "OLLAMA_HOST": ("ollama", "host"),
    "OLLAMA_MODEL": ("ollama", "model"),
    "OLLAMA_API": ("ollama", "api"),
    "OLLAMA_API_KEY": ("ollama", "api_key"),
    "STREAM_MIN_WRITE_INTERVAL": ("stream", "min_write_interval"),
    "LOG_LEVEL": ("logging", "level"),
}


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="REDIS_", extra="ignore")
    url: str = "redis://localhost:6379/0"


class OllamaSettings(BaseSettings):
    """Model backend. api: native (Ollama /api/chat) or openai (OpenAI-compatible /v1)."""

    model_config = SettingsConfigDict(env_prefix="OLLAMA_", extra="ignore")
    host: str = "http://localhost:11434"
    model: str = "llama3.2"
    api: str = "native"
    api_key: str = "ollama"
    request_timeout: float = 120.0
    system_prompt: str = DEFAULT_SYSTEM_PROMPT


class StreamSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STREAM_", extra="ignore")
    min_write_interval: float = 0.0
    ttl_seconds: int = 86400


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LOG_", extra="ignore")
    level: str = "INFO"
    use_json: bool = True


class Config(BaseSettings):
    """Application config: YAML + env. Secrets from env only."""

    model_config = SettingsConfigDict(env_nested_delimiter="__", extra="ignore")

    redis: RedisSettings = Field(default_factory=RedisSettings)
    ollama: OllamaSettings = Field(default_factory=OllamaSettings)
    stream: StreamSettings = Field(default_factory=StreamSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def load(cls, config_path: str | Path | None = None) -> "Config":
        path = Path(config_path) if config_path else _DEFAULT_CONFIG_PATH
        yaml_data = _load_yaml(path)
        env_name = os.getenv("OLLAMA_CHAT_ENV", "")
        if env_name:
            yaml_data = _deep_merge(yaml_data, _load_yaml(Path(f"config/{env_name}.yaml")))
        for env_key, (section, field) in _ENV_OVERRIDES.items():
            value = os.getenv(env_key)
            if value:
                yaml_data.setdefault(section, {})[field] = value
        return cls(**yaml_data)


def get_config(config_path: str | Path | None = None) -> Config:
    return Config.load(config_path)
