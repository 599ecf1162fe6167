"""Tests for config loading."""

from __future__ import annotations

from ollama_chat.config.loader import (
    DEFAULT_SYSTEM_PROMPT,
    Config,
    _deep_merge,
    _load_yaml,
    get_config,
)


def test_load_yaml_missing(tmp_path):
    assert _load_yaml(tmp_path / "nonexistent.yaml") == {}


def test_load_yaml_exists(tmp_path):
    path = tmp_path / "test.yaml"
    path.write_text("redis:\n  url: redis://custom:6380/2\n")
    data = _load_yaml(path)
    assert data["redis"]["url"] == "redis://custom:6380/2"


def test_defaults(monkeypatch):
    monkeypatch.delenv("REDIS_URL", raising=False)
    config = Config.load()
    assert config.ollama.host == "http://localhost:11434"
    assert config.ollama.model == "llama3.2"
    assert config.ollama.api == "native"
    assert config.ollama.system_prompt == DEFAULT_SYSTEM_PROMPT
    assert config.stream.min_write_interval == 0.0
    assert config.redis.url == "redis://localhost:6379/0"


def test_config_load_from_path(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "ollama:\n  host: http://gpu:11434\n  model: qwen2.5\nstream:\n  min_write_interval: 0.25\n"
    )
    config = Config.load(config_path=path)
    assert config.ollama.host == "http://gpu:11434"
    assert config.ollama.model == "qwen2.5"
    assert config.stream.min_write_interval == 0.25


def test_config_env_override(monkeypatch):
    monkeypatch.setenv("REDIS_URL", "redis://test:6379/5")
    monkeypatch.setenv("OLLAMA_HOST", "http://ollama:11434")
    monkeypatch.setenv("OLLAMA_MODEL", "mistral")
    config = Config.load()
    assert config.redis.url == "redis://test:6379/5"
    assert config.ollama.host == "http://ollama:11434"
    assert config.ollama.model == "mistral"


def test_env_beats_yaml(monkeypatch, tmp_path):
    path = tmp_path / "c.yaml"
    path.write_text("ollama:\n  model: fromfile\n  api: openai\n")
    monkeypatch.setenv("OLLAMA_MODEL", "fromenv")
    config = Config.load(config_path=path)
    assert config.ollama.model == "fromenv"
    assert config.ollama.api == "openai"


def test_deep_merge():
    base = {"a": 1, "b": {"x": 10, "y": 20}}
    override = {"b": {"y": 22, "z": 30}, "c": 3}
    out = _deep_merge(base, override)
    assert out == {"a": 1, "b": {"x": 10, "y": 22, "z": 30}, "c": 3}
    assert base["b"] == {"x": 10, "y": 20}


def test_env_overlay_file(monkeypatch, tmp_path):
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "staging.yaml").write_text("ollama:\n  model: staging-model\n")
    monkeypatch.setenv("OLLAMA_CHAT_ENV", "staging")
    monkeypatch.chdir(tmp_path)
    config = Config.load()
    assert config.ollama.model == "staging-model"
    assert config.ollama.host == "http://localhost:11434"


def test_env_overlay_missing_file(monkeypatch, tmp_path):
    monkeypatch.setenv("OLLAMA_CHAT_ENV", "nope")
    monkeypatch.chdir(tmp_path)
    config = Config.load()
    assert config.redis.url == "redis://localhost:6379/1"


def test_get_config(monkeypatch, tmp_path):
    path = tmp_path / "c.yaml"
    path.write_text("redis:\n  url: redis://getconfig:6379/0\nollama:\n  model: fromfile\n")
    monkeypatch.delenv("REDIS_URL", raising=False)
    config = get_config(config_path=str(path))
    assert config.ollama.model == "fromfile"
    assert config.redis.url == "redis://getconfig:6379/0"
