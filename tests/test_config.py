"""Tests for YAML configuration loading."""

from __future__ import annotations

from dataclasses import fields
from pathlib import Path

import yaml

from newsletter_agent.config import AppConfig, LoggingConfig, ProviderConfig, get_api_key, load_config


def test_missing_path_returns_defaults():
    cfg = load_config(None)

    assert cfg == AppConfig()
    assert cfg.generation.article_limit == 100
    assert cfg.generation.preview_limit == 50
    assert cfg.generation.timeout_seconds == 300.0


def test_yaml_overrides_are_merged_per_section(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "\n".join(
            [
                "server:",
                "  port: 9001",
                "provider:",
                "  name: openai",
                "  model: gpt-4.1-mini",
                "  unknown_key: ignored",
                "generation:",
                "  timeout_seconds: 60",
                "unknown_section:",
                "  foo: bar",
            ]
        ),
        encoding="utf-8",
    )

    cfg = load_config(str(path))

    assert cfg.server.port == 9001
    assert cfg.server.host == "127.0.0.1"
    assert cfg.provider.name == "openai"
    assert cfg.provider.model == "gpt-4.1-mini"
    assert cfg.provider.temperature == 0.7
    assert cfg.generation.timeout_seconds == 60
    assert cfg.generation.article_limit == 100


def test_empty_yaml_file_uses_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")

    assert load_config(str(path)) == AppConfig()


def test_get_api_key_prefers_inline_value(monkeypatch):
    monkeypatch.setenv("GOOGLE_API_KEY", "from-env")

    assert get_api_key(ProviderConfig(api_key="inline")) == "inline"
    assert get_api_key(ProviderConfig()) == "from-env"


def test_example_config_loads_and_every_logging_key_is_used():
    example = Path(__file__).resolve().parents[1] / "config.example.yaml"
    raw = yaml.safe_load(example.read_text(encoding="utf-8"))

    cfg = load_config(str(example))

    assert set(raw["logging"]) == {field.name for field in fields(LoggingConfig)}
    assert cfg.langfuse.redaction == "redact_urls_authors"
