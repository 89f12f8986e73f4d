"""Tests for settings and router config loading."""

import json
from pathlib import Path

import pytest

from llmrouter.config import RouterConfig, Settings, load_router_config
from llmrouter.errors import ConfigError

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config" / "router_config.json"


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("OLLAMA_HOST", "gpu-box")
    monkeypatch.setenv("OLLAMA_PORT", "9999")
    monkeypatch.setenv("BATCH_SIZE", "4")
    monkeypatch.setenv("STORE_PATH", "data/state.json")
    settings = Settings.from_env()
    assert settings.ollama_base_url == "http://gpu-box:9999"
    assert settings.batch_size == 4
    assert settings.store_path == "data/state.json"
    assert settings.request_timeout == 60.0


def test_missing_file_uses_defaults(tmp_path: Path):
    config = load_router_config(tmp_path / "absent.json")
    assert config == RouterConfig()
    assert [r.name for r in config.routing_rules][0] == "image_content"


def test_repo_config_matches_defaults():
    config = load_router_config(REPO_CONFIG)
    defaults = RouterConfig()
    assert config.routing_rules == defaults.routing_rules
    assert config.local_models == defaults.local_models
    assert config.cloud_models == defaults.cloud_models
    assert config.priority_tag_names == frozenset({"bitcoin", "tesla", "solana", "sbr"})


def test_partial_config_overrides_section(tmp_path: Path):
    path = tmp_path / "router_config.json"
    path.write_text(json.dumps({"monitoring": {"alerts": {"high_cost": 2.5}}}))
    config = load_router_config(path)
    assert config.monitoring.alerts.high_cost == 2.5
    assert config.monitoring.alerts.high_latency_ms == 30000
    assert len(config.routing_rules) == 6


def test_invalid_json_is_fatal(tmp_path: Path):
    path = tmp_path / "router_config.json"
    path.write_text("{broken")
    with pytest.raises(ConfigError):
        load_router_config(path)


def test_rule_with_unknown_model_is_fatal(tmp_path: Path):
    path = tmp_path / "router_config.json"
    path.write_text(
        json.dumps(
            {
                "routing_rules": [
                    {
                        "name": "default",
                        "route_to": "cloud",
                        "model": "no_such_model",
                        "reasoning": "x",
                    }
                ]
            }
        )
    )
    with pytest.raises(ConfigError, match="no_such_model"):
        load_router_config(path)


def test_rule_table_must_end_unconditionally(tmp_path: Path):
    path = tmp_path / "router_config.json"
    path.write_text(
        json.dumps(
            {
                "routing_rules": [
                    {
                        "name": "images",
                        "when": {"content_types": ["image"]},
                        "route_to": "local",
                        "model": "vision_analysis",
                        "reasoning": "x",
                    }
                ]
            }
        )
    )
    with pytest.raises(ConfigError, match="unconditional"):
        load_router_config(path)


def test_unknown_destination_is_fatal(tmp_path: Path):
    path = tmp_path / "router_config.json"
    path.write_text(
        json.dumps(
            {
                "routing_rules": [
                    {
                        "name": "default",
                        "route_to": "elsewhere",
                        "model": "general_processing",
                        "reasoning": "x",
                    }
                ]
            }
        )
    )
    with pytest.raises(ConfigError):
        load_router_config(path)


def test_catalog_lookup():
    config = RouterConfig()
    assert "classification" in config.catalog("local")
    assert "cloud_fast" in config.catalog("cloud")
    assert config.catalog("cache") is None


def test_misspelled_condition_is_fatal(tmp_path: Path):
    path = tmp_path / "router_config.json"
    path.write_text(
        json.dumps(
            {
                "routing_rules": [
                    {
                        "name": "short",
                        "when": {"max_lenght": 500},
                        "route_to": "local",
                        "model": "classification",
                        "reasoning": "x",
                    },
                    {
                        "name": "default",
                        "route_to": "local",
                        "model": "general_processing",
                        "reasoning": "x",
                    },
                ]
            }
        )
    )
    with pytest.raises(ConfigError):
        load_router_config(path)
