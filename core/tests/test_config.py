"""Tests for configuration loading and structured logging."""

import json
import logging

import pytest

import mediagraph.config as config_module
from mediagraph.config import DEFAULT_RATE_LIMIT_DELAYS, DEFAULT_SERVICE_URL, EngineConfig
from mediagraph.observability import clear_trace_context, get_trace_context, set_trace_context
from mediagraph.observability.logging import HumanReadableFormatter, StructuredFormatter


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "configuration.json"
    monkeypatch.setattr(config_module, "MEDIAGRAPH_CONFIG_FILE", path)
    for var in ("MEDIAGRAPH_SERVICE_URL", *config_module.API_KEY_HEADERS.values()):
        monkeypatch.delenv(var, raising=False)
    return path


class TestEngineConfig:
    def test_defaults_without_file(self, config_file):
        config = EngineConfig()

        assert config.service_base_url == DEFAULT_SERVICE_URL
        assert config.api_keys == {}
        assert config.rate_limit_delays == DEFAULT_RATE_LIMIT_DELAYS
        assert config.history_limit == 100
        assert config.paste_offset == (50.0, 50.0)

    def test_values_from_file(self, config_file):
        config_file.write_text(
            json.dumps(
                {
                    "services": {"base_url": "http://render-box:3000/", "timeout": 30},
                    "api_keys": {"GEMINI_API_KEY": "from-file"},
                    "history": {"limit": 25},
                    "rate_limit_delays": {"videoGenerate": 0, "music": 1.5},
                }
            )
        )

        config = EngineConfig()

        assert config.service_base_url == "http://render-box:3000"
        assert config.request_timeout == 30
        assert config.api_keys == {"x-gemini-api-key": "from-file"}
        assert config.history_limit == 25
        assert config.rate_limit_delays == {"videoGenerate": 0, "music": 1.5}

    def test_environment_wins(self, config_file, monkeypatch):
        config_file.write_text(json.dumps({"api_keys": {"OPENAI_API_KEY": "file"}}))
        monkeypatch.setenv("MEDIAGRAPH_SERVICE_URL", "http://env-host/")
        monkeypatch.setenv("OPENAI_API_KEY", "env")

        config = EngineConfig()

        assert config.service_base_url == "http://env-host"
        assert config.api_keys == {"x-openai-api-key": "env"}

    def test_corrupt_file_is_ignored(self, config_file):
        config_file.write_text("{nope")

        assert EngineConfig().service_base_url == DEFAULT_SERVICE_URL


def make_record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("mediagraph.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogging:
    def setup_method(self):
        clear_trace_context()

    def teardown_method(self):
        clear_trace_context()

    def test_trace_context_merges(self):
        set_trace_context(run_id="abc123", workflow_id="workflow-1")
        set_trace_context(node_id="prompt-1")

        assert get_trace_context() == {"run_id": "abc123", "workflow_id": "workflow-1", "node_id": "prompt-1"}

    def test_json_format_carries_context(self):
        set_trace_context(run_id="abc123", node_id="nanoBanana-2")

        entry = json.loads(StructuredFormatter().format(make_record("\033[32m✓ done\033[0m", service="generate")))

        assert entry["message"] == "✓ done"
        assert entry["run_id"] == "abc123"
        assert entry["node_id"] == "nanoBanana-2"
        assert entry["service"] == "generate"
        assert entry["level"] == "info"

    def test_human_format_prefix(self):
        set_trace_context(run_id="abcdef123456", node_id="output-3")

        line = HumanReadableFormatter().format(make_record("hello"))

        assert "[run:abcdef12 | node:output-3] hello" in line

    def test_human_format_without_context(self):
        line = HumanReadableFormatter().format(make_record("plain"))

        assert line.endswith("plain")
        assert "run:" not in line
