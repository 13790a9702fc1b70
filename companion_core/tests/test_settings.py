import json
import logging

import pytest
from pydantic import ValidationError

from companion_core.config.settings import Settings
from companion_core.infrastructure.logging.logger import JsonFormatter


def test_defaults(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("COMPANION_CONFIG_FILE", str(tmp_path / "missing.yaml"))
    s = Settings()
    assert s.default_provider == "openai"
    assert s.history_window == 10
    assert s.analysis_history_window == 50
    assert s.deep_analysis_cooldown_seconds == 6 * 60 * 60


def test_yaml_file_is_loaded(monkeypatch, tmp_path):
    cfg = tmp_path / "companion.yaml"
    cfg.write_text("persona_name: Rin\nhistory_window: 4\n", encoding="utf-8")
    monkeypatch.setenv("COMPANION_CONFIG_FILE", str(cfg))
    s = Settings()
    assert s.persona_name == "Rin"
    assert s.history_window == 4


def test_env_overrides_yaml(monkeypatch, tmp_path):
    cfg = tmp_path / "companion.yaml"
    cfg.write_text("default_provider: kimi\n", encoding="utf-8")
    monkeypatch.setenv("COMPANION_CONFIG_FILE", str(cfg))
    monkeypatch.setenv("DEFAULT_PROVIDER", "glm")
    assert Settings().default_provider == "glm"


def test_short_api_key_rejected():
    with pytest.raises(ValidationError):
        Settings(openai_api_key="short")


def test_json_formatter_merges_extra():
    record = logging.LogRecord("companion_core", logging.INFO, __file__, 1, "Stored turn", None, None)
    record.extra = {"trace_id": "tr-1", "conversation_level": 0}
    payload = json.loads(JsonFormatter().format(record))
    assert payload["msg"] == "Stored turn"
    assert payload["level"] == "INFO"
    assert payload["conversation_level"] == 0
    assert payload["trace_id"] == "tr-1"
    assert payload["ts"].endswith("Z")
