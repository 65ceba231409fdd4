"""Tests for engine configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from evocore.core.config import DATA_DIR_ENV_VAR, EngineConfig, LogConfig
from evocore.core.exceptions import ConfigError


class TestDefaults:
    def test_engine_defaults(self):
        config = EngineConfig()
        assert config.data_dir == Path("data")
        assert config.max_suggestions == 5
        assert config.relevance_threshold == 0.3
        assert config.success_rate_tolerance == 0.1
        assert config.max_template_examples == 20
        assert config.retention_days == 30
        assert config.lock_timeout_seconds == 10.0

    def test_log_defaults(self):
        log = LogConfig()
        assert log.level == "INFO"
        assert log.format == "console"
        assert log.file_path is None

    def test_empty_yaml_uses_defaults(self):
        assert EngineConfig.from_yaml_string("") == EngineConfig()


class TestFromYaml:
    def test_full_document(self, tmp_path):
        path = tmp_path / "evocore.yaml"
        path.write_text(
            "data_dir: /var/lib/evocore\n"
            "max_suggestions: 3\n"
            "relevance_threshold: 0.5\n"
            "logging:\n"
            "  level: DEBUG\n"
            "  format: json\n"
            "  file_path: /var/log/evocore.log\n",
            encoding="utf-8",
        )
        config = EngineConfig.from_yaml(path)

        assert config.data_dir == Path("/var/lib/evocore")
        assert config.max_suggestions == 3
        assert config.relevance_threshold == 0.5
        assert config.logging.level == "DEBUG"
        assert config.logging.format == "json"
        assert config.logging.file_path == Path("/var/log/evocore.log")

    def test_home_is_expanded(self):
        config = EngineConfig.from_yaml_string("data_dir: ~/evocore\n")
        assert "~" not in str(config.data_dir)
        assert config.data_dir.name == "evocore"

    def test_env_overrides_data_dir(self, monkeypatch, tmp_path):
        monkeypatch.setenv(DATA_DIR_ENV_VAR, str(tmp_path / "override"))
        config = EngineConfig.from_yaml_string("data_dir: /ignored\n")
        assert config.data_dir == tmp_path / "override"

    def test_env_overrides_plain_construction(self, monkeypatch, tmp_path):
        monkeypatch.setenv(DATA_DIR_ENV_VAR, str(tmp_path / "override"))
        assert EngineConfig().data_dir == tmp_path / "override"
        assert EngineConfig(data_dir=Path("elsewhere")).data_dir == tmp_path / "override"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Cannot read config file"):
            EngineConfig.from_yaml(tmp_path / "absent.yaml")

    @pytest.mark.parametrize(
        "text",
        [
            "data_dir: [unclosed\n",
            "- just\n- a list\n",
            "max_suggestions: 0\n",
            "relevance_threshold: 1.5\n",
            "logging:\n  level: CHATTY\n",
        ],
    )
    def test_invalid_documents(self, text):
        with pytest.raises(ConfigError):
            EngineConfig.from_yaml_string(text)
