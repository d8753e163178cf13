"""Tests for configuration management."""

from __future__ import annotations

from pathlib import Path

import pytest

from contextkit.config import (
    ProjectConfig,
    find_project_root,
    load_config,
    save_config,
    set_config_value,
)
from contextkit.exceptions import ConfigError


class TestConfig:
    def test_default_config(self):
        config = ProjectConfig()
        assert config.llm.provider == "anthropic"
        assert config.selection.max_turns == 5
        assert config.scanner.concurrency_limit == 15
        assert config.budget.max_total_chars == 1_000_000

    def test_default_allow_list(self):
        allow = ProjectConfig().scanner.extension_allow_list
        assert ".py" in allow
        assert ".ts" in allow
        assert "Dockerfile" in allow

    def test_save_and_load(self, tmp_path: Path):
        config = ProjectConfig(name="test-project")
        config.llm.provider = "openai"
        config.llm.model = "gpt-4o"
        config.budget.max_total_chars = 5000

        save_config(tmp_path, config)
        loaded = load_config(tmp_path)

        assert loaded.name == "test-project"
        assert loaded.llm.provider == "openai"
        assert loaded.llm.model == "gpt-4o"
        assert loaded.budget.max_total_chars == 5000

    def test_load_without_file(self, tmp_path: Path):
        config = load_config(tmp_path)
        assert config.name == tmp_path.name

    def test_load_invalid_json(self, tmp_path: Path):
        (tmp_path / ".contextkit").mkdir()
        (tmp_path / ".contextkit" / "config.json").write_text("{not json")
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_find_project_root(self, tmp_path: Path):
        assert find_project_root(tmp_path) is None

        (tmp_path / ".contextkit").mkdir()
        assert find_project_root(tmp_path) == tmp_path

        sub = tmp_path / "src" / "module"
        sub.mkdir(parents=True)
        assert find_project_root(sub) == tmp_path

    def test_find_project_root_git(self, tmp_path: Path):
        (tmp_path / ".git").mkdir()
        assert find_project_root(tmp_path) == tmp_path

    def test_set_config_value(self):
        config = ProjectConfig()
        updated = set_config_value(config, "llm.provider", "openai")
        assert updated.llm.provider == "openai"

    def test_set_config_nested(self):
        config = ProjectConfig()
        updated = set_config_value(config, "scoring.weights.same_directory", 75.0)
        assert updated.scoring.weights.same_directory == 75.0

    def test_set_config_invalid_key(self):
        config = ProjectConfig()
        with pytest.raises(KeyError):
            set_config_value(config, "nonexistent.key", "value")

    def test_set_config_invalid_value(self):
        config = ProjectConfig()
        with pytest.raises(ValueError):
            set_config_value(config, "selection.max_turns", "many")

    def test_api_key_from_env(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        config = ProjectConfig()
        config.llm.provider = "openai"
        assert config.llm.api_key == "sk-test"

    def test_api_key_custom_env(self, monkeypatch):
        monkeypatch.setenv("MY_KEY", "abc")
        config = ProjectConfig()
        config.llm.api_key_env = "MY_KEY"
        assert config.llm.api_key == "abc"
