"""Tests for configuration loading."""

import pytest

from ossdigest_core.config import load_config, load_prompt_template
from ossdigest_core.errors import ConfigError
from ossdigest_core.prompts import DEFAULT_REPOSITORY_TEMPLATE


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["model"] == "openai"
    assert config["period"] == 7
    assert config["summary_workers"] == 4
    assert config["summary_timeout"] == 30
    assert config["summary_max_tokens"] == 500
    assert config["preserve_order"] is True
    assert config["repositories"] == []
    assert config["bot_keywords"] == ["gluten"]


def test_missing_required_file_raises(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(config_path=str(tmp_path / "nonexistent.yml"), required=True)


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".ossdigest.yml"
    cfg.write_text("model: anthropic\nperiod: 14\nrepositories:\n  - apache/gluten\n")
    config = load_config(config_path=str(cfg))
    assert config["model"] == "anthropic"
    assert config["period"] == 14
    assert config["repositories"] == ["apache/gluten"]


def test_comma_separated_lists_split(tmp_path):
    cfg = tmp_path / ".ossdigest.yml"
    cfg.write_text("repositories: apache/gluten, facebookincubator/velox\nteam_members: alice,bob\n")
    config = load_config(config_path=str(cfg))
    assert config["repositories"] == ["apache/gluten", "facebookincubator/velox"]
    assert config["team_members"] == ["alice", "bob"]


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / ".ossdigest.yml"
    cfg.write_text("model: openai\n")
    config = load_config(config_path=str(cfg), cli_overrides={"model": "anthropic"})
    assert config["model"] == "anthropic"


def test_none_cli_overrides_ignored(tmp_path):
    cfg = tmp_path / ".ossdigest.yml"
    cfg.write_text("model: anthropic\n")
    config = load_config(config_path=str(cfg), cli_overrides={"model": None})
    assert config["model"] == "anthropic"


def test_invalid_yaml_raises(tmp_path):
    cfg = tmp_path / ".ossdigest.yml"
    cfg.write_text("model: [unclosed\n")
    with pytest.raises(ConfigError):
        load_config(config_path=str(cfg))


def test_non_mapping_raises(tmp_path):
    cfg = tmp_path / ".ossdigest.yml"
    cfg.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(config_path=str(cfg))


def test_defaults_not_shared_between_loads(tmp_path):
    first = load_config(config_path=str(tmp_path / "none.yml"))
    first["repositories"].append("x/y")
    second = load_config(config_path=str(tmp_path / "none.yml"))
    assert second["repositories"] == []


def test_credentials_read_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "gh-tok")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    config = load_config(config_path=str(tmp_path / "none.yml"))
    assert config["github_token"] == "gh-tok"
    assert config["openai_api_key"] == "sk-test"
    assert config["anthropic_api_key"] is None


class TestPromptTemplate:
    def test_default_without_prompts_dir(self):
        assert load_prompt_template("apache/gluten", {"prompts_dir": None}) == DEFAULT_REPOSITORY_TEMPLATE

    def test_owner_repo_file_preferred(self, tmp_path):
        (tmp_path / "apache").mkdir()
        (tmp_path / "apache" / "gluten.txt").write_text("owner-specific {repo}")
        (tmp_path / "gluten.txt").write_text("repo-only {repo}")
        assert load_prompt_template("apache/gluten", {"prompts_dir": str(tmp_path)}) == "owner-specific {repo}"

    def test_repo_name_file(self, tmp_path):
        (tmp_path / "gluten.txt").write_text("repo-only {repo}")
        assert load_prompt_template("apache/gluten", {"prompts_dir": str(tmp_path)}) == "repo-only {repo}"

    def test_missing_file_falls_back(self, tmp_path):
        assert load_prompt_template("apache/gluten", {"prompts_dir": str(tmp_path)}) == DEFAULT_REPOSITORY_TEMPLATE
