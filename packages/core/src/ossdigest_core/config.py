import os
from pathlib import Path
from typing import Optional

import yaml

from ossdigest_core.errors import ConfigError
from ossdigest_core.prompts import DEFAULT_REPOSITORY_TEMPLATE

DEFAULT_CONFIG: dict = {
    "model": "openai",  # "openai" | "anthropic" | "azure"
    "repositories": [],
    "end_date": None,  # None = today
    "period": 7,  # days before end_date
    "team_members": [],  # GitHub logins reported under team activity
    "team_name": "Team",
    "bot_keywords": ["gluten"],  # project names whose "*bot*" accounts are automation
    "output_dir": "output",
    "prompts_dir": None,  # directory of per-repository prompt templates
    "summary_workers": 4,
    "summary_timeout": 30,  # seconds per commit summary
    "summary_max_tokens": 500,
    "preserve_order": True,  # summarize sequentially in commit order
    "shutdown_grace": 30,  # seconds to let in-flight summaries finish
    "categorize_limit": 50,  # commits listed in the categorization prompt
    "llm_retries": 1,
    "azure_endpoint": None,
    "azure_deployment": None,
    "azure_api_version": "2024-02-01",
}

_LIST_KEYS = ("repositories", "team_members", "bot_keywords")


def load_config(
    config_path: str = ".ossdigest.yml",
    cli_overrides: Optional[dict] = None,
    required: bool = False,
) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .ossdigest.yml in the current directory
      3. CLI argument overrides

    A missing file is only an error when ``required`` is set (the user named
    the file explicitly).
    """
    config = {**DEFAULT_CONFIG, **{k: list(DEFAULT_CONFIG[k]) for k in _LIST_KEYS}}

    path = Path(config_path)
    if path.exists():
        try:
            with open(path) as f:
                file_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not read config file {config_path}: {e}") from e
        if not isinstance(file_config, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping, got {type(file_config).__name__}")
        config.update(file_config)
    elif required:
        raise ConfigError(f"Config file not found: {config_path}")

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Comma-separated strings are accepted wherever a list is expected.
    for key in _LIST_KEYS:
        value = config.get(key)
        if isinstance(value, str):
            config[key] = [item.strip() for item in value.split(",") if item.strip()]
        elif value is None:
            config[key] = []

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")
    config["azure_openai_api_key"] = os.environ.get("AZURE_OPENAI_API_KEY")

    return config


def load_prompt_template(repo_name: str, config: dict) -> str:
    """
    Load the repository prompt template.

    Looks for ``<prompts_dir>/<owner>/<repo>.txt`` and then
    ``<prompts_dir>/<repo>.txt``. Falls back to the built-in template when no
    prompts directory is configured or neither file exists.
    """
    prompts_dir = config.get("prompts_dir")
    if not prompts_dir:
        return DEFAULT_REPOSITORY_TEMPLATE

    base = Path(prompts_dir)
    project = repo_name.rsplit("/", 1)[-1]
    for candidate in (base / f"{repo_name}.txt", base / f"{project}.txt"):
        if candidate.is_file():
            return candidate.read_text(encoding="utf-8")

    return DEFAULT_REPOSITORY_TEMPLATE
