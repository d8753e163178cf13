"""Configuration management for contextkit."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from contextkit.exceptions import ConfigError

CONTEXTKIT_DIR = ".contextkit"
CONFIG_FILE = "config.json"

# Base weights used by the relevance defaults
HIGH = 100.0
MEDIUM = 80.0
LOW = 50.0

DEFAULT_ALLOW_LIST = [
    # Code
    ".py", ".pyi", ".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx", ".vue", ".svelte",
    ".java", ".kt", ".kts", ".scala", ".go", ".rs", ".c", ".h", ".cc", ".cpp", ".hpp",
    ".cs", ".rb", ".php", ".swift", ".m", ".dart", ".lua", ".r", ".jl", ".ex", ".exs",
    ".erl", ".hs", ".clj", ".sh", ".bash", ".zsh", ".ps1", ".sql",
    # Markup, styles and data
    ".html", ".htm", ".css", ".scss", ".sass", ".less", ".md", ".rst", ".txt",
    ".json", ".jsonc", ".yaml", ".yml", ".toml", ".ini", ".cfg", ".xml", ".graphql",
    ".proto", ".env.example",
    # Exact filenames
    "Dockerfile", "Makefile", "package.json", "tsconfig.json", "docker-compose.yml",
    "docker-compose.yaml", ".gitignore", ".eslintrc", ".prettierrc", "README.md",
    "CHANGELOG.md", "LICENSE", "CONTRIBUTING.md", "webpack.config.js", "vite.config.ts",
    "vite.config.js", "rollup.config.js", "jest.config.js", "pyproject.toml",
    "setup.cfg", "requirements.txt",
]


class LLMConfig(BaseModel):
    """LLM provider configuration."""

    provider: str = "anthropic"
    model: str = "claude-sonnet-4-5-20250929"
    api_key_env: str = ""
    max_tokens: int = 4096
    temperature: float = 0.0
    base_url: str | None = None
    supports_tools: bool = True  # False forces the single-prompt JSON selection path

    @property
    def api_key(self) -> str | None:
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        env_map = {
            "openai": "OPENAI_API_KEY",
            "anthropic": "ANTHROPIC_API_KEY",
        }
        env_var = env_map.get(self.provider, "")
        return os.environ.get(env_var)


class ScannerConfig(BaseModel):
    """Workspace scanning options."""

    exclude_patterns: list[str] = Field(default_factory=list)
    respect_gitignore: bool = True
    extension_allow_list: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOW_LIST))
    max_file_size_bytes: int = 1024 * 1024
    concurrency_limit: int = 15
    use_cache: bool = True
    cache_ttl_seconds: float = 300.0


class ScoringWeights(BaseModel):
    """Additive weights for each relevance factor."""

    active_file: float = 200.0
    runtime_dependency: float = HIGH * 1.5
    type_dependency: float = MEDIUM
    reverse_dependency: float = MEDIUM
    definition: float = HIGH * 2
    type_definition: float = HIGH
    implementation: float = HIGH
    referenced_type: float = MEDIUM
    call_hierarchy: float = HIGH
    symbol_related: float = MEDIUM
    same_directory: float = LOW
    neighbor_directory: float = LOW
    shared_ancestor: float = LOW


class ScoringToggles(BaseModel):
    """Independent on/off switches for each signal category."""

    active_file: bool = True
    dependencies: bool = True
    symbols: bool = True
    directory: bool = True


class ScoringConfig(BaseModel):
    """Heuristic relevance ranking configuration."""

    enabled: bool = True
    max_candidates: int = 30
    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    toggles: ScoringToggles = Field(default_factory=ScoringToggles)


class SelectionConfig(BaseModel):
    """Agentic file selection configuration."""

    enabled: bool = True
    max_turns: int = 5
    always_investigate: bool = False
    max_tool_output_chars: int = 10_000
    max_prompt_chars: int = 60_000
    use_cache: bool = True
    cache_ttl_seconds: float = 300.0


class SandboxConfig(BaseModel):
    """Command sandbox configuration."""

    max_output_bytes: int = 2 * 1024 * 1024
    vcs_listing: bool = True


class ContextBudget(BaseModel):
    """Character budgets for the assembled context."""

    max_total_chars: int = 1_000_000
    max_per_file_chars: int = 100_000
    max_symbol_chars: int = 100_000
    max_active_symbol_detail_chars: int = 100_000
    max_symbol_entries_per_file: int = 40
    max_existing_paths: int = 1000


class ProjectConfig(BaseModel):
    """Full project configuration."""

    name: str = ""
    root_path: str = "."
    llm: LLMConfig = Field(default_factory=LLMConfig)
    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    budget: ContextBudget = Field(default_factory=ContextBudget)


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from `start` looking for a .contextkit or .git directory."""
    current = (start or Path.cwd()).resolve()
    while True:
        if (current / CONTEXTKIT_DIR).is_dir() or (current / ".git").exists():
            return current
        if current == current.parent:
            return None
        current = current.parent


def get_contextkit_dir(root: Path) -> Path:
    """Get the .contextkit directory for a project root."""
    return root / CONTEXTKIT_DIR


def load_config(root: Path) -> ProjectConfig:
    """Load configuration from .contextkit/config.json."""
    config_path = get_contextkit_dir(root) / CONFIG_FILE
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid config file {config_path}: {e}") from e
        return ProjectConfig(**data)
    return ProjectConfig(name=root.name, root_path=str(root))


def save_config(root: Path, config: ProjectConfig) -> None:
    """Save configuration to .contextkit/config.json."""
    ck_dir = get_contextkit_dir(root)
    ck_dir.mkdir(parents=True, exist_ok=True)
    config_path = ck_dir / CONFIG_FILE
    config_path.write_text(json.dumps(config.model_dump(), indent=2))


def set_config_value(config: ProjectConfig, key: str, value: Any) -> ProjectConfig:
    """Set a nested config value using dot notation (e.g., 'budget.max_total_chars')."""
    parts = key.split(".")
    data = config.model_dump()
    target = data
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            raise KeyError(f"Invalid config key: {key}")
        target = target[part]
    if parts[-1] not in target:
        raise KeyError(f"Invalid config key: {key}")
    target[parts[-1]] = value
    return ProjectConfig(**data)
