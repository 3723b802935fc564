"""Configuration loading for steelheart (.steelheart.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

CONFIG_FILENAME = ".steelheart.yml"
DEFAULT_OUTPUT_DIR = "steelheart-output"
DEFAULT_CODE_EXTENSIONS = (
    ".ts",
    ".tsx",
    ".js",
    ".jsx",
    ".py",
    ".java",
    ".go",
    ".rb",
    ".php",
    ".cs",
    ".cpp",
    ".c",
    ".rs",
    ".kt",
    ".swift",
)

ENV_MODEL_KEYS = ("STEELHEART_MODEL", "OPENAI_MODEL")
ENV_BASE_URL_KEYS = ("STEELHEART_BASE_URL", "OPENAI_BASE_URL")
ENV_API_KEY_KEYS = ("STEELHEART_API_KEY", "OPENAI_API_KEY")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class LLMConfig:
    """Model runtime settings from the ``llm`` section."""

    model: Optional[str] = None
    fallback_model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    max_retries: Optional[int] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    request_timeout: Optional[float] = None


@dataclass
class GitConfig:
    """Comparison settings from the ``git`` section."""

    base_branch: str = "main"
    remote: str = "origin"
    secondary_branch: str = "master"
    fallback_tracked_limit: int = 50
    fallback_modified_limit: int = 20


@dataclass
class SteelheartConfig:
    """Represents the settings defined in .steelheart.yml."""

    root: Path
    llm: LLMConfig = field(default_factory=LLMConfig)
    git: GitConfig = field(default_factory=GitConfig)
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    code_extensions: List[str] = field(default_factory=lambda: list(DEFAULT_CODE_EXTENSIONS))

    def resolve_output_dir(self, override: str | Path | None = None) -> Path:
        target = Path(override) if override else self.output_dir
        return target if target.is_absolute() else self.root / target

    def is_code_file(self, path: str) -> bool:
        return Path(path).suffix.lower() in {ext.lower() for ext in self.code_extensions}


def load_config(
    config_path: Path,
    *,
    environ: Mapping[str, str] | None = None,
) -> SteelheartConfig:
    """Load configuration from disk, filling unset LLM values from the environment."""
    env = os.environ if environ is None else environ
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)

    llm_data = _as_dict(data.get("llm"))
    llm = LLMConfig(
        model=_as_str(llm_data.get("model")) or _first_env_value(env, ENV_MODEL_KEYS),
        fallback_model=_as_str(llm_data.get("fallback_model")),
        temperature=_as_float(llm_data.get("temperature")),
        max_tokens=_as_int(llm_data.get("max_tokens")),
        max_retries=_as_int(llm_data.get("max_retries")),
        base_url=_as_str(llm_data.get("base_url")) or _first_env_value(env, ENV_BASE_URL_KEYS),
        api_key=_as_str(llm_data.get("api_key")) or _first_env_value(env, ENV_API_KEY_KEYS),
        request_timeout=_as_float(llm_data.get("request_timeout")),
    )
    if llm.max_retries is not None and llm.max_retries < 1:
        raise ConfigError("llm.max_retries must be at least 1")

    git_data = _as_dict(data.get("git"))
    defaults = GitConfig()
    git = GitConfig(
        base_branch=_as_str(git_data.get("base_branch")) or defaults.base_branch,
        remote=_as_str(git_data.get("remote")) or defaults.remote,
        secondary_branch=_as_str(git_data.get("secondary_branch")) or defaults.secondary_branch,
        fallback_tracked_limit=_as_positive_int(
            git_data.get("fallback_tracked_limit"), defaults.fallback_tracked_limit
        ),
        fallback_modified_limit=_as_positive_int(
            git_data.get("fallback_modified_limit"), defaults.fallback_modified_limit
        ),
    )

    output_dir = _as_str(data.get("output_dir"))
    extensions = [_normalize_extension(ext) for ext in _as_str_list(data.get("code_extensions"))]

    return SteelheartConfig(
        root=root,
        llm=llm,
        git=git,
        output_dir=Path(output_dir) if output_dir else Path(DEFAULT_OUTPUT_DIR),
        code_extensions=extensions or list(DEFAULT_CODE_EXTENSIONS),
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.suffix not in {".yml", ".yaml"}:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}

    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _first_env_value(env: Mapping[str, str], keys: Sequence[str]) -> Optional[str]:
    for key in keys:
        value = env.get(key)
        if value:
            return value
    return None


def _normalize_extension(value: str) -> str:
    value = value.strip()
    return value if value.startswith(".") else f".{value}"


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_positive_int(value: Any, default: int) -> int:
    parsed = _as_int(value)
    return parsed if parsed is not None and parsed > 0 else default


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float)) and str(item).strip()]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "GitConfig",
    "LLMConfig",
    "SteelheartConfig",
    "load_config",
]
