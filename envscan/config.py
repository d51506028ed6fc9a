"""Configuration loading for envscan (.envscan.yml and process credentials)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml
from dotenv import load_dotenv

from .errors import ConfigError, PreconditionError

CONFIG_FILENAME = ".envscan.yml"

DEFAULT_EXTENSIONS: tuple[str, ...] = (".ts", ".js", ".tsx", ".jsx", ".md", ".json")
DEFAULT_EXCLUDED_DIRS: tuple[str, ...] = ("node_modules", ".git", "dist", "build", ".next")


@dataclass
class LLMConfig:
    """Settings for the analysis model endpoint."""

    model: Optional[str] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    max_tokens: Optional[int] = 4000
    request_timeout: Optional[float] = 120.0


@dataclass
class ScanConfig:
    """Artifact selection and batching settings."""

    extensions: List[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    exclude_dirs: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_DIRS))
    max_artifact_chars: int = 50_000
    batch_size: int = 5
    batch_delay: float = 1.0


@dataclass
class GitHubConfig:
    """Which organization and branch to scan."""

    org: str = "elizaos-plugins"
    branch: str = "1.x"
    exclude_repos: List[str] = field(default_factory=lambda: ["registry"])
    package_delay: float = 2.0
    workspace_dir: Path = Path("./temp-repos")
    manifest_path: str = "package.json"


@dataclass
class PublishConfig:
    """How updated manifests are committed."""

    commit_message: str = "chore: update agentConfig and bump version"
    user_name: str = "Agent Config Scanner"
    user_email: str = "bot@elizaos.ai"
    version_strategy: str = "patch"
    mode: str = "git"


@dataclass
class EnvScanConfig:
    """Represents the high-level settings defined in .envscan.yml."""

    root: Path
    llm: LLMConfig = field(default_factory=LLMConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)


@dataclass(frozen=True)
class Credentials:
    """Access tokens required before any package is processed."""

    openai_api_key: str
    github_token: Optional[str] = None


def load_config(config_path: Path) -> EnvScanConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    config = EnvScanConfig(root=root)
    if config_file.exists():
        data = _read_config(config_file)
        if not isinstance(data, dict):
            raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")
        _apply_llm(config.llm, _as_dict(data.get("llm")))
        _apply_scan(config.scan, _as_dict(data.get("scan")))
        _apply_github(config.github, _as_dict(data.get("github")), root)
        _apply_publish(config.publish, _as_dict(data.get("publish")))

    _apply_environment(config, os.environ)
    _validate(config)
    return config


def load_credentials(
    environ: Mapping[str, str] | None = None,
    *,
    require_github: bool = True,
    dotenv_path: Path | None = None,
) -> Credentials:
    """Read tokens from the environment (after loading ``.env``) or fail fast."""
    if environ is None:
        load_dotenv(dotenv_path=dotenv_path)
        environ = os.environ
    github_token = environ.get("GITHUB_TOKEN")
    openai_api_key = environ.get("OPENAI_API_KEY")
    if require_github and not github_token:
        raise PreconditionError("GITHUB_TOKEN environment variable is not set")
    if not openai_api_key:
        raise PreconditionError("OPENAI_API_KEY environment variable is not set")
    return Credentials(github_token=github_token, openai_api_key=openai_api_key)


def _apply_llm(llm: LLMConfig, data: Dict[str, Any]) -> None:
    if not data:
        return
    llm.model = _as_str(data.get("model")) or llm.model
    llm.base_url = _as_str(data.get("base_url")) or llm.base_url
    llm.api_key = _as_str(data.get("api_key")) or llm.api_key
    max_tokens = _as_int(data.get("max_tokens"))
    if max_tokens is not None:
        llm.max_tokens = max_tokens
    timeout = _as_float(data.get("request_timeout"))
    if timeout is not None:
        llm.request_timeout = timeout


def _apply_scan(scan: ScanConfig, data: Dict[str, Any]) -> None:
    if not data:
        return
    extensions = _as_str_list(data.get("extensions"))
    if extensions:
        scan.extensions = [ext if ext.startswith(".") else f".{ext}" for ext in extensions]
    scan.exclude_dirs.extend(
        name for name in _as_str_list(data.get("exclude_dirs")) if name not in scan.exclude_dirs
    )
    max_chars = _as_int(data.get("max_artifact_chars"))
    if max_chars is not None:
        scan.max_artifact_chars = max_chars
    batch_size = _as_int(data.get("batch_size"))
    if batch_size is not None:
        scan.batch_size = batch_size
    batch_delay = _as_float(data.get("batch_delay"))
    if batch_delay is not None:
        scan.batch_delay = batch_delay


def _apply_github(github: GitHubConfig, data: Dict[str, Any], root: Path) -> None:
    if not data:
        return
    github.org = _as_str(data.get("org")) or github.org
    github.branch = _as_str(data.get("branch")) or github.branch
    if "exclude_repos" in data:
        github.exclude_repos = _as_str_list(data.get("exclude_repos"))
    package_delay = _as_float(data.get("package_delay"))
    if package_delay is not None:
        github.package_delay = package_delay
    workspace = _as_str(data.get("workspace_dir"))
    if workspace:
        github.workspace_dir = root / workspace
    github.manifest_path = _as_str(data.get("manifest_path")) or github.manifest_path


def _apply_publish(publish: PublishConfig, data: Dict[str, Any]) -> None:
    if not data:
        return
    publish.commit_message = _as_str(data.get("commit_message")) or publish.commit_message
    publish.user_name = _as_str(data.get("user_name")) or publish.user_name
    publish.user_email = _as_str(data.get("user_email")) or publish.user_email
    publish.version_strategy = _as_str(data.get("version_strategy")) or publish.version_strategy
    publish.mode = _as_str(data.get("mode")) or publish.mode


def _apply_environment(config: EnvScanConfig, environ: Mapping[str, str]) -> None:
    config.llm.model = environ.get("ENVSCAN_LLM_MODEL") or config.llm.model
    config.llm.base_url = environ.get("OPENAI_BASE_URL") or config.llm.base_url
    config.publish.user_name = environ.get("GIT_USER_NAME") or config.publish.user_name
    config.publish.user_email = environ.get("GIT_USER_EMAIL") or config.publish.user_email


def _validate(config: EnvScanConfig) -> None:
    if config.scan.batch_size < 1:
        raise ConfigError("scan.batch_size must be at least 1")
    if config.scan.batch_delay < 0:
        raise ConfigError("scan.batch_delay must not be negative")
    if config.scan.max_artifact_chars < 1:
        raise ConfigError("scan.max_artifact_chars must be positive")
    if config.publish.version_strategy not in {"patch", "prerelease"}:
        raise ConfigError(
            f"Unknown version strategy '{config.publish.version_strategy}'"
        )
    if config.publish.mode not in {"git", "api"}:
        raise ConfigError(f"Unknown publish mode '{config.publish.mode}'")


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


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


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "Credentials",
    "EnvScanConfig",
    "GitHubConfig",
    "LLMConfig",
    "PublishConfig",
    "ScanConfig",
    "load_config",
    "load_credentials",
]
