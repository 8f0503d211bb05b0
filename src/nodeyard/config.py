"""Nodeyard configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (NODEYARD_PROJECTS_DIR, NODEYARD_ENVIRONMENTS_DIR,
     NODEYARD_LOG_LEVEL)
  3. Per-directory nodeyard.yaml  (current working directory)
  4. Global ~/.nodeyard/config.yaml
  5. Hardcoded defaults

All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from nodeyard.frameworks import Framework, parse_framework

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".nodeyard"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "nodeyard.yaml"

_DEFAULT_PROJECTS_DIR = "~/NodeyardProjects"
_DEFAULT_ENVIRONMENTS_DIR = "~/.nodeyard/environments"

_LOG_LEVELS: frozenset[str] = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])

# Known top-level sections; unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(["workspace", "frameworks", "archive", "logging"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class WorkspaceCfg:
    """Where node project trees and managed environments live (workspace:)."""

    projects_dir: str = _DEFAULT_PROJECTS_DIR
    environments_dir: str = _DEFAULT_ENVIRONMENTS_DIR

    @property
    def projects_path(self) -> Path:
        return Path(self.projects_dir).expanduser()

    @property
    def environments_path(self) -> Path:
        return Path(self.environments_dir).expanduser()


@dataclass
class FrameworksCfg:
    """Frameworks offered when adding nodes (frameworks:). Empty means all."""

    enabled: list[Framework] = field(default_factory=list)


@dataclass
class ArchiveCfg:
    """Archive writing options (archive:)."""

    compression_level: int = 6


@dataclass
class LoggingCfg:
    level: str = "WARNING"


@dataclass
class NodeyardConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    workspace: WorkspaceCfg = field(default_factory=WorkspaceCfg)
    frameworks: FrameworksCfg = field(default_factory=FrameworksCfg)
    archive: ArchiveCfg = field(default_factory=ArchiveCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)

    def enabled_frameworks(self) -> list[Framework]:
        return list(self.frameworks.enabled) if self.frameworks.enabled else list(Framework)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping, got {type(value).__name__}")
    return value


def _validate_level(level: str) -> str:
    normalized = str(level).upper()
    if normalized not in _LOG_LEVELS:
        raise ConfigError(
            f"logging.level must be one of {', '.join(sorted(_LOG_LEVELS))}, got '{level}'"
        )
    return normalized


def _validate_compression(value: Any) -> int:
    try:
        level = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"archive.compression_level must be an integer, got '{value}'") from None
    if not 0 <= level <= 9:
        raise ConfigError(f"archive.compression_level must be between 0 and 9, got {level}")
    return level


def _parse_enabled(raw: Any) -> list[Framework]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError("frameworks.enabled must be a list of framework names")
    enabled: list[Framework] = []
    for item in raw:
        try:
            framework = parse_framework(str(item))
        except ValueError as exc:
            raise ConfigError(f"frameworks.enabled: {exc}") from None
        if framework not in enabled:
            enabled.append(framework)
    return enabled


def validate_projects_dir(path: Path) -> Path:
    """Return *path* expanded if it is (or can become) a writable directory.

    Raises:
        ConfigError: If *path* exists but is not a directory, or its nearest
            existing ancestor is not writable.
    """
    target = Path(path).expanduser()
    if target.exists():
        if not target.is_dir():
            raise ConfigError(f"Projects directory '{target}' exists but is not a directory")
        probe = target
    else:
        probe = target.parent
        while not probe.exists() and probe != probe.parent:
            probe = probe.parent
        if not probe.is_dir():
            raise ConfigError(f"Projects directory '{target}' cannot be created under '{probe}'")
    if not os.access(probe, os.W_OK):
        raise ConfigError(f"Projects directory '{target}' is not writable")
    return target


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> NodeyardConfig:
    """Build a *NodeyardConfig* from a merged raw YAML dict."""
    cfg = NodeyardConfig()

    if "workspace" in data:
        w = _section(data, "workspace")
        cfg.workspace = WorkspaceCfg(
            projects_dir=str(w.get("projects_dir", cfg.workspace.projects_dir)),
            environments_dir=str(w.get("environments_dir", cfg.workspace.environments_dir)),
        )

    if "frameworks" in data:
        cfg.frameworks = FrameworksCfg(enabled=_parse_enabled(_section(data, "frameworks").get("enabled")))

    if "archive" in data:
        a = _section(data, "archive")
        cfg.archive = ArchiveCfg(
            compression_level=_validate_compression(
                a.get("compression_level", cfg.archive.compression_level)
            ),
        )

    if "logging" in data:
        lg = _section(data, "logging")
        cfg.logging = LoggingCfg(level=_validate_level(lg.get("level", cfg.logging.level)))

    return cfg


def _apply_env_overrides(cfg: NodeyardConfig) -> NodeyardConfig:
    """Apply NODEYARD_* environment variable overrides (layer 2)."""
    if projects := os.environ.get("NODEYARD_PROJECTS_DIR"):
        cfg.workspace.projects_dir = projects
    if environments := os.environ.get("NODEYARD_ENVIRONMENTS_DIR"):
        cfg.workspace.environments_dir = environments
    if level := os.environ.get("NODEYARD_LOG_LEVEL"):
        cfg.logging.level = _validate_level(level)
    return cfg


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file '{path}' is not valid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping at the top level")
    return raw


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> NodeyardConfig:
    """Load and return a merged *NodeyardConfig*.

    Applies layers in order: global → per-directory → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *nodeyard.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If a file is not valid YAML or holds an invalid value.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-directory config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    return cfg


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.nodeyard/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# Nodeyard global configuration.\n"
            "# Per-directory overrides go in nodeyard.yaml.\n"
            "\n"
            "workspace:\n"
            f"  projects_dir: {_DEFAULT_PROJECTS_DIR}\n"
            f"  environments_dir: {_DEFAULT_ENVIRONMENTS_DIR}\n"
            "\n"
            "archive:\n"
            "  compression_level: 6\n"
            "\n"
            "logging:\n"
            "  level: WARNING\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
