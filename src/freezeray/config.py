"""
Centralized configuration for FreezeRay.

Uses Pydantic BaseSettings for environment variable integration
and validation. All configurable values should be defined here.

Configuration sources (in order of precedence):
1. Explicit overrides (CLI options)
2. `.freezeray.yml` in the project root (or the file given by --config)
3. Environment variables (FREEZERAY_*)
4. Default values

Example:
    from freezeray.config import get_config

    config = get_config()
    print(config.simulator)  # From FREEZERAY_SIMULATOR or default

    # Override at runtime
    config = get_config(simulator="iPhone 16 Pro")
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".freezeray.yml"


class FreezeRayConfig(BaseSettings):
    """
    Central configuration for FreezeRay.

    All settings can be overridden via environment variables
    prefixed with FREEZERAY_.

    Example:
        export FREEZERAY_SIMULATOR="iPhone 16 Pro"
        export FREEZERAY_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="FREEZERAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Project layout
    project_root: str = Field(
        default=".",
        description="Directory holding the Xcode project and FreezeRay/ folder",
    )
    source_paths: Annotated[List[str], NoDecode] = Field(
        default_factory=list,
        description="Roots scanned for @Freeze/@AutoTests (defaults to project_root)",
    )
    fixtures_dir: str = Field(
        default="FreezeRay/Fixtures",
        description="Fixture store root; one directory per frozen version",
    )
    tests_dir: str = Field(
        default="FreezeRay/Tests",
        description="Directory receiving scaffolded, user-owned tests",
    )

    # Dead-drop written by the freeze hook inside the simulator
    extraction_root: str = Field(
        default="/tmp/FreezeRay/Fixtures",
        description="Host-visible directory the freeze hook copies artifacts into",
    )

    # Simulator
    simulator: str = Field(
        default="iPhone 16",
        description="Simulator name (or UDID) used to run the freeze driver",
    )

    # Build conventions (auto-detected when unset)
    project: Optional[str] = Field(default=None, description="Path to .xcworkspace or .xcodeproj")
    scheme: Optional[str] = Field(default=None, description="Xcode scheme")
    test_target: Optional[str] = Field(default=None, description="Test target running the driver")
    app_target: Optional[str] = Field(default=None, description="Module for @testable import")
    test_target_dir: Optional[str] = Field(
        default=None,
        description="Source directory of the test target (defaults to <project_root>/<test_target>)",
    )

    # Logging
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="warning",
        description="Logging level for FreezeRay",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log output format (json for log shippers, text for console)",
    )

    @field_validator("project_root", "extraction_root")
    @classmethod
    def expand_path(cls, v: str) -> str:
        """Expand ~ and environment variables in paths."""
        return os.path.expanduser(os.path.expandvars(v))

    @field_validator("source_paths", mode="before")
    @classmethod
    def split_source_paths(cls, v: Any) -> Any:
        """Accept a JSON list, a single path or a comma-separated string."""
        if isinstance(v, str) and v.strip().startswith("["):
            return json.loads(v)
        if isinstance(v, str):
            return [p.strip() for p in v.split(",") if p.strip()]
        return v

    def resolve(self, value: str) -> Path:
        """Resolve a configured path against project_root."""
        path = Path(os.path.expanduser(value))
        if path.is_absolute():
            return path
        return Path(self.project_root) / path

    @property
    def root_path(self) -> Path:
        return Path(self.project_root)

    def get_fixtures_path(self) -> Path:
        return self.resolve(self.fixtures_dir)

    def get_tests_path(self) -> Path:
        return self.resolve(self.tests_dir)

    def get_extraction_path(self) -> Path:
        return Path(self.extraction_root)

    def get_source_paths(self) -> List[Path]:
        if not self.source_paths:
            return [self.root_path]
        return [self.resolve(p) for p in self.source_paths]


def load_config_file(path: Path) -> Dict[str, Any]:
    """Read a YAML config file into a dict of settings.

    Returns an empty dict if the file does not exist.

    Raises:
        ValueError: If the file is not a YAML mapping.
    """
    if not path.exists():
        return {}
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping, got {type(data).__name__}")
    # Accept kebab-case keys (fixtures-dir) as well as snake_case
    return {str(k).replace("-", "_"): v for k, v in data.items()}


def config_file_path(config_file: Optional[str] = None, project_root: Optional[str] = None) -> Path:
    """The YAML file get_config reads: ``config_file``, else ``<project_root>/.freezeray.yml``."""
    if config_file:
        return Path(config_file)
    root = project_root or os.environ.get("FREEZERAY_PROJECT_ROOT", ".")
    return Path(root) / CONFIG_FILE_NAME


# Global singleton
_config: Optional[FreezeRayConfig] = None


def get_config(config_file: Optional[str] = None, **overrides) -> FreezeRayConfig:
    """
    Get the global configuration instance.

    Creates a singleton on first call. Subsequent calls return
    the same instance unless a config file or overrides are provided.

    Args:
        config_file: YAML file to read (default: <project_root>/.freezeray.yml)
        **overrides: Override any config values; None values are ignored

    Returns:
        FreezeRayConfig instance
    """
    global _config

    overrides = {k: v for k, v in overrides.items() if v is not None}
    if not overrides and config_file is None and _config is not None:
        return _config

    path = config_file_path(config_file, overrides.get("project_root"))
    file_values = load_config_file(path)
    if file_values:
        logger.debug("Loaded configuration from %s", path)

    _config = FreezeRayConfig(**{**file_values, **overrides})
    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
