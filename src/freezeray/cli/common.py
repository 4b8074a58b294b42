"""Shared helpers for FreezeRay commands."""

from __future__ import annotations

from typing import Optional

import click
import yaml
from pydantic import ValidationError

from freezeray.config import FreezeRayConfig, config_file_path, get_config
from freezeray.errors import InvalidConfiguration
from freezeray.logger import configure_logging
from freezeray.pipeline import FreezePipeline


def load_config(ctx: click.Context, **overrides) -> FreezeRayConfig:
    """Build the config for a command: CLI options over file, env and defaults."""
    obj = ctx.find_object(dict) or {}
    try:
        config = get_config(config_file=obj.get("config_file"), **overrides)
    except (ValidationError, yaml.YAMLError, ValueError) as e:
        path = config_file_path(obj.get("config_file"), overrides.get("project_root"))
        raise InvalidConfiguration(path, str(e)) from e

    level = config.log_level
    if obj.get("verbose", 0) >= 2:
        level = "debug"
    elif obj.get("verbose", 0) == 1 and level in ("warning", "error"):
        level = "info"
    configure_logging(level=level, fmt=config.log_format)
    return config


def make_pipeline(ctx: click.Context, config: FreezeRayConfig, output: Optional[str] = None) -> FreezePipeline:
    """Pipeline for ``config``; tests inject a scripted runner through ``ctx.obj``."""
    obj = ctx.find_object(dict) or {}
    return FreezePipeline(config, runner=obj.get("runner"), fixtures_root=output)


def source_option(f):
    return click.option(
        "--source",
        "source_paths",
        multiple=True,
        type=click.Path(),
        help="Source root to scan (repeatable; default: project root)",
    )(f)


def project_root_option(f):
    return click.option(
        "--project-root",
        type=click.Path(file_okay=False),
        help="Project root (default: current directory)",
    )(f)
