"""
Configuration loader.

This module provides the public API for loading and validating
reporter configuration from disk or from YAML strings.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

import yaml

from .models import LaunchConfig, ReporterConfig, ReporterOptions
from .parser import ConfigParser
from .validation import ConfigValidator, ValidationResult


def load_config(
    path: str | Path,
    env: Mapping[str, str] | None = None,
) -> tuple[ReporterConfig | None, ValidationResult]:
    """
    Load and validate a reporter configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file
        env: Mapping used for {{env.NAME}} placeholders (defaults to os.environ)

    Returns:
        Tuple of (ReporterConfig or None, ValidationResult)
        If validation fails, ReporterConfig will be None.

    Example:
        config, result = load_config("rpbridge.yaml")
        if not result.is_valid:
            print(result)
            sys.exit(1)
    """
    path = Path(path)

    if not path.exists():
        result = ValidationResult()
        result.add_error(
            str(path),
            "File not found",
            suggestion="Check the file path is correct"
        )
        return None, result

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        result = ValidationResult()
        result.add_error(
            str(path),
            f"Invalid YAML syntax: {e}",
            suggestion="Check YAML formatting (indentation, colons, etc.)"
        )
        return None, result

    return _build(data, str(path), env)


def validate_config_yaml(
    yaml_string: str,
    env: Mapping[str, str] | None = None,
) -> tuple[ReporterConfig | None, ValidationResult]:
    """
    Validate a configuration from a YAML string (useful for testing).

    Returns:
        Tuple of (ReporterConfig or None, ValidationResult)
    """
    try:
        data = yaml.safe_load(yaml_string)
    except yaml.YAMLError as e:
        result = ValidationResult()
        result.add_error("yaml", f"Invalid YAML syntax: {e}")
        return None, result

    return _build(data, "yaml", env)


def dry_run_config(launch_name: str = "rpbridge dry run") -> ReporterConfig:
    """A configuration that reports into memory only."""
    return ReporterConfig(
        launch=LaunchConfig(name=launch_name),
        reporter=ReporterOptions(dry_run=True),
    )


def _build(
    data: Any,
    origin: str,
    env: Mapping[str, str] | None,
) -> tuple[ReporterConfig | None, ValidationResult]:
    if not isinstance(data, dict):
        result = ValidationResult()
        result.add_error(
            origin,
            "Content must be a YAML object (not a list or scalar)",
            value=type(data).__name__
        )
        return None, result

    validator = ConfigValidator(data)
    result = validator.validate()

    if not result.is_valid:
        return None, result

    return ConfigParser(data, env).parse(), result
