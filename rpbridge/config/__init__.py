"""
Reporter configuration

This package loads, validates and parses the YAML file that tells the
reporter where the reporting service lives and how to name the launch.

Usage:
    from rpbridge.config import load_config

    config, result = load_config("rpbridge.yaml")
    if not result.is_valid:
        print(result)
"""

from .loader import dry_run_config, load_config, validate_config_yaml
from .models import LaunchConfig, ReporterConfig, ReporterOptions, ServerConfig
from .parser import ConfigParser, interpolate_env
from .validation import ConfigValidator, ValidationError, ValidationResult

__all__ = [
    # Loader functions
    "load_config",
    "validate_config_yaml",
    "dry_run_config",
    # Models
    "ReporterConfig",
    "ServerConfig",
    "LaunchConfig",
    "ReporterOptions",
    # Parsing
    "ConfigParser",
    "interpolate_env",
    # Validation
    "ValidationResult",
    "ValidationError",
    "ConfigValidator",
]
