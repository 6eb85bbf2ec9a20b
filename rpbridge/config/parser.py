"""
Configuration parser.

This module converts validated YAML data into a typed ReporterConfig,
interpolating {{env.NAME}} placeholders along the way.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Mapping

from ..reporting.models import Attribute, LaunchMode
from .models import LaunchConfig, ReporterConfig, ReporterOptions, ServerConfig

# {{env.KEY}}
ENV_PATTERN = re.compile(r"\{\{env\.(\w+)\}\}")


def interpolate_env(value: Any, env: Mapping[str, str]) -> Any:
    """
    Replace {{env.KEY}} placeholders in strings, recursively.

    Unknown keys are left untouched so that the problem stays visible
    in the resulting configuration.
    """
    if isinstance(value, str):
        def replace_env(match: re.Match) -> str:
            var_name = match.group(1)
            return str(env.get(var_name, match.group(0)))
        return ENV_PATTERN.sub(replace_env, value)
    elif isinstance(value, dict):
        return {k: interpolate_env(v, env) for k, v in value.items()}
    elif isinstance(value, list):
        return [interpolate_env(v, env) for v in value]
    return value


class ConfigParser:
    """Parses and converts validated YAML to a typed ReporterConfig."""

    def __init__(self, data: dict[str, Any], env: Mapping[str, str] | None = None):
        self.data = interpolate_env(data, os.environ if env is None else env)

    def parse(self) -> ReporterConfig:
        """Convert validated data to a typed ReporterConfig."""
        return ReporterConfig(
            version=self.data["version"],
            server=self._parse_server(),
            launch=self._parse_launch(),
            reporter=self._parse_reporter(),
        )

    def _parse_server(self) -> ServerConfig | None:
        server = self.data.get("server")
        if server is None:
            return None
        return ServerConfig(
            endpoint=server["endpoint"],
            project=server["project"],
            token=server.get("token"),
            timeout_ms=server.get("timeout_ms", 30000),
        )

    def _parse_launch(self) -> LaunchConfig:
        launch = self.data["launch"]
        return LaunchConfig(
            name=launch["name"],
            description=launch.get("description"),
            mode=LaunchMode(launch.get("mode", LaunchMode.DEFAULT.value)),
            attributes=self._parse_attributes(launch.get("attributes")),
        )

    def _parse_attributes(self, attributes: Any) -> list[Attribute]:
        if not attributes:
            return []
        if isinstance(attributes, dict):
            return [Attribute(key=str(k), value=str(v)) for k, v in attributes.items()]
        return [
            Attribute(
                key=str(a["key"]) if a.get("key") is not None else None,
                value=str(a["value"]),
            )
            for a in attributes
        ]

    def _parse_reporter(self) -> ReporterOptions:
        reporter = self.data.get("reporter", {})
        screenshot_dir = reporter.get("screenshot_dir")
        return ReporterOptions(
            screenshot_dir=Path(screenshot_dir) if screenshot_dir else None,
            dry_run=reporter.get("dry_run", False),
            drain_timeout_s=float(reporter.get("drain_timeout_s", 60.0)),
        )
