"""
Validation for reporter configuration files.

This module checks raw parsed YAML against the configuration schema
and reports every problem it finds with a path and a hint.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..reporting.models import LaunchMode


# ─────────────────────────────────────────────────────────────────────────────
# Validation Result Types
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class ValidationError:
    """Represents a single validation error with context."""
    path: str  # e.g., "server.endpoint"
    message: str
    value: Any = None
    suggestion: str | None = None

    def __str__(self) -> str:
        parts = [f"❌ {self.path}: {self.message}"]
        if self.value is not None:
            parts.append(f"   Got: {repr(self.value)}")
        if self.suggestion:
            parts.append(f"   💡 {self.suggestion}")
        return "\n".join(parts)


@dataclass
class ValidationResult:
    """Result of configuration validation."""
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(
        self,
        path: str,
        message: str,
        value: Any = None,
        suggestion: str | None = None
    ) -> None:
        self.errors.append(ValidationError(path, message, value, suggestion))

    def __str__(self) -> str:
        if self.is_valid:
            return "✅ Configuration is valid"
        lines = [f"Configuration validation failed with {len(self.errors)} error(s):\n"]
        lines.extend(str(e) for e in self.errors)
        return "\n".join(lines)


# ─────────────────────────────────────────────────────────────────────────────
# Config Validator
# ─────────────────────────────────────────────────────────────────────────────

class ConfigValidator:
    """Validates raw parsed YAML against the reporter configuration schema."""

    REQUIRED_TOP_LEVEL = {"version", "launch"}
    OPTIONAL_TOP_LEVEL = {"server", "reporter"}
    VALID_MODES = {m.value for m in LaunchMode}

    def __init__(self, data: dict[str, Any]):
        self.data = data
        self.result = ValidationResult()

    @property
    def dry_run(self) -> bool:
        reporter = self.data.get("reporter")
        return isinstance(reporter, dict) and reporter.get("dry_run") is True

    def validate(self) -> ValidationResult:
        """Run all validation checks and return result."""
        self._validate_top_level()
        if not self.result.is_valid:
            return self.result

        self._validate_version()
        self._validate_reporter()
        self._validate_server()
        self._validate_launch()

        return self.result

    def _validate_top_level(self) -> None:
        """Check required and unknown top-level keys."""
        keys = set(self.data.keys())
        missing = self.REQUIRED_TOP_LEVEL - keys
        unknown = keys - self.REQUIRED_TOP_LEVEL - self.OPTIONAL_TOP_LEVEL

        for key in sorted(missing):
            self.result.add_error(
                key,
                f"Required field '{key}' is missing",
                suggestion=f"Add '{key}:' to your configuration file"
            )

        for key in sorted(unknown):
            self.result.add_error(
                key,
                f"Unknown top-level field '{key}'",
                suggestion=f"Valid fields are: {', '.join(sorted(self.REQUIRED_TOP_LEVEL | self.OPTIONAL_TOP_LEVEL))}"
            )

    def _validate_version(self) -> None:
        version = self.data.get("version")
        if not isinstance(version, int) or isinstance(version, bool):
            self.result.add_error(
                "version",
                "Must be an integer",
                value=version,
                suggestion="Use 'version: 1'"
            )
        elif version != 1:
            self.result.add_error(
                "version",
                "Unsupported version",
                value=version,
                suggestion="Only 'version: 1' is understood"
            )

    def _validate_server(self) -> None:
        server = self.data.get("server")
        if server is None:
            if not self.dry_run:
                self.result.add_error(
                    "server",
                    "Required unless reporter.dry_run is true",
                    suggestion="Add a 'server:' block with endpoint and project"
                )
            return
        if not isinstance(server, dict):
            self.result.add_error(
                "server",
                "Must be an object",
                value=server
            )
            return

        endpoint = server.get("endpoint")
        if not endpoint:
            self.result.add_error(
                "server.endpoint",
                "Required field",
                suggestion="Add 'endpoint: \"https://...\"' to server config"
            )
        elif not isinstance(endpoint, str):
            self.result.add_error(
                "server.endpoint",
                "Must be a string",
                value=endpoint
            )
        elif not (endpoint.startswith("http://") or endpoint.startswith("https://")):
            self.result.add_error(
                "server.endpoint",
                "Must be a valid HTTP(S) URL",
                value=endpoint,
                suggestion="URL should start with 'http://' or 'https://'"
            )

        project = server.get("project")
        if not project:
            self.result.add_error(
                "server.project",
                "Required field",
                suggestion="Add 'project: \"my_project\"' to server config"
            )
        elif not isinstance(project, str):
            self.result.add_error(
                "server.project",
                "Must be a string",
                value=project
            )

        token = server.get("token")
        if token is not None and not isinstance(token, str):
            self.result.add_error(
                "server.token",
                "Must be a string",
                value=token,
                suggestion="Use 'token: \"{{env.RP_TOKEN}}\"' to read it from the environment"
            )

        timeout = server.get("timeout_ms")
        if timeout is not None:
            if not isinstance(timeout, int) or isinstance(timeout, bool) or timeout <= 0:
                self.result.add_error(
                    "server.timeout_ms",
                    "Must be a positive integer (milliseconds)",
                    value=timeout
                )

    def _validate_launch(self) -> None:
        launch = self.data.get("launch")
        if not isinstance(launch, dict):
            self.result.add_error(
                "launch",
                "Must be an object",
                value=launch
            )
            return

        name = launch.get("name")
        if not isinstance(name, str):
            self.result.add_error(
                "launch.name",
                "Must be a string",
                value=name
            )
        elif not name.strip():
            self.result.add_error(
                "launch.name",
                "Cannot be empty",
                suggestion="Provide a descriptive name for the launch"
            )

        description = launch.get("description")
        if description is not None and not isinstance(description, str):
            self.result.add_error(
                "launch.description",
                "Must be a string",
                value=description
            )

        mode = launch.get("mode")
        if mode is not None and mode not in self.VALID_MODES:
            self.result.add_error(
                "launch.mode",
                "Invalid launch mode",
                value=mode,
                suggestion=f"Valid modes: {', '.join(sorted(self.VALID_MODES))}"
            )

        attributes = launch.get("attributes")
        if attributes is not None:
            self._validate_attributes(attributes)

    def _validate_attributes(self, attributes: Any) -> None:
        if isinstance(attributes, dict):
            for key, value in attributes.items():
                if isinstance(value, (dict, list)):
                    self.result.add_error(
                        f"launch.attributes.{key}",
                        "Attribute values must be scalars",
                        value=value
                    )
            return

        if not isinstance(attributes, list):
            self.result.add_error(
                "launch.attributes",
                "Must be a mapping or a list of {key, value} objects",
                value=attributes
            )
            return

        for i, attribute in enumerate(attributes):
            path = f"launch.attributes[{i}]"
            if not isinstance(attribute, dict):
                self.result.add_error(
                    path,
                    "Attribute must be an object",
                    value=attribute
                )
            elif "value" not in attribute:
                self.result.add_error(
                    f"{path}.value",
                    "Attribute requires a 'value' field"
                )

    def _validate_reporter(self) -> None:
        reporter = self.data.get("reporter")
        if reporter is None:
            return
        if not isinstance(reporter, dict):
            self.result.add_error(
                "reporter",
                "Must be an object",
                value=reporter
            )
            return

        screenshot_dir = reporter.get("screenshot_dir")
        if screenshot_dir is not None and not isinstance(screenshot_dir, str):
            self.result.add_error(
                "reporter.screenshot_dir",
                "Must be a string (directory path)",
                value=screenshot_dir
            )

        dry_run = reporter.get("dry_run")
        if dry_run is not None and not isinstance(dry_run, bool):
            self.result.add_error(
                "reporter.dry_run",
                "Must be true or false",
                value=dry_run
            )

        drain_timeout = reporter.get("drain_timeout_s")
        if drain_timeout is not None:
            if isinstance(drain_timeout, bool) or not isinstance(drain_timeout, (int, float)) or drain_timeout <= 0:
                self.result.add_error(
                    "reporter.drain_timeout_s",
                    "Must be a positive number (seconds)",
                    value=drain_timeout
                )
