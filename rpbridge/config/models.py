"""
Typed data structures for reporter configuration.

This module contains the dataclasses that represent a parsed and
validated reporter configuration file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from ..reporting.models import Attribute, LaunchMode


# ─────────────────────────────────────────────────────────────────────────────
# Server
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class ServerConfig:
    """
    Connection settings for the reporting service.

    The token is sent as "Authorization: Bearer <token>" on every call.
    """
    endpoint: str
    project: str
    token: str | None = None
    timeout_ms: int = 30000

    @property
    def api_base(self) -> str:
        return f"{self.endpoint.rstrip('/')}/api/v1/{self.project}"


# ─────────────────────────────────────────────────────────────────────────────
# Launch & Reporter
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class LaunchConfig:
    """What the launch (one full test run) is called and tagged with."""
    name: str = "rpbridge launch"
    description: str | None = None
    mode: LaunchMode = LaunchMode.DEFAULT
    attributes: list[Attribute] = field(default_factory=list)


@dataclass
class ReporterOptions:
    """Local behaviour of the reporter."""
    screenshot_dir: Path | None = None
    dry_run: bool = False
    drain_timeout_s: float = 60.0


# ─────────────────────────────────────────────────────────────────────────────
# Top level
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class ReporterConfig:
    """Fully parsed and validated reporter configuration."""
    version: int = 1
    server: ServerConfig | None = None  # None only in dry-run mode
    launch: LaunchConfig = field(default_factory=LaunchConfig)
    reporter: ReporterOptions = field(default_factory=ReporterOptions)

    @property
    def dry_run(self) -> bool:
        return self.reporter.dry_run
