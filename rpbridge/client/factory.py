"""
Client factory for creating reporting clients from configuration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import BaseReportingClient
from .http import ReportPortalClient
from .memory import InMemoryClient

if TYPE_CHECKING:
    from ..config import ReporterConfig


def create_client(config: ReporterConfig) -> BaseReportingClient:
    """
    Create a reporting client from a ReporterConfig.

    Args:
        config: Parsed reporter configuration

    Returns:
        InMemoryClient in dry-run mode, ReportPortalClient otherwise

    Raises:
        ValueError: If a real client is requested without server settings

    Example:
        config, _ = load_config("rpbridge.yaml")
        client = create_client(config)
    """
    if config.dry_run:
        return InMemoryClient()

    if config.server is None:
        raise ValueError("A 'server' block is required unless reporter.dry_run is true")
    return ReportPortalClient(config.server)
