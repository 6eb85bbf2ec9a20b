"""
Reporting clients

This package provides the clients that speak to the reporting service.
They expose plain async methods that take resolved remote ids; the
dispatcher in rpbridge.bridge turns them into fire-and-forget calls.

Usage:
    from rpbridge.client import ReportPortalClient

    async with ReportPortalClient(config.server) as client:
        response = await client.start_launch(request)
        if response.success:
            print(response.item_id)
        else:
            print(response.error)
"""

# Factory
from .factory import create_client

# Clients
from .base import BaseReportingClient
from .http import ReportPortalClient
from .memory import InMemoryClient, RecordedCall

# Models
from .models import ClientError, ClientErrorCode, ClientResponse

__all__ = [
    # Factory
    "create_client",
    # Base
    "BaseReportingClient",
    # Implementations
    "ReportPortalClient",
    "InMemoryClient",
    "RecordedCall",
    # Models
    "ClientError",
    "ClientErrorCode",
    "ClientResponse",
]
