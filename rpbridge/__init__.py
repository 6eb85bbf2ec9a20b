"""
rpbridge - Test runner to ReportPortal bridge

This package turns a test runner's lifecycle events into ReportPortal
launches, suites, tests and logs, keeping suite/test nesting intact
while every remote call runs in the background.

Subpackages:
    - bridge: hierarchy tracking, event sequencing and dispatch
    - client: reporting clients (aiohttp HTTP, in-memory)
    - config: load and validate the reporter YAML file
    - reporting: request models, payload builders, run summary
    - runner: runner event model and JSON-lines replay

Usage:
    from rpbridge import (
        AsyncDispatcher, EventEmitter, LifecycleBridge, create_client, load_config,
    )

    config, result = load_config("rpbridge.yaml")
    bridge = LifecycleBridge(AsyncDispatcher(create_client(config)), config)
    bridge.attach(emitter)
    ...
    print(bridge.finalize().summary())
"""

__version__ = "0.1.0"

# Re-export bridge for convenience
from .bridge import (
    AsyncDispatcher,
    CorrelationScope,
    DependencyError,
    ErrorSink,
    IdentifierAllocator,
    ItemHandle,
    LifecycleBridge,
    RemoteCallError,
    ReportingError,
)

# Re-export clients for convenience
from .client import (
    BaseReportingClient,
    ClientError,
    ClientResponse,
    InMemoryClient,
    ReportPortalClient,
    create_client,
)

# Re-export config for convenience
from .config import (
    ReporterConfig,
    ValidationResult,
    dry_run_config,
    load_config,
    validate_config_yaml,
)

# Re-export reporting for convenience
from .reporting import ItemStatus, LogLevel, RunSummary

# Re-export runner for convenience
from .runner import EventEmitter, EventType, Suite, Test, TestError

__all__ = [
    # Package info
    "__version__",
    # Bridge
    "AsyncDispatcher",
    "CorrelationScope",
    "DependencyError",
    "ErrorSink",
    "IdentifierAllocator",
    "ItemHandle",
    "LifecycleBridge",
    "RemoteCallError",
    "ReportingError",
    # Clients
    "BaseReportingClient",
    "ClientError",
    "ClientResponse",
    "InMemoryClient",
    "ReportPortalClient",
    "create_client",
    # Config
    "ReporterConfig",
    "ValidationResult",
    "dry_run_config",
    "load_config",
    "validate_config_yaml",
    # Reporting
    "ItemStatus",
    "LogLevel",
    "RunSummary",
    # Runner
    "EventEmitter",
    "EventType",
    "Suite",
    "Test",
    "TestError",
]
