"""
Hierarchy tracking and event sequencing between a test runner and the
reporting service.
"""

from .context import RunContext
from .dispatcher import AsyncDispatcher, LoopThread, RemoteCall
from .errors import (
    CallFailure,
    DependencyError,
    Diagnostics,
    ErrorSink,
    RemoteCallError,
    ReportingError,
)
from .handles import HandleKind, ItemHandle
from .hierarchy import HierarchyNode, HierarchyTracker
from .identifiers import CorrelationScope, IdentifierAllocator
from .ledger import CompletionLedger
from .lifecycle import LifecycleBridge

__all__ = [
    "AsyncDispatcher",
    "CallFailure",
    "CompletionLedger",
    "CorrelationScope",
    "DependencyError",
    "Diagnostics",
    "ErrorSink",
    "HandleKind",
    "HierarchyNode",
    "HierarchyTracker",
    "IdentifierAllocator",
    "ItemHandle",
    "LifecycleBridge",
    "LoopThread",
    "RemoteCall",
    "RemoteCallError",
    "ReportingError",
    "RunContext",
]
