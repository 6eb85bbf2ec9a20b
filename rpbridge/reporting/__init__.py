"""
Reporting vocabulary and payloads

This package holds the request models sent to the reporting service,
the pure functions that build them from runner objects, and the local
run summary.

Usage:
    from rpbridge.reporting import payloads, ItemStatus

    request = payloads.start_suite_request(Suite("checkout"))
"""

from . import payloads

# Models
from .models import (
    Attachment,
    Attribute,
    FinishItemRequest,
    FinishLaunchRequest,
    Issue,
    IssueType,
    ItemStatus,
    ItemType,
    LaunchMode,
    LogEntry,
    LogLevel,
    StartItemRequest,
    StartLaunchRequest,
)

# Summary
from .summary import ReportedTest, RunSummary

__all__ = [
    "payloads",
    # Models
    "Attachment",
    "Attribute",
    "FinishItemRequest",
    "FinishLaunchRequest",
    "Issue",
    "IssueType",
    "ItemStatus",
    "ItemType",
    "LaunchMode",
    "LogEntry",
    "LogLevel",
    "StartItemRequest",
    "StartLaunchRequest",
    # Summary
    "ReportedTest",
    "RunSummary",
]
