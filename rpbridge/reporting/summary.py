"""
Local summary of a reported run.

The reporting service holds the real record; this is what the bridge
itself knows about the run, used for terminal output and exit codes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .models import ItemStatus


@dataclass
class ReportedTest:
    """One finished test as the bridge reported it."""
    title: str
    status: ItemStatus
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "status": self.status.value,
            "message": self.message,
        }


@dataclass
class RunSummary:
    """
    Counts and outcomes of one launch.

    Filled in by the lifecycle bridge as terminal test events arrive.
    Remote failures are added once the dispatcher has drained.
    """
    launch_name: str = ""
    started_at: datetime | None = None
    ended_at: datetime | None = None
    suites: int = 0
    tests: list[ReportedTest] = field(default_factory=list)
    remote_errors: int = 0
    anomalies: dict[str, int] = field(default_factory=dict)

    def start(self) -> None:
        self.started_at = datetime.now(timezone.utc)

    def complete(self) -> None:
        self.ended_at = datetime.now(timezone.utc)

    def record(self, title: str, status: ItemStatus, message: str | None = None) -> None:
        self.tests.append(ReportedTest(title, status, message))

    def count(self, status: ItemStatus) -> int:
        return sum(1 for t in self.tests if t.status == status)

    @property
    def duration_ms(self) -> float | None:
        if self.started_at and self.ended_at:
            return (self.ended_at - self.started_at).total_seconds() * 1000
        return None

    @property
    def succeeded(self) -> bool:
        """True when the run was reported without remote errors."""
        return self.remote_errors == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "launch_name": self.launch_name,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_ms": self.duration_ms,
            "summary": {
                "suites": self.suites,
                "tests": len(self.tests),
                "passed": self.count(ItemStatus.PASSED),
                "failed": self.count(ItemStatus.FAILED),
                "skipped": self.count(ItemStatus.SKIPPED),
                "remote_errors": self.remote_errors,
            },
            "anomalies": dict(self.anomalies),
            "tests": [t.to_dict() for t in self.tests],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def summary(self) -> str:
        """Generate a human-readable summary."""
        duration = self.duration_ms
        lines = [
            "═══════════════════════════════════════════════════════════",
            f"  Launch: {self.launch_name}",
            "═══════════════════════════════════════════════════════════",
            f"  Duration:   {duration:.0f}ms" if duration is not None else "  Duration:   N/A",
            f"  Suites:     {self.suites}",
            f"  Tests:      {self.count(ItemStatus.PASSED)} passed, "
            f"{self.count(ItemStatus.FAILED)} failed, "
            f"{self.count(ItemStatus.SKIPPED)} skipped",
            f"  Reporting:  {'ok' if self.succeeded else f'{self.remote_errors} remote error(s)'}",
            "───────────────────────────────────────────────────────────",
        ]

        for test in self.tests:
            lines.append(f"  {_status_icon(test.status)} {test.title}")

        if self.anomalies:
            lines.append("───────────────────────────────────────────────────────────")
            for name, count in sorted(self.anomalies.items()):
                lines.append(f"  ⚠️  {name}: {count}")

        lines.append("═══════════════════════════════════════════════════════════")
        return "\n".join(lines)


def _status_icon(status: ItemStatus) -> str:
    return {
        ItemStatus.PASSED: "✅",
        ItemStatus.FAILED: "❌",
        ItemStatus.SKIPPED: "⏭️",
        ItemStatus.INTERRUPTED: "⚠️",
    }.get(status, "❓")
