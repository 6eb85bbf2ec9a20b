"""
Request models for the reporting service.

This module defines the status vocabulary and the request objects
that the lifecycle bridge hands to a reporting client. Every request
knows how to render itself as the JSON body the service expects.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ItemStatus(str, Enum):
    """Final status of a reported item."""
    PASSED = "PASSED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"
    INTERRUPTED = "INTERRUPTED"


class ItemType(str, Enum):
    """Kind of item started under a launch."""
    SUITE = "SUITE"
    TEST = "TEST"
    STEP = "STEP"


class IssueType(str, Enum):
    """Issue classification attached to a finished item."""
    NOT_ISSUE = "NOT_ISSUE"
    TO_INVESTIGATE = "TO_INVESTIGATE"


class LogLevel(str, Enum):
    """Log levels understood by the reporting service."""
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    FATAL = "FATAL"

    @classmethod
    def coerce(cls, value: Any) -> LogLevel:
        """Map a runner-supplied level onto the vocabulary, defaulting to INFO."""
        if isinstance(value, LogLevel):
            return value
        name = str(value).strip().upper()
        if name == "WARNING":
            name = "WARN"
        try:
            return cls(name)
        except ValueError:
            return cls.INFO


class LaunchMode(str, Enum):
    """Launch visibility mode."""
    DEFAULT = "DEFAULT"
    DEBUG = "DEBUG"


@dataclass(frozen=True)
class Attribute:
    """A key/value tag attached to a launch or item."""
    key: str | None
    value: str

    def to_dict(self) -> dict[str, Any]:
        if self.key is None:
            return {"value": self.value}
        return {"key": self.key, "value": self.value}


@dataclass
class StartLaunchRequest:
    """Body of a launch start call."""
    name: str
    start_time: int
    description: str | None = None
    attributes: list[Attribute] = field(default_factory=list)
    mode: LaunchMode = LaunchMode.DEFAULT

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "startTime": self.start_time,
            "mode": self.mode.value,
            "attributes": [a.to_dict() for a in self.attributes],
        }
        if self.description:
            result["description"] = self.description
        return result


@dataclass
class FinishLaunchRequest:
    """Body of a launch finish call."""
    end_time: int

    def to_dict(self) -> dict[str, Any]:
        return {"endTime": self.end_time}


@dataclass
class StartItemRequest:
    """Body of a suite or test start call."""
    name: str
    item_type: ItemType
    start_time: int
    description: str | None = None
    code_ref: str | None = None
    attributes: list[Attribute] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "type": self.item_type.value,
            "startTime": self.start_time,
            "attributes": [a.to_dict() for a in self.attributes],
            "hasStats": self.item_type != ItemType.SUITE,
        }
        if self.description:
            result["description"] = self.description
        if self.code_ref:
            result["codeRef"] = self.code_ref
        return result


@dataclass(frozen=True)
class Issue:
    """Issue classification for a finished item."""
    issue_type: IssueType
    comment: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"issueType": self.issue_type.value}
        if self.comment:
            result["comment"] = self.comment
        return result


@dataclass
class FinishItemRequest:
    """
    Body of an item finish call.

    A request with no status is the "empty result" used to close suites;
    the service derives the suite status from its children.
    """
    end_time: int
    status: ItemStatus | None = None
    issue: Issue | None = None
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"endTime": self.end_time}
        if self.status is not None:
            result["status"] = self.status.value
        if self.issue is not None:
            result["issue"] = self.issue.to_dict()
        if self.description:
            result["description"] = self.description
        return result


@dataclass
class LogEntry:
    """A single log line addressed to an item or to the launch."""
    message: str
    level: LogLevel
    time: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "level": self.level.value,
            "time": self.time,
        }


@dataclass
class Attachment:
    """A file attached to a log entry."""
    name: str
    mime: str
    content: bytes

    @property
    def base64(self) -> str:
        return base64.b64encode(self.content).decode("ascii")

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.mime,
            "content": self.base64,
        }
