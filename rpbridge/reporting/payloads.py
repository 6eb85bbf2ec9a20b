"""
Payload builders.

Pure functions that turn runner objects and configuration into the
request models sent to the reporting service.
"""

from __future__ import annotations

import logging
import mimetypes
import re
import time
from pathlib import Path
from typing import TYPE_CHECKING

from .models import (
    Attachment,
    FinishItemRequest,
    FinishLaunchRequest,
    ItemType,
    StartItemRequest,
    StartLaunchRequest,
)

if TYPE_CHECKING:
    from ..config import ReporterConfig
    from ..runner.events import Suite, Test, TestError

logger = logging.getLogger(__name__)

SCREENSHOT_EXTENSIONS = (".png", ".jpg", ".jpeg")

_UNSAFE_FILENAME = re.compile(r"[^\w.-]+")


def timestamp() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def start_launch_request(config: ReporterConfig) -> StartLaunchRequest:
    launch = config.launch
    return StartLaunchRequest(
        name=launch.name,
        start_time=timestamp(),
        description=launch.description,
        attributes=list(launch.attributes),
        mode=launch.mode,
    )


def finish_launch_request() -> FinishLaunchRequest:
    return FinishLaunchRequest(end_time=timestamp())


def start_suite_request(suite: Suite) -> StartItemRequest:
    return StartItemRequest(
        name=suite.title,
        item_type=ItemType.SUITE,
        start_time=timestamp(),
        code_ref=suite.file,
    )


def start_test_request(test: Test) -> StartItemRequest:
    code_ref = f"{test.file}::{test.title}" if test.file else None
    return StartItemRequest(
        name=test.title,
        item_type=ItemType.STEP,
        start_time=timestamp(),
        code_ref=code_ref,
    )


def finish_suite_request() -> FinishItemRequest:
    """Finish request with no status, used to close suites."""
    return FinishItemRequest(end_time=timestamp())


def failure_message(error: TestError | None) -> str:
    """The log line sent for a failed test."""
    if error is None:
        stack = "<no stack trace>"
    else:
        stack = error.stack or error.message
    return f"Stacktrace: {stack}\n"


def failure_description(body: str, message: str) -> str:
    """Test body followed by the failure wrapped in an ```error block."""
    return f"{body}\n```error\n{message}\n```"


def screenshot_filename(title: str) -> str:
    return _UNSAFE_FILENAME.sub("_", title).strip("_") or "screenshot"


def screenshot_attachment(title: str, directory: Path | None) -> Attachment | None:
    """
    Look up a screenshot for a test by title.

    The file is expected at <directory>/<sanitised title>.<png|jpg|jpeg>.
    A missing directory, a missing file or an unreadable file all yield
    None: the screenshot is a best-effort extra.
    """
    if directory is None:
        return None

    stem = screenshot_filename(title)
    for extension in SCREENSHOT_EXTENSIONS:
        candidate = Path(directory) / f"{stem}{extension}"
        if not candidate.is_file():
            continue
        try:
            content = candidate.read_bytes()
        except OSError as e:
            logger.warning(f"Could not read screenshot {candidate}: {e}")
            return None
        mime = mimetypes.guess_type(candidate.name)[0] or "application/octet-stream"
        return Attachment(name=candidate.name, mime=mime, content=content)
    return None
