"""
pytest integration.

Reports a pytest session through the lifecycle bridge. pytest has no
suite events of its own, so the plugin derives them from each item's
collector chain (package, module, class): suites are opened when the
first item inside them starts and closed when an item outside them
starts, or when the session ends.

Usage:
    pytest --rp --rp-config rpbridge.yaml
    pytest --rp --rp-dry-run

Inside a test:
    def test_checkout(rp_log):
        rp_log("payment accepted", level="debug")
"""

from __future__ import annotations

import inspect
import logging
from pathlib import Path
from typing import Any, Callable

import pytest

from .bridge import AsyncDispatcher, LifecycleBridge
from .client import BaseReportingClient, create_client
from .config import ReporterConfig, dry_run_config, load_config
from .reporting import RunSummary
from .runner import EventEmitter, EventType, Suite, Test, TestError

logger = logging.getLogger(__name__)

PLUGIN_NAME = "rpbridge-reporter"


# ─────────────────────────────────────────────────────────────────────────────
# Hooks
# ─────────────────────────────────────────────────────────────────────────────

def pytest_addoption(parser):
    group = parser.getgroup("rpbridge", "report test runs to ReportPortal")
    group.addoption(
        "--rp",
        action="store_true",
        default=False,
        help="report this session through rpbridge",
    )
    group.addoption(
        "--rp-config",
        default=None,
        metavar="PATH",
        help="rpbridge YAML configuration file",
    )
    group.addoption(
        "--rp-dry-run",
        action="store_true",
        default=False,
        help="report into memory only, without contacting the server",
    )


def pytest_configure(config):
    if not config.getoption("rp"):
        return
    # Under pytest-xdist only the controller reports.
    if hasattr(config, "workerinput"):
        return
    plugin = ReportingPlugin(_reporter_config(config))
    config.pluginmanager.register(plugin, PLUGIN_NAME)


def pytest_unconfigure(config):
    plugin = config.pluginmanager.getplugin(PLUGIN_NAME)
    if plugin is not None:
        config.pluginmanager.unregister(plugin, PLUGIN_NAME)


@pytest.fixture
def rp_log(request) -> Callable[..., None]:
    """Send a log line to the running test's item; a plain log when reporting is off."""
    plugin = request.config.pluginmanager.getplugin(PLUGIN_NAME)

    def log(message: str, level: str = "info", attachment=None) -> None:
        if plugin is None:
            logger.info(f"[{level}] {message}")
            return
        plugin.emitter.emit(EventType.LOG, level, message, attachment)

    return log


def _reporter_config(config) -> ReporterConfig:
    path = config.getoption("rp_config")
    dry_run = config.getoption("rp_dry_run")

    if path is None:
        if not dry_run:
            raise pytest.UsageError("--rp needs --rp-config PATH or --rp-dry-run")
        return dry_run_config(f"pytest {Path(str(config.rootpath)).name}")

    reporter_config, result = load_config(path)
    if reporter_config is None:
        raise pytest.UsageError(f"Invalid rpbridge configuration {path}:\n{result}")
    if dry_run:
        reporter_config.reporter.dry_run = True
    return reporter_config


# ─────────────────────────────────────────────────────────────────────────────
# Plugin
# ─────────────────────────────────────────────────────────────────────────────

class ReportingPlugin:
    """Turns pytest hooks into runner events for one session."""

    def __init__(self, config: ReporterConfig):
        self.config = config
        self.emitter = EventEmitter()
        self.bridge = LifecycleBridge(AsyncDispatcher(create_client(config)), config)
        self.bridge.attach(self.emitter)
        self.summary: RunSummary | None = None
        self._open_suites: list[tuple[str, Suite]] = []  # (nodeid, suite), innermost last
        self._tests: dict[str, Test] = {}
        self._finished: set[str] = set()

    @property
    def client(self) -> BaseReportingClient:
        return self.bridge.dispatcher.client

    def pytest_sessionstart(self, session):
        self.emitter.emit(EventType.RUN_START)

    @pytest.hookimpl(tryfirst=True)
    def pytest_runtest_protocol(self, item, nextitem):
        self._sync_suites(_suite_chain(item))
        test = Test(title=item.name, body=_body(item), file=item.location[0])
        self._tests[item.nodeid] = test
        self.emitter.emit(EventType.TEST_START, test)

    def pytest_runtest_logreport(self, report):
        test = self._tests.get(report.nodeid)
        if test is None:
            return

        if report.when == "teardown":
            self._tests.pop(report.nodeid, None)
            if report.failed:
                self._teardown_failed(report, test)
            self._finished.discard(report.nodeid)
            return

        if report.skipped and report.when in ("setup", "call"):
            self._finish(report.nodeid, EventType.TEST_PENDING, test)
        elif report.failed:
            test.err = _error(report)
            self._finish(report.nodeid, EventType.TEST_FAIL, test)
        elif report.passed and report.when == "call":
            self._finish(report.nodeid, EventType.TEST_PASS, test)

    def pytest_sessionfinish(self, session, exitstatus):
        self._sync_suites([])
        self.emitter.emit(EventType.RUN_END)
        self.summary = self.bridge.finalize()

    def pytest_terminal_summary(self, terminalreporter):
        if self.summary is None:
            return
        s = self.summary.to_dict()["summary"]
        target = "dry run" if self.config.dry_run else self.config.server.endpoint
        terminalreporter.write_sep("-", "rpbridge")
        terminalreporter.write_line(
            f"rpbridge: launch {self.summary.launch_name!r} reported to {target}: "
            f"{s['passed']} passed, {s['failed']} failed, {s['skipped']} skipped"
        )
        if s["remote_errors"]:
            terminalreporter.write_line(
                f"rpbridge: {s['remote_errors']} reporting call(s) failed", red=True
            )

    def _finish(self, nodeid: str, event: EventType, test: Test) -> None:
        if nodeid in self._finished:
            return
        self._finished.add(nodeid)
        self.emitter.emit(event, test)

    def _teardown_failed(self, report, test: Test) -> None:
        if report.nodeid not in self._finished:
            test.err = _error(report)
            self.emitter.emit(EventType.TEST_FAIL, test)
            return
        # The test already has its outcome; attach the teardown error as a log.
        self.emitter.emit(
            EventType.LOG, "error", f"Teardown of {report.nodeid} failed:\n{report.longreprtext}"
        )

    def _sync_suites(self, chain: list[Any]) -> None:
        """Close open suites the next item is not in, then open the ones it is."""
        wanted = [node.nodeid for node in chain]
        common = 0
        while (
            common < len(self._open_suites)
            and common < len(wanted)
            and self._open_suites[common][0] == wanted[common]
        ):
            common += 1

        while len(self._open_suites) > common:
            _, suite = self._open_suites.pop()
            self.emitter.emit(EventType.SUITE_END, suite)

        for node in chain[common:]:
            suite = Suite(title=node.name, file=_node_file(node))
            self._open_suites.append((node.nodeid, suite))
            self.emitter.emit(EventType.SUITE_START, suite)


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _suite_chain(item) -> list[Any]:
    return [
        node for node in item.listchain()[:-1]
        if isinstance(node, (pytest.Package, pytest.Module, pytest.Class))
    ]


def _node_file(node) -> str | None:
    path = getattr(node, "path", None)
    if path is None:
        return None
    try:
        return str(Path(path).relative_to(node.config.rootpath))
    except ValueError:
        return str(path)


def _body(item) -> str:
    obj = getattr(item, "obj", None)
    if obj is None:
        return ""
    return inspect.getdoc(obj) or ""


def _error(report) -> TestError:
    crash = getattr(report.longrepr, "reprcrash", None)
    message = crash.message if crash is not None else str(report.longrepr)
    return TestError(message=message, stack=report.longreprtext)
