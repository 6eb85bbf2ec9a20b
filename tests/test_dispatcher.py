import pytest

from rpbridge.bridge import AsyncDispatcher, DependencyError, RemoteCallError
from rpbridge.client import InMemoryClient
from rpbridge.client.memory import FINISH_ITEM, FINISH_LAUNCH, SEND_LOG, START_ITEM, START_LAUNCH
from rpbridge.reporting import (
    FinishItemRequest,
    FinishLaunchRequest,
    ItemStatus,
    ItemType,
    LogEntry,
    LogLevel,
    StartItemRequest,
    StartLaunchRequest,
)


def launch_request(name: str = "launch") -> StartLaunchRequest:
    return StartLaunchRequest(name=name, start_time=1)


def suite_request(name: str) -> StartItemRequest:
    return StartItemRequest(name=name, item_type=ItemType.SUITE, start_time=1)


def step_request(name: str) -> StartItemRequest:
    return StartItemRequest(name=name, item_type=ItemType.STEP, start_time=1)


def finish(status: ItemStatus | None = None) -> FinishItemRequest:
    return FinishItemRequest(end_time=2, status=status)


def test_calls_reach_client_in_dependency_order(client, dispatcher):
    launch = dispatcher.start_launch(launch_request()).handle
    suite = dispatcher.start_item(suite_request("A"), launch).handle
    test = dispatcher.start_item(step_request("t1"), launch, suite).handle
    dispatcher.finish_item(test, finish(ItemStatus.PASSED))
    dispatcher.finish_item(suite, finish())
    dispatcher.finish_launch(launch, FinishLaunchRequest(end_time=3))

    assert dispatcher.drain(timeout=5)
    assert client.operations() == [
        START_LAUNCH, START_ITEM, START_ITEM, FINISH_ITEM, FINISH_ITEM, FINISH_LAUNCH,
    ]

    launch_id = client.started("launch").item_id
    suite_call = client.started("A")
    test_call = client.started("t1")
    assert suite_call.parent_id is None
    assert suite_call.launch_id == launch_id
    assert test_call.parent_id == suite_call.item_id
    assert client.finished(test_call.item_id).request.status == ItemStatus.PASSED
    assert dispatcher.sink.total == 0


def test_calls_return_before_the_service_answers():
    client = InMemoryClient(delays={START_LAUNCH: 0.3})
    dispatcher = AsyncDispatcher(client)
    try:
        call = dispatcher.start_launch(launch_request())

        assert not call.future.done()
        assert not call.handle.resolved
        assert call.handle.remote_id is None

        assert dispatcher.drain(timeout=5)
        assert call.handle.resolved
        assert call.handle.remote_id == client.started("launch").item_id
    finally:
        dispatcher.close(timeout=5)


def test_child_waits_for_a_slow_parent():
    client = InMemoryClient(name_delays={"A": 0.2})
    dispatcher = AsyncDispatcher(client)
    try:
        launch = dispatcher.start_launch(launch_request()).handle
        suite = dispatcher.start_item(suite_request("A"), launch).handle
        test = dispatcher.start_item(step_request("t1"), launch, suite).handle
        dispatcher.finish_item(test, finish(ItemStatus.PASSED))
        dispatcher.finish_item(suite, finish())

        assert dispatcher.drain(timeout=5)
    finally:
        dispatcher.close(timeout=5)

    names = [c.name for c in client.calls_for(START_ITEM)]
    assert names == ["A", "t1"]
    assert client.started("t1").parent_id == client.started("A").item_id
    # The suite finish is sent after the test finish it encloses.
    finishes = [c.item_id for c in client.calls_for(FINISH_ITEM)]
    assert finishes == [client.started("t1").item_id, client.started("A").item_id]


def test_finish_waits_for_logs_sent_to_the_item():
    client = InMemoryClient(delays={SEND_LOG: 0.2})
    dispatcher = AsyncDispatcher(client)
    try:
        launch = dispatcher.start_launch(launch_request()).handle
        suite = dispatcher.start_item(suite_request("A"), launch).handle
        dispatcher.send_log(suite, LogEntry("hello", LogLevel.INFO, 1))
        dispatcher.finish_item(suite, finish())
        assert dispatcher.drain(timeout=5)
    finally:
        dispatcher.close(timeout=5)

    assert client.operations() == [START_LAUNCH, START_ITEM, SEND_LOG, FINISH_ITEM]


def test_settled_operations_are_released_from_their_handles(client):
    dispatcher = AsyncDispatcher(client)
    launch = dispatcher.start_launch(launch_request()).handle
    suite = dispatcher.start_item(suite_request("A"), launch).handle
    for n in range(200):
        test = dispatcher.start_item(step_request(f"t{n}"), launch).handle
        dispatcher.send_log(launch, LogEntry(f"log {n}", LogLevel.INFO, 1))
        dispatcher.send_log(suite, LogEntry(f"log {n}", LogLevel.INFO, 1))
        dispatcher.finish_item(test, finish(ItemStatus.PASSED))
    dispatcher.close(timeout=5)

    assert len(client.calls_for(FINISH_ITEM)) == 200
    assert launch.tracked == 0
    assert suite.tracked == 0
    assert launch.pending_operations() == []


def test_finish_still_waits_for_operations_tracked_later():
    client = InMemoryClient(delays={SEND_LOG: 0.2})
    dispatcher = AsyncDispatcher(client)
    try:
        launch = dispatcher.start_launch(launch_request()).handle
        suite = dispatcher.start_item(suite_request("A"), launch).handle
        assert dispatcher.drain(timeout=5)
        assert suite.tracked == 0

        dispatcher.send_log(suite, LogEntry("late", LogLevel.INFO, 1))
        assert suite.tracked == 1
        dispatcher.finish_item(suite, finish())
        assert dispatcher.drain(timeout=5)
    finally:
        dispatcher.close(timeout=5)

    assert client.operations()[-2:] == [SEND_LOG, FINISH_ITEM]


def test_launch_level_log_has_no_item():
    client = InMemoryClient()
    with AsyncDispatcher(client) as dispatcher:
        launch = dispatcher.start_launch(launch_request()).handle
        dispatcher.send_log(launch, LogEntry("hello", LogLevel.WARN, 1))

    log = client.calls_for(SEND_LOG)[0]
    assert log.item_id is None
    assert log.launch_id == client.started("launch").item_id


def test_failed_parent_turns_children_into_dependency_errors():
    client = InMemoryClient(fail_names={"A"})
    dispatcher = AsyncDispatcher(client)
    try:
        launch = dispatcher.start_launch(launch_request()).handle
        suite_call = dispatcher.start_item(suite_request("A"), launch)
        test_call = dispatcher.start_item(step_request("t1"), launch, suite_call.handle)
        dispatcher.finish_item(suite_call.handle, finish())
        launch_finish = dispatcher.finish_launch(launch, FinishLaunchRequest(end_time=3))
        assert dispatcher.drain(timeout=5)
    finally:
        dispatcher.close(timeout=5)

    assert isinstance(suite_call.future.exception(), RemoteCallError)
    assert isinstance(test_call.future.exception(), DependencyError)
    assert client.started("t1") is None
    # The launch itself is unaffected and still finished.
    assert launch_finish.future.exception() is None
    assert client.operations() == [START_LAUNCH, FINISH_LAUNCH]

    failures = dispatcher.sink.drain()
    assert [f.operation for f in failures].count("start_item") == 2
    assert sum(f.is_dependency_failure for f in failures) == 2


def test_failed_launch_fails_everything_downstream():
    client = InMemoryClient(fail_on={START_LAUNCH})
    with AsyncDispatcher(client) as dispatcher:
        launch = dispatcher.start_launch(launch_request()).handle
        suite = dispatcher.start_item(suite_request("A"), launch).handle
        dispatcher.finish_item(suite, finish())
        dispatcher.finish_launch(launch, FinishLaunchRequest(end_time=3))

    assert client.calls == []
    assert dispatcher.sink.total == 4


def test_close_drains_and_stops(client):
    dispatcher = AsyncDispatcher(client)
    dispatcher.start_launch(launch_request())

    assert dispatcher.close(timeout=5)
    assert not dispatcher.is_open
    assert not client.is_connected
    assert dispatcher.submitted == 1
    assert dispatcher.close() is True


def test_drain_reports_timeout():
    client = InMemoryClient(delays={START_LAUNCH: 1.0})
    dispatcher = AsyncDispatcher(client)
    try:
        dispatcher.start_launch(launch_request())
        assert dispatcher.drain(timeout=0.05) is False
    finally:
        dispatcher.close(timeout=5)


@pytest.mark.parametrize("operation", [FINISH_ITEM, SEND_LOG])
def test_rejections_are_reported_to_the_sink(operation):
    client = InMemoryClient(fail_on={operation})
    with AsyncDispatcher(client) as dispatcher:
        launch = dispatcher.start_launch(launch_request()).handle
        suite = dispatcher.start_item(suite_request("A"), launch).handle
        dispatcher.send_log(suite, LogEntry("x", LogLevel.INFO, 1))
        dispatcher.finish_item(suite, finish())

    failures = dispatcher.sink.drain()
    assert [f.operation for f in failures] == [operation]
    assert isinstance(failures[0].error, RemoteCallError)
    assert "HTTP 500" in str(failures[0])
