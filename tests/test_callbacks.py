"""Tests for callback dispatch during flow runs."""

import asyncio

import pytest
from flow_helpers import connect, constant, failing, make_node, summing

from nodeflow import (
    ExecutionOptions,
    FlowCallback,
    FlowRuntime,
    NoEndNodesError,
    RuntimeConfiguration,
)
from nodeflow.callbacks import CallbackDispatcher


class TrackingCallback(FlowCallback):
    """Callback that tracks all events."""

    def __init__(self):
        self.events = []

    def on_progress(self, progress: int, total: int) -> None:
        self.events.append(("progress", progress, total))

    def on_node_start(self, node_id: int, title: str) -> None:
        self.events.append(("node_start", node_id))

    def on_node_complete(self, node_id: int, title: str, result) -> None:
        self.events.append(("node_complete", node_id, result))

    def on_node_error(self, node_id: int, title: str, error: str) -> None:
        self.events.append(("node_error", node_id, error))

    def on_complete(self, results) -> None:
        self.events.append(("complete", [r.node_id for r in results]))

    def on_error(self, error: str) -> None:
        self.events.append(("error", error))

    def of_kind(self, kind):
        return [event[1:] for event in self.events if event[0] == kind]


def chain():
    nodes = [
        make_node(1, constant(1)),
        make_node(2, summing(), inputs=1),
        make_node(3, summing(), inputs=1),
    ]
    return nodes, [connect(1, 2), connect(2, 3)]


def test_callback_events_for_chain():
    tracker = TrackingCallback()
    nodes, connections = chain()
    runtime = FlowRuntime(nodes, connections)

    asyncio.run(runtime.execute(ExecutionOptions(callbacks=[tracker])))

    assert tracker.of_kind("node_start") == [(3,)]
    assert tracker.of_kind("node_complete") == [(1, 1), (2, 1), (3, 1)]
    assert tracker.of_kind("progress") == [(0, 3), (1, 3), (2, 3), (3, 3)]
    assert tracker.events[-1] == ("complete", [3])
    assert tracker.of_kind("error") == []


def test_node_error_event():
    tracker = TrackingCallback()
    nodes = [make_node(1, failing("kaput")), make_node(2, constant(2))]
    runtime = FlowRuntime(nodes, [])

    asyncio.run(runtime.execute(ExecutionOptions(callbacks=[tracker])))

    assert tracker.of_kind("node_error") == [(1, "kaput")]
    assert tracker.of_kind("node_complete") == [(2, 2)]
    assert tracker.events[-1] == ("complete", [1, 2])


def test_run_error_event():
    tracker = TrackingCallback()
    runtime = FlowRuntime([], [])

    with pytest.raises(NoEndNodesError):
        asyncio.run(runtime.execute(ExecutionOptions(callbacks=[tracker])))

    assert tracker.events == [
        ("error", "No end nodes found. Your flow needs at least one node with unused outputs.")
    ]


def test_configured_and_per_run_callbacks_both_notified():
    configured = TrackingCallback()
    per_run = TrackingCallback()
    completed = []
    runtime = FlowRuntime(
        [make_node(1, constant("x"))],
        [],
        config=RuntimeConfiguration(callbacks=[configured]),
    )

    asyncio.run(
        runtime.execute(ExecutionOptions(on_complete=completed.append, callbacks=[per_run]))
    )

    assert configured.of_kind("node_complete") == [(1, "x")]
    assert per_run.of_kind("node_complete") == [(1, "x")]
    assert [r.result for r in completed[0]] == ["x"]


def test_base_callback_methods_are_noops():
    callback = FlowCallback()

    callback.on_progress(1, 2)
    callback.on_node_start(1, "a")
    callback.on_node_complete(1, "a", None)
    callback.on_node_error(1, "a", "e")
    callback.on_complete([])
    callback.on_error("e")


def test_dispatcher_fans_out():
    tracker = TrackingCallback()
    starts = []
    dispatcher = CallbackDispatcher(
        ExecutionOptions(on_node_start=lambda node_id, title: starts.append(title)),
        [tracker],
    )

    dispatcher.notify_node_start(7, "Seven")
    dispatcher.notify_progress(1, 4)

    assert starts == ["Seven"]
    assert tracker.events == [("node_start", 7), ("progress", 1, 4)]
