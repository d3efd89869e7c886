"""Flow runtime: executes a node graph from its end nodes.

The runtime finds the end nodes (nodes whose outputs nobody consumes), runs
each end node's branch concurrently on the current event loop and lets the
node executor pull in upstream nodes on demand through one execution cache per
run. One failing branch never fails the others, and cancellation is
cooperative: branches still pending when :meth:`FlowRuntime.cancel` is called
report "Execution cancelled", work already underway may finish in the
background.

Example:
    >>> runtime = FlowRuntime(nodes, connections)
    >>> results = await runtime.execute(ExecutionOptions(on_progress=print))
    >>> updated_nodes = runtime.get_nodes()
"""

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Sequence, Tuple

from .async_utils import run_coroutine_sync
from .cache import ExecutionCache
from .callbacks import CallbackDispatcher, ExecutionOptions
from .config import RuntimeConfiguration
from .exceptions import (
    CANCELLED_MESSAGE,
    AlreadyExecutingError,
    CycleError,
    ExecutionCancelledError,
    NoEndNodesError,
)
from .graph import Connection, Node, validate_connections
from .graph_builder import TopologyResult, find_cycle, resolve_topology
from .node_execution import execute_node
from .registry import ProcessorRegistry

logger = logging.getLogger(__name__)


class RunState(Enum):
    IDLE = "idle"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ExecutionStatus:
    is_executing: bool = False
    progress: int = 0
    total: int = 0


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one end node's branch.

    Attributes:
        node_id: Id of the end node
        title: Title of the end node
        result: Normalized node value (None on error)
        error: Error message, or None on success
        execution_time: Wall time of the branch in seconds
    """

    node_id: int
    title: str
    result: Any = None
    error: Optional[str] = None
    execution_time: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None


def to_node_value(value: Any) -> Any:
    """Normalize a raw processor result to a displayable node value.

    Primitives, lists and dicts pass through, tuples become lists and
    everything else (including None) becomes None.
    """
    if value is None or isinstance(value, (str, bool, int, float, list, dict)):
        return value
    if isinstance(value, tuple):
        return list(value)
    logger.debug(f"Dropping non-displayable result of type {type(value).__name__}")
    return None


def _error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__


def _log_late_result(task: "asyncio.Future[Any]") -> None:
    """Retrieve the outcome of a branch abandoned by cancellation."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug(f"Abandoned branch failed after cancellation: {error}")


class _Run:
    """Bookkeeping for a single execute() call.

    Cache hooks close over this object rather than the runtime, so work that
    settles after the run has returned cannot touch a later run's status.
    """

    def __init__(self, nodes: Sequence[Node], dispatcher: CallbackDispatcher):
        self.status = ExecutionStatus(is_executing=True)
        self.dispatcher = dispatcher
        self.titles: Dict[int, str] = {node.id: node.title for node in nodes}
        self.topology: Optional[TopologyResult] = None
        self.cancelled = False
        self.cancel_event = asyncio.Event()
        self.open = True

    @property
    def reporting(self) -> bool:
        return self.open and not self.cancelled

    def cancel(self) -> None:
        self.cancelled = True
        self.status.is_executing = False
        self.cancel_event.set()

    def on_insert(self, node_id: int, future: "asyncio.Future[Any]", first: bool) -> None:
        if first and self.reporting and self.topology is not None:
            self.status.total = self.topology.estimated_total
            self.dispatcher.notify_progress(self.status.progress, self.status.total)

    def on_settle(self, node_id: int, future: "asyncio.Future[Any]") -> None:
        if not self.reporting:
            return

        self.status.progress += 1
        self.dispatcher.notify_progress(self.status.progress, self.status.total)

        title = self.titles.get(node_id, "")
        if future.cancelled():
            self.dispatcher.notify_node_error(node_id, title, CANCELLED_MESSAGE)
        elif future.exception() is not None:
            self.dispatcher.notify_node_error(
                node_id, title, _error_message(future.exception())
            )
        else:
            self.dispatcher.notify_node_complete(node_id, title, future.result())


class FlowRuntime:
    """Reusable executor for one node graph.

    Only one run may be in flight per instance. Each run gets a fresh
    execution cache, so sequential runs never share results.

    Args:
        nodes: Nodes of the graph
        connections: Connections of the graph
        registry: Processor registry for nodes without a process function
            (default: the configuration's registry)
        config: Runtime configuration (callbacks, progress bar, logging, plugins)

    Raises:
        FanInError: If an input socket is fed by more than one connection
    """

    def __init__(
        self,
        nodes: Iterable[Node],
        connections: Iterable[Connection],
        registry: Optional[ProcessorRegistry] = None,
        config: Optional[RuntimeConfiguration] = None,
    ):
        self._connections: List[Connection] = list(connections)
        validate_connections(self._connections)
        self._nodes: List[Node] = list(nodes)

        self.config = config or RuntimeConfiguration()
        self.config.configure_logging()
        if registry is not None:
            self.registry = self.config.load_plugins(registry)
        else:
            self.registry = self.config.effective_registry

        self._status = ExecutionStatus()
        self._state = RunState.IDLE
        self._run: Optional[_Run] = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def connections(self) -> List[Connection]:
        return list(self._connections)

    def get_status(self) -> ExecutionStatus:
        """Snapshot of the current run's status."""
        return replace(self._status)

    def get_nodes(self) -> List[Node]:
        """Current nodes, including results written by the last run."""
        return list(self._nodes)

    def cancel(self) -> None:
        """Request best-effort cancellation of the run in flight."""
        if self._run is None or not self._run.open:
            return
        logger.warning("Flow execution cancelled")
        self._run.cancel()

    async def execute(
        self, options: Optional[ExecutionOptions] = None
    ) -> List[ExecutionResult]:
        """Execute every end node and the nodes they depend on.

        Args:
            options: Per-run callbacks

        Returns:
            One ExecutionResult per end node, in graph order

        Raises:
            AlreadyExecutingError: If a run is already in flight
            NoEndNodesError: If no node has unused outputs
        """
        if self._run is not None and self._run.open:
            raise AlreadyExecutingError()

        dispatcher = CallbackDispatcher(options, self.config.effective_callbacks)
        run = _Run(self._nodes, dispatcher)
        self._run = run
        self._status = run.status
        self._state = RunState.EXECUTING
        started = time.time()

        try:
            run.topology = resolve_topology(self._nodes, self._connections)
            if not run.topology.end_nodes:
                raise NoEndNodesError()

            logger.info(f"Found {len(run.topology.end_nodes)} end nodes to execute")
            cache = ExecutionCache(
                on_insert=run.on_insert,
                on_settle=run.on_settle,
                is_cancelled=lambda: run.cancelled,
            )
            results = list(
                await asyncio.gather(
                    *(self._execute_branch(run, node, cache) for node in run.topology.end_nodes)
                )
            )
            self._nodes = self._merge_results(results, cache.results())
        except asyncio.CancelledError:
            run.cancel()
            self._finish(run, RunState.CANCELLED)
            raise
        except Exception as e:
            self._finish(run, RunState.FAILED)
            message = _error_message(e)
            logger.warning(f"Flow execution failed: {message}")
            dispatcher.notify_error(message)
            raise

        self._finish(run, RunState.CANCELLED if run.cancelled else RunState.COMPLETED)
        failed = sum(1 for r in results if not r.succeeded)
        logger.info(
            f"Flow execution finished in {time.time() - started:.2f}s "
            f"({len(results) - failed} succeeded, {failed} failed)"
        )
        dispatcher.notify_complete(results)
        return results

    def execute_sync(
        self, options: Optional[ExecutionOptions] = None
    ) -> List[ExecutionResult]:
        """Blocking version of :meth:`execute`."""
        return run_coroutine_sync(self.execute(options))

    def _finish(self, run: _Run, state: RunState) -> None:
        run.open = False
        run.status.is_executing = False
        self._status = ExecutionStatus()
        self._state = state

    async def _execute_branch(
        self, run: _Run, node: Node, cache: ExecutionCache
    ) -> ExecutionResult:
        if run.cancelled:
            return ExecutionResult(
                node_id=node.id, title=node.title, error=CANCELLED_MESSAGE
            )

        started = time.time()
        try:
            run.dispatcher.notify_node_start(node.id, node.title)
            cycle = find_cycle([node.id], run.topology.dependencies)
            if cycle is not None:
                raise CycleError(cycle)

            value = await self._race_cancellation(
                run,
                execute_node(node, self._nodes, self._connections, cache, self.registry),
            )
            return ExecutionResult(
                node_id=node.id,
                title=node.title,
                result=to_node_value(value),
                execution_time=time.time() - started,
            )
        except Exception as e:
            logger.error(f"Error executing node {node.id} ({node.title}): {e}")
            return ExecutionResult(
                node_id=node.id,
                title=node.title,
                error=_error_message(e),
                execution_time=time.time() - started,
            )

    async def _race_cancellation(self, run: _Run, work: Awaitable[Any]) -> Any:
        """Await ``work`` unless the run is cancelled first.

        The abandoned work keeps running; it is not interrupted.
        """
        task = asyncio.ensure_future(work)
        waiter = asyncio.ensure_future(run.cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            if not waiter.done():
                waiter.cancel()

        if task in done:
            return task.result()

        task.add_done_callback(_log_late_result)
        raise ExecutionCancelledError()

    def _merge_results(
        self, results: List[ExecutionResult], node_results: Dict[int, Any]
    ) -> List[Node]:
        """Return a new node list annotated with this run's outcomes.

        Nodes that computed a value get ``result``; end nodes that failed get an
        ``"Error: ..."`` placeholder; untouched nodes are kept as-is. Original
        node objects are never modified.
        """
        failed = {r.node_id: r.error for r in results if not r.succeeded}
        merged: List[Node] = []
        for node in self._nodes:
            if node.id in node_results:
                merged.append(replace(node, processing=False, result=node_results[node.id]))
            elif node.id in failed:
                merged.append(
                    replace(node, processing=False, result=f"Error: {failed[node.id]}")
                )
            else:
                merged.append(node)
        return merged


def create_flow_runtime(
    nodes: Iterable[Node], connections: Iterable[Connection], **kwargs: Any
) -> FlowRuntime:
    """Create a flow runtime instance."""
    return FlowRuntime(nodes, connections, **kwargs)


async def execute_flow(
    nodes: Iterable[Node],
    connections: Iterable[Connection],
    options: Optional[ExecutionOptions] = None,
    **kwargs: Any,
) -> List[ExecutionResult]:
    """Execute a flow once with a throwaway runtime."""
    return await create_flow_runtime(nodes, connections, **kwargs).execute(options)


async def execute_flow_with_results(
    nodes: Iterable[Node],
    connections: Iterable[Connection],
    options: Optional[ExecutionOptions] = None,
    **kwargs: Any,
) -> Tuple[List[ExecutionResult], List[Node]]:
    """Execute a flow once and return (results, updated_nodes)."""
    runtime = create_flow_runtime(nodes, connections, **kwargs)
    results = await runtime.execute(options)
    return results, runtime.get_nodes()
