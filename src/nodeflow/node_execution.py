"""Node execution logic: resolve a node's inputs and run its processor.

This module only knows how to execute one node (and, lazily, whatever that
node reads from upstream). It doesn't know about end nodes, progress or
cancellation requests beyond what the execution cache reports.

Key principle: every node goes through the execution cache, and the cache
stores the node's task before the node starts resolving its inputs. Nodes
shared by several consumers therefore run once per run.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Tuple

from .cache import ExecutionCache
from .exceptions import (
    CycleError,
    ExecutionCancelledError,
    MissingProcessorError,
    NodeCancelledError,
)
from .graph import Connection, Node, Processor, find_node_by_id, find_socket_by_id
from .registry import ProcessorRegistry

logger = logging.getLogger(__name__)


@dataclass
class NodeExecutionContext:
    """What a processor gets to see while computing a node.

    Attributes:
        node: The node being computed
        get_input_value: Coroutine function resolving an input socket id to the
            upstream value, or None when the socket is not connected
    """

    node: Node
    get_input_value: Callable[[int], Awaitable[Any]]

    @property
    def value(self) -> Any:
        return self.node.value

    async def get_input_values(self) -> Dict[int, Any]:
        """Resolve every input socket of the node concurrently."""
        sockets = self.node.input_sockets
        values = await asyncio.gather(
            *(self.get_input_value(socket.id) for socket in sockets)
        )
        return {socket.id: value for socket, value in zip(sockets, values)}


def select_output(result: Any, socket_id: int) -> Any:
    """Pick the value for ``socket_id`` out of a multi-output result.

    Multi-output nodes return a dict keyed by output socket id. Keys may be
    ints or their string form (results that went through JSON). Anything else
    is passed through unchanged.
    """
    if isinstance(result, dict):
        if socket_id in result:
            return result[socket_id]
        if str(socket_id) in result:
            return result[str(socket_id)]
    return result


def resolve_processor(
    node: Node, registry: Optional[ProcessorRegistry] = None
) -> Processor:
    """Return the node's own process function, else the registered one.

    Raises:
        MissingProcessorError: If neither exists
    """
    if node.process is not None:
        return node.process
    processor = registry.get(node.node_type) if registry is not None else None
    if processor is None:
        raise MissingProcessorError(node.id, node.node_type)
    return processor


async def execute_node(
    node: Node,
    all_nodes: Sequence[Node],
    connections: Sequence[Connection],
    cache: ExecutionCache,
    registry: Optional[ProcessorRegistry] = None,
    _path: Tuple[int, ...] = (),
) -> Any:
    """Compute ``node``, executing upstream nodes on demand through ``cache``.

    Cycles are caught along the current chain of callers only. Concurrent
    callers sharing one cache must rule them out first with
    :func:`~nodeflow.graph_builder.find_cycle`, or a cycle entered from two
    branches waits on itself forever. :class:`FlowRuntime` does this per end
    node.

    Args:
        node: Node to compute
        all_nodes: Every node of the graph
        connections: Every connection of the graph
        cache: Execution cache of the current run
        registry: Registry used for nodes without their own process function
        _path: Node ids currently being resolved above this call (internal)

    Returns:
        The node's raw result

    Raises:
        CycleError: If ``node`` is already being resolved further up this chain
        MissingProcessorError: If no processor can be found for a required node
        ExecutionCancelledError: If the run was cancelled before this node ran
    """
    if node.id in cache:
        if node.id in _path and cache.is_in_progress(node.id):
            raise CycleError(_path[_path.index(node.id):] + (node.id,))
        logger.debug(f"Waiting for cached result for node {node.id} ({node.title})")
        return await cache.lookup(node.id)

    path = _path + (node.id,)
    future, _ = cache.get_or_create(
        node.id,
        lambda: _run_node(node, all_nodes, connections, cache, registry, path),
    )
    return await future


def _task_cancelling() -> bool:
    """True when the current task itself has a pending cancel request.

    Always False before Python 3.11, which has no ``Task.cancelling``.
    """
    task = asyncio.current_task()
    cancelling = getattr(task, "cancelling", None)
    return cancelling is not None and cancelling() > 0


async def _run_node(
    node: Node,
    all_nodes: Sequence[Node],
    connections: Sequence[Connection],
    cache: ExecutionCache,
    registry: Optional[ProcessorRegistry],
    path: Tuple[int, ...],
) -> Any:
    logger.debug(f"Starting execution of node {node.id} ({node.title})")

    async def get_input_value(input_socket_id: int) -> Any:
        incoming = next(
            (conn for conn in connections if conn.to_socket == input_socket_id), None
        )
        if incoming is None:
            return None

        from_socket = find_socket_by_id(incoming.from_socket, all_nodes)
        if from_socket is None:
            return None
        from_node = find_node_by_id(from_socket.node_id, all_nodes)
        if from_node is None:
            return None

        result = await execute_node(
            from_node, all_nodes, connections, cache, registry, _path=path
        )
        return select_output(result, incoming.from_socket)

    processor = resolve_processor(node, registry)
    if cache.cancelled:
        raise ExecutionCancelledError()

    context = NodeExecutionContext(node=node, get_input_value=get_input_value)
    try:
        result = processor(context)
        if inspect.isawaitable(result):
            result = await result
    except asyncio.CancelledError as e:
        if _task_cancelling():
            raise
        raise NodeCancelledError(node.id, node.title) from e

    logger.debug(f"Completed execution of node {node.id} ({node.title})")
    return result
