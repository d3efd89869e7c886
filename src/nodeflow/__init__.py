"""nodeflow: execution engine for node graphs.

A flow is a set of nodes connected output-socket to input-socket. Running a
flow executes its end nodes (nodes whose outputs nobody consumes), pulling in
every upstream node they need exactly once per run:
- Lazy dependency resolution from the end nodes
- Per-run memoization shared by concurrent branches
- Partial failure: one failing branch doesn't fail the others
- Progress callbacks and best-effort cancellation

Example:
    >>> from nodeflow import Connection, FlowRuntime, Node, Socket
    >>>
    >>> async def number(ctx):
    ...     return ctx.node.value
    >>>
    >>> async def double(ctx):
    ...     return await ctx.get_input_value(201) * 2
    >>>
    >>> nodes = [
    ...     Node(1, "Number", "Number", value=21,
    ...          sockets=[Socket(101, "Out", "output", 1)], process=number),
    ...     Node(2, "Double", "Double",
    ...          sockets=[Socket(201, "In", "input", 2)], process=double),
    ... ]
    >>> runtime = FlowRuntime(nodes, [Connection(101, 201)])
    >>> [r.result for r in runtime.execute_sync()]
    [42]
"""

from .cache import ExecutionCache
from .callbacks import ExecutionOptions, FlowCallback
from .config import RuntimeConfiguration, load_runtime_config
from .exceptions import (
    AlreadyExecutingError,
    CycleError,
    ExecutionCancelledError,
    FanInError,
    GraphValidationError,
    MissingProcessorError,
    NodeCancelledError,
    NodeFlowError,
    NoEndNodesError,
)
from .graph import Connection, Node, Socket, load_graph
from .graph_builder import (
    build_execution_graph,
    find_end_nodes,
    resolve_topology,
    topological_sort,
)
from .node_execution import NodeExecutionContext, execute_node
from .registry import ProcessorRegistry, processor_registry
from .runtime import (
    ExecutionResult,
    ExecutionStatus,
    FlowRuntime,
    RunState,
    create_flow_runtime,
    execute_flow,
    execute_flow_with_results,
    to_node_value,
)

__version__ = "0.1.0"

__all__ = [
    # Graph model
    "Connection",
    "Node",
    "Socket",
    "load_graph",
    # Topology
    "build_execution_graph",
    "find_end_nodes",
    "resolve_topology",
    "topological_sort",
    # Execution
    "ExecutionCache",
    "NodeExecutionContext",
    "execute_node",
    "ExecutionResult",
    "ExecutionStatus",
    "FlowRuntime",
    "RunState",
    "create_flow_runtime",
    "execute_flow",
    "execute_flow_with_results",
    "to_node_value",
    # Registry, callbacks & config
    "ProcessorRegistry",
    "processor_registry",
    "ExecutionOptions",
    "FlowCallback",
    "RuntimeConfiguration",
    "load_runtime_config",
    # Exceptions
    "NodeFlowError",
    "GraphValidationError",
    "FanInError",
    "NoEndNodesError",
    "CycleError",
    "MissingProcessorError",
    "ExecutionCancelledError",
    "NodeCancelledError",
    "AlreadyExecutingError",
    # Note: the progress bar lives in the telemetry subpackage
    # Use: from nodeflow.telemetry import ProgressCallback
]
