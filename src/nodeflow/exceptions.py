"""Custom exceptions for the nodeflow execution engine."""


class NodeFlowError(Exception):
    """Base exception for all nodeflow errors."""
    pass


class GraphValidationError(NodeFlowError):
    """Raised when a node graph is structurally invalid."""
    pass


class FanInError(GraphValidationError):
    """Raised when more than one connection feeds the same input socket."""

    def __init__(self, socket_id: int, from_sockets):
        self.socket_id = socket_id
        self.from_sockets = list(from_sockets)
        super().__init__(
            f"Input socket {socket_id} is fed by multiple connections "
            f"(from sockets {', '.join(str(s) for s in self.from_sockets)})"
        )


class NoEndNodesError(NodeFlowError):
    """Raised when a flow has no node with unused outputs."""

    def __init__(self):
        super().__init__(
            "No end nodes found. Your flow needs at least one node with unused outputs."
        )


class CycleError(NodeFlowError):
    """Raised when a cycle is detected in the node graph."""

    def __init__(self, cycle):
        self.cycle = list(cycle)
        super().__init__(
            f"Cycle detected in node graph: {' -> '.join(str(n) for n in self.cycle)}"
        )


class MissingProcessorError(NodeFlowError):
    """Raised when a node has no process function and none is registered."""

    def __init__(self, node_id: int, node_type: str):
        self.node_id = node_id
        self.node_type = node_type
        super().__init__(
            f"Node {node_type} (ID: {node_id}) does not have a process function"
        )


CANCELLED_MESSAGE = "Execution cancelled"


class ExecutionCancelledError(NodeFlowError):
    """Raised for node branches still pending when a run is cancelled."""

    def __init__(self, message: str = CANCELLED_MESSAGE):
        super().__init__(message)


class NodeCancelledError(NodeFlowError):
    """Raised when a node's computation is cancelled by something other than its run.

    Typically a processor awaiting a task that was cancelled elsewhere. Only the
    branches depending on the node fail.
    """

    def __init__(self, node_id: int, title: str):
        self.node_id = node_id
        self.title = title
        super().__init__(f"Node {node_id} ({title}) was cancelled")


class AlreadyExecutingError(NodeFlowError):
    """Raised when execute() is called while a run is in flight."""

    def __init__(self):
        super().__init__("Flow is already executing")
