"""Plain data describing a node graph: nodes, typed sockets and connections.

Nodes and sockets are created by an editor (or loaded from an exported flow)
and handed to the engine as-is. The ``from_dict`` constructors accept both the
editor's camelCase keys (``nodeType``, ``fromSocket`` ...) and snake_case keys.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional

from .exceptions import FanInError

SocketDirection = Literal["input", "output"]

# Signature of a node computation: (NodeExecutionContext) -> value or awaitable
Processor = Callable[[Any], Any]


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first key present in ``data``."""
    for key in keys:
        if key in data:
            return data[key]
    return default


@dataclass
class Socket:
    """A typed connection point on a node.

    Attributes:
        id: Globally unique socket id (conventionally ``node_id * 100 + n``)
        title: Display title
        direction: ``"input"`` or ``"output"``
        node_id: Id of the owning node
        data_type: Declared data type, for display only
    """

    id: int
    title: str
    direction: SocketDirection
    node_id: int
    data_type: str = "unknown"

    @property
    def is_input(self) -> bool:
        return self.direction == "input"

    @property
    def is_output(self) -> bool:
        return self.direction == "output"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.direction,
            "nodeId": self.node_id,
            "dataType": self.data_type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Socket":
        direction = _pick(data, "direction", "type")
        if direction not in ("input", "output"):
            raise ValueError(
                f"Socket {data.get('id')} has invalid direction {direction!r}"
            )
        return cls(
            id=int(data["id"]),
            title=data.get("title", ""),
            direction=direction,
            node_id=int(_pick(data, "node_id", "nodeId")),
            data_type=_pick(data, "data_type", "dataType", default="unknown"),
        )


@dataclass(frozen=True)
class Connection:
    """Directed edge from an output socket to an input socket."""

    from_socket: int
    to_socket: int
    label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "fromSocket": self.from_socket,
            "toSocket": self.to_socket,
        }
        if self.label is not None:
            data["label"] = self.label
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Connection":
        return cls(
            from_socket=int(_pick(data, "from_socket", "fromSocket")),
            to_socket=int(_pick(data, "to_socket", "toSocket")),
            label=data.get("label"),
        )


@dataclass
class Node:
    """A computation node in a flow.

    The engine never mutates a Node. After a run, :class:`FlowRuntime` replaces
    touched nodes with copies carrying ``processing`` and ``result``.

    Attributes:
        id: Node id, unique within a graph
        title: Display title
        node_type: Type tag used to look up a processor in a registry
        value: Mutable payload edited by the user (e.g. a text or number)
        sockets: Input and output sockets
        process: Optional computation; overrides any registered processor
        processing: Whether the node is currently marked as running
        result: Result of the last run that reached this node
        config_parameters: Editor settings (model, limits ...), each a dict with
            ``parameterName`` and ``paramValue``/``defaultValue`` keys
    """

    id: int
    title: str
    node_type: str
    value: Any = None
    sockets: List[Socket] = field(default_factory=list)
    process: Optional[Processor] = field(default=None, repr=False, compare=False)
    processing: bool = False
    result: Any = None
    config_parameters: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def input_sockets(self) -> List[Socket]:
        return [s for s in self.sockets if s.is_input]

    @property
    def output_sockets(self) -> List[Socket]:
        return [s for s in self.sockets if s.is_output]

    def get_config_parameter(self, name: str) -> Optional[Dict[str, Any]]:
        for parameter in self.config_parameters:
            if parameter.get("parameterName") == name:
                return parameter
        return None

    def get_config_value(self, name: str, default: Any = None) -> Any:
        """Value of a config parameter: ``paramValue``, else ``defaultValue``."""
        parameter = self.get_config_parameter(name)
        if parameter is None:
            return default
        if parameter.get("paramValue") is not None:
            return parameter["paramValue"]
        return parameter.get("defaultValue", default)

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data view of the node (the process function is not included)."""
        return {
            "id": self.id,
            "title": self.title,
            "nodeType": self.node_type,
            "nodeValue": self.value,
            "sockets": [s.to_dict() for s in self.sockets],
            "processing": self.processing,
            "result": self.result,
            "configParameters": [dict(p) for p in self.config_parameters],
        }

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], process: Optional[Processor] = None
    ) -> "Node":
        """Create a Node from plain data.

        Unknown keys (canvas position, size, selection state) are ignored.

        Args:
            data: Node dictionary as exported by the editor
            process: Optional computation to attach to the node

        Returns:
            New Node instance
        """
        return cls(
            id=int(data["id"]),
            title=data.get("title", ""),
            node_type=_pick(data, "node_type", "nodeType", default=""),
            value=_pick(data, "value", "nodeValue"),
            sockets=[Socket.from_dict(s) for s in data.get("sockets", [])],
            process=process,
            processing=bool(data.get("processing", False)),
            result=data.get("result"),
            config_parameters=[
                dict(p)
                for p in _pick(data, "config_parameters", "configParameters") or []
            ],
        )


def find_node_by_id(node_id: int, nodes: Iterable[Node]) -> Optional[Node]:
    for node in nodes:
        if node.id == node_id:
            return node
    return None


def find_socket_by_id(socket_id: int, nodes: Iterable[Node]) -> Optional[Socket]:
    for node in nodes:
        for socket in node.sockets:
            if socket.id == socket_id:
                return socket
    return None


def validate_connections(connections: Iterable[Connection]) -> None:
    """Reject graphs where several connections feed one input socket.

    Raises:
        FanInError: If an input socket has more than one incoming connection
    """
    feeding: Dict[int, List[int]] = {}
    for conn in connections:
        feeding.setdefault(conn.to_socket, []).append(conn.from_socket)

    for socket_id, from_sockets in feeding.items():
        if len(from_sockets) > 1:
            raise FanInError(socket_id, from_sockets)


def load_graph(
    data: Dict[str, Any], processors: Optional[Dict[int, Processor]] = None
) -> "tuple[List[Node], List[Connection]]":
    """Build nodes and connections from an exported flow dictionary.

    Args:
        data: Dictionary with ``nodes`` and ``connections`` lists
        processors: Optional mapping of node id to a process function

    Returns:
        Tuple of (nodes, connections)
    """
    processors = processors or {}
    nodes = [
        Node.from_dict(n, process=processors.get(int(n["id"])))
        for n in data.get("nodes", [])
    ]
    connections = [Connection.from_dict(c) for c in data.get("connections", [])]
    return nodes, connections
