"""Topology analysis for node graphs.

Key responsibilities:
- Find end nodes (nodes whose outputs nobody consumes)
- Build the node-to-node edge list used for progress estimation
- Build per-node dependencies and search them for cycles
- Compute a topological order

Execution order is never derived here: the executor resolves inputs lazily
from the end nodes, so ordering emerges from recursion.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .exceptions import CycleError
from .graph import Connection, Node

Edge = Tuple[int, int]


@dataclass
class TopologyResult:
    """Everything the run coordinator needs to know about a graph.

    Attributes:
        end_nodes: Nodes with no consumed output, in graph order
        edges: Deduplicated (producer_id, consumer_id) pairs
        dependencies: Mapping from node id to the ids of its producers
        estimated_total: Upper bound on the number of nodes a run can touch
    """

    end_nodes: List[Node]
    edges: List[Edge]
    dependencies: Dict[int, List[int]]
    estimated_total: int


def _socket_owners(nodes: Iterable[Node]) -> Dict[int, int]:
    """Map every socket id to the id of the node that owns it."""
    return {socket.id: node.id for node in nodes for socket in node.sockets}


def find_end_nodes(nodes: Sequence[Node], connections: Iterable[Connection]) -> List[Node]:
    """Return nodes none of whose output sockets feeds a connection.

    A node without output sockets is always an end node.
    """
    consumed = {conn.from_socket for conn in connections}
    return [
        node
        for node in nodes
        if all(socket.id not in consumed for socket in node.output_sockets)
    ]


def build_execution_graph(
    nodes: Sequence[Node], connections: Iterable[Connection]
) -> List[Edge]:
    """Build deduplicated (producer, consumer) node edges from connections.

    Connections whose sockets cannot be resolved are skipped.
    """
    owners = _socket_owners(nodes)
    edges: List[Edge] = []
    seen: Set[Edge] = set()

    for conn in connections:
        source = owners.get(conn.from_socket)
        target = owners.get(conn.to_socket)
        if source is None or target is None:
            continue
        edge = (source, target)
        if edge not in seen:
            seen.add(edge)
            edges.append(edge)

    return edges


def estimate_total(edges: Iterable[Edge], end_nodes: Iterable[Node] = ()) -> int:
    """Count distinct node ids touched by the edges or listed as end nodes.

    Every node a run executes is either an end node or an endpoint of some
    edge, so this never undercounts.
    """
    touched = {node_id for edge in edges for node_id in edge}
    touched.update(node.id for node in end_nodes)
    return len(touched)


def _dependencies_from_edges(
    nodes: Sequence[Node], edges: Iterable[Edge]
) -> Dict[int, List[int]]:
    dependencies: Dict[int, List[int]] = {node.id: [] for node in nodes}
    for source, target in edges:
        dependencies.setdefault(target, []).append(source)
    return dependencies


def build_dependencies(
    nodes: Sequence[Node], connections: Iterable[Connection]
) -> Dict[int, List[int]]:
    """Map each node id to the ids of the nodes feeding its inputs."""
    return _dependencies_from_edges(nodes, build_execution_graph(nodes, connections))


def find_cycle(
    start_ids: Iterable[int], dependencies: Dict[int, List[int]]
) -> Optional[List[int]]:
    """Search upstream from ``start_ids`` for a dependency cycle.

    Args:
        start_ids: Node ids to start the search from
        dependencies: Mapping from node id to producer ids

    Returns:
        Node ids along the first cycle found (first id repeated at the end),
        or None if everything reachable is acyclic
    """
    WHITE, GRAY, BLACK = 0, 1, 2
    color: Dict[int, int] = {}

    def visit(node_id: int, path: List[int]) -> Optional[List[int]]:
        state = color.get(node_id, WHITE)
        if state == GRAY:
            return path[path.index(node_id):] + [node_id]
        if state == BLACK:
            return None

        color[node_id] = GRAY
        path.append(node_id)
        for dep in dependencies.get(node_id, []):
            cycle = visit(dep, path)
            if cycle is not None:
                return cycle
        path.pop()
        color[node_id] = BLACK
        return None

    for node_id in start_ids:
        cycle = visit(node_id, [])
        if cycle is not None:
            return cycle
    return None


def topological_sort(
    nodes: Sequence[Node], connections: Iterable[Connection]
) -> List[Node]:
    """Order nodes so every producer precedes its consumers (Kahn's algorithm).

    Ties are broken by node id for a deterministic order.

    Raises:
        CycleError: If the graph contains a cycle
    """
    dependencies = build_dependencies(nodes, connections)
    cycle = find_cycle([node.id for node in nodes], dependencies)
    if cycle is not None:
        raise CycleError(cycle)

    by_id = {node.id: node for node in nodes}
    in_degree = {node_id: len(deps) for node_id, deps in dependencies.items()}
    consumers: Dict[int, List[int]] = {node_id: [] for node_id in dependencies}
    for node_id, deps in dependencies.items():
        for dep in deps:
            consumers[dep].append(node_id)

    queue = sorted(node_id for node_id, degree in in_degree.items() if degree == 0)
    order: List[Node] = []

    while queue:
        node_id = queue.pop(0)
        order.append(by_id[node_id])
        for consumer in consumers[node_id]:
            in_degree[consumer] -= 1
            if in_degree[consumer] == 0:
                queue.append(consumer)
        queue.sort()

    return order


def resolve_topology(
    nodes: Sequence[Node], connections: Sequence[Connection]
) -> TopologyResult:
    """Compute end nodes, edges, dependencies and the progress estimate."""
    end_nodes = find_end_nodes(nodes, connections)
    edges = build_execution_graph(nodes, connections)

    return TopologyResult(
        end_nodes=end_nodes,
        edges=edges,
        dependencies=_dependencies_from_edges(nodes, edges),
        estimated_total=estimate_total(edges, end_nodes),
    )
