"""Tests for the graph data model and flow loading."""

import pytest
from flow_helpers import connect, make_node

from nodeflow import Connection, FanInError, Node, Socket, load_graph
from nodeflow.graph import find_node_by_id, find_socket_by_id, validate_connections

EXPORTED_FLOW = {
    "nodes": [
        {
            "id": 1,
            "title": "Text",
            "nodeType": "Text",
            "nodeValue": "hello",
            "position": {"x": 10, "y": 20},
            "sockets": [
                {"id": 101, "title": "Out", "type": "output", "nodeId": 1, "dataType": "string"}
            ],
        },
        {
            "id": 2,
            "title": "Upper",
            "nodeType": "Upper",
            "sockets": [{"id": 201, "title": "In", "type": "input", "nodeId": 2}],
            "configParameters": [
                {
                    "parameterName": "Locale",
                    "parameterType": "string",
                    "defaultValue": "en",
                    "paramValue": "tr",
                    "valueSource": "UserInput",
                    "description": "Casing rules",
                },
                {
                    "parameterName": "Strip",
                    "parameterType": "boolean",
                    "defaultValue": True,
                    "valueSource": "Default",
                    "description": "Strip whitespace",
                },
            ],
        },
    ],
    "connections": [{"fromSocket": 101, "toSocket": 201}],
}


def test_node_from_editor_dict():
    node = Node.from_dict(EXPORTED_FLOW["nodes"][0])

    assert node.id == 1
    assert node.node_type == "Text"
    assert node.value == "hello"
    assert node.result is None
    assert node.processing is False
    assert [s.id for s in node.output_sockets] == [101]
    assert node.input_sockets == []
    assert node.sockets[0].data_type == "string"


def test_snake_case_keys_accepted():
    socket = Socket.from_dict({"id": 5, "direction": "input", "node_id": 1})
    connection = Connection.from_dict({"from_socket": 1, "to_socket": 5, "label": "x"})

    assert socket.is_input
    assert socket.data_type == "unknown"
    assert connection == Connection(1, 5, "x")


def test_invalid_socket_direction():
    with pytest.raises(ValueError, match="invalid direction"):
        Socket.from_dict({"id": 5, "type": "sideways", "nodeId": 1})


def test_to_dict_uses_editor_keys():
    node = make_node(3, inputs=1)

    data = node.to_dict()

    assert data["nodeType"] == "Test"
    assert data["sockets"][0] == {
        "id": 301,
        "title": "In 1",
        "type": "input",
        "nodeId": 3,
        "dataType": "unknown",
    }
    assert Connection(351, 401).to_dict() == {"fromSocket": 351, "toSocket": 401}


def test_process_is_not_part_of_equality():
    assert make_node(1, process=lambda ctx: 1) == make_node(1, process=lambda ctx: 2)


def test_find_helpers():
    nodes = [make_node(1), make_node(2, inputs=1)]

    assert find_node_by_id(2, nodes) is nodes[1]
    assert find_node_by_id(9, nodes) is None
    assert find_socket_by_id(201, nodes).node_id == 2
    assert find_socket_by_id(999, nodes) is None


def test_validate_connections_allows_fan_out():
    validate_connections([connect(1, 2), connect(1, 3)])


def test_validate_connections_rejects_fan_in():
    with pytest.raises(FanInError) as excinfo:
        validate_connections([connect(1, 3), connect(2, 3)])

    assert excinfo.value.from_sockets == [151, 251]


def test_load_graph_attaches_processors():
    def upper(ctx):
        return "HELLO"

    nodes, connections = load_graph(EXPORTED_FLOW, processors={2: upper})

    assert [n.id for n in nodes] == [1, 2]
    assert nodes[0].process is None
    assert nodes[1].process is upper
    assert connections == [Connection(101, 201)]


def test_config_parameters_from_editor_dict():
    node = Node.from_dict(EXPORTED_FLOW["nodes"][1])

    assert node.get_config_parameter("Locale")["parameterType"] == "string"
    assert node.get_config_parameter("Missing") is None
    assert node.get_config_value("Locale") == "tr"
    assert node.get_config_value("Strip") is True
    assert node.get_config_value("Missing", "fallback") == "fallback"


def test_config_parameters_round_trip():
    node = Node.from_dict(EXPORTED_FLOW["nodes"][1])

    data = node.to_dict()

    assert data["configParameters"] == EXPORTED_FLOW["nodes"][1]["configParameters"]
    assert Node.from_dict(data) == node
    assert Node.from_dict(EXPORTED_FLOW["nodes"][0]).config_parameters == []


def test_load_graph_keeps_config_parameters():
    nodes, _ = load_graph(EXPORTED_FLOW)

    assert nodes[1].get_config_value("Locale") == "tr"
