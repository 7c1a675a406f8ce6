"""Tests for node filtering and capacity."""

from types import SimpleNamespace

from windows_overcommit.cluster.nodes import (
    Node,
    filter_nodes,
    node_from_api,
    node_from_dict,
    parse_cpu_capacity,
    total_capacity,
)
from windows_overcommit.common.config import NodeFilterConfig


def test_default_filter_keeps_windows_nodes_only() -> None:
    nodes = [
        Node(name="win", labels={"image_type": "windows"}, cpu_capacity=8),
        Node(name="linux", labels={"image_type": "linux"}, cpu_capacity=16),
        Node(name="bare", labels={}, cpu_capacity=4),
    ]

    filtered = filter_nodes(nodes, NodeFilterConfig())

    assert [node.name for node in filtered] == ["win"]
    assert total_capacity(filtered) == 8
    assert len(nodes) == 3


def test_filter_skips_empty_label_value() -> None:
    nodes = [Node(name="empty", labels={"image_type": ""}, cpu_capacity=4)]
    assert filter_nodes(nodes, NodeFilterConfig(label_values=[""])) == []


def test_filter_with_multiple_values_preserves_order_without_duplicates() -> None:
    node_filter = NodeFilterConfig(label_key="os", label_values=["win2019", "win2022", "win2022"])
    nodes = [
        Node(name="a", labels={"os": "win2022"}, cpu_capacity=2),
        Node(name="b", labels={"os": "rhel"}, cpu_capacity=2),
        Node(name="c", labels={"os": "win2019"}, cpu_capacity=2),
    ]

    assert [node.name for node in filter_nodes(nodes, node_filter)] == ["a", "c"]


def test_parse_cpu_capacity() -> None:
    assert parse_cpu_capacity("8") == 8
    assert parse_cpu_capacity("7500m") == 8
    assert parse_cpu_capacity(4) == 4
    assert parse_cpu_capacity(None) == 0


def test_node_from_api() -> None:
    api_node = SimpleNamespace(
        metadata=SimpleNamespace(name="worker-1", labels={"image_type": "windows"}),
        status=SimpleNamespace(capacity={"cpu": "16", "memory": "64Gi"}),
    )
    assert node_from_api(api_node) == Node(
        name="worker-1", labels={"image_type": "windows"}, cpu_capacity=16
    )


def test_node_from_api_without_labels() -> None:
    api_node = SimpleNamespace(
        metadata=SimpleNamespace(name="worker-2", labels=None),
        status=SimpleNamespace(capacity=None),
    )
    assert node_from_api(api_node) == Node(name="worker-2")


def test_node_from_dict() -> None:
    node = node_from_dict(
        {
            "metadata": {"name": "worker-3", "labels": {"image_type": "windows"}},
            "status": {"capacity": {"cpu": "32"}},
        }
    )
    assert node.cpu_capacity == 32
    assert node.labels == {"image_type": "windows"}
