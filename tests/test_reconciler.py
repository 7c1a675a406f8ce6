"""Tests for running-workload reconciliation."""

from windows_overcommit.cluster.reconciler import reconcile_running
from windows_overcommit.workload.spec import CPUTopology, WorkloadSpec


def _windows(kind: str, name: str, namespace: str = "ns", sockets: int = 1) -> WorkloadSpec:
    return WorkloadSpec(
        kind=kind,
        name=name,
        namespace=namespace,
        cpu=CPUTopology(sockets=sockets),
        hyperv=True,
    )


def _linux(kind: str, name: str, namespace: str = "ns") -> WorkloadSpec:
    return WorkloadSpec(kind=kind, name=name, namespace=namespace)


def test_template_and_instance_counted_once() -> None:
    instance = _windows("VirtualMachineInstance", "w1", sockets=2)
    template = _windows("VirtualMachine", "w1", sockets=8)

    running = reconcile_running([instance], [template])

    assert len(running) == 1
    assert running[0] is instance


def test_template_without_instance_is_counted() -> None:
    running = reconcile_running([], [_windows("VirtualMachine", "w2")])
    assert [workload.key for workload in running] == [("w2", "ns")]


def test_same_name_in_other_namespace_is_distinct() -> None:
    running = reconcile_running(
        [_windows("VirtualMachineInstance", "w1", namespace="a")],
        [_windows("VirtualMachine", "w1", namespace="b")],
    )
    assert sorted(workload.key for workload in running) == [("w1", "a"), ("w1", "b")]


def test_non_windows_workloads_are_dropped() -> None:
    running = reconcile_running(
        [_linux("VirtualMachineInstance", "l1"), _windows("VirtualMachineInstance", "w1")],
        [_linux("VirtualMachine", "l2")],
    )
    assert [workload.key for workload in running] == [("w1", "ns")]


def test_duplicate_instances_are_deduplicated() -> None:
    first = _windows("VirtualMachineInstance", "w1", sockets=2)
    second = _windows("VirtualMachineInstance", "w1", sockets=4)

    running = reconcile_running([first, second], [])

    assert running == [first]


def test_inputs_are_not_modified() -> None:
    instances = [_windows("VirtualMachineInstance", "w1")]
    templates = [_windows("VirtualMachine", "w2")]

    reconcile_running(instances, templates)

    assert len(instances) == 1
    assert len(templates) == 1
