"""Admission controller for Windows vCPU overcommit."""

from dataclasses import dataclass
from typing import Iterable, Protocol, Tuple

from windows_overcommit.cluster.inventory import InventorySnapshot
from windows_overcommit.cluster.nodes import filter_nodes, total_capacity
from windows_overcommit.cluster.reconciler import reconcile_running
from windows_overcommit.common.config import NodeFilterConfig
from windows_overcommit.common.logging import get_logger
from windows_overcommit.workload.capacity import sum_vcpus, vcpus
from windows_overcommit.workload.classifier import classify
from windows_overcommit.workload.spec import WorkloadSpec

log = get_logger(__name__)

SKIPPING_VALIDATION = "skipping validation"
REQUEST_SUCCESS = "request success"


@dataclass(frozen=True)
class AdmissionDecision:
    """Admission evaluation result for a workload creation request."""

    allowed: bool
    message: str = ""


class Inventory(Protocol):
    def snapshot(self) -> InventorySnapshot: ...


def decide(
    incoming: WorkloadSpec,
    running_used: int,
    total_capacity: int,
    running_keys: Iterable[Tuple[str, str]] = (),
) -> AdmissionDecision:
    """Decide whether ``incoming`` fits in the remaining Windows capacity.

    Args:
        incoming: The workload being created.
        running_used: vCPUs used by the reconciled running inventory.
        total_capacity: vCPUs offered by the eligible nodes.
        running_keys: ``(name, namespace)`` of every workload already
            counted in ``running_used``.

    Returns:
        The decision with a human readable message.
    """
    if not classify(incoming).needs_quota:
        return AdmissionDecision(allowed=True, message=SKIPPING_VALIDATION)

    if incoming.key in set(running_keys):
        return AdmissionDecision(allowed=True, message=SKIPPING_VALIDATION)

    requested = vcpus(incoming)
    available = total_capacity - running_used
    if requested > available:
        return AdmissionDecision(
            allowed=False,
            message=(
                f"requested capacity: [{requested}], exceeds available "
                f"capacity: [{available}]; currently used: [{running_used}] "
                f"of total: [{total_capacity}]"
            ),
        )

    return AdmissionDecision(allowed=True, message=REQUEST_SUCCESS)


class AdmissionController:
    """Evaluates whether a Windows workload fits in the cluster capacity."""

    def __init__(self, node_filter: NodeFilterConfig, inventory: Inventory):
        self.node_filter = node_filter
        self.inventory = inventory

    def evaluate(self, incoming: WorkloadSpec) -> AdmissionDecision:
        """Evaluate a creation request against a fresh inventory snapshot.

        Exempt workloads are allowed without listing the cluster.

        Raises:
            InventoryError: If the cluster inventory cannot be listed.
        """
        verdict = classify(incoming)
        log.info(f"Classified {incoming.namespace}/{incoming.name}: {verdict.reason}")
        if not verdict.needs_quota:
            return AdmissionDecision(allowed=True, message=SKIPPING_VALIDATION)

        snapshot = self.inventory.snapshot()

        nodes = filter_nodes(snapshot.nodes, self.node_filter)
        total = total_capacity(nodes)

        running = reconcile_running(snapshot.instances, snapshot.templates)
        used = sum_vcpus(running)

        log.info(
            f"requested CPU: [{vcpus(incoming)}], total CPU capacity: [{total}] "
            f"on {len(nodes)} nodes, used CPU capacity: [{used}] "
            f"by {len(running)} workloads"
        )

        return decide(
            incoming,
            running_used=used,
            total_capacity=total,
            running_keys=[workload.key for workload in running],
        )
