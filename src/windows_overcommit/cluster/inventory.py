"""Cluster inventory listing.

Nodes, virtual machine instances and virtual machines are listed fresh for
every admission decision. Nothing is cached between decisions.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import HTTPError

from windows_overcommit.cluster.nodes import Node, node_from_api, node_from_dict
from windows_overcommit.common.config import ClusterConfig
from windows_overcommit.common.logging import get_logger
from windows_overcommit.workload.spec import (
    WorkloadSpec,
    from_virtual_machine,
    from_virtual_machine_instance,
)

log = get_logger(__name__)

KUBEVIRT_GROUP = "kubevirt.io"
KUBEVIRT_VERSION = "v1"


class InventoryError(RuntimeError):
    """Raised when the cluster inventory cannot be listed."""


@dataclass(frozen=True)
class InventorySnapshot:
    """Read-only view of the cluster taken for a single decision."""
    nodes: Tuple[Node, ...]
    instances: Tuple[WorkloadSpec, ...]
    templates: Tuple[WorkloadSpec, ...]


class ClusterInventory:
    """Lists nodes and KubeVirt workloads through the kubernetes API."""

    def __init__(
        self,
        core_api: Any,
        custom_api: Any,
        request_timeout_sec: Optional[float] = 10.0,
    ):
        self._core_api = core_api
        self._custom_api = custom_api
        self._request_timeout = request_timeout_sec

    @classmethod
    def from_config(cls, cluster_config: ClusterConfig) -> "ClusterInventory":
        """Create API clients from in-cluster or kubeconfig credentials."""
        load_kube_config(cluster_config.kubeconfig)
        return cls(
            core_api=client.CoreV1Api(),
            custom_api=client.CustomObjectsApi(),
            request_timeout_sec=cluster_config.request_timeout_sec,
        )

    def list_nodes(self) -> List[Node]:
        try:
            node_list = self._core_api.list_node(_request_timeout=self._request_timeout)
        except (ApiException, HTTPError) as e:
            raise InventoryError(f"failed to list nodes; {e}") from e
        return [node_from_api(item) for item in node_list.items]

    def list_virtual_machine_instances(self) -> List[WorkloadSpec]:
        items = self._list_kubevirt("virtualmachineinstances")
        return [from_virtual_machine_instance(item) for item in items]

    def list_virtual_machines(self) -> List[WorkloadSpec]:
        items = self._list_kubevirt("virtualmachines")
        return [from_virtual_machine(item) for item in items]

    def snapshot(self) -> InventorySnapshot:
        nodes = self.list_nodes()
        instances = self.list_virtual_machine_instances()
        templates = self.list_virtual_machines()
        log.debug(
            f"Inventory snapshot: {len(nodes)} nodes, {len(instances)} instances, "
            f"{len(templates)} virtual machines"
        )
        return InventorySnapshot(tuple(nodes), tuple(instances), tuple(templates))

    def _list_kubevirt(self, plural: str) -> List[Dict[str, Any]]:
        try:
            response = self._custom_api.list_cluster_custom_object(
                group=KUBEVIRT_GROUP,
                version=KUBEVIRT_VERSION,
                plural=plural,
                _request_timeout=self._request_timeout,
            )
        except (ApiException, HTTPError) as e:
            raise InventoryError(f"failed to list {plural}; {e}") from e
        return list(response.get("items") or [])


class StaticInventory:
    """Inventory backed by manifests instead of a live cluster.

    Used by the offline manifest checker.
    """

    def __init__(
        self,
        nodes: List[Dict[str, Any]],
        virtual_machine_instances: List[Dict[str, Any]],
        virtual_machines: List[Dict[str, Any]],
    ):
        self._nodes = [node_from_dict(item) for item in nodes]
        self._instances = [from_virtual_machine_instance(item) for item in virtual_machine_instances]
        self._templates = [from_virtual_machine(item) for item in virtual_machines]

    @classmethod
    def from_dict(cls, raw: Any) -> "StaticInventory":
        """Build an inventory from a decoded YAML document.

        Raises:
            InventoryError: If the document or any item in it is malformed.
        """
        if not isinstance(raw, dict):
            raise InventoryError("inventory must be a mapping")
        try:
            return cls(
                nodes=raw.get("nodes") or [],
                virtual_machine_instances=raw.get("virtualmachineinstances") or [],
                virtual_machines=raw.get("virtualmachines") or [],
            )
        except (AttributeError, TypeError, ValueError) as e:
            raise InventoryError(f"malformed inventory; {e}") from e

    def snapshot(self) -> InventorySnapshot:
        return InventorySnapshot(
            tuple(self._nodes), tuple(self._instances), tuple(self._templates)
        )


def load_kube_config(kubeconfig: Optional[str] = None) -> None:
    """Load cluster credentials.

    An explicit kubeconfig path wins. Otherwise the in-cluster service
    account is tried first, then the default kubeconfig.
    """
    if kubeconfig:
        log.info(f"Loading kubeconfig from {kubeconfig}")
        try:
            config.load_kube_config(config_file=kubeconfig)
        except (ConfigException, OSError) as e:
            raise InventoryError(f"failed to load kubeconfig {kubeconfig}; {e}") from e
        return

    try:
        config.load_incluster_config()
        log.info("Loaded in-cluster config")
    except ConfigException:
        log.warning("In-cluster config not found, trying local kubeconfig")
        try:
            config.load_kube_config()
        except ConfigException as e:
            raise InventoryError(f"kubernetes configuration could not be loaded; {e}") from e
        log.info("Loaded local kubeconfig")
