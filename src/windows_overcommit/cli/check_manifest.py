"""CLI for checking a workload manifest against a static inventory.

The inventory file is YAML with ``nodes``, ``virtualmachines`` and
``virtualmachineinstances`` lists, e.g. the output of ``kubectl get -o yaml``
trimmed to those items.
"""

import argparse
import sys

import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from windows_overcommit.admission.controller import AdmissionController
from windows_overcommit.cluster.inventory import InventoryError, StaticInventory
from windows_overcommit.cluster.nodes import filter_nodes, total_capacity
from windows_overcommit.cluster.reconciler import reconcile_running
from windows_overcommit.common.config import load_config
from windows_overcommit.common.logging import setup_logging
from windows_overcommit.workload.capacity import sum_vcpus, vcpus
from windows_overcommit.workload.classifier import classify
from windows_overcommit.workload.kinds import UnsupportedKindError, extract
from windows_overcommit.workload.spec import WorkloadDecodeError


def main():
    parser = argparse.ArgumentParser(
        description="Check a VirtualMachine manifest against a cluster inventory file"
    )
    parser.add_argument(
        "manifest", type=str,
        help="Path to a VirtualMachine or VirtualMachineInstance YAML"
    )
    parser.add_argument(
        "--inventory", type=str, required=True,
        help="Path to the inventory YAML (nodes, virtualmachines, virtualmachineinstances)"
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to YAML config file"
    )
    parser.add_argument(
        "--log-level", type=str, default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: WARNING)"
    )

    args = parser.parse_args()
    setup_logging(level=args.log_level, component="check")
    console = Console()

    config = load_config(args.config)

    with open(args.manifest, "r") as f:
        manifest = yaml.safe_load(f) or {}
    with open(args.inventory, "r") as f:
        raw_inventory = yaml.safe_load(f) or {}

    try:
        if not isinstance(manifest, dict):
            raise WorkloadDecodeError(f"{args.manifest} is not a YAML mapping")
        workload = extract(manifest.get("kind", ""), manifest)
    except (UnsupportedKindError, WorkloadDecodeError) as e:
        console.print(f"[red]Cannot decode manifest:[/] {escape(str(e))}")
        sys.exit(2)

    try:
        inventory = StaticInventory.from_dict(raw_inventory)
    except InventoryError as e:
        console.print(f"[red]Cannot decode inventory:[/] {escape(str(e))}")
        sys.exit(2)

    snapshot = inventory.snapshot()
    nodes = filter_nodes(snapshot.nodes, config.node_filter)
    running = reconcile_running(snapshot.instances, snapshot.templates)

    table = Table(title=f"{workload.kind} {workload.namespace}/{workload.name}")
    table.add_column("Item")
    table.add_column("Value", justify="right")
    table.add_row("Classification", classify(workload).reason)
    table.add_row("Requested vCPUs", str(vcpus(workload)))
    table.add_row("Eligible nodes", str(len(nodes)))
    table.add_row("Total vCPU capacity", str(total_capacity(nodes)))
    table.add_row("Windows workloads", str(len(running)))
    table.add_row("Used vCPUs", str(sum_vcpus(running)))
    console.print(table)

    decision = AdmissionController(config.node_filter, inventory).evaluate(workload)
    if decision.allowed:
        console.print(f"[bold green]ALLOWED[/] {escape(decision.message)}")
    else:
        console.print(f"[bold red]DENIED[/] {escape(decision.message)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
