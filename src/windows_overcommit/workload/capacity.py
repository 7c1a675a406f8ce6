"""vCPU accounting for workloads.

A guest's vCPU count is sockets * cores * threads; see
https://kubevirt.io/user-guide/compute/dedicated_cpu_resources/
"""

from typing import Iterable

from windows_overcommit.workload.spec import WorkloadSpec


def vcpus(spec: WorkloadSpec) -> int:
    """Return the number of vCPUs a workload is granted (always >= 1).

    Unset topology fields count as 1.

    Raises:
        ValueError: If a topology field is negative.
    """
    if spec.cpu is None:
        return 1

    total = 1
    for value in (spec.cpu.sockets, spec.cpu.cores, spec.cpu.threads):
        if value < 0:
            raise ValueError(
                f"negative cpu topology for {spec.namespace}/{spec.name}: {spec.cpu}"
            )
        total *= value or 1
    return total


def sum_vcpus(specs: Iterable[WorkloadSpec]) -> int:
    return sum(vcpus(spec) for spec in specs)
