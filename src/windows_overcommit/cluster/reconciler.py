"""Running-workload reconciliation.

A guest shows up either as a running instance, as a virtual machine whose
instance has not been created yet, or as both. Usage must count each guest
exactly once.
"""

from typing import Iterable, List

from windows_overcommit.workload.classifier import classify
from windows_overcommit.workload.spec import WorkloadSpec


def reconcile_running(
    instances: Iterable[WorkloadSpec],
    templates: Iterable[WorkloadSpec],
) -> List[WorkloadSpec]:
    """Merge instances and template-derived workloads into one inventory.

    Templates are only added when no instance with the same name and
    namespace exists. The result holds Windows workloads only, at most one
    per ``(name, namespace)``; instances win over templates.

    Args:
        instances: Workloads decoded from virtual machine instances.
        templates: Workloads derived from virtual machines.

    Returns:
        Deduplicated list of workloads that count toward usage. Order is
        not meaningful.
    """
    candidates = list(instances)
    instance_keys = {instance.key for instance in candidates}

    for template in templates:
        if template.key in instance_keys:
            continue
        candidates.append(template)

    seen = set()
    running = []
    for candidate in candidates:
        if not classify(candidate).needs_quota:
            continue
        if candidate.key in seen:
            continue
        seen.add(candidate.key)
        running.append(candidate)

    return running
