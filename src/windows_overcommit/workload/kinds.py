"""Kind dispatch for the two supported workload kinds."""

from typing import Callable, Dict, List, Mapping

from windows_overcommit.workload.spec import (
    VIRTUAL_MACHINE,
    VIRTUAL_MACHINE_INSTANCE,
    WorkloadSpec,
    from_virtual_machine,
    from_virtual_machine_instance,
)


class UnsupportedKindError(ValueError):
    """Raised for objects that are neither virtual machines nor instances."""


_EXTRACTORS: Dict[str, Callable[..., WorkloadSpec]] = {
    VIRTUAL_MACHINE: from_virtual_machine,
    VIRTUAL_MACHINE_INSTANCE: from_virtual_machine_instance,
}


def supported_kinds() -> List[str]:
    return list(_EXTRACTORS)


def extract(kind: str, obj: Mapping, default_namespace: str = "") -> WorkloadSpec:
    """Decode ``obj`` of the given kind into a WorkloadSpec.

    Raises:
        UnsupportedKindError: If ``kind`` is not a supported kind.
        WorkloadDecodeError: If the object is malformed.
    """
    extractor = _EXTRACTORS.get(kind)
    if extractor is None:
        raise UnsupportedKindError(
            f"unsupported kind [{kind}]; only {supported_kinds()} supported"
        )
    return extractor(obj, default_namespace=default_namespace)
