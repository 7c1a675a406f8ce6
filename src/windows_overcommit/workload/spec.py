"""Workload model shared by virtual machines and virtual machine instances.

Both kinds are decoded into one ``WorkloadSpec`` so that classification,
vCPU accounting and deduplication never need to know which kind a
workload came from.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple


VIRTUAL_MACHINE = "VirtualMachine"
VIRTUAL_MACHINE_INSTANCE = "VirtualMachineInstance"


class WorkloadDecodeError(ValueError):
    """Raised when a workload object cannot be decoded."""


@dataclass(frozen=True)
class CPUTopology:
    """Declared guest CPU topology. Zero means the field was not set."""
    sockets: int = 0
    cores: int = 0
    threads: int = 0


@dataclass(frozen=True)
class Volume:
    """The parts of a guest volume the classifier looks at."""
    name: str = ""
    sysprep: bool = False
    data_volume: Optional[str] = None


@dataclass(frozen=True)
class WorkloadSpec:
    """A guest definition, identified by ``(name, namespace)``."""
    kind: str
    name: str
    namespace: str
    cpu: Optional[CPUTopology] = None
    hyperv: bool = False
    volumes: Tuple[Volume, ...] = ()
    preference: Optional[str] = None
    annotations: Dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.name, self.namespace)


def _mapping(raw: Any, path: str) -> Mapping:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise WorkloadDecodeError(f"expected an object at '{path}'")
    return raw


def _cpu_field(raw: Mapping, name: str) -> int:
    value = raw.get(name)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise WorkloadDecodeError(
            f"spec.domain.cpu.{name} must be an integer, got {value!r}"
        )
    if value < 0:
        raise WorkloadDecodeError(
            f"spec.domain.cpu.{name} must not be negative, got {value}"
        )
    return value


def _decode_cpu(domain: Mapping) -> Optional[CPUTopology]:
    if domain.get("cpu") is None:
        return None
    raw = _mapping(domain["cpu"], "spec.domain.cpu")
    return CPUTopology(
        sockets=_cpu_field(raw, "sockets"),
        cores=_cpu_field(raw, "cores"),
        threads=_cpu_field(raw, "threads"),
    )


def _decode_volumes(raw_volumes: Any) -> Tuple[Volume, ...]:
    if raw_volumes is None:
        return ()
    if not isinstance(raw_volumes, list):
        raise WorkloadDecodeError("expected a list at 'spec.volumes'")

    volumes = []
    for index, raw in enumerate(raw_volumes):
        raw = _mapping(raw, f"spec.volumes[{index}]")
        data_volume = None
        if raw.get("dataVolume") is not None:
            source = _mapping(raw["dataVolume"], f"spec.volumes[{index}].dataVolume")
            data_volume = str(source.get("name", ""))
        volumes.append(
            Volume(
                name=str(raw.get("name", "")),
                sysprep=raw.get("sysprep") is not None,
                data_volume=data_volume,
            )
        )
    return tuple(volumes)


def _annotations(metadata: Mapping) -> Dict[str, str]:
    raw = _mapping(metadata.get("annotations"), "metadata.annotations")
    return {str(k): str(v) for k, v in raw.items()}


def _build(
    kind: str,
    metadata: Mapping,
    instance_spec: Mapping,
    annotations: Dict[str, str],
    preference: Optional[str],
    default_namespace: str,
) -> WorkloadSpec:
    domain = _mapping(instance_spec.get("domain"), "spec.domain")
    features = _mapping(domain.get("features"), "spec.domain.features")

    return WorkloadSpec(
        kind=kind,
        name=str(metadata.get("name") or ""),
        namespace=str(metadata.get("namespace") or default_namespace),
        cpu=_decode_cpu(domain),
        hyperv=features.get("hyperv") is not None,
        volumes=_decode_volumes(instance_spec.get("volumes")),
        preference=preference,
        annotations=annotations,
    )


def from_virtual_machine_instance(
    obj: Mapping, default_namespace: str = ""
) -> WorkloadSpec:
    """Decode a ``VirtualMachineInstance`` object."""
    obj = _mapping(obj, "object")
    metadata = _mapping(obj.get("metadata"), "metadata")
    return _build(
        VIRTUAL_MACHINE_INSTANCE,
        metadata,
        _mapping(obj.get("spec"), "spec"),
        _annotations(metadata),
        None,
        default_namespace,
    )


def from_virtual_machine(obj: Mapping, default_namespace: str = "") -> WorkloadSpec:
    """Derive the instance a ``VirtualMachine`` would materialize.

    Name and namespace come from the virtual machine, the guest spec from
    its template. Template annotations are overlaid with the virtual
    machine's own, and the preference reference is carried along.
    """
    obj = _mapping(obj, "object")
    metadata = _mapping(obj.get("metadata"), "metadata")
    spec = _mapping(obj.get("spec"), "spec")
    template = _mapping(spec.get("template"), "spec.template")
    template_metadata = _mapping(template.get("metadata"), "spec.template.metadata")

    annotations = _annotations(template_metadata)
    annotations.update(_annotations(metadata))

    preference = None
    if spec.get("preference") is not None:
        preference = str(_mapping(spec["preference"], "spec.preference").get("name", ""))

    return _build(
        VIRTUAL_MACHINE,
        metadata,
        _mapping(template.get("spec"), "spec.template.spec"),
        annotations,
        preference,
        default_namespace,
    )
