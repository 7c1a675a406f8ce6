"""Windows guest detection.

Workloads are matched against an ordered chain of signals, most reliable
first. The chain is best-effort: a hand-written manifest that follows none
of the usual template conventions will not be detected.
"""

from dataclasses import dataclass

from windows_overcommit.workload.spec import WorkloadSpec


WINDOWS_DRIVERS_DISK = "windows-drivers-disk"
WINDOWS_PREFIX = "windows"
OS_ANNOTATION = "vm.kubevirt.io/os"
CLUSTER_PREFERENCE_ANNOTATION = "kubevirt.io/cluster-preference-name"


@dataclass(frozen=True)
class WindowsVerdict:
    """Whether a workload is subject to the Windows vCPU quota, and why."""

    needs_quota: bool
    reason: str


def has_sysprep_volume(spec: WorkloadSpec) -> WindowsVerdict:
    """Sysprep is a Windows-only provisioning mechanism."""
    for volume in spec.volumes:
        if volume.sysprep:
            return WindowsVerdict(True, "has sysprep volume")
    return WindowsVerdict(False, "has no sysprep volume")


def has_windows_driver_disk(spec: WorkloadSpec) -> WindowsVerdict:
    """The virtio driver disk shipped with the Windows templates."""
    for volume in spec.volumes:
        if volume.data_volume == WINDOWS_DRIVERS_DISK:
            return WindowsVerdict(True, "has windows-driver-disk-volume")
    return WindowsVerdict(False, "has no windows-driver-disk-volume")


def has_hyperv(spec: WorkloadSpec) -> WindowsVerdict:
    if spec.hyperv:
        return WindowsVerdict(True, "has hyper-v features")
    return WindowsVerdict(False, "has no hyper-v features")


def has_windows_preference(spec: WorkloadSpec) -> WindowsVerdict:
    """Preference and annotations set when provisioning from an instance type.

    Users picking their own instance type can bypass this check.
    """
    if spec.preference and spec.preference.startswith(WINDOWS_PREFIX):
        return WindowsVerdict(True, "has windows preference")

    if spec.annotations.get(OS_ANNOTATION) == WINDOWS_PREFIX:
        return WindowsVerdict(True, f"has '{OS_ANNOTATION}' windows annotation")

    if spec.annotations.get(CLUSTER_PREFERENCE_ANNOTATION, "").startswith(WINDOWS_PREFIX):
        return WindowsVerdict(
            True, f"has '{CLUSTER_PREFERENCE_ANNOTATION}' windows annotation"
        )

    return WindowsVerdict(False, "has no windows preference")


_SIGNALS = (
    has_sysprep_volume,
    has_windows_driver_disk,
    has_hyperv,
    has_windows_preference,
)


def classify(spec: WorkloadSpec) -> WindowsVerdict:
    """Return the verdict of the first matching signal."""
    for signal in _SIGNALS:
        verdict = signal(spec)
        if verdict.needs_quota:
            return verdict
    return WindowsVerdict(False, "no validation required")
