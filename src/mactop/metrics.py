"""Snapshot types shared by the parser, the pipeline and the dashboard.

Every snapshot is a frozen dataclass. Extractors derive new values with
``dataclasses.replace`` so a published snapshot is never mutated afterwards.
"""

from dataclasses import dataclass
from enum import Enum

import psutil


@dataclass(frozen=True)
class CPUSnapshot:
    """CPU cluster activity, frequency and package power for one sample."""

    # Summary fields displayed by the dashboard
    e_cluster_active: int = 0  # Percent, 0-100
    e_cluster_freq_mhz: int = 0
    p_cluster_active: int = 0  # Percent, 0-100
    p_cluster_freq_mhz: int = 0

    # Per-cluster values for chips with more than one E or P cluster
    e0_cluster_active: int = 0
    e0_cluster_freq_mhz: int = 0
    e1_cluster_active: int = 0
    e1_cluster_freq_mhz: int = 0
    p0_cluster_active: int = 0
    p0_cluster_freq_mhz: int = 0
    p1_cluster_active: int = 0
    p1_cluster_freq_mhz: int = 0
    p2_cluster_active: int = 0
    p2_cluster_freq_mhz: int = 0
    p3_cluster_active: int = 0
    p3_cluster_freq_mhz: int = 0

    # Power in watts (powermetrics reports milliwatts)
    ane_w: float = 0.0
    cpu_w: float = 0.0
    gpu_w: float = 0.0
    package_w: float = 0.0

    e_cores: tuple[int, ...] = ()
    p_cores: tuple[int, ...] = ()


@dataclass(frozen=True)
class GPUSnapshot:
    """GPU activity for one sample."""

    active: float = 0.0  # Percent, 0-100
    freq_mhz: int = 0


@dataclass(frozen=True)
class NetDiskSnapshot:
    """Network and disk throughput rates for one sample."""

    out_packets_per_sec: float = 0.0
    out_bytes_per_sec: float = 0.0
    in_packets_per_sec: float = 0.0
    in_bytes_per_sec: float = 0.0
    read_ops_per_sec: float = 0.0
    read_kbytes_per_sec: float = 0.0
    write_ops_per_sec: float = 0.0
    write_kbytes_per_sec: float = 0.0


@dataclass(frozen=True)
class ProcessRecord:
    """Single process line from the powermetrics tasks table."""

    pid: int
    name: str
    cpu_ms_per_s: float


@dataclass(frozen=True)
class ProcessSnapshot:
    """Deduplicated process list, sorted by CPU time descending."""

    processes: tuple[ProcessRecord, ...] = ()

    def __len__(self) -> int:
        return len(self.processes)

    def top(self, n: int) -> tuple[ProcessRecord, ...]:
        """Return the first n processes (display truncation)."""
        return self.processes[:n]


@dataclass(frozen=True)
class MemorySnapshot:
    """Physical memory and swap usage in bytes."""

    total: int = 0
    used: int = 0
    available: int = 0
    swap_total: int = 0
    swap_used: int = 0

    @property
    def used_percent(self) -> int:
        """Used memory as a whole percent of total."""
        if self.total <= 0:
            return 0
        return int(self.used / self.total * 100)


def get_memory_metrics() -> MemorySnapshot:
    """Poll current memory and swap usage."""
    vm = psutil.virtual_memory()
    swap = psutil.swap_memory()
    return MemorySnapshot(
        total=vm.total,
        used=vm.used,
        available=vm.available,
        swap_total=swap.total,
        swap_used=swap.used,
    )


@dataclass(frozen=True)
class SocInfo:
    """Static Apple Silicon identification, read once at startup."""

    name: str
    core_count: int
    e_core_count: int
    p_core_count: int
    gpu_core_count: str = "?"

    @property
    def display_name(self) -> str:
        """Chip name, or a placeholder when sysctl returned nothing."""
        return self.name or "Unknown Model"


class ProfileKind(Enum):
    """Cluster aggregation strategy."""

    STANDARD = "standard"  # One E cluster, one or two P clusters
    QUAD_ULTRA = "quad_ultra"  # Two E clusters, four P clusters
    WORKAROUND = "workaround"  # Cluster aggregates unreliable; rebuild from per-core lines


# Chips whose powermetrics cluster aggregates are wrong, mapped to their highest core index
_WORKAROUND_MODELS = {
    "Apple M3 Max": 15,  # 4E + 12P
    "Apple M2 Max": 11,  # 4E + 8P
}


@dataclass(frozen=True)
class ChipProfile:
    """Aggregation profile selected once from the SoC identification."""

    kind: ProfileKind = ProfileKind.STANDARD
    max_core_index: int = 0  # Only meaningful for WORKAROUND

    @property
    def is_workaround(self) -> bool:
        """True when per-core reconstruction replaces cluster aggregates."""
        return self.kind is ProfileKind.WORKAROUND

    @classmethod
    def from_soc(cls, soc: SocInfo) -> "ChipProfile":
        """Select the aggregation profile for a chip."""
        if soc.name in _WORKAROUND_MODELS:
            return cls(kind=ProfileKind.WORKAROUND, max_core_index=_WORKAROUND_MODELS[soc.name])
        if "Ultra" in soc.name:
            return cls(kind=ProfileKind.QUAD_ULTRA)
        return cls(kind=ProfileKind.STANDARD)
