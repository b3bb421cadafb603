"""Parsers for powermetrics text output.

Each extractor takes one unit of powermetrics text (a full sample block or a
single line; either way it is split on newlines here) plus the previous
snapshot, and returns the next snapshot. Anything that fails to match or to
convert leaves the previous value in place.
"""

import re
from collections.abc import Iterable
from dataclasses import replace

from mactop.metrics import (
    ChipProfile,
    CPUSnapshot,
    GPUSnapshot,
    NetDiskSnapshot,
    ProcessRecord,
    ProcessSnapshot,
)

DEFAULT_PROCESS_EXCLUDE = frozenset({"mactop", "main", "powermetrics"})

# name, pid, cpu ms/s, then at least one more numeric column
_PROCESS_RE = re.compile(r"(?m)^\s*(\S.*?)\s+(\d+)\s+(\d+\.\d+)\s+\d+\.\d+\s+")

_OUT_RE = re.compile(r"out:\s*([\d.]+)\s*packets/s,\s*([\d.]+)\s*bytes/s")
_IN_RE = re.compile(r"in:\s*([\d.]+)\s*packets/s,\s*([\d.]+)\s*bytes/s")
_READ_RE = re.compile(r"read:\s*([\d.]+)\s*ops/s\s*([\d.]+)\s*KBytes/s")
_WRITE_RE = re.compile(r"write:\s*([\d.]+)\s*ops/s\s*([\d.]+)\s*KBytes/s")

_RESIDENCY_RE = re.compile(r"(\w+-Cluster)\s+HW active residency:\s+(\d+\.\d+)%")
_FREQUENCY_RE = re.compile(r"(\w+-Cluster)\s+HW active frequency:\s+(\d+)\s+MHz")
_CLUSTER_TAG_RE = re.compile(r"\b([EP])\d*-Cluster\b")

_GPU_RE = re.compile(r"GPU\s*(HW)?\s*active\s*(residency|frequency):\s+(\d+(?:\.\d+)?)%?")
_GPU_HISTOGRAM_RE = re.compile(r"(\d+)\s*MHz:\s*(\d*\.?\d+)%")

# Per-core indices 0-3 are efficiency cores on every workaround chip
_WORKAROUND_E_CORE_MAX = 3

CLUSTERS = ("E0", "E1", "P0", "P1", "P2", "P3")


def _to_float(value: str) -> float | None:
    try:
        return float(value)
    except ValueError:
        return None


def _milliwatts_to_watts(field: str) -> float | None:
    """Convert a powermetrics power field like '2500' or '2500mW' to watts."""
    mw = _to_float(field.removesuffix("mW"))
    return None if mw is None else mw / 1000


class ClusterAggregator:
    """Fold per-cluster HW residency/frequency lines into E and P summary fields.

    Per-cluster values start at zero for each block. Summary values start from
    the previous snapshot and are rewritten while scanning, then the
    multi-cluster rules run once in ``result()``:

    1. E1 active nonzero: E = mean(E0, E1), freq = max.
    2. P3 active nonzero: P = mean(P0..P3), freq = max.
    3. P1 active nonzero: P = mean(P0, P1), freq = max.
    4. Otherwise P accumulates P0 by addition (clamped to 100).

    Rule 4 adds instead of averaging. Chips reporting a single unnumbered
    ``P-Cluster`` leave P0 at zero so the sum is just the running mean;
    a lone ``P0-Cluster`` doubles. The addition is kept deliberately, with
    one departure from plain addition: the sum is clamped to 100 so P active
    stays a valid percent.
    """

    def __init__(self, prev: CPUSnapshot) -> None:
        self.active = dict.fromkeys(CLUSTERS, 0)
        self.freq = dict.fromkeys(CLUSTERS, 0)
        self.matched = False

        self._e_active = prev.e_cluster_active
        self._e_freq = prev.e_cluster_freq_mhz
        self._p_active = prev.p_cluster_active
        self._p_freq = prev.p_cluster_freq_mhz

        self._e_active_total = 0
        self._e_active_count = 0
        self._p_active_total = 0
        self._p_active_count = 0
        self._e_freq_total = 0
        self._p_freq_total = 0

    def feed(self, line: str) -> None:
        """Consume one line; non-cluster lines are ignored."""
        residency = _RESIDENCY_RE.search(line)
        if residency:
            self.matched = True
            cluster = residency.group(1).removesuffix("-Cluster")
            percent = int(float(residency.group(2)))
            if cluster in self.active:
                self.active[cluster] = percent
            if cluster.startswith("E"):
                self._e_active_total += percent
                self._e_active_count += 1
            elif cluster.startswith("P"):
                self._p_active_total += percent
                self._p_active_count += 1
                self._p_active = self._p_active_total // self._p_active_count

        frequency = _FREQUENCY_RE.search(line)
        if frequency:
            self.matched = True
            cluster = frequency.group(1).removesuffix("-Cluster")
            freq_mhz = int(frequency.group(2))
            if cluster in self.freq:
                self.freq[cluster] = freq_mhz
            if cluster.startswith("E"):
                self._e_freq_total += freq_mhz
                self._e_freq = self._e_freq_total
            elif cluster.startswith("P"):
                self._p_freq_total += freq_mhz
                self._p_freq = self._p_freq_total

    def result(self) -> dict[str, int]:
        """Return snapshot field updates, or {} when no cluster line matched."""
        if not self.matched:
            return {}

        active, freq = self.active, self.freq
        e_active, e_freq = self._e_active, self._e_freq
        p_active, p_freq = self._p_active, self._p_freq

        if active["E1"] != 0:
            e_active = (active["E0"] + active["E1"]) // 2
            e_freq = max(freq["E0"], freq["E1"])

        if active["P3"] != 0:
            p_active = (active["P0"] + active["P1"] + active["P2"] + active["P3"]) // 4
            p_freq = max(freq["P0"], freq["P1"], freq["P2"], freq["P3"])
        elif active["P1"] != 0:
            p_active = (active["P0"] + active["P1"]) // 2
            p_freq = max(freq["P0"], freq["P1"])
        else:
            p_active = min(p_active + active["P0"], 100)

        if self._e_active_count > 0:
            e_active = self._e_active_total // self._e_active_count

        updates = {
            "e_cluster_active": e_active,
            "e_cluster_freq_mhz": e_freq,
            "p_cluster_active": p_active,
            "p_cluster_freq_mhz": p_freq,
        }
        for cluster in CLUSTERS:
            key = cluster.lower()
            updates[f"{key}_cluster_active"] = active[cluster]
            updates[f"{key}_cluster_freq_mhz"] = freq[cluster]
        return updates


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _parse_per_core(text: str, max_core_index: int) -> dict[str, int]:
    """Rebuild E/P summary fields from per-core lines.

    Used on chips whose cluster-level aggregates are misreported. Means that
    look like parse-boundary artifacts (0% or 100% residency, 0 MHz) are
    rejected so the previous value survives.
    """
    e_residency: list[float] = []
    p_residency: list[float] = []
    e_freq: list[float] = []
    p_freq: list[float] = []

    for i in range(max_core_index + 1):
        match = re.search(rf"CPU {i} active residency:\s+(\d+\.\d+)%", text)
        if match:
            bucket = e_residency if i <= _WORKAROUND_E_CORE_MAX else p_residency
            bucket.append(float(match.group(1)))

    for i in range(max_core_index + 1):
        match = re.search(rf"^CPU\s+{i}\s+frequency:\s+(\d+)\s+MHz$", text, re.MULTILINE)
        if match:
            bucket = e_freq if i <= _WORKAROUND_E_CORE_MAX else p_freq
            bucket.append(float(match.group(1)))

    updates: dict[str, int] = {}
    e_mean, p_mean = _mean(e_residency), _mean(p_residency)
    if 0.0 < e_mean < 100.0:
        updates["e_cluster_active"] = int(e_mean)
    if 0.0 < p_mean < 100.0:
        updates["p_cluster_active"] = int(p_mean)
    if e_freq and _mean(e_freq) != 0:
        updates["e_cluster_freq_mhz"] = int(_mean(e_freq))
    if p_freq and _mean(p_freq) != 0:
        updates["p_cluster_freq_mhz"] = int(_mean(p_freq))
    return updates


def _parse_power_and_cores(lines: Iterable[str]) -> dict[str, object]:
    """Extract power fields and E/P core membership."""
    updates: dict[str, object] = {}
    e_cores: list[int] = []
    p_cores: list[int] = []
    current_cluster: str | None = None

    for line in lines:
        tag = _CLUSTER_TAG_RE.search(line)
        if tag:
            current_cluster = tag.group(1)

        if "CPU " in line and "frequency" in line:
            fields = line.split()
            if len(fields) < 3:
                continue
            try:
                core = int(fields[1].removeprefix("CPU"))
            except ValueError:
                continue
            if "E-Cluster" in line:
                e_cores.append(core)
            elif "P-Cluster" in line:
                p_cores.append(core)
            elif current_cluster == "E":
                e_cores.append(core)
            elif current_cluster == "P":
                p_cores.append(core)
        elif "ANE Power" in line:
            _set_power(updates, "ane_w", line.split(), 2)
        elif "CPU Power" in line:
            _set_power(updates, "cpu_w", line.split(), 2)
        elif "GPU Power" in line:
            _set_power(updates, "gpu_w", line.split(), 2)
        elif "Combined Power (CPU + GPU + ANE)" in line:
            _set_power(updates, "package_w", line.split(), 7)

    if e_cores or p_cores:
        updates["e_cores"] = tuple(e_cores)
        updates["p_cores"] = tuple(p_cores)
    return updates


def _set_power(updates: dict[str, object], key: str, fields: list[str], index: int) -> None:
    if len(fields) <= index:
        return
    watts = _milliwatts_to_watts(fields[index])
    if watts is not None:
        updates[key] = watts


def parse_cpu_metrics(text: str, prev: CPUSnapshot, profile: ChipProfile) -> CPUSnapshot:
    """Parse CPU cluster usage, frequency, power and core lists."""
    lines = text.split("\n")

    if profile.is_workaround:
        updates = _parse_per_core(text, profile.max_core_index)
    else:
        aggregator = ClusterAggregator(prev)
        for line in lines:
            aggregator.feed(line)
        updates = aggregator.result()

    updates.update(_parse_power_and_cores(lines))
    if not updates:
        return prev
    return replace(prev, **updates)


def parse_gpu_metrics(text: str, prev: GPUSnapshot) -> GPUSnapshot:
    """Parse GPU active residency and frequency.

    The first nonzero entry of the residency histogram ('389 MHz: 12%')
    overrides the reported active frequency.
    """
    active, freq_mhz = prev.active, prev.freq_mhz

    for line in text.split("\n"):
        if "GPU active" not in line and "GPU HW active" not in line:
            continue

        match = _GPU_RE.search(line)
        if match:
            value = _to_float(match.group(3))
            if value is not None:
                if match.group(2) == "residency":
                    active = value
                else:
                    freq_mhz = int(value)

        for entry in _GPU_HISTOGRAM_RE.finditer(line):
            residency = _to_float(entry.group(2))
            if residency is not None and residency > 0:
                freq_mhz = int(entry.group(1))
                break

    if (active, freq_mhz) == (prev.active, prev.freq_mhz):
        return prev
    return GPUSnapshot(active=active, freq_mhz=freq_mhz)


def _match_pair(pattern: re.Pattern[str], text: str) -> tuple[float, float] | None:
    match = pattern.search(text)
    if not match:
        return None
    first, second = _to_float(match.group(1)), _to_float(match.group(2))
    if first is None or second is None:
        return None
    return first, second


def parse_netdisk_metrics(text: str, prev: NetDiskSnapshot) -> NetDiskSnapshot:
    """Parse network packet/byte rates and disk op/KB rates."""
    updates: dict[str, float] = {}

    if pair := _match_pair(_OUT_RE, text):
        updates["out_packets_per_sec"], updates["out_bytes_per_sec"] = pair
    if pair := _match_pair(_IN_RE, text):
        updates["in_packets_per_sec"], updates["in_bytes_per_sec"] = pair
    if pair := _match_pair(_READ_RE, text):
        updates["read_ops_per_sec"], updates["read_kbytes_per_sec"] = pair
    if pair := _match_pair(_WRITE_RE, text):
        updates["write_ops_per_sec"], updates["write_kbytes_per_sec"] = pair

    if not updates:
        return prev
    return replace(prev, **updates)


def parse_process_metrics(
    text: str,
    prev: ProcessSnapshot,
    exclude: Iterable[str] = DEFAULT_PROCESS_EXCLUDE,
) -> ProcessSnapshot:
    """Parse the tasks table into a deduplicated, CPU-sorted process list.

    First occurrence of a pid wins. Ties in CPU time keep encounter order.
    A unit without any process lines keeps the previous list.
    """
    excluded = frozenset(exclude)
    seen: set[int] = set()
    records: list[ProcessRecord] = []

    for line in text.split("\n"):
        match = _PROCESS_RE.search(line)
        if not match:
            continue
        name = match.group(1)
        if name in excluded:
            continue
        pid = int(match.group(2))
        if pid in seen:
            continue
        seen.add(pid)
        records.append(ProcessRecord(pid=pid, name=name, cpu_ms_per_s=float(match.group(3))))

    if not records:
        return prev

    records.sort(key=lambda r: r.cpu_ms_per_s, reverse=True)
    return ProcessSnapshot(processes=tuple(records))
