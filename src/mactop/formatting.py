"""Text formatting for dashboard panels."""

from mactop.metrics import (
    CPUSnapshot,
    GPUSnapshot,
    MemorySnapshot,
    NetDiskSnapshot,
    ProcessRecord,
    SocInfo,
)

GIB = 1024**3


def ane_percent(ane_w: float, ane_max_watts: float = 8.0) -> int:
    """Estimate ANE utilisation from its power draw, clamped to 0-100."""
    if ane_max_watts <= 0:
        return 0
    return max(0, min(100, int(ane_w * 100 / ane_max_watts)))


def e_cpu_title(cpu: CPUSnapshot) -> str:
    return f"E-CPU Usage: {cpu.e_cluster_active}% @ {cpu.e_cluster_freq_mhz} MHz"


def p_cpu_title(cpu: CPUSnapshot) -> str:
    return f"P-CPU Usage: {cpu.p_cluster_active}% @ {cpu.p_cluster_freq_mhz} MHz"


def gpu_title(gpu: GPUSnapshot) -> str:
    return f"GPU Usage: {int(gpu.active)}% @ {gpu.freq_mhz} MHz"


def ane_title(cpu: CPUSnapshot, ane_max_watts: float = 8.0) -> str:
    return f"ANE Usage: {ane_percent(cpu.ane_w, ane_max_watts)}% @ {cpu.ane_w:.1f} W"


def power_title(cpu: CPUSnapshot) -> str:
    return f"{cpu.cpu_w:.1f} W CPU - {cpu.gpu_w:.1f} W GPU"


def format_power(cpu: CPUSnapshot) -> str:
    """Multi-line power breakdown."""
    return (
        f"CPU Power: {cpu.cpu_w:.1f} W\n"
        f"GPU Power: {cpu.gpu_w:.1f} W\n"
        f"ANE Power: {cpu.ane_w:.1f} W\n"
        f"Total Power: {cpu.package_w:.1f} W"
    )


def format_netdisk(nd: NetDiskSnapshot) -> str:
    """Multi-line network and disk rates."""
    return (
        f"Out: {nd.out_packets_per_sec:.1f} packets/s, {nd.out_bytes_per_sec:.1f} bytes/s\n"
        f"In: {nd.in_packets_per_sec:.1f} packets/s, {nd.in_bytes_per_sec:.1f} bytes/s\n"
        f"Read: {nd.read_ops_per_sec:.1f} ops/s, {nd.read_kbytes_per_sec:.1f} KBytes/s\n"
        f"Write: {nd.write_ops_per_sec:.1f} ops/s, {nd.write_kbytes_per_sec:.1f} KBytes/s"
    )


def format_processes(records: tuple[ProcessRecord, ...]) -> str:
    """One 'pid - name: N ms/s' line per process."""
    return "\n".join(f"{p.pid} - {p.name}: {p.cpu_ms_per_s:.2f} ms/s" for p in records)


def memory_title(mem: MemorySnapshot) -> str:
    return (
        f"Memory Usage: {mem.used / GIB:.2f} GB / {mem.total / GIB:.2f} GB "
        f"(Swap: {mem.swap_used / GIB:.2f}/{mem.swap_total / GIB:.2f} GB)"
    )


def format_soc(soc: SocInfo) -> str:
    """Chip summary panel text."""
    return (
        f"{soc.display_name}\n"
        f"Total Cores: {soc.e_core_count + soc.p_core_count}\n"
        f"E-Cores: {soc.e_core_count}\n"
        f"P-Cores: {soc.p_core_count}\n"
        f"GPU Cores: {soc.gpu_core_count or '?'}"
    )
