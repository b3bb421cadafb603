"""One-shot Apple Silicon identification.

Called once at startup; the resulting SocInfo is passed explicitly to the
pipeline and the dashboard.
"""

import subprocess

import structlog

from mactop.metrics import SocInfo
from mactop.sysctl import sysctl_int, sysctl_str

log = structlog.get_logger()

SYSTEM_PROFILER_CMD = ["/usr/sbin/system_profiler", "-detailLevel", "basic", "SPDisplaysDataType"]


class SocError(RuntimeError):
    """Hardware identification failed."""


def parse_gpu_core_count(output: str) -> str:
    """Extract 'Total Number of Cores' from system_profiler output, or '?'."""
    for line in output.split("\n"):
        if "Total Number of Cores" in line:
            parts = line.split(": ")
            if len(parts) > 1:
                return parts[1].strip()
            break
    return "?"


def get_gpu_core_count() -> str:
    """Query the GPU core count via system_profiler."""
    try:
        result = subprocess.run(
            SYSTEM_PROFILER_CMD,
            capture_output=True,
            text=True,
            timeout=30,
            check=True,
        )
    except (OSError, subprocess.SubprocessError) as e:
        log.warning("system_profiler_failed", error=str(e))
        return "?"
    return parse_gpu_core_count(result.stdout)


def get_soc_info() -> SocInfo:
    """Identify the chip.

    Raises:
        SocError: If sysctl is unavailable or the E-core count can't be read.
    """
    try:
        name = sysctl_str("machdep.cpu.brand_string") or ""
        core_count = sysctl_int("machdep.cpu.core_count") or 0
        e_core_count = sysctl_int("hw.perflevel1.logicalcpu")
        p_core_count = sysctl_int("hw.perflevel0.logicalcpu")
    except OSError as e:
        raise SocError(f"sysctl unavailable: {e}") from e

    if e_core_count is None:
        raise SocError("failed to read hw.perflevel1.logicalcpu")
    if p_core_count is None:
        log.error("sysctl_read_failed", name="hw.perflevel0.logicalcpu")
        p_core_count = 0

    info = SocInfo(
        name=name,
        core_count=core_count,
        e_core_count=e_core_count,
        p_core_count=p_core_count,
        gpu_core_count=get_gpu_core_count(),
    )
    log.info(
        "soc_identified",
        model=info.display_name,
        e_cores=info.e_core_count,
        p_cores=info.p_core_count,
        gpu_cores=info.gpu_core_count,
    )
    return info
