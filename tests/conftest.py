"""Shared test fixtures for mactop."""

from collections.abc import AsyncGenerator

import pytest

from mactop.metrics import SocInfo

HEADER = "*** Sampled system activity (Mon Jan 22 10:15:01 2024 -0800) (1004.23ms elapsed) ***"

TASKS = """\
Name                               ID     CPU ms/s  User%  Deadlines (<2 ms, 2-5 ms)  Wakeups (Intr, Pkg idle)  GPU ms/s
WindowServer                       406    45.21     72.14  0.00    0.00               238.81  0.00               12.50
kernel_task                        0      30.10     0.00   0.00    0.00               512.00  40.00              0.00
Google Chrome Helper (Renderer)    1893   30.10     95.00  0.00    0.00               10.00   0.00               0.00
powermetrics                       5120   12.00     10.00  0.00    0.00               1.00    0.00               0.00
mactop                             5101   8.50      90.00  0.00    0.00               1.00    0.00               0.00
WindowServer                       406    99.99     72.14  0.00    0.00               238.81  0.00               12.50
"""

NETWORK = """\
**** Network activity ****

out: 10.50 packets/s, 2048.00 bytes/s
in: 20.25 packets/s, 4096.00 bytes/s
"""

DISK = """\
**** Disk activity ****

read: 5.00 ops/s 100.00 KBytes/s
write: 7.50 ops/s 250.00 KBytes/s
"""

M1_CPU = """\
**** Processor usage ****

E-Cluster HW active frequency: 1000 MHz
E-Cluster HW active residency:  10.00% (600 MHz:   0% 972 MHz: 100%)
CPU 0 frequency: 1000 MHz
CPU 0 active residency:  12.00%
CPU 1 frequency: 1000 MHz
CPU 1 active residency:   8.00%

P-Cluster HW active frequency: 3000 MHz
P-Cluster HW active residency:  25.00% (600 MHz:   0% 3204 MHz: 100%)
CPU 4 frequency: 3000 MHz
CPU 4 active residency:  30.00%
CPU 5 frequency: 3000 MHz
CPU 5 active residency:  20.00%

ANE Power: 500 mW
CPU Power: 2500 mW
GPU Power: 300 mW
Combined Power (CPU + GPU + ANE): 3300 mW
"""

GPU = """\
**** GPU usage ****

GPU HW active frequency: 1296 MHz
GPU HW active residency:  45.50% (389 MHz:   0% 486 MHz:  12% 1296 MHz:  33%)
GPU SW requested state: (P1 :   0% P2 :  12%)
GPU idle residency:  54.50%
"""


@pytest.fixture
def m1_block() -> str:
    """A complete sample block from a two-cluster chip."""
    return "\n".join([HEADER, TASKS, NETWORK, DISK, M1_CPU, GPU])


@pytest.fixture
def tasks_text() -> str:
    """Tasks table with a duplicate pid and excluded names."""
    return TASKS


@pytest.fixture
def m1_soc() -> SocInfo:
    return SocInfo(
        name="Apple M1", core_count=8, e_core_count=4, p_core_count=4, gpu_core_count="8"
    )


@pytest.fixture
def m3_max_soc() -> SocInfo:
    return SocInfo(
        name="Apple M3 Max", core_count=16, e_core_count=4, p_core_count=12, gpu_core_count="40"
    )


class FakeSource:
    """In-memory powermetrics source yielding fixed units."""

    def __init__(self, units: list[str], returncode: int = 0) -> None:
        self.units = units
        self.returncode = returncode
        self.started = False
        self.terminated = False
        self.units_read = 0

    async def start(self) -> None:
        self.started = True

    async def read_units(self) -> AsyncGenerator[str, None]:
        for unit in self.units:
            self.units_read += 1
            yield unit

    def terminate(self) -> None:
        self.terminated = True

    async def wait(self) -> int | None:
        return -9 if self.terminated else self.returncode


@pytest.fixture
def fake_source_factory():
    """Build a FakeSource from a list of units."""
    return FakeSource
