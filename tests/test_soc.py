"""Tests for Apple Silicon identification."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from mactop.soc import SocError, get_gpu_core_count, get_soc_info, parse_gpu_core_count

SYSTEM_PROFILER_OUTPUT = """\
Graphics/Displays:

    Apple M2 Pro:

      Chipset Model: Apple M2 Pro
      Type: GPU
      Bus: Built-In
      Total Number of Cores: 19
      Vendor: Apple (0x106b)
"""

SYSCTL_M2_PRO = {
    "machdep.cpu.core_count": 12,
    "hw.perflevel0.logicalcpu": 8,
    "hw.perflevel1.logicalcpu": 4,
}


def fake_sysctl_int(values: dict[str, int]):
    return lambda name: values.get(name)


class TestGpuCoreCount:
    """Tests for system_profiler parsing."""

    def test_parse_core_count(self) -> None:
        assert parse_gpu_core_count(SYSTEM_PROFILER_OUTPUT) == "19"

    def test_missing_core_count(self) -> None:
        assert parse_gpu_core_count("Graphics/Displays:\n") == "?"

    def test_system_profiler_failure(self) -> None:
        with patch(
            "mactop.soc.subprocess.run",
            side_effect=subprocess.CalledProcessError(1, "system_profiler"),
        ):
            assert get_gpu_core_count() == "?"

    def test_system_profiler_missing(self) -> None:
        with patch("mactop.soc.subprocess.run", side_effect=FileNotFoundError):
            assert get_gpu_core_count() == "?"


class TestGetSocInfo:
    """Tests for get_soc_info."""

    def test_identifies_chip(self) -> None:
        with (
            patch("mactop.soc.sysctl_str", return_value="Apple M2 Pro"),
            patch("mactop.soc.sysctl_int", side_effect=fake_sysctl_int(SYSCTL_M2_PRO)),
            patch(
                "mactop.soc.subprocess.run",
                return_value=MagicMock(stdout=SYSTEM_PROFILER_OUTPUT),
            ),
        ):
            soc = get_soc_info()

        assert soc.name == "Apple M2 Pro"
        assert soc.core_count == 12
        assert soc.e_core_count == 4
        assert soc.p_core_count == 8
        assert soc.gpu_core_count == "19"

    def test_missing_e_cores_is_fatal(self) -> None:
        values = {k: v for k, v in SYSCTL_M2_PRO.items() if k != "hw.perflevel1.logicalcpu"}
        with (
            patch("mactop.soc.sysctl_str", return_value="Apple M2 Pro"),
            patch("mactop.soc.sysctl_int", side_effect=fake_sysctl_int(values)),
        ):
            with pytest.raises(SocError, match="perflevel1"):
                get_soc_info()

    def test_missing_p_cores_defaults_to_zero(self) -> None:
        values = {k: v for k, v in SYSCTL_M2_PRO.items() if k != "hw.perflevel0.logicalcpu"}
        with (
            patch("mactop.soc.sysctl_str", return_value="Apple M2 Pro"),
            patch("mactop.soc.sysctl_int", side_effect=fake_sysctl_int(values)),
            patch("mactop.soc.get_gpu_core_count", return_value="?"),
        ):
            soc = get_soc_info()
        assert soc.p_core_count == 0

    def test_sysctl_unavailable(self) -> None:
        with patch("mactop.soc.sysctl_str", side_effect=OSError("no sysctlbyname")):
            with pytest.raises(SocError, match="sysctl unavailable"):
                get_soc_info()

    def test_empty_brand_string(self) -> None:
        with (
            patch("mactop.soc.sysctl_str", return_value=None),
            patch("mactop.soc.sysctl_int", side_effect=fake_sysctl_int(SYSCTL_M2_PRO)),
            patch("mactop.soc.get_gpu_core_count", return_value="?"),
        ):
            soc = get_soc_info()
        assert soc.display_name == "Unknown Model"
