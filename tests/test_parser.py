"""Tests for powermetrics text extractors."""

from mactop.metrics import (
    ChipProfile,
    CPUSnapshot,
    GPUSnapshot,
    NetDiskSnapshot,
    ProcessRecord,
    ProcessSnapshot,
    ProfileKind,
)
from mactop.parser import (
    ClusterAggregator,
    parse_cpu_metrics,
    parse_gpu_metrics,
    parse_netdisk_metrics,
    parse_process_metrics,
)

STANDARD = ChipProfile()
M3_MAX = ChipProfile(kind=ProfileKind.WORKAROUND, max_core_index=15)


def cluster_lines(**clusters: tuple[float, int]) -> str:
    """Build '<name>-Cluster HW active' lines from name=(residency, MHz)."""
    lines = []
    for name, (residency, freq) in clusters.items():
        lines.append(f"{name}-Cluster HW active frequency: {freq} MHz")
        lines.append(f"{name}-Cluster HW active residency: {residency:6.2f}%")
    return "\n".join(lines)


class TestPowerParsing:
    """Power lines are milliwatts in the text and watts in the snapshot."""

    def test_cpu_power_milliwatts_to_watts(self) -> None:
        cpu = parse_cpu_metrics("CPU Power: 2500 mW", CPUSnapshot(), STANDARD)
        assert cpu.cpu_w == 2.5

    def test_all_power_fields(self, m1_block: str) -> None:
        cpu = parse_cpu_metrics(m1_block, CPUSnapshot(), STANDARD)
        assert cpu.ane_w == 0.5
        assert cpu.cpu_w == 2.5
        assert cpu.gpu_w == 0.3
        assert cpu.package_w == 3.3

    def test_unparseable_power_keeps_previous(self) -> None:
        prev = CPUSnapshot(cpu_w=1.25)
        cpu = parse_cpu_metrics("CPU Power: abc mW", prev, STANDARD)
        assert cpu.cpu_w == 1.25

    def test_truncated_power_line_keeps_previous(self) -> None:
        prev = CPUSnapshot(package_w=4.0)
        cpu = parse_cpu_metrics("Combined Power (CPU + GPU + ANE):", prev, STANDARD)
        assert cpu.package_w == 4.0


class TestClusterAggregation:
    """Tests for the E/P summary rules."""

    def test_single_e0_cluster(self) -> None:
        """E0 alone gives E usage 10 and E frequency 1000."""
        text = cluster_lines(E0=(10.0, 1000))
        cpu = parse_cpu_metrics(text, CPUSnapshot(), STANDARD)
        assert cpu.e_cluster_active == 10
        assert cpu.e_cluster_freq_mhz == 1000
        assert cpu.e0_cluster_active == 10

    def test_two_cluster_chip(self, m1_block: str) -> None:
        cpu = parse_cpu_metrics(m1_block, CPUSnapshot(), STANDARD)
        assert cpu.e_cluster_active == 10
        assert cpu.e_cluster_freq_mhz == 1000
        assert cpu.p_cluster_active == 25
        assert cpu.p_cluster_freq_mhz == 3000

    def test_two_e_clusters_average_and_max(self) -> None:
        text = cluster_lines(E0=(30.0, 1000), E1=(40.0, 1200), P0=(50.0, 3000), P1=(70.0, 3200))
        cpu = parse_cpu_metrics(text, CPUSnapshot(), STANDARD)
        assert cpu.e_cluster_active == 35
        assert cpu.e_cluster_freq_mhz == 1200

    def test_quad_p_clusters_average_and_max(self) -> None:
        text = cluster_lines(
            E0=(30.0, 1000),
            E1=(40.0, 1100),
            P0=(10.0, 3000),
            P1=(20.0, 3100),
            P2=(30.0, 3500),
            P3=(40.0, 3200),
        )
        cpu = parse_cpu_metrics(text, CPUSnapshot(), STANDARD)
        assert cpu.p_cluster_active == 25
        assert cpu.p_cluster_freq_mhz == 3500
        assert cpu.p3_cluster_active == 40

    def test_two_p_clusters_average_and_max(self) -> None:
        text = cluster_lines(P0=(50.0, 3000), P1=(70.0, 3200))
        cpu = parse_cpu_metrics(text, CPUSnapshot(), STANDARD)
        assert cpu.p_cluster_active == 60
        assert cpu.p_cluster_freq_mhz == 3200

    def test_lone_p0_cluster_adds_instead_of_averaging(self) -> None:
        """A lone P0 cluster sums the running P mean and P0 (known asymmetry)."""
        text = cluster_lines(P0=(30.0, 3000))
        cpu = parse_cpu_metrics(text, CPUSnapshot(), STANDARD)
        assert cpu.p_cluster_active == 60

    def test_lone_p0_cluster_sum_clamped(self) -> None:
        """The additive rule is capped at 100 rather than reporting 140."""
        text = cluster_lines(P0=(70.0, 3000))
        cpu = parse_cpu_metrics(text, CPUSnapshot(), STANDARD)
        assert cpu.p_cluster_active == 100

    def test_usage_stays_in_range(self) -> None:
        text = cluster_lines(E0=(100.0, 1000), E1=(100.0, 1000), P0=(100.0, 3000))
        cpu = parse_cpu_metrics(text, CPUSnapshot(), STANDARD)
        assert 0 <= cpu.e_cluster_active <= 100
        assert 0 <= cpu.p_cluster_active <= 100

    def test_per_cluster_fields_reset_each_block(self) -> None:
        first = parse_cpu_metrics(cluster_lines(E1=(40.0, 1100)), CPUSnapshot(), STANDARD)
        second = parse_cpu_metrics(cluster_lines(E0=(20.0, 1000)), first, STANDARD)
        assert second.e1_cluster_active == 0
        assert second.e_cluster_active == 20

    def test_no_cluster_lines_keeps_previous(self) -> None:
        prev = CPUSnapshot(e_cluster_active=42, p_cluster_active=17)
        assert parse_cpu_metrics("nothing to see", prev, STANDARD) is prev

    def test_aggregator_without_matches_returns_empty(self) -> None:
        aggregator = ClusterAggregator(CPUSnapshot())
        aggregator.feed("GPU Power: 10 mW")
        assert aggregator.result() == {}


class TestCoreMembership:
    """Tests for E/P core index lists."""

    def test_cores_follow_cluster_sections(self, m1_block: str) -> None:
        cpu = parse_cpu_metrics(m1_block, CPUSnapshot(), STANDARD)
        assert cpu.e_cores == (0, 1)
        assert cpu.p_cores == (4, 5)

    def test_no_core_lines_keeps_previous_lists(self) -> None:
        prev = CPUSnapshot(e_cores=(0, 1), p_cores=(2, 3))
        cpu = parse_cpu_metrics("CPU Power: 100 mW", prev, STANDARD)
        assert cpu.e_cores == (0, 1)
        assert cpu.p_cores == (2, 3)


class TestWorkaroundMode:
    """Per-core reconstruction on chips with bad cluster aggregates."""

    @staticmethod
    def per_core(residencies: list[float], freqs: list[int]) -> str:
        lines = []
        for i, (residency, freq) in enumerate(zip(residencies, freqs)):
            lines.append(f"CPU {i} frequency: {freq} MHz")
            lines.append(f"CPU {i} active residency: {residency:6.2f}%")
        return "\n".join(lines)

    def test_means_per_bucket(self) -> None:
        text = self.per_core([20.0, 30.0, 40.0, 50.0] + [60.0] * 12, [1000] * 4 + [3000] * 12)
        cpu = parse_cpu_metrics(text, CPUSnapshot(), M3_MAX)
        assert cpu.e_cluster_active == 35
        assert cpu.p_cluster_active == 60
        assert cpu.e_cluster_freq_mhz == 1000
        assert cpu.p_cluster_freq_mhz == 3000

    def test_saturated_mean_rejected(self) -> None:
        prev = CPUSnapshot(p_cluster_active=55)
        text = self.per_core([20.0] * 4 + [100.0] * 12, [1000] * 4 + [3000] * 12)
        cpu = parse_cpu_metrics(text, prev, M3_MAX)
        assert cpu.p_cluster_active == 55
        assert cpu.e_cluster_active == 20

    def test_zero_mean_rejected(self) -> None:
        prev = CPUSnapshot(e_cluster_active=12, e_cluster_freq_mhz=900)
        text = self.per_core([0.0] * 4 + [50.0] * 12, [0] * 4 + [3000] * 12)
        cpu = parse_cpu_metrics(text, prev, M3_MAX)
        assert cpu.e_cluster_active == 12
        assert cpu.e_cluster_freq_mhz == 900
        assert cpu.p_cluster_active == 50

    def test_cores_beyond_model_range_ignored(self) -> None:
        m2_max = ChipProfile(kind=ProfileKind.WORKAROUND, max_core_index=11)
        text = self.per_core([20.0] * 4 + [40.0] * 8 + [90.0] * 4, [1000] * 16)
        cpu = parse_cpu_metrics(text, CPUSnapshot(), m2_max)
        assert cpu.p_cluster_active == 40

    def test_cluster_lines_ignored(self) -> None:
        text = cluster_lines(E0=(10.0, 1000))
        cpu = parse_cpu_metrics(text, CPUSnapshot(), M3_MAX)
        assert cpu.e_cluster_active == 0


class TestGPUParsing:
    """Tests for GPU residency and frequency."""

    def test_residency_and_histogram_frequency(self, m1_block: str) -> None:
        gpu = parse_gpu_metrics(m1_block, GPUSnapshot())
        assert gpu.active == 45.5
        assert gpu.freq_mhz == 486

    def test_reported_frequency_without_histogram(self) -> None:
        gpu = parse_gpu_metrics("GPU HW active frequency: 1296 MHz", GPUSnapshot())
        assert gpu.freq_mhz == 1296

    def test_all_zero_histogram_keeps_reported_frequency(self) -> None:
        text = (
            "GPU HW active frequency: 389 MHz\n"
            "GPU HW active residency:   0.00% (389 MHz:   0% 486 MHz:   0%)"
        )
        gpu = parse_gpu_metrics(text, GPUSnapshot())
        assert gpu.active == 0.0
        assert gpu.freq_mhz == 389

    def test_no_gpu_lines_keeps_previous(self) -> None:
        prev = GPUSnapshot(active=12.0, freq_mhz=700)
        assert parse_gpu_metrics("GPU idle residency:  88.00%", prev) is prev


class TestNetDiskParsing:
    """Tests for network and disk rate lines."""

    def test_full_block(self, m1_block: str) -> None:
        nd = parse_netdisk_metrics(m1_block, NetDiskSnapshot())
        assert nd.out_packets_per_sec == 10.5
        assert nd.out_bytes_per_sec == 2048.0
        assert nd.in_packets_per_sec == 20.25
        assert nd.in_bytes_per_sec == 4096.0
        assert nd.read_ops_per_sec == 5.0
        assert nd.read_kbytes_per_sec == 100.0
        assert nd.write_ops_per_sec == 7.5
        assert nd.write_kbytes_per_sec == 250.0

    def test_out_line_changes_only_out_fields(self) -> None:
        prev = NetDiskSnapshot(in_packets_per_sec=3.0, read_ops_per_sec=4.0)
        nd = parse_netdisk_metrics("out: 1.00 packets/s, 64.00 bytes/s", prev)
        assert nd.out_packets_per_sec == 1.0
        assert nd.out_bytes_per_sec == 64.0
        assert nd.in_packets_per_sec == 3.0
        assert nd.read_ops_per_sec == 4.0

    def test_malformed_number_keeps_previous(self) -> None:
        prev = NetDiskSnapshot(out_packets_per_sec=9.0, out_bytes_per_sec=99.0)
        nd = parse_netdisk_metrics("out: 1.2.3 packets/s, 64.00 bytes/s", prev)
        assert nd == prev


class TestProcessParsing:
    """Tests for the tasks table."""

    def test_dedup_exclude_and_sort(self, tasks_text: str) -> None:
        snap = parse_process_metrics(tasks_text, ProcessSnapshot())
        assert [p.name for p in snap.processes] == [
            "WindowServer",
            "kernel_task",
            "Google Chrome Helper (Renderer)",
        ]

    def test_first_pid_occurrence_wins(self, tasks_text: str) -> None:
        snap = parse_process_metrics(tasks_text, ProcessSnapshot())
        window_server = [p for p in snap.processes if p.pid == 406]
        assert window_server == [ProcessRecord(pid=406, name="WindowServer", cpu_ms_per_s=45.21)]

    def test_pids_unique_and_sorted_descending(self, m1_block: str) -> None:
        snap = parse_process_metrics(m1_block, ProcessSnapshot())
        pids = [p.pid for p in snap.processes]
        assert len(pids) == len(set(pids))
        cpu = [p.cpu_ms_per_s for p in snap.processes]
        assert cpu == sorted(cpu, reverse=True)

    def test_custom_exclude(self, tasks_text: str) -> None:
        snap = parse_process_metrics(tasks_text, ProcessSnapshot(), exclude={"WindowServer"})
        names = {p.name for p in snap.processes}
        assert "WindowServer" not in names
        assert "mactop" in names

    def test_no_records_keeps_previous(self) -> None:
        prev = ProcessSnapshot(processes=(ProcessRecord(1, "launchd", 1.0),))
        assert parse_process_metrics("**** Processor usage ****", prev) is prev

    def test_top_truncates_for_display(self, tasks_text: str) -> None:
        snap = parse_process_metrics(tasks_text, ProcessSnapshot())
        assert len(snap) == 3
        assert len(snap.top(2)) == 2


class TestDeterminism:
    """Identical input and previous snapshot give identical output."""

    def test_all_extractors_deterministic(self, m1_block: str) -> None:
        for _ in range(2):
            assert parse_cpu_metrics(m1_block, CPUSnapshot(), STANDARD) == parse_cpu_metrics(
                m1_block, CPUSnapshot(), STANDARD
            )
        assert parse_gpu_metrics(m1_block, GPUSnapshot()) == parse_gpu_metrics(
            m1_block, GPUSnapshot()
        )
        assert parse_netdisk_metrics(m1_block, NetDiskSnapshot()) == parse_netdisk_metrics(
            m1_block, NetDiskSnapshot()
        )
        assert parse_process_metrics(m1_block, ProcessSnapshot()) == parse_process_metrics(
            m1_block, ProcessSnapshot()
        )

    def test_garbage_never_raises(self) -> None:
        garbage = "E-Cluster HW active residency: nan%\nCPU x frequency\n\x00\nin: packets/s"
        prev = CPUSnapshot(e_cluster_active=5)
        assert parse_cpu_metrics(garbage, prev, STANDARD).e_cluster_active == 5
        assert parse_netdisk_metrics(garbage, NetDiskSnapshot()) == NetDiskSnapshot()
