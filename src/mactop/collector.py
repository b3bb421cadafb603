"""powermetrics line source and the producer side of the metrics pipeline."""

import asyncio
from asyncio.subprocess import Process
from collections.abc import AsyncGenerator, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

import structlog

from mactop.channels import SnapshotChannel
from mactop.metrics import (
    ChipProfile,
    CPUSnapshot,
    GPUSnapshot,
    NetDiskSnapshot,
    ProcessSnapshot,
)
from mactop.parser import (
    DEFAULT_PROCESS_EXCLUDE,
    parse_cpu_metrics,
    parse_gpu_metrics,
    parse_netdisk_metrics,
    parse_process_metrics,
)

log = structlog.get_logger()

# powermetrics starts every sample block with this header line
SAMPLE_HEADER = "*** Sampled system activity"


class PowermetricsError(RuntimeError):
    """powermetrics could not be started or exited abnormally."""


class StreamStatus(Enum):
    """Powermetrics stream status."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"


class LineSource(Protocol):
    """Anything that yields powermetrics text units and can be stopped."""

    async def start(self) -> None: ...

    def read_units(self) -> AsyncGenerator[str, None]: ...

    def terminate(self) -> None: ...

    async def wait(self) -> int | None: ...


class SampleSplitter:
    """Group powermetrics output lines into sample blocks.

    A block runs from one '*** Sampled system activity' header to the next.
    Blank-only blocks are never emitted.
    """

    def __init__(self) -> None:
        self._lines: list[str] = []

    def _has_content(self) -> bool:
        return any(line.strip() for line in self._lines)

    def feed(self, line: str) -> str | None:
        """Add a line; returns the previous block when this line starts a new one."""
        block = None
        if line.startswith(SAMPLE_HEADER) and self._has_content():
            block = "\n".join(self._lines)
            self._lines = []
        self._lines.append(line)
        return block

    def flush(self) -> str | None:
        """Return whatever is buffered at EOF."""
        block = "\n".join(self._lines) if self._has_content() else None
        self._lines = []
        return block


class PowermetricsStream:
    """Async stream of powermetrics text output, one unit per sample block."""

    POWERMETRICS_CMD = [
        "/usr/bin/powermetrics",
        "--samplers",
        "cpu_power,gpu_power,thermal,network,disk",
        "--show-process-gpu",
        "--show-process-energy",
        "--show-initial-usage",
        "--show-process-netstats",
    ]

    def __init__(self, interval_ms: int = 1000):
        self.interval_ms = interval_ms
        self._process: Process | None = None
        self._status = StreamStatus.NOT_STARTED

    @property
    def status(self) -> StreamStatus:
        """Current stream status."""
        return self._status

    async def start(self) -> None:
        """Start the powermetrics subprocess.

        Raises:
            PowermetricsError: If powermetrics fails to start (permission denied, not found, etc.)
        """
        if self._process is not None:
            return

        cmd = self.POWERMETRICS_CMD + ["-i", str(self.interval_ms)]

        try:
            self._process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except PermissionError as e:
            self._status = StreamStatus.FAILED
            log.error("powermetrics_start_failed", error=str(e))
            raise PowermetricsError(
                f"powermetrics failed to start: {e}. mactop must be run with sudo."
            ) from e
        except FileNotFoundError as e:
            self._status = StreamStatus.FAILED
            log.error("powermetrics_start_failed", error=str(e))
            raise PowermetricsError(
                f"powermetrics not found: {e}. Ensure /usr/bin/powermetrics exists (macOS only)."
            ) from e
        except OSError as e:
            self._status = StreamStatus.FAILED
            log.error("powermetrics_start_failed", error=str(e))
            raise PowermetricsError(f"powermetrics failed to start: {e}") from e

        self._status = StreamStatus.RUNNING
        log.info("powermetrics_started", interval_ms=self.interval_ms)

    def terminate(self) -> None:
        """Kill the subprocess without waiting.

        Uses SIGKILL because powermetrics may not respond to SIGTERM quickly.
        """
        if self._process is None:
            return
        try:
            self._process.kill()
        except ProcessLookupError:
            pass  # Already dead
        self._status = StreamStatus.STOPPED

    async def wait(self) -> int | None:
        """Wait for the subprocess to exit and return its exit code."""
        if self._process is None:
            return None
        returncode = await self._process.wait()
        if returncode != 0 and self._status is StreamStatus.RUNNING:
            stderr = b""
            if self._process.stderr:
                stderr = await self._process.stderr.read()
            self._status = StreamStatus.FAILED
            log.error(
                "powermetrics_exited",
                returncode=returncode,
                stderr=stderr.decode(errors="replace").strip(),
            )
        return returncode

    async def read_units(self) -> AsyncGenerator[str, None]:
        """Yield one text block per powermetrics sample.

        Raises:
            PowermetricsError: If reading stdout fails, e.g. a line over the stream limit.
        """
        if self._process is None or self._process.stdout is None:
            return

        splitter = SampleSplitter()
        try:
            async for raw in self._process.stdout:
                block = splitter.feed(raw.decode(errors="replace").rstrip("\n"))
                if block is not None:
                    yield block
        except (ValueError, OSError) as e:
            self._status = StreamStatus.FAILED
            log.error("powermetrics_read_failed", error=str(e))
            raise PowermetricsError(f"failed to read powermetrics output: {e}") from e

        block = splitter.flush()
        if block is not None:
            yield block


@dataclass
class PipelineChannels:
    """The four snapshot channels, in publish order."""

    cpu: SnapshotChannel[CPUSnapshot] = field(default_factory=lambda: SnapshotChannel("cpu"))
    gpu: SnapshotChannel[GPUSnapshot] = field(default_factory=lambda: SnapshotChannel("gpu"))
    netdisk: SnapshotChannel[NetDiskSnapshot] = field(
        default_factory=lambda: SnapshotChannel("netdisk")
    )
    process: SnapshotChannel[ProcessSnapshot] = field(
        default_factory=lambda: SnapshotChannel("process")
    )


class MetricsPipeline:
    """Single producer: scan units, run the four extractors, publish snapshots.

    Publishing blocks until the consumer takes each snapshot, bounded by
    ``publish_timeout`` so a vanished consumer can't wedge the producer.
    """

    def __init__(
        self,
        source: LineSource,
        channels: PipelineChannels,
        profile: ChipProfile,
        exclude: Iterable[str] = DEFAULT_PROCESS_EXCLUDE,
        publish_timeout: float | None = 5.0,
    ) -> None:
        self.source = source
        self.channels = channels
        self.profile = profile
        self.exclude = frozenset(exclude)
        self.publish_timeout = publish_timeout
        self.sample_count = 0

        self.cpu = CPUSnapshot()
        self.gpu = GPUSnapshot()
        self.netdisk = NetDiskSnapshot()
        self.process = ProcessSnapshot()

    def process_unit(self, unit: str) -> None:
        """Run every extractor over one unit, in fixed order."""
        self.cpu = parse_cpu_metrics(unit, self.cpu, self.profile)
        self.gpu = parse_gpu_metrics(unit, self.gpu)
        self.netdisk = parse_netdisk_metrics(unit, self.netdisk)
        self.process = parse_process_metrics(unit, self.process, self.exclude)
        self.sample_count += 1

    async def publish(self) -> None:
        """Send the current snapshots, in fixed order."""
        timeout = self.publish_timeout
        await self.channels.cpu.send(self.cpu, timeout)
        await self.channels.gpu.send(self.gpu, timeout)
        await self.channels.netdisk.send(self.netdisk, timeout)
        await self.channels.process.send(self.process, timeout)

    async def run(self, cancel: asyncio.Event) -> None:
        """Start the source and scan until EOF or cancellation.

        Raises:
            PowermetricsError: If the source fails to start or exits with a non-zero status.
        """
        await self.source.start()
        units = self.source.read_units()
        try:
            while True:
                if cancel.is_set():
                    log.info("pipeline_cancelled", samples=self.sample_count)
                    self.source.terminate()
                    await self.source.wait()
                    return
                try:
                    unit = await anext(units)
                except StopAsyncIteration:
                    break
                self.process_unit(unit)
                await self.publish()
        finally:
            await units.aclose()

        returncode = await self.source.wait()
        if cancel.is_set():
            return
        if returncode:
            raise PowermetricsError(f"powermetrics exited with status {returncode}")
        log.info("pipeline_eof", samples=self.sample_count)
