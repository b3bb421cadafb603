"""Real-time Apple Silicon dashboard.

The pipeline worker publishes snapshots; the consumer worker multiplexes the
snapshot channels with the render throttle and redraws at most once per grace
period.
"""

import asyncio
from typing import Any

import structlog
from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.reactive import reactive
from textual.widgets import Footer, Static

from mactop.channels import ChannelSelector
from mactop.collector import (
    LineSource,
    MetricsPipeline,
    PipelineChannels,
    PowermetricsError,
    PowermetricsStream,
)
from mactop.config import Config
from mactop.formatting import (
    ane_percent,
    ane_title,
    e_cpu_title,
    format_netdisk,
    format_power,
    format_processes,
    format_soc,
    gpu_title,
    memory_title,
    p_cpu_title,
    power_title,
)
from mactop.metrics import (
    ChipProfile,
    CPUSnapshot,
    GPUSnapshot,
    MemorySnapshot,
    NetDiskSnapshot,
    ProcessSnapshot,
    SocInfo,
    get_memory_metrics,
)
from mactop.ringbuffer import PowerHistory
from mactop.throttler import EventThrottler
from mactop.tui.sparkline import Sparkline

log = structlog.get_logger()

RENDER = "render"


class Gauge(Static):
    """Titled horizontal percent bar."""

    DEFAULT_CSS = """
    Gauge {
        height: 3;
        padding: 0 1;
        border: solid white;
        border-title-align: left;
    }
    """

    percent: reactive[int] = reactive(0)

    def __init__(self, title: str = "", color: str = "white", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.gauge_title = title
        self._color = color

    def on_mount(self) -> None:
        self.border_title = self.gauge_title
        self.styles.border = ("solid", self._color)

    def set_value(self, title: str, percent: int) -> None:
        """Update the title and fill level (clamped to 0-100)."""
        self.gauge_title = title
        self.border_title = title
        self.percent = max(0, min(100, percent))

    def render(self) -> Text:
        width = max(1, self.content_size.width - 5)
        filled = self.percent * width // 100
        bar = "█" * filled + "░" * (width - filled)
        return Text.assemble((bar, self._color), f" {self.percent:3d}%")


class TextPanel(Static):
    """Bordered multi-line text panel."""

    DEFAULT_CSS = """
    TextPanel {
        padding: 0 1;
        border: solid white;
        border-title-align: left;
    }
    """

    def __init__(self, title: str = "", color: str = "white", **kwargs: Any) -> None:
        super().__init__("", **kwargs)
        self.panel_title = title
        self.panel_text = ""
        self._color = color

    def on_mount(self) -> None:
        self.border_title = self.panel_title
        self.styles.border = ("solid", self._color)

    def set_content(self, text: str, title: str | None = None) -> None:
        """Replace the panel body, and the title when given."""
        if title is not None:
            self.panel_title = title
            self.border_title = title
        self.panel_text = text
        self.update(text)


class MactopApp(App):
    """Apple Silicon CPU, GPU, ANE, power and process monitor."""

    CSS = """
    Screen {
        layout: vertical;
    }

    #gauges {
        height: 6;
    }

    #gauges > Vertical {
        width: 1fr;
    }

    #middle {
        height: 9;
    }

    #middle > * {
        width: 1fr;
    }

    #power-chart {
        height: 6;
    }

    #power-chart Sparkline {
        height: 3;
    }

    #bottom {
        height: 1fr;
    }

    #processes {
        width: 2fr;
    }

    #netdisk {
        width: 1fr;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "redraw", "Redraw"),
    ]

    def __init__(
        self,
        config: Config,
        soc: SocInfo,
        profile: ChipProfile | None = None,
        source: LineSource | None = None,
    ) -> None:
        super().__init__()
        self.config = config
        self.soc = soc
        self.profile = profile or ChipProfile.from_soc(soc)
        self.source = source or PowermetricsStream(config.system.interval_ms)
        self.channels = PipelineChannels()
        self.pipeline = MetricsPipeline(
            self.source,
            self.channels,
            self.profile,
            exclude=config.processes.exclude,
            publish_timeout=config.system.publish_timeout,
        )
        self.throttler = EventThrottler(config.render_grace_period)
        self.power_history = PowerHistory(
            max_bars=config.tui.power_history_size,
            window_seconds=config.tui.power_window_seconds,
        )
        self.cancel = asyncio.Event()
        self.error_message: str | None = None

        self.cpu = CPUSnapshot()
        self.gpu = GPUSnapshot()
        self.netdisk = NetDiskSnapshot()
        self.process = ProcessSnapshot()
        self.memory = MemorySnapshot()
        self.render_count = 0

    def compose(self) -> ComposeResult:
        """Create the dashboard layout."""
        color = self.config.tui.color
        yield Horizontal(
            Vertical(
                Gauge("E-CPU Usage", color, id="e-cpu"),
                Gauge("P-CPU Usage", color, id="p-cpu"),
            ),
            Vertical(
                Gauge("GPU Usage", color, id="gpu"),
                Gauge("ANE Usage", color, id="ane"),
            ),
            id="gauges",
        )
        yield Horizontal(
            TextPanel("Apple Silicon", color, id="soc"),
            TextPanel("Power Usage", color, id="power"),
            id="middle",
        )
        yield Vertical(
            Sparkline(height=3, color=color, id="power-sparkline"),
            id="power-chart",
        )
        yield Gauge("Memory Usage", color, id="memory")
        yield Horizontal(
            TextPanel("Process List", color, id="processes"),
            TextPanel("Network & Disk Info", color, id="netdisk"),
            id="bottom",
        )
        yield Footer()

    def on_mount(self) -> None:
        """Start the producer and consumer workers."""
        self.title = "mactop"
        self.sub_title = self.soc.display_name
        chart = self.query_one("#power-chart", Vertical)
        chart.border_title = "Total Power"
        chart.styles.border = ("solid", self.config.tui.color)
        self.query_one("#soc", TextPanel).set_content(format_soc(self.soc))
        self.run_worker(self._produce(), name="pipeline", group="mactop")
        self.run_worker(self._consume(), name="consumer", group="mactop")

    def on_unmount(self) -> None:
        """Stop powermetrics when the dashboard goes away."""
        self.cancel.set()
        self.throttler.cancel()
        self.source.terminate()

    async def action_quit(self) -> None:
        self.cancel.set()
        self.exit()

    def action_redraw(self) -> None:
        self.refresh_panels()

    async def _produce(self) -> None:
        try:
            await self.pipeline.run(self.cancel)
        except PowermetricsError as e:
            self.error_message = str(e)
            log.error("pipeline_failed", error=str(e))
            self.exit(return_code=1)

    async def _consume(self) -> None:
        selector = ChannelSelector(
            {
                "cpu": self.channels.cpu.receive,
                "gpu": self.channels.gpu.receive,
                "netdisk": self.channels.netdisk.receive,
                "process": self.channels.process.receive,
                RENDER: self.throttler.wait,
            }
        )
        try:
            while not self.cancel.is_set():
                name, value = await selector.next()
                if name == RENDER:
                    self.refresh_panels()
                    continue
                self.handle_snapshot(name, value)
                self.throttler.notify()
        finally:
            selector.close()

    def handle_snapshot(self, name: str, value: Any) -> None:
        """Store a received snapshot. CPU snapshots also sample memory and power."""
        if name == "cpu":
            self.cpu = value
            self.memory = get_memory_metrics()
            if self.power_history.push(value.package_w):
                log.debug("power_bar_added", watts=self.power_history.bars[0])
        elif name == "gpu":
            self.gpu = value
        elif name == "netdisk":
            self.netdisk = value
        elif name == "process":
            self.process = value

    def refresh_panels(self) -> None:
        """Redraw every panel from the latest snapshots."""
        self.render_count += 1
        tui = self.config.tui
        try:
            self.query_one("#e-cpu", Gauge).set_value(
                e_cpu_title(self.cpu), self.cpu.e_cluster_active
            )
            self.query_one("#p-cpu", Gauge).set_value(
                p_cpu_title(self.cpu), self.cpu.p_cluster_active
            )
            self.query_one("#gpu", Gauge).set_value(gpu_title(self.gpu), int(self.gpu.active))
            self.query_one("#ane", Gauge).set_value(
                ane_title(self.cpu, tui.ane_max_watts),
                ane_percent(self.cpu.ane_w, tui.ane_max_watts),
            )
            self.query_one("#memory", Gauge).set_value(
                memory_title(self.memory), self.memory.used_percent
            )

            self.query_one("#power", TextPanel).set_content(
                format_power(self.cpu), title=power_title(self.cpu)
            )

            self.query_one("#power-chart", Vertical).border_title = (
                f"{self.cpu.package_w:.2f} W Total"
            )
            self.query_one("#power-sparkline", Sparkline).data = self.power_history.bars

            self.query_one("#processes", TextPanel).set_content(
                format_processes(self.process.top(self.config.processes.max_display))
            )
            self.query_one("#netdisk", TextPanel).set_content(format_netdisk(self.netdisk))
        except NoMatches:
            pass


def run_tui(
    config: Config,
    soc: SocInfo,
    profile: ChipProfile | None = None,
) -> MactopApp:
    """Run the dashboard until it exits and return the finished app."""
    app = MactopApp(config, soc, profile)
    app.run()
    return app
