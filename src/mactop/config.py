"""Configuration system for mactop."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit
from tomlkit.exceptions import TOMLKitError

VALID_COLORS = ("green", "red", "blue", "cyan", "magenta", "yellow", "white")


@dataclass
class SystemConfig:
    """Sampling and pipeline configuration."""

    interval_ms: int = 1000  # powermetrics sample interval
    publish_timeout: float = 5.0  # Max seconds a snapshot publish waits for the consumer
    # Log file rotation
    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


@dataclass
class ProcessesConfig:
    """Process list configuration.

    Names in ``exclude`` are dropped from the parsed process list. Defaults
    cover mactop itself, the ``main`` harness name and powermetrics.
    """

    exclude: list[str] = field(default_factory=lambda: ["mactop", "main", "powermetrics"])
    max_display: int = 15  # Rows shown in the process panel


@dataclass
class TUIConfig:
    """TUI-specific configuration."""

    color: str = "white"
    power_window_seconds: float = 2.0  # Power samples averaged into one chart bar
    power_history_size: int = 25  # Bars kept in the total power chart
    ane_max_watts: float = 8.0  # ANE power that maps to 100% on the gauge


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    system: SystemConfig = field(default_factory=SystemConfig)
    processes: ProcessesConfig = field(default_factory=ProcessesConfig)
    tui: TUIConfig = field(default_factory=TUIConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "mactop"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "mactop"

    @property
    def log_path(self) -> Path:
        """Log file path."""
        return self.state_dir / "mactop.log"

    @property
    def render_grace_period(self) -> float:
        """Seconds the dashboard coalesces updates before redrawing (half an interval)."""
        return self.system.interval_ms / 2 / 1000

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("system", "processes", "tui"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            system=_load_system_config(data.get("system", {})),
            processes=_load_processes_config(data.get("processes", {})),
            tui=_load_tui_config(data.get("tui", {})),
        )


def _load_system_config(data: dict) -> SystemConfig:
    """Load system config from TOML data, using dataclass defaults for missing fields."""
    d = SystemConfig()

    interval_ms = data.get("interval_ms", d.interval_ms)
    publish_timeout = data.get("publish_timeout", d.publish_timeout)

    if interval_ms < 1:
        raise ValueError(f"interval_ms must be >= 1, got {interval_ms}")
    if publish_timeout <= 0:
        raise ValueError(f"publish_timeout must be > 0, got {publish_timeout}")

    return SystemConfig(
        interval_ms=int(interval_ms),
        publish_timeout=float(publish_timeout),
        log_max_bytes=data.get("log_max_bytes", d.log_max_bytes),
        log_backup_count=data.get("log_backup_count", d.log_backup_count),
    )


def _load_processes_config(data: dict) -> ProcessesConfig:
    """Load process list config from TOML data."""
    d = ProcessesConfig()

    max_display = data.get("max_display", d.max_display)
    if max_display < 1:
        raise ValueError(f"max_display must be >= 1, got {max_display}")

    return ProcessesConfig(
        exclude=[str(name) for name in data.get("exclude", d.exclude)],
        max_display=int(max_display),
    )


def _load_tui_config(data: dict) -> TUIConfig:
    """Load TUI config from TOML data."""
    d = TUIConfig()

    color = str(data.get("color", d.color))
    if color not in VALID_COLORS:
        raise ValueError(f"Invalid color: {color!r}. Must be one of {VALID_COLORS}")

    power_history_size = data.get("power_history_size", d.power_history_size)
    if power_history_size < 1:
        raise ValueError(f"power_history_size must be >= 1, got {power_history_size}")

    return TUIConfig(
        color=color,
        power_window_seconds=float(data.get("power_window_seconds", d.power_window_seconds)),
        power_history_size=int(power_history_size),
        ane_max_watts=float(data.get("ane_max_watts", d.ane_max_watts)),
    )
