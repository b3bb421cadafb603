"""CLI entry point for mactop."""

import os
import sys

import click
import structlog

from mactop import logging as console
from mactop.config import VALID_COLORS, Config

log = structlog.get_logger()


@click.command()
@click.option(
    "--interval",
    "-i",
    type=int,
    default=None,
    help="powermetrics sample interval in milliseconds (default from config, 1000)",
)
@click.option(
    "--color",
    "-c",
    default=None,
    help="Dashboard color: " + ", ".join(VALID_COLORS),
)
@click.version_option(package_name="mactop")
def main(interval: int | None, color: str | None) -> None:
    """Apple Silicon CPU, GPU, ANE, power and process monitor."""
    if os.geteuid() != 0:
        console.needs_sudo()
        sys.exit(1)

    try:
        config = Config.load()
    except ValueError as e:
        console.config_invalid(str(e))
        sys.exit(1)

    if interval is not None:
        if interval < 1:
            console.config_invalid(f"--interval must be >= 1, got {interval}")
            sys.exit(1)
        config.system.interval_ms = interval
    if color is not None:
        if color.lower() in VALID_COLORS:
            config.tui.color = color.lower()
        else:
            console.unsupported_color(color)
            config.tui.color = "white"

    console.configure(config)
    log.info("mactop_starting", interval_ms=config.system.interval_ms, color=config.tui.color)

    from mactop.metrics import ChipProfile
    from mactop.soc import SocError, get_soc_info

    try:
        soc = get_soc_info()
    except SocError as e:
        console.soc_failed(str(e))
        sys.exit(1)
    console.chip_summary(soc.display_name, soc.e_core_count, soc.p_core_count, soc.gpu_core_count)

    from mactop.tui.app import run_tui

    app = run_tui(config, soc, ChipProfile.from_soc(soc))
    if app.return_code:
        console.powermetrics_failed(app.error_message or "unknown error")
        sys.exit(app.return_code)
    log.info("mactop_stopped", samples=app.pipeline.sample_count)
