"""CLI entry point and orchestration for netquality."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from netquality import __version__
from netquality.config import PING_COUNT, PING_FALLBACK_TARGET, PING_TARGET
from netquality.models import NetworkReport, RunConfig


def _setup_logging(verbose: bool) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=verbose)],
    )


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--server", "server_id", default=None, metavar="SERVER_ID",
              help="Use a specific speedtest-cli server")
@click.option("--list-servers", is_flag=True, help="List available servers (region-filtered) and exit")
@click.option("--json", "json_output", is_flag=True, help="Output JSON to stdout")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.version_option(version=__version__)
def main(
    server_id: str | None,
    list_servers: bool,
    json_output: bool,
    verbose: bool,
) -> None:
    """netquality — network connection quality test.

    Measures latency, packet loss, jitter, DNS response time and
    download/upload bandwidth, then prints a summary with a quality label.

    For accurate bandwidth results, use a speedtest server near you.
    """
    _setup_logging(verbose)

    if list_servers:
        _list_servers()
        return

    config = RunConfig(
        server_id=server_id,
        ping_target=PING_TARGET,
        fallback_target=PING_FALLBACK_TARGET,
        ping_count=PING_COUNT,
        json_output=json_output,
        verbose=verbose,
    )

    try:
        report = asyncio.run(_run(config))
    except KeyboardInterrupt:
        if not json_output:
            from netquality.display import console
            console.print("\n[yellow]Interrupted.[/yellow]")
        sys.exit(130)

    _handle_output(report, config)


def _list_servers() -> None:
    from netquality.display import render_server_listing, render_warning
    from netquality.speedtest import fetch_filtered_listing, find_speedtest

    speedtest_bin = find_speedtest()
    if speedtest_bin is None:
        render_warning("speedtest-cli not installed")
        return
    render_server_listing(asyncio.run(fetch_filtered_listing(speedtest_bin)))


async def _run(config: RunConfig) -> NetworkReport:
    """Main async orchestration."""
    from netquality.display import console, render_banner, render_section
    from netquality.engine import run_checks

    if config.json_output:
        return await run_checks(config)

    render_banner()
    with console.status("[bold]Running network checks...[/bold]"):
        return await run_checks(config, on_section=render_section)


def _handle_output(report: NetworkReport, config: RunConfig) -> None:
    """Handle output rendering and export."""
    from netquality.display import render_summary
    from netquality.export import export_json

    if config.json_output:
        click.echo(export_json(report))
        return

    render_summary(report)


if __name__ == "__main__":
    main()
