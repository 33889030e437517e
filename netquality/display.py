"""Rich terminal output for netquality."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.text import Text

from netquality.bandwidth import best_download
from netquality.config import (
    FAST_LATENCY_MS,
    MEDIUM_LATENCY_MS,
    QUALITY_COLORS,
    SOURCE_CDN,
    TIP_LOSS_THRESHOLD,
)
from netquality.models import BandwidthResult, NetworkReport

console = Console()

NA = "N/A"
RULE = "═" * 55


def _color_for_latency(value: Optional[float]) -> str:
    """Return a Rich color name for an average latency."""
    if value is None:
        return "red"
    if value < FAST_LATENCY_MS:
        return "green"
    elif value < MEDIUM_LATENCY_MS:
        return "yellow"
    return "red"


def _fmt_ms(value: Optional[float]) -> str:
    return NA if value is None else f"{value:.1f}"


def fmt_bandwidth(result: Optional[BandwidthResult]) -> str:
    """Format a bandwidth value, annotating CDN-sourced numbers."""
    if result is None:
        return NA
    text = f"{result.mbps:.1f} Mbit/s"
    if result.source == SOURCE_CDN:
        text += " (CDN)"
    return text


def _quality_text(label: Optional[str]) -> Text:
    label = label or NA
    return Text(label, style=f"bold {QUALITY_COLORS.get(label, 'red')}")


# ── Header ────────────────────────────────────────────────────────────


def render_banner() -> None:
    console.print("[blue]╔" + "═" * 54 + "╗[/blue]")
    console.print("[blue]║       NETWORK CONNECTION QUALITY TEST                ║[/blue]")
    console.print("[blue]╚" + "═" * 54 + "╝[/blue]")
    console.print()


# ── Sections ──────────────────────────────────────────────────────────


def _render_latency(report: NetworkReport) -> None:
    lat = report.latency
    config = report.config
    console.print("[yellow][1/4] Latency & Packet Loss[/yellow]")
    if config:
        console.print(f"Target: {config.ping_target} ({config.ping_count} pings)")
    if lat is None:
        console.print(f"  [red]{NA}[/red]")
        return
    if config and lat.target != config.ping_target:
        console.print(f"  [dim]{config.ping_target} unreachable, measured {lat.target}[/dim]")

    color = _color_for_latency(lat.avg_ms)
    console.print(f"  Packet Loss: {lat.loss_percent:g}%")
    console.print(f"  Avg Latency: [{color}]{_fmt_ms(lat.avg_ms)} ms[/{color}]")
    console.print(f"  Min/Max:     {_fmt_ms(lat.min_ms)} / {_fmt_ms(lat.max_ms)} ms")
    console.print(f"  Jitter:      {_fmt_ms(lat.jitter_ms)} ms")
    console.print()


def _render_quality(report: NetworkReport) -> None:
    console.print("[yellow][2/4] Connection Quality Assessment[/yellow]")
    line = Text("  Overall Quality: ")
    line.append_text(_quality_text(report.quality))
    console.print(line)
    console.print()


def _render_dns(report: NetworkReport) -> None:
    console.print("[yellow][3/4] DNS Resolution Speed[/yellow]")
    dns = report.dns
    if dns is None:
        console.print(f"  {NA}")
    else:
        suffix = " [dim](default, request failed)[/dim]" if dns.fallback else ""
        console.print(f"  {escape(dns.host)}: {dns.http_ms:.0f} ms{suffix}")
        if dns.resolve_ms is not None:
            console.print(f"  [dim]Lookup only: {dns.resolve_ms:.1f} ms[/dim]")
    console.print()


def _render_bandwidth(report: NetworkReport) -> None:
    console.print("[yellow][4/4] Bandwidth (Speed)[/yellow]")

    st = report.speedtest
    console.print("  [cyan]Method 1: speedtest-cli[/cyan]")
    if not st.installed:
        console.print("  [yellow]speedtest-cli not installed[/yellow]")
    else:
        if st.selection == "user" and st.server:
            console.print(f"  Server: {escape(st.server.server_id)} (user-specified)")
        elif st.selection in ("nearest", "first") and st.server:
            distance = f"{st.server.distance_km:g}" if st.server.distance_km is not None else "unknown"
            console.print(f"  Selected: Server #{escape(st.server.server_id)} (~{distance} km away)")
        else:
            console.print("  [yellow]Warning: Could not determine best server, using default[/yellow]")
        if st.succeeded:
            console.print(f"  Result: DL={fmt_bandwidth(st.download)}, UP={fmt_bandwidth(st.upload)}")
        elif st.error:
            console.print(f"  [red]{escape(st.error)}[/red]")

    console.print("  [cyan]Method 2: CDN Speed Test[/cyan]")
    for sample in report.cdn_samples:
        if sample.result is None:
            console.print(f"    [dim]{escape(sample.label)}: failed[/dim]")
            continue
        console.print(
            f"    {escape(sample.label)}: {sample.result.mbps:.1f} Mbit/s "
            f"({sample.result.duration_s:.1f}s)"
        )
    cdn_best = best_download(report.cdn_samples)
    if cdn_best is not None:
        console.print(f"  [green]Best CDN: {cdn_best.mbps:.1f} Mbit/s[/green]")

    console.print("  [cyan]Upload Test[/cyan]")
    if report.upload_sample is not None:
        console.print(f"  CDN Upload: {report.upload_sample.mbps:.1f} Mbit/s")
    else:
        console.print("  [dim]CDN Upload: failed[/dim]")

    console.print()
    console.print(f"  [green]Download: {fmt_bandwidth(report.download)}[/green]")
    console.print(f"  [green]Upload:   {fmt_bandwidth(report.upload)}[/green]")
    console.print()


_SECTION_RENDERERS = {
    "latency": _render_latency,
    "quality": _render_quality,
    "dns": _render_dns,
    "bandwidth": _render_bandwidth,
}


def render_section(section: str, report: NetworkReport) -> None:
    """Render one completed section; used as the engine's section callback."""
    _SECTION_RENDERERS[section](report)


# ── Summary ───────────────────────────────────────────────────────────


def show_tip(report: NetworkReport) -> bool:
    """Whether the server-selection tip applies to this report."""
    lat = report.latency
    return lat is not None and lat.is_available and lat.loss_percent < TIP_LOSS_THRESHOLD


def render_summary(report: NetworkReport) -> None:
    """Render the summary block, the conditional tip and the footer."""
    lat = report.latency
    console.print(f"[blue]{RULE}[/blue]")
    console.print("[blue]                    SUMMARY                           [/blue]")
    console.print(f"[blue]{RULE}[/blue]")
    console.print()

    if lat is not None:
        console.print(
            f"Latency:      {_fmt_ms(lat.avg_ms)} ms "
            f"(min: {_fmt_ms(lat.min_ms)}, max: {_fmt_ms(lat.max_ms)})"
        )
        console.print(f"Packet Loss:  {lat.loss_percent:g}%")
    else:
        console.print(f"Latency:      {NA}")
        console.print(f"Packet Loss:  {NA}")
    console.print(f"Download:     {fmt_bandwidth(report.download)}")
    console.print(f"Upload:       {fmt_bandwidth(report.upload)}")
    console.print()
    line = Text("Quality:      ")
    line.append_text(_quality_text(report.quality))
    console.print(line)
    console.print()

    for note in report.notes:
        console.print(f"[dim]Note: {escape(note)}[/dim]")

    if show_tip(report):
        console.print("[yellow]Tip: For Ookla-equivalent results, use --server with a nearby server:[/yellow]")
        console.print("  [cyan]netquality --list-servers[/cyan]  # Find nearby servers")
        console.print("  [cyan]netquality --server=12345[/cyan]  # Use specific server")

    console.print()
    if report.timestamp:
        console.print(f"Test completed at {report.timestamp}")


def render_full(report: NetworkReport) -> None:
    """Render the complete report in one go.

    Non-progressive counterpart of the CLI's section-by-section output,
    for a report that has already been collected.
    """
    render_banner()
    for section in _SECTION_RENDERERS:
        render_section(section, report)
    render_summary(report)


# ── Misc ──────────────────────────────────────────────────────────────


def render_server_listing(lines: list[str]) -> None:
    console.print("Listing nearby speedtest.net servers...")
    if not lines:
        console.print("[dim]No servers listed.[/dim]")
    for line in lines:
        console.print(escape(line), highlight=False)


def render_warning(message: str) -> None:
    """Display a warning message."""
    console.print(f"[yellow]Warning:[/yellow] {message}")
