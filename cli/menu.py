"""Startup banner for the CLI"""

from rich.table import Table

import settings


def display_header(console):
    """Display the application header"""
    console.print("=" * 50)
    console.print("    Cloud Code Relay", style="bold")
    console.print("=" * 50)


def display_settings(console, bind_address: str, port: int, debug: bool = False):
    """
    Display the effective relay settings

    Args:
        console: Rich console for output
        bind_address: The bind address for the server
        port: The listening port
        debug: Whether debug logging is enabled
    """
    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("Setting", style="dim")
    table.add_column("Value")

    table.add_row("Listening", f"http://{bind_address}:{port}")
    table.add_row("Upstream", str(settings.UPSTREAM_BASE_URL))
    if settings.UPSTREAM_ACCESS_TOKEN:
        table.add_row("Access token", "[green]configured[/green]")
    else:
        table.add_row("Access token", "[red]missing[/red] (set UPSTREAM_ACCESS_TOKEN)")
    table.add_row("Project", str(settings.UPSTREAM_PROJECT_ID) or "[dim]none[/dim]")
    table.add_row("Signature cache", f"{settings.SIGNATURE_CACHE_MAX_ENTRIES} entries, {settings.SIGNATURE_CACHE_TTL}s TTL")
    table.add_row("Min signature length", str(settings.MIN_SIGNATURE_LENGTH))
    if debug:
        table.add_row("Debug", "[yellow]enabled[/yellow]")

    console.print(table)
    console.print("-" * 50)
