"""
Rich-powered console output for the edgehost CLI.

Provides styled tables and consistent message formatting.
"""

import sys

from rich.console import Console
from rich.table import Table

# force_terminal=None respects TTY detection
console = Console(force_terminal=None, legacy_windows=True)

# ASCII-safe icons when not attached to a terminal
_USE_ASCII = not sys.stdout.isatty()


def print_success(message: str):
    """Print a success message"""
    icon = "+" if _USE_ASCII else "✓"
    console.print(f"[green]{icon}[/green] {message}")


def print_error(message: str):
    """Print an error message"""
    icon = "x" if _USE_ASCII else "✗"
    console.print(f"[red]{icon}[/red] {message}", style="red")


def print_warning(message: str):
    """Print a warning message"""
    console.print(f"[yellow]![/yellow] {message}")


def print_info(message: str):
    """Print an info message"""
    icon = "i" if _USE_ASCII else "ℹ"
    console.print(f"[blue]{icon}[/blue] {message}")


def bindings_table(http: int, https: int, dashboard: int) -> Table:
    table = Table(title="Proxy Ports", show_header=True, header_style="bold cyan")
    table.add_column("Entrypoint", style="bold")
    table.add_column("Host Port", justify="right")
    table.add_row("http", str(http))
    table.add_row("https", str(https))
    table.add_row("dashboard", str(dashboard))
    return table


def urls_table(urls: dict[str, list[str]], title: str = "Proxy URLs") -> Table:
    """
    Create a Rich table of service URLs.

    Args:
        urls: Dict of service name -> list of URLs
        title: Table title
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Service", style="bold")
    table.add_column("URL", style="cyan")

    for service, service_urls in urls.items():
        for index, url in enumerate(service_urls):
            table.add_row(service if index == 0 else "", url)

    return table


def rules_table(rules) -> Table:
    """Create a Rich table of compiled routing rules."""
    table = Table(title="Routing Rules", show_header=True, header_style="bold cyan")
    table.add_column("Service", style="bold")
    table.add_column("Rule", style="cyan")
    table.add_column("Port", justify="right")

    for rule in rules:
        table.add_row(rule.service_name, rule.host_match, str(rule.target_port))

    return table


def print_conflicts(conflicts: dict[str, int], services: dict[str, list[str]]):
    """Print duplicate hosts with the services declaring them"""
    if not conflicts:
        return
    print_warning("Duplicate hosts detected; the last loaded rule wins:")
    for host, count in conflicts.items():
        console.print(f"  [yellow]{host}[/yellow] x{count} [dim]({', '.join(services.get(host, []))})[/dim]")
