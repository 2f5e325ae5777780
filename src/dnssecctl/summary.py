"""Final terminal summary.

The caller's console records a transcript that ends up in ``install.log``.
Secret values never pass through it: with ``show_secrets`` they are printed
on a separate, non-recording console bound to the same output stream.
"""
from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import ReadinessEndpoint
from .envfile import StackSettings
from .installer import InstallReport
from .logging import REDACTED

_HEADLINES = {
    "install": "DNSSEC-Manager installation complete.",
    "reinstall": "DNSSEC-Manager reinstalled with a fresh configuration.",
    "update": "DNSSEC-Manager updated.",
}


def _secret_rows(settings: StackSettings) -> list[tuple[str, str]]:
    return [
        ("Dashboard password", settings.dash_pass),
        ("PowerDNS API key", settings.pdns_api_key),
        ("PowerDNS DB password", settings.pdns_db_password),
        ("MariaDB root password", settings.mysql_root_password),
    ]


def _unrecorded(console: Console) -> Console:
    return Console(
        file=console.file,
        width=console.width,
        color_system=console.color_system,
        highlight=False,
        soft_wrap=True,
    )


def render_summary(
    console: Console,
    report: InstallReport,
    *,
    endpoints: Sequence[ReadinessEndpoint] = (),
    show_secrets: bool = False,
) -> None:
    """Print access details, warnings and next steps."""
    settings = report.settings
    if settings is None:
        return

    console.print()
    console.print(f"[bold green]{_HEADLINES[report.mode]}[/bold green]")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Item", style="bold", no_wrap=True)
    table.add_column("Value", overflow="fold")
    table.add_row("Backend", f"https://{settings.domain}")
    table.add_row("Dashboard", f"https://{settings.domain_dashboard}")
    for endpoint in endpoints:
        table.add_row(escape(endpoint.name), endpoint.url)
    table.add_row("Dashboard user", escape(settings.dash_user))
    if not show_secrets:
        for label, _ in _secret_rows(settings):
            table.add_row(label, REDACTED)
    table.add_row("Configuration", str(report.workspace.env_file))
    console.print(table)

    if show_secrets:
        # One value per line, never wrapped or cropped.
        secrets_console = _unrecorded(console)
        for label, value in _secret_rows(settings):
            secrets_console.print(f"{label}: {value}", markup=False)
    else:
        console.print(
            f"Secrets are stored in {escape(str(report.workspace.env_file))}; "
            "rerun with --show-secrets to print them."
        )

    if report.warnings:
        console.print("[yellow]Warnings:[/yellow]")
        for warning in report.warnings:
            console.print(f"  - {escape(warning)}")

    root = escape(str(report.workspace.root))
    console.print("Useful commands:")
    console.print(f"  cd {root} && docker compose ps")
    console.print(f"  cd {root} && docker compose logs -f")


__all__ = ["render_summary"]
