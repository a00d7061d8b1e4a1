"""relayflow config — Show resolved configuration."""

from rich import box
from rich.console import Console
from rich.table import Table

console = Console()


def config_show():
    """Show the resolved relayflow configuration.

    Reads from environment variables and .env file.
    The password part of the database URL is masked.

    Example:
        relayflow config
    """
    from sqlalchemy.engine import make_url

    from relayflow.config import RelayConfig
    cfg = RelayConfig()

    table = Table(
        box=box.ROUNDED,
        header_style="bold dim",
        show_lines=False,
        title="[bold]relayflow Configuration[/bold]",
    )
    table.add_column("Key", style="cyan", width=26)
    table.add_column("Value", width=50)
    table.add_column("Env Var", style="dim", width=34)

    sections = [
        ("App", ["app_name", "debug", "log_level"]),
        ("Database", ["database_url"]),
        ("Step Defaults", [
            "default_retry_count", "default_retry_delay_ms",
            "default_timeout_ms", "http_default_timeout_s",
        ]),
        ("Workflows", ["max_workflow_nodes", "validate_before_run", "default_phone_region"]),
        ("Server", ["host", "port", "cors_origins"]),
    ]

    first = True
    for section_name, fields in sections:
        if not first:
            table.add_row("", "", "")
        first = False
        table.add_row(f"[bold dim]── {section_name} ──[/bold dim]", "", "")
        for attr in fields:
            val = getattr(cfg, attr, None)
            if attr == "database_url" and val:
                display = make_url(val).render_as_string(hide_password=True)
            else:
                display = "[dim](not set)[/dim]" if val is None else str(val)
            table.add_row(f"  {attr}", display, f"RELAYFLOW_{attr.upper()}")

    console.print()
    console.print(table)
    console.print()
    console.print("[dim]Source: environment variables + .env file (prefix: RELAYFLOW_)[/dim]")
