"""relayflow capabilities — List all registered capabilities."""

from rich import box
from rich.console import Console
from rich.table import Table

console = Console()


def capabilities_list():
    """List every action type nodes can use.

    Delay, Set Variable and Get Variable are built into the executor and are
    listed first.

    Example:
        relayflow capabilities
    """
    from relayflow.capabilities.registry import CapabilityRegistry

    registry = CapabilityRegistry.from_registered()

    table = Table(
        box=box.ROUNDED,
        header_style="bold dim",
        show_lines=False,
        title=f"[bold]{len(registry.list_capabilities()) + 3} Action Types[/bold]",
    )
    table.add_column("Action Type", style="cyan", no_wrap=True)
    table.add_column("Slug", style="dim", no_wrap=True)
    table.add_column("Category", no_wrap=True)
    table.add_column("Description", ratio=1)

    for name in ("Delay", "Set Variable", "Get Variable"):
        table.add_row(name, name.lower().replace(" ", "-"), "[green]built-in[/green]", "[dim]Handled by the executor[/dim]")

    for definition in sorted(registry.list_capabilities(), key=lambda d: (d.category != "system", d.name)):
        color = "green" if definition.category == "system" else "magenta"
        table.add_row(
            definition.name,
            definition.slug,
            f"[{color}]{definition.category}[/{color}]",
            f"[dim]{definition.description}[/dim]",
        )

    console.print()
    console.print(table)
    console.print()
    console.print("[dim]Add custom actions with the [cyan]@capability[/cyan] decorator.[/dim]")
