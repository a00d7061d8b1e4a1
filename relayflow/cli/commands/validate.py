"""relayflow validate — Check a workflow file without running it."""

from pathlib import Path

import typer
from rich.console import Console

console = Console()


def validate_workflow(
    workflow_file: Path = typer.Argument(..., help="Path to workflow.yaml"),
):
    """Report structural errors (dangling edges, cycles, Ask Question topology)
    and warnings (conditions that can never pass).

    Example:
        relayflow validate workflow.yaml
    """
    from relayflow.capabilities.registry import CapabilityRegistry
    from relayflow.config import config, load_workflow_yaml
    from relayflow.workflows.validator import WorkflowValidator

    try:
        definition = load_workflow_yaml(workflow_file)
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[red]Could not load workflow:[/red] {exc}")
        raise typer.Exit(1)

    errors = WorkflowValidator().validate(
        definition,
        registry=CapabilityRegistry.from_registered(),
        max_nodes=config.max_workflow_nodes,
    )
    hard = [e for e in errors if not e.startswith("WARNING:")]
    for error in hard:
        console.print(f"  [red]✗[/red] {error}")
    for warning in errors:
        if warning.startswith("WARNING:"):
            console.print(f"  [yellow]⚠[/yellow] {warning[len('WARNING:'):].strip()}")

    name = definition.name or definition.id
    if hard:
        console.print(f"\n[bold red]{name}: {len(hard)} error(s)[/bold red]")
        raise typer.Exit(1)
    console.print(
        f"\n[bold green]{name} is valid[/bold green] "
        f"[dim]({len(definition.nodes)} nodes, {len(definition.edges)} edges)[/dim]"
    )
