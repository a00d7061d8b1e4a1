"""relayflow run — Execute a workflow file from the command line."""

import asyncio
import json
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from relayflow.types import WorkflowRunResult

console = Console()

_STATUS = {
    True: "[bold green]✓ success[/bold green]",
    False: "[bold red]✗ failed[/bold red]",
    None: "[dim]– skipped[/dim]",
}


@asynccontextmanager
async def sql_store():
    """Repository on the configured database, tables created on first use."""
    from relayflow.db.database import async_session, dispose_db, init_db
    from relayflow.db.repository import Repository

    await init_db()
    try:
        async with async_session() as session:
            yield Repository(session)
    finally:
        await dispose_db()


def _parse_input(raw: Optional[str]) -> dict:
    if not raw:
        return {}
    path = Path(raw)
    text = path.read_text() if path.exists() else raw
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        console.print(f"[red]--input is not valid JSON:[/red] {exc}")
        raise typer.Exit(1)
    if not isinstance(data, dict):
        console.print("[red]--input must be a JSON object[/red]")
        raise typer.Exit(1)
    return data


def build_executor(store=None, policy_path: Optional[Path] = None):
    """Executor wired from config, optional policy.yaml and the logging callback."""
    from relayflow.callbacks.logging import LoggingCallback
    from relayflow.capabilities.registry import CapabilityRegistry
    from relayflow.config import ConfigPolicyProvider, StaticPolicyProvider, load_policy_yaml
    from relayflow.core.engine import WorkflowExecutor

    provider = StaticPolicyProvider(load_policy_yaml(policy_path)) if policy_path else ConfigPolicyProvider()
    return WorkflowExecutor(
        registry=CapabilityRegistry.from_registered(),
        store=store,
        policy_provider=provider,
        callbacks=[LoggingCallback()],
    )


def check_workflow(definition, registry) -> None:
    """Abort on hard validation errors when RELAYFLOW_VALIDATE_BEFORE_RUN is on."""
    from relayflow.config import config
    from relayflow.exceptions import WorkflowValidationError
    from relayflow.workflows.validator import WorkflowValidator

    if not config.validate_before_run:
        return
    try:
        warnings = WorkflowValidator().validate_or_raise(
            definition, registry=registry, max_nodes=config.max_workflow_nodes,
        )
    except WorkflowValidationError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        for violation in exc.violations:
            console.print(f"  [red]•[/red] {violation}")
        raise typer.Exit(1)
    for warning in warnings:
        console.print(f"[yellow]{warning}[/yellow]")


def print_run_result(result: WorkflowRunResult, node_labels: dict[str, str]) -> None:
    """Per-node results table plus a summary panel."""
    table = Table(box=box.ROUNDED, header_style="bold dim", show_lines=False)
    table.add_column("Node", style="cyan", width=16)
    table.add_column("Label", width=22)
    table.add_column("Status", width=12)
    table.add_column("Output / Error", width=60)

    for node_id, node_result in result.results.items():
        status = None if node_result.skipped else node_result.success
        if node_result.success:
            detail = json.dumps(node_result.data, default=str)
            detail = detail if len(detail) <= 120 else detail[:117] + "..."
        else:
            detail = f"[red]{node_result.error or ''}[/red]"
        table.add_row(node_id, node_labels.get(node_id, ""), _STATUS[status], detail)

    console.print()
    console.print(table)

    if result.paused:
        body = (
            f"[yellow]Paused[/yellow] waiting for a reply\n"
            f"conversation: [cyan]{result.conversation_id}[/cyan]\n"
            f"resumes at:   [cyan]{result.resume_node_id}[/cyan]"
        )
    elif result.success:
        body = "[bold green]Workflow succeeded[/bold green]"
    else:
        body = f"[bold red]Workflow failed[/bold red]{': ' + result.error if result.error else ''}"
    console.print(Panel(body, box=box.ROUNDED, expand=False))


def run_workflow(
    workflow_file: Path = typer.Argument(..., help="Path to workflow.yaml"),
    trigger_json: Optional[str] = typer.Option(None, "--input", "-i", help="Trigger input as JSON (or a path to a JSON file)"),
    workflow_id: Optional[str] = typer.Option(None, "--workflow-id", help="Override the workflow id"),
    execution_id: Optional[str] = typer.Option(None, "--execution-id", help="Execution id (generated with --persist)"),
    policy: Optional[Path] = typer.Option(None, "--policy", help="policy.yaml with default retry/timeout"),
    persist: bool = typer.Option(False, "--persist", help="Store execution records and conversations in the database"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result as JSON"),
):
    """Execute a workflow file once.

    Example:
        relayflow run workflow.yaml --input '{"from": "+5511987654321"}'
    """
    from relayflow.config import load_workflow_yaml
    from relayflow.observability import configure_logging

    configure_logging()
    definition = load_workflow_yaml(workflow_file)
    if workflow_id:
        definition = definition.model_copy(update={"id": workflow_id})
    trigger_input = _parse_input(trigger_json)

    async def _run() -> WorkflowRunResult:
        if not persist:
            executor = build_executor(policy_path=policy)
            check_workflow(definition, executor.registry)
            return await executor.run_workflow(definition, trigger_input, execution_id=execution_id)
        async with sql_store() as store:
            executor = build_executor(store=store, policy_path=policy)
            check_workflow(definition, executor.registry)
            run_id = execution_id or str(uuid.uuid4())
            await store.start_execution(run_id, definition.id)
            return await executor.run_workflow(definition, trigger_input, execution_id=run_id)

    result = asyncio.run(_run())

    if as_json:
        console.print_json(json.dumps(result.to_payload()))
    else:
        print_run_result(result, {n.id: n.label for n in definition.nodes})

    if not result.success:
        raise typer.Exit(1)
