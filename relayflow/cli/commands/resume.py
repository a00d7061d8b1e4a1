"""relayflow resume — Continue a paused run with the contact's answer."""

import asyncio
import uuid
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from relayflow.cli.commands.run import build_executor, print_run_result, sql_store

console = Console()


def resume_conversation(
    workflow_file: Path = typer.Argument(..., help="Path to workflow.yaml"),
    conversation_id: str = typer.Argument(..., help="Conversation id printed by a paused run"),
    answer: str = typer.Argument(..., help="The contact's reply"),
    execution_id: Optional[str] = typer.Option(None, "--execution-id", help="Execution id for the resumed run"),
    policy: Optional[Path] = typer.Option(None, "--policy", help="policy.yaml with default retry/timeout"),
):
    """Resume a run paused on an Ask Question node (requires a run made with --persist).

    Example:
        relayflow resume workflow.yaml 3f2c... "yes please"
    """
    from relayflow.config import load_workflow_yaml
    from relayflow.core.resume import ConversationResumer
    from relayflow.exceptions import ConversationError
    from relayflow.observability import configure_logging

    configure_logging()
    definition = load_workflow_yaml(workflow_file)

    async def _resume():
        async with sql_store() as store:
            resumer = ConversationResumer(build_executor(store=store, policy_path=policy), store)
            return await resumer.resume(
                conversation_id,
                answer,
                definition.nodes,
                definition.edges,
                execution_id=execution_id or str(uuid.uuid4()),
            )

    try:
        result = asyncio.run(_resume())
    except ConversationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    print_run_result(result, {n.id: n.label for n in definition.nodes})
    if not result.success:
        raise typer.Exit(1)
