"""relayflow CLI — Typer application."""

import typer
from rich.console import Console

from relayflow.version import __version__

app = typer.Typer(
    name="relayflow",
    help="relayflow — run messaging workflows: triggers, actions, conditions and replies.",
    no_args_is_help=True,
    invoke_without_command=True,
)
console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", is_eager=True, help="Show version"),
):
    """relayflow CLI."""
    if version:
        console.print(f"relayflow v{__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


# ── Workflow commands ──────────────────────────────────────────────────────────
from relayflow.cli.commands import resume, run, validate  # noqa: E402

app.command(name="run", help="Execute a workflow file")(run.run_workflow)
app.command(name="validate", help="Check a workflow file for structural errors")(validate.validate_workflow)
app.command(name="resume", help="Resume a paused run with the contact's answer")(resume.resume_conversation)

# ── Introspection ──────────────────────────────────────────────────────────────
from relayflow.cli.commands import capabilities, config  # noqa: E402

app.command(name="capabilities", help="List all registered action types")(capabilities.capabilities_list)
app.command(name="config", help="Show resolved configuration")(config.config_show)


if __name__ == "__main__":
    app()
