"""Load and validate workflow.yaml / policy.yaml into Python objects.

Resolution order:
  1. Path passed explicitly by caller
  2. ./<name> in current working directory
"""

from pathlib import Path
from typing import Optional

import yaml

from relayflow.config.schema import PolicyYAML, WorkflowYAML
from relayflow.types import ExecutionPolicy, WorkflowDefinition, WorkflowEdge, WorkflowNode


def _find_file(name: str, explicit: Optional[Path]) -> Path:
    """Locate config file: explicit > cwd."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise FileNotFoundError(f"Config file not found: {p}")
        return p

    cwd_path = Path.cwd() / name
    if cwd_path.exists():
        return cwd_path

    raise FileNotFoundError(
        f"No {name} found. Create one in your project directory "
        f"or pass path=... explicitly."
    )


def load_workflow_yaml(path: Optional[Path] = None) -> WorkflowDefinition:
    """Load workflow.yaml → WorkflowDefinition.

    Args:
        path: Explicit path to the workflow file. If None, looks for ./workflow.yaml.

    Returns:
        WorkflowDefinition with typed node configs.
    """
    resolved = _find_file("workflow.yaml", path)
    raw = yaml.safe_load(resolved.read_text())
    parsed = WorkflowYAML.model_validate(raw or {})

    definition = WorkflowDefinition(
        name=parsed.name or resolved.stem,
        description=parsed.description,
        nodes=[WorkflowNode.model_validate(n) for n in parsed.nodes],
        edges=[
            WorkflowEdge(id=e.id or f"{e.source}->{e.target}", source=e.source, target=e.target)
            for e in parsed.edges
        ],
    )
    if parsed.id:
        definition = definition.model_copy(update={"id": parsed.id})
    return definition


def load_policy_yaml(path: Optional[Path] = None) -> ExecutionPolicy:
    """Load policy.yaml → ExecutionPolicy."""
    resolved = _find_file("policy.yaml", path)
    raw = yaml.safe_load(resolved.read_text())
    parsed = PolicyYAML.model_validate(raw or {})
    return ExecutionPolicy(
        retry_count=parsed.retry_count,
        retry_delay_ms=parsed.retry_delay_ms,
        timeout_ms=parsed.timeout_ms,
    )
