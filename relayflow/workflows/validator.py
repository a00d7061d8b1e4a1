"""
WorkflowValidator: structural correctness checker for workflow graphs.

All checks are non-destructive reads of the graph.  Warnings (soft issues)
are returned with a "WARNING:" prefix so callers can choose to treat them
differently from hard errors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from relayflow.exceptions import WorkflowValidationError
from relayflow.types import BUILTIN_ACTIONS, NodeType, WorkflowDefinition

from .conditions import ConditionGrammar
from .graph import get_children, get_entry_points, topological_sort

if TYPE_CHECKING:
    from relayflow.capabilities.registry import CapabilityRegistry

_INLINE_ACTIONS = {"Delay", "Set Variable", "Get Variable"}


class WorkflowValidator:
    """
    Validates the structural integrity of a WorkflowDefinition.

    Usage::

        validator = WorkflowValidator()
        errors = validator.validate(workflow, registry=registry)
        hard_errors = [e for e in errors if not e.startswith("WARNING:")]
        if hard_errors:
            raise WorkflowValidationError("Invalid workflow", violations=hard_errors)

    All checks are run even if earlier ones fail, so callers get the full
    error list in one shot.  The executor itself does not detect cycles;
    run this first.
    """

    def __init__(self, grammar: Optional[ConditionGrammar] = None):
        self.grammar = grammar or ConditionGrammar()

    def validate(
        self,
        workflow: WorkflowDefinition,
        registry: Optional["CapabilityRegistry"] = None,
        max_nodes: int = 200,
    ) -> list[str]:
        """
        Run all structural checks.

        Args:
            workflow:  The workflow to validate.
            registry:  Optional CapabilityRegistry; unknown action types are
                       only reported when given.
            max_nodes: Maximum allowed nodes.

        Returns:
            List of error strings.  Empty list means the workflow is valid.
        """
        errors: list[str] = []
        nodes = workflow.nodes
        node_ids = [n.id for n in nodes]

        # ── Duplicate ids ────────────────────────────────────────────────────
        seen: set[str] = set()
        for node_id in node_ids:
            if node_id in seen:
                errors.append(f"Duplicate node id '{node_id}'.")
            seen.add(node_id)

        # ── Edge validity ────────────────────────────────────────────────────
        valid_edges = []
        for edge in workflow.edges:
            edge_ok = True
            label = edge.id or f"{edge.source}->{edge.target}"
            if edge.source not in seen:
                errors.append(
                    f"Edge '{label}': source '{edge.source}' references a node that does not exist."
                )
                edge_ok = False
            if edge.target not in seen:
                errors.append(
                    f"Edge '{label}': target '{edge.target}' references a node that does not exist."
                )
                edge_ok = False
            if edge_ok:
                valid_edges.append(edge)

        # ── Node count limit ─────────────────────────────────────────────────
        if len(nodes) > max_nodes:
            errors.append(f"Workflow has {len(nodes)} nodes; maximum allowed is {max_nodes}.")

        # ── Acyclicity ───────────────────────────────────────────────────────
        try:
            topological_sort(nodes, valid_edges)
        except WorkflowValidationError as exc:
            errors.extend(exc.violations)

        if nodes and not get_entry_points(nodes, valid_edges):
            errors.append(
                "No entry points found: every node has at least one incoming edge."
            )

        # ── Per-node configuration ───────────────────────────────────────────
        for node in nodes:
            name = node.label or node.id
            if node.type == NodeType.TRIGGER.value:
                continue
            if node.type != NodeType.ACTION.value:
                errors.append(f'Unknown node type "{node.type}" in node "{name}".')
                continue

            action_type = node.action_type
            if not action_type:
                errors.append(f'Action node "{name}" has no action type configured')
                continue

            is_ask_question = registry.is_ask_question(action_type) if registry else action_type == "Ask Question"
            if is_ask_question:
                outgoing = get_children(node.id, valid_edges)
                if not outgoing:
                    errors.append(f'Ask Question node "{name}" requires a following node to resume.')
                elif len(outgoing) > 1:
                    errors.append(f'Ask Question node "{name}" supports only one outgoing path.')
                if not node.config.to_step_input().get("variableKey"):
                    errors.append(f'WARNING: Ask Question node "{name}" has no variable key.')

            if action_type == "Condition":
                condition = node.config.to_step_input().get("condition")
                if isinstance(condition, str):
                    check = self.grammar.pre_validate(condition)
                    if not check.valid:
                        errors.append(
                            f'WARNING: Condition node "{name}" will always be false: {check.error}'
                        )
                elif condition is None:
                    errors.append(f'WARNING: Condition node "{name}" has no condition.')

            if (
                registry is not None
                and action_type not in _INLINE_ACTIONS
                and not registry.has(action_type)
            ):
                errors.append(
                    f'Unknown action type "{action_type}" in node "{name}". '
                    f"Available system actions: {', '.join(BUILTIN_ACTIONS)}."
                )

        return errors

    def validate_or_raise(
        self,
        workflow: WorkflowDefinition,
        registry: Optional["CapabilityRegistry"] = None,
        max_nodes: int = 200,
    ) -> list[str]:
        """Validate; raise on hard errors, return the warnings otherwise.

        Raises:
            WorkflowValidationError: with every hard error in ``violations``.
        """
        errors = self.validate(workflow, registry=registry, max_nodes=max_nodes)
        hard_errors = [e for e in errors if not e.startswith("WARNING:")]
        if hard_errors:
            raise WorkflowValidationError(
                f"Invalid workflow '{workflow.name or workflow.id}': {len(hard_errors)} error(s)",
                violations=hard_errors,
            )
        return errors
