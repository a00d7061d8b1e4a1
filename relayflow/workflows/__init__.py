"""Workflow graph utilities: traversal, templates, conditions, validation."""

from .conditions import ConditionGrammar, ValidationResult, evaluate_condition_expression
from .graph import (
    GraphIndex,
    build_graph_index,
    get_children,
    get_entry_points,
    sanitize_node_id,
    topological_sort,
)
from .templates import TemplateResolver, resolve_templates
from .validator import WorkflowValidator

__all__ = [
    "ConditionGrammar",
    "ValidationResult",
    "evaluate_condition_expression",
    "GraphIndex",
    "build_graph_index",
    "get_children",
    "get_entry_points",
    "sanitize_node_id",
    "topological_sort",
    "TemplateResolver",
    "resolve_templates",
    "WorkflowValidator",
]
