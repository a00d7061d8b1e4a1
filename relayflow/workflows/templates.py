"""Template substitution for node configs.

Two token grammars are resolved before a step runs:

    {{var.KEY}}                 → value from the run's variable store
    {{@NODEID:LABEL.path.x}}    → field of an earlier node's output

Only top-level string values of a config are rewritten; every other value is
passed through unchanged.  Substitution is purely textual: containers are
rendered as compact JSON, ``None`` as an empty string.
"""

from __future__ import annotations

import json
import re
from typing import Any, Mapping

from relayflow.types import NodeOutput
from relayflow.workflows.graph import sanitize_node_id

VAR_PATTERN = re.compile(r"\{\{\s*var\.([a-zA-Z0-9_.-]+)\s*\}\}")
NODE_OUTPUT_PATTERN = re.compile(r"\{\{@([^:]+):([^}]+)\}\}")

_ENVELOPE_KEYS = ("success", "data", "error")


def to_template_text(value: Any) -> str:
    """Render a resolved value the way it appears inside a config string."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def _descend(current: Any, key: str) -> Any:
    if isinstance(current, Mapping):
        return current.get(key)
    if isinstance(current, (list, tuple)):
        if key == "length":
            return len(current)
        if key.isdigit() and int(key) < len(current):
            return current[int(key)]
    return None


def extract_output_value(data: Any, rest: str) -> Any:
    """Follow ``LABEL.path.to.field`` into a node's output data.

    ``rest`` is everything after the ``NODEID:`` prefix.  The label part is
    display text only.  With no path the whole ``data`` is returned.  When
    ``data`` is a ``{success, data, error}`` envelope and the first segment is
    not one of those keys, the lookup starts inside ``data["data"]``.

    Returns None for anything missing.
    """
    dot = rest.find(".")
    if dot == -1:
        return data
    if data is None:
        return None

    fields = rest[dot + 1:].split(".")
    current = data
    if (
        isinstance(current, Mapping)
        and "success" in current
        and "data" in current
        and fields[0] not in _ENVELOPE_KEYS
    ):
        current = current["data"]

    for name in fields:
        if isinstance(current, (Mapping, list, tuple)):
            current = _descend(current, name)
        else:
            return None
    return current


def lookup_node_output(
    outputs: Mapping[str, NodeOutput], node_id: str
) -> NodeOutput | None:
    return outputs.get(sanitize_node_id(node_id))


def resolve_string(
    value: str,
    outputs: Mapping[str, NodeOutput],
    variables: Mapping[str, Any],
) -> str:
    """Substitute both token grammars in one string (variables first)."""

    def _var(match: re.Match) -> str:  # type: ignore[type-arg]
        return to_template_text(variables.get(match.group(1)))

    def _node(match: re.Match) -> str:  # type: ignore[type-arg]
        output = lookup_node_output(outputs, match.group(1))
        if output is None:
            # Not produced (yet) in this run; leave the token for the reader to see
            return match.group(0)
        return to_template_text(extract_output_value(output.data, match.group(2)))

    value = VAR_PATTERN.sub(_var, value)
    return NODE_OUTPUT_PATTERN.sub(_node, value)


def resolve_templates(
    config: Mapping[str, Any],
    outputs: Mapping[str, NodeOutput],
    variables: Mapping[str, Any],
) -> dict[str, Any]:
    """Return a copy of config with every top-level string value resolved.

    Example:
        config    = {"message": "Hi {{var.name}}, order {{@n1:Fetch.id}}"}
        variables = {"name": "Ana"}
        outputs   = {"n1": NodeOutput(label="Fetch", data={"id": 42})}
        → {"message": "Hi Ana, order 42"}
    """
    return {
        key: resolve_string(value, outputs, variables) if isinstance(value, str) else value
        for key, value in config.items()
    }


class TemplateResolver:
    """Resolves a node's config against the current run state."""

    def __init__(self, exclude_keys: tuple[str, ...] = ("condition",)):
        # Condition expressions are resolved by the condition evaluator instead
        self.exclude_keys = exclude_keys

    def resolve_config(
        self,
        config: Mapping[str, Any],
        outputs: Mapping[str, NodeOutput],
        variables: Mapping[str, Any],
    ) -> dict[str, Any]:
        kept = {k: v for k, v in config.items() if k in self.exclude_keys}
        resolved = resolve_templates(
            {k: v for k, v in config.items() if k not in self.exclude_keys},
            outputs,
            variables,
        )
        return {**resolved, **kept}
