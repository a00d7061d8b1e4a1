"""Pydantic models for YAML configuration validation.

These mirror relayflow/types.py structures but accept the looser shapes people
write by hand (``from``/``to`` edges, string numbers) and coerce them.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class EdgeYAML(BaseModel):
    """An edge entry; ``from``/``to`` are accepted as aliases for source/target."""

    id: Optional[str] = None
    source: str
    target: str

    @model_validator(mode="before")
    @classmethod
    def accept_from_to(cls, v):
        if isinstance(v, dict) and "source" not in v and "from" in v:
            v = dict(v)
            v["source"] = v.pop("from")
            v["target"] = v.pop("to", v.get("target"))
        return v


class WorkflowYAML(BaseModel):
    """Root schema for a workflow file."""

    id: Optional[str] = None
    name: str = ""
    description: str = ""
    nodes: list[dict[str, Any]] = Field(default_factory=list)
    edges: list[EdgeYAML] = Field(default_factory=list)

    @field_validator("nodes")
    @classmethod
    def nodes_have_ids(cls, v):
        for i, node in enumerate(v):
            if not node.get("id"):
                raise ValueError(f"node #{i} is missing an 'id'")
        return v


class PolicyYAML(BaseModel):
    """Root schema for policy.yaml (default retry/timeout)."""

    retry_count: int = 0
    retry_delay_ms: int = 500
    timeout_ms: int = 10000

    @field_validator("retry_count", "retry_delay_ms", "timeout_ms", mode="before")
    @classmethod
    def coerce_non_negative(cls, v):
        if isinstance(v, str):
            v = int(float(v))
        return max(0, int(v))
