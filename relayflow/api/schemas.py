"""Pydantic models for API request/response. Mirrors types.py for API I/O."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from relayflow.types import WorkflowEdge, WorkflowNode


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Requests ──

class ExecuteWorkflowRequest(_ApiModel):
    nodes: list[WorkflowNode]
    edges: list[WorkflowEdge] = Field(default_factory=list)
    trigger_input: dict[str, Any] = Field(default_factory=dict)
    workflow_id: Optional[str] = None
    execution_id: Optional[str] = None           # generated when omitted


class ConversationReplyRequest(_ApiModel):
    answer: Any
    nodes: list[WorkflowNode]
    edges: list[WorkflowEdge] = Field(default_factory=list)
    execution_id: Optional[str] = None
    trigger_input: Optional[dict[str, Any]] = None


class InboundReplyRequest(ConversationReplyRequest):
    phone: str                                    # sender; matched after E.164 normalization


# ── Responses ──

class ExecutionRecordResponse(_ApiModel):
    execution_id: str
    workflow_id: Optional[str] = None
    status: str
    output: Any = None
    error: Optional[str] = None
    started_at: str
    finished_at: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    version: str
    services: dict[str, bool]
