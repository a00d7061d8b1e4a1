"""All shared types, enums, and type aliases. Everything imports from here."""

import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Enums ──────────────────────────────────────────────────────────────

class NodeType(str, Enum):
    TRIGGER = "trigger"
    ACTION = "action"

class ExecutionStatus(str, Enum):
    RUNNING = "running"
    WAITING = "waiting"     # paused on an Ask Question node
    SUCCESS = "success"
    ERROR = "error"

class ConversationStatus(str, Enum):
    WAITING = "waiting"
    CONSUMED = "consumed"   # already used to resume a run

class EdgeResolution(str, Enum):
    SATISFIED = "satisfied"
    BLOCKED = "blocked"


# Action types the executor handles itself (order is used in error messages)
BUILTIN_ACTIONS = (
    "Delay", "Set Variable", "Get Variable", "Condition",
    "HTTP Request", "Database Query",
)
ASK_QUESTION_ACTION = "Ask Question"
ASK_QUESTION_SLUG = "ask-question"
SKIPPED_ERROR = "skipped"


# ── Node configuration (tagged union keyed by actionType) ──────────────

class BaseNodeConfig(BaseModel):
    """Fields shared by every node config variant.

    Wire format is camelCase (``actionType``, ``retryCount``); unknown keys are
    kept and handed to the step handler untouched.
    """
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow",
    )

    action_type: Optional[str] = None
    retry_count: Optional[Union[int, float, str]] = None
    retry_delay_ms: Optional[Union[int, float, str]] = None
    timeout_ms: Optional[Union[int, float, str]] = None

    def to_step_input(self) -> dict[str, Any]:
        """Dump to the camelCase dict handlers receive."""
        return self.model_dump(by_alias=True, exclude_none=True)

class TriggerNodeConfig(BaseNodeConfig):
    trigger_type: Optional[str] = None          # "Manual", "Webhook", ...
    webhook_mock_request: Optional[str] = None  # JSON body used when no trigger input

class DelayConfig(BaseNodeConfig):
    delay_ms: Any = 0

class SetVariableConfig(BaseNodeConfig):
    variable_key: Optional[str] = None
    variable_value: Any = None

class GetVariableConfig(BaseNodeConfig):
    variable_key: Optional[str] = None

class ConditionConfig(BaseNodeConfig):
    condition: Union[bool, str, None] = None

class AskQuestionConfig(BaseNodeConfig):
    variable_key: Optional[str] = None
    message: Optional[str] = None

class HttpRequestConfig(BaseNodeConfig):
    url: Optional[str] = None
    method: str = "GET"
    headers: Any = None
    body: Any = None
    query_params: Any = None
    response_path: Optional[str] = None     # JMESPath applied to the parsed body

class DatabaseQueryConfig(BaseNodeConfig):
    query: Optional[str] = None
    params: Any = None
    database_url: Optional[str] = None

class GenericActionConfig(BaseNodeConfig):
    """Fallback for action types this package has no typed variant for."""
    pass


NodeConfig = Union[
    TriggerNodeConfig, DelayConfig, SetVariableConfig, GetVariableConfig,
    ConditionConfig, AskQuestionConfig, HttpRequestConfig, DatabaseQueryConfig,
    GenericActionConfig,
]

_CONFIG_VARIANTS: dict[str, type[BaseNodeConfig]] = {
    "Delay": DelayConfig,
    "Set Variable": SetVariableConfig,
    "Get Variable": GetVariableConfig,
    "Condition": ConditionConfig,
    ASK_QUESTION_ACTION: AskQuestionConfig,
    "HTTP Request": HttpRequestConfig,
    "Database Query": DatabaseQueryConfig,
}


def parse_node_config(raw: Optional[dict], node_type: str = NodeType.ACTION.value) -> BaseNodeConfig:
    """Pick the config variant for a raw config dict."""
    raw = dict(raw or {})
    if node_type == NodeType.TRIGGER.value:
        return TriggerNodeConfig.model_validate(raw)
    variant = _CONFIG_VARIANTS.get(raw.get("actionType") or raw.get("action_type") or "")
    return (variant or GenericActionConfig).model_validate(raw)


# ── Graph ──────────────────────────────────────────────────────────────

class WorkflowNode(BaseModel):
    """A trigger or action unit in the workflow graph.

    Accepts both the flat shape ``{id, type, label, config}`` and the editor
    export shape ``{id, data: {type, label, enabled, config}}``.
    """
    id: str
    type: str                               # NodeType value; anything else fails at run time
    label: str = ""
    enabled: bool = True
    config: BaseNodeConfig = Field(default_factory=GenericActionConfig)

    @model_validator(mode="before")
    @classmethod
    def _flatten_and_type_config(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        values = dict(values)
        data = values.pop("data", None)
        if isinstance(data, dict):
            for key in ("type", "label", "enabled", "config"):
                if key in data and key not in values:
                    values[key] = data[key]
        if values.get("label") is None:
            values["label"] = ""
        config = values.get("config")
        if not isinstance(config, BaseNodeConfig):
            values["config"] = parse_node_config(config, str(values.get("type", "")))
        return values

    @property
    def action_type(self) -> Optional[str]:
        return self.config.action_type

class WorkflowEdge(BaseModel):
    """Directed dependency: ``target`` depends on ``source``."""
    id: Optional[str] = None
    source: str
    target: str

class WorkflowDefinition(BaseModel):
    """A named graph as authored (loaded from YAML or the API)."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    description: str = ""
    nodes: list[WorkflowNode] = Field(default_factory=list)
    edges: list[WorkflowEdge] = Field(default_factory=list)


# ── Execution ──────────────────────────────────────────────────────────

class ExecutionResult(BaseModel):
    """Outcome of one node in one run."""
    success: bool
    data: Any = None
    error: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return not self.success and self.error == SKIPPED_ERROR

class NodeOutput(BaseModel):
    """What a node produced, keyed by sanitized node id for template lookups."""
    label: str
    data: Any = None

class ExecutionPolicy(BaseModel):
    """Default retry/timeout applied when a node does not set its own."""
    retry_count: int = 0
    retry_delay_ms: int = 500
    timeout_ms: int = 10000

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class WorkflowRunInput(_CamelModel):
    """Invocation input for one pass of the scheduler."""
    nodes: list[WorkflowNode]
    edges: list[WorkflowEdge] = Field(default_factory=list)
    trigger_input: dict[str, Any] = Field(default_factory=dict)
    execution_id: Optional[str] = None
    workflow_id: Optional[str] = None
    start_node_ids: Optional[list[str]] = None       # resume: run only what is reachable from here
    initial_variables: dict[str, Any] = Field(default_factory=dict)

class WorkflowRunResult(_CamelModel):
    """Invocation output. ``paused`` runs stop at an Ask Question node."""
    success: bool
    results: dict[str, ExecutionResult] = Field(default_factory=dict)
    outputs: dict[str, NodeOutput] = Field(default_factory=dict)
    error: Optional[str] = None
    paused: bool = False
    conversation_id: Optional[str] = None
    resume_node_id: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        """camelCase JSON-safe dict, omitting unset pause fields."""
        return json.loads(self.model_dump_json(by_alias=True, exclude_none=True))


# ── Pause/resume persistence ───────────────────────────────────────────

class Conversation(BaseModel):
    """Suspension record: the only state that survives a paused run."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workflow_id: str
    phone: str                              # E.164, used to correlate the inbound reply
    resume_node_id: str
    variable_key: str                       # the answer is stored under this variable
    variables: dict[str, Any] = Field(default_factory=dict)
    status: ConversationStatus = ConversationStatus.WAITING
    created_at: datetime = Field(default_factory=_utcnow)
    consumed_at: Optional[datetime] = None

class ExecutionRecord(BaseModel):
    """System-of-record view of one run."""
    execution_id: str
    workflow_id: Optional[str] = None
    status: ExecutionStatus = ExecutionStatus.RUNNING
    output: Any = None
    error: Optional[str] = None
    started_at: datetime = Field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None


# ── Capabilities ───────────────────────────────────────────────────────

class CapabilityDefinition(BaseModel):
    """Registration record for an executable action type."""
    name: str                               # the actionType string nodes reference
    label: str = ""                         # human-readable name for diagnostics
    slug: str = ""
    description: str = ""
    category: str = "plugin"                # "system" for built-ins
