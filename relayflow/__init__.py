"""relayflow — workflow execution engine for messaging automations.

Usage:
    from relayflow import WorkflowExecutor, WorkflowRunInput

    executor = WorkflowExecutor()
    result = await executor.execute(WorkflowRunInput(nodes=nodes, edges=edges))
"""

from relayflow.types import (
    WorkflowNode, WorkflowEdge, WorkflowDefinition, WorkflowRunInput, WorkflowRunResult,
    ExecutionResult, NodeOutput, ExecutionPolicy, Conversation, ExecutionRecord,
    CapabilityDefinition, NodeType, ExecutionStatus, ConversationStatus,
)
from relayflow.exceptions import (
    RelayError, WorkflowError, WorkflowValidationError, WorkflowCycleError,
    NodeConfigurationError, ConditionValidationError, StepError, StepTimeoutError,
    CapabilityNotFound, ConversationError, ConversationNotFound, ConversationConsumed,
)
from relayflow.capabilities import CapabilityRegistry, capability
from relayflow.core import ConversationResumer, WorkflowExecutor
from relayflow.version import __version__

__all__ = [
    "WorkflowNode", "WorkflowEdge", "WorkflowDefinition", "WorkflowRunInput", "WorkflowRunResult",
    "ExecutionResult", "NodeOutput", "ExecutionPolicy", "Conversation", "ExecutionRecord",
    "CapabilityDefinition", "NodeType", "ExecutionStatus", "ConversationStatus",
    "RelayError", "WorkflowError", "WorkflowValidationError", "WorkflowCycleError",
    "NodeConfigurationError", "ConditionValidationError", "StepError", "StepTimeoutError",
    "CapabilityNotFound", "ConversationError", "ConversationNotFound", "ConversationConsumed",
    "CapabilityRegistry", "capability",
    "WorkflowExecutor", "ConversationResumer",
    "__version__",
]
