from relayflow.core.engine import RunState, WorkflowExecutor
from relayflow.core.resume import ConversationResumer
from relayflow.core.runner import resolve_execution_number, run_with_retry, run_with_timeout

__all__ = [
    "WorkflowExecutor",
    "RunState",
    "ConversationResumer",
    "run_with_retry",
    "run_with_timeout",
    "resolve_execution_number",
]
