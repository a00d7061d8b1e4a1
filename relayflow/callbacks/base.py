"""Base callback protocol for run lifecycle hooks.

Callbacks are called at key points of a workflow run.
Implement this protocol to observe or instrument runs without modifying the
executor.

Usage:
    class MyCallback(BaseCallback):
        async def on_node_complete(self, node_id, result, **kw):
            print(f"{node_id}: {result.success}")

    executor = WorkflowExecutor(registry, callbacks=[MyCallback()])
"""

from typing import Any, Protocol, runtime_checkable

from relayflow.types import ExecutionResult, WorkflowRunResult


@runtime_checkable
class RunCallback(Protocol):
    """Protocol defining hooks for run lifecycle events.

    All methods are async; the executor awaits each registered callback in
    order.  A callback that raises is logged and ignored.
    """

    async def on_run_start(self, execution_id: str, node_count: int, **kwargs: Any) -> None:
        """Called once before the first node is scheduled."""
        ...

    async def on_node_complete(
        self, node_id: str, result: ExecutionResult, **kwargs: Any
    ) -> None:
        """Called after a node ran (successfully or not)."""
        ...

    async def on_node_skipped(self, node_id: str, **kwargs: Any) -> None:
        """Called when a node is skipped (disabled or every incoming edge blocked)."""
        ...

    async def on_run_paused(
        self, execution_id: str, conversation_id: str, resume_node_id: str, **kwargs: Any
    ) -> None:
        """Called when an Ask Question node suspends the run."""
        ...

    async def on_run_complete(self, result: WorkflowRunResult, **kwargs: Any) -> None:
        """Called when the scheduler drains its queue or fails at top level."""
        ...

    async def on_error(
        self, error: Exception, context: dict[str, Any], **kwargs: Any
    ) -> None:
        """Called when an unexpected error escapes the scheduling loop."""
        ...


class BaseCallback:
    """Concrete base with no-op implementations of all hooks.

    Subclass this instead of implementing the Protocol directly
    to avoid implementing every method.
    """

    async def on_run_start(self, execution_id: str, node_count: int, **kwargs: Any) -> None:
        pass

    async def on_node_complete(
        self, node_id: str, result: ExecutionResult, **kwargs: Any
    ) -> None:
        pass

    async def on_node_skipped(self, node_id: str, **kwargs: Any) -> None:
        pass

    async def on_run_paused(
        self, execution_id: str, conversation_id: str, resume_node_id: str, **kwargs: Any
    ) -> None:
        pass

    async def on_run_complete(self, result: WorkflowRunResult, **kwargs: Any) -> None:
        pass

    async def on_error(
        self, error: Exception, context: dict[str, Any], **kwargs: Any
    ) -> None:
        pass
