"""Structured JSON logging callback for run lifecycle events."""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from relayflow.callbacks.base import BaseCallback
from relayflow.types import ExecutionResult, WorkflowRunResult

logger = logging.getLogger("relayflow.audit")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class LoggingCallback(BaseCallback):
    """Emits structured JSON log lines for every lifecycle event.

    Each log line is a self-contained JSON object with:
      - event: event type name
      - ts: ISO-8601 UTC timestamp
      - relevant fields depending on event

    Log level: INFO for normal events, ERROR for errors.
    Logger name: relayflow.audit (configure in your logging setup)

    WorkflowExecutor also accepts plain ``async def cb(event, data)``
    callables; ``__call__`` lets an instance be passed either way.
    """

    async def __call__(self, event: str, data: dict) -> None:
        """Dispatch executor events to the matching named method."""
        if event == "run_started":
            await self.on_run_start(data.get("execution_id", ""), data.get("node_count", 0))
        elif event == "node_completed":
            await self.on_node_complete(
                data.get("node_id", ""),
                ExecutionResult(
                    success=bool(data.get("success")),
                    error=data.get("error"),
                ),
                action_type=data.get("action_type", ""),
            )
        elif event == "node_skipped":
            await self.on_node_skipped(data.get("node_id", ""))
        elif event == "run_paused":
            await self.on_run_paused(
                data.get("execution_id", ""),
                data.get("conversation_id", ""),
                data.get("resume_node_id", ""),
            )
        elif event == "run_completed":
            logger.info(json.dumps({
                "event": "run_complete",
                "ts": _now(),
                "execution_id": data.get("execution_id", ""),
                "success": data.get("success", False),
                "node_count": data.get("node_count", 0),
                "error": data.get("error"),
            }))
        elif event == "run_failed":
            logger.error(json.dumps({
                "event": "error",
                "ts": _now(),
                "execution_id": data.get("execution_id", ""),
                "error": str(data.get("error", ""))[:500],
            }))

    async def on_run_start(self, execution_id: str, node_count: int, **kwargs: Any) -> None:
        logger.info(json.dumps({
            "event": "run_start",
            "ts": _now(),
            "execution_id": execution_id,
            "node_count": node_count,
        }))

    async def on_node_complete(
        self, node_id: str, result: ExecutionResult, **kwargs: Any
    ) -> None:
        logger.info(json.dumps({
            "event": "node_complete",
            "ts": _now(),
            "node_id": node_id,
            "action_type": kwargs.get("action_type", ""),
            "success": result.success,
            "error": result.error,
        }))

    async def on_node_skipped(self, node_id: str, **kwargs: Any) -> None:
        logger.info(json.dumps({
            "event": "node_skipped",
            "ts": _now(),
            "node_id": node_id,
        }))

    async def on_run_paused(
        self, execution_id: str, conversation_id: str, resume_node_id: str, **kwargs: Any
    ) -> None:
        logger.info(json.dumps({
            "event": "run_paused",
            "ts": _now(),
            "execution_id": execution_id,
            "conversation_id": conversation_id,
            "resume_node_id": resume_node_id,
        }))

    async def on_run_complete(self, result: WorkflowRunResult, **kwargs: Any) -> None:
        logger.info(json.dumps({
            "event": "run_complete",
            "ts": _now(),
            "execution_id": kwargs.get("execution_id", ""),
            "success": result.success,
            "node_count": len(result.results),
            "error": result.error,
        }))

    async def on_error(
        self, error: Exception, context: dict[str, Any], **kwargs: Any
    ) -> None:
        logger.error(json.dumps({
            "event": "error",
            "ts": _now(),
            "error_type": type(error).__name__,
            "error": str(error),
            "context": {k: str(v)[:200] for k, v in context.items()},
        }))
