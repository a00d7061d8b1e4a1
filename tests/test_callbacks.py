"""LoggingCallback: one JSON line per lifecycle event on relayflow.audit."""

import json
import logging

import pytest

from helpers import action, chain, trigger
from relayflow.callbacks import BaseCallback, LoggingCallback, RunCallback
from relayflow.core.engine import WorkflowExecutor
from relayflow.types import ExecutionResult, WorkflowRunInput, WorkflowRunResult


def _events(caplog) -> list[dict]:
    return [json.loads(r.getMessage()) for r in caplog.records if r.name == "relayflow.audit"]


def test_base_callback_satisfies_protocol():
    assert isinstance(BaseCallback(), RunCallback)
    assert isinstance(LoggingCallback(), RunCallback)


@pytest.mark.asyncio
async def test_logs_json_lines(caplog):
    cb = LoggingCallback()
    with caplog.at_level(logging.INFO, logger="relayflow.audit"):
        await cb.on_run_start("e1", 3)
        await cb.on_node_complete("n1", ExecutionResult(success=False, error="nope"), action_type="Delay")
        await cb.on_run_complete(WorkflowRunResult(success=True), execution_id="e1")

    events = _events(caplog)
    assert [e["event"] for e in events] == ["run_start", "node_complete", "run_complete"]
    assert events[1]["error"] == "nope"
    assert events[1]["action_type"] == "Delay"
    assert events[2]["execution_id"] == "e1"
    assert all(e["ts"].endswith("Z") for e in events)


@pytest.mark.asyncio
async def test_on_error_logged_at_error_level(caplog):
    with caplog.at_level(logging.INFO, logger="relayflow.audit"):
        await LoggingCallback().on_error(ValueError("bad"), {"execution_id": "e1"})
    record = caplog.records[-1]
    assert record.levelno == logging.ERROR
    assert json.loads(record.getMessage())["error_type"] == "ValueError"


@pytest.mark.asyncio
async def test_callable_form_dispatches_events(caplog):
    cb = LoggingCallback()
    with caplog.at_level(logging.INFO, logger="relayflow.audit"):
        await cb("node_skipped", {"node_id": "n2"})
        await cb("run_paused", {"execution_id": "e1", "conversation_id": "c1", "resume_node_id": "n3"})
        await cb("run_failed", {"execution_id": "e1", "error": "boom"})

    assert [e["event"] for e in _events(caplog)] == ["node_skipped", "run_paused", "error"]


@pytest.mark.asyncio
async def test_executor_emits_audit_trail(registry, store, policy_provider, caplog):
    executor = WorkflowExecutor(
        registry=registry, store=store, policy_provider=policy_provider, callbacks=[LoggingCallback()],
    )
    nodes = [trigger("t1"), action("f", "Always Fails"), action("m", "Send Message")]
    with caplog.at_level(logging.INFO, logger="relayflow.audit"):
        await executor.execute(WorkflowRunInput(nodes=nodes, edges=chain("t1", "f", "m"), execution_id="e9"))

    events = _events(caplog)
    assert [e["event"] for e in events] == [
        "run_start", "node_complete", "node_complete", "node_skipped", "run_complete",
    ]
    assert events[-1]["success"] is False
    assert events[-1]["execution_id"] == "e9"
