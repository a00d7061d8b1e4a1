"""Test fixtures: registry with recording fake handlers, in-memory store, executor.

All tests should use these fixtures for consistency.  Graph builders live in
helpers.py.
"""

import pytest

from relayflow.capabilities.registry import CapabilityRegistry
from relayflow.config import StaticPolicyProvider
from relayflow.conversations.store import InMemoryConversationStore
from relayflow.core.engine import WorkflowExecutor
from relayflow.types import CapabilityDefinition, ExecutionPolicy


class Recorder:
    """Collects every step input a fake handler receives, in call order."""

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def input_for(self, name: str) -> dict:
        return next(step_input for called, step_input in self.calls if called == name)


def _register(registry, recorder, name, result=None, exc=None, slug=None):
    async def handler(step_input: dict):
        recorder.calls.append((name, step_input))
        if exc is not None:
            raise exc
        return result if result is not None else {"ok": True, "name": name}

    registry.register(
        CapabilityDefinition(name=name, label=name, slug=slug or name.lower().replace(" ", "-")),
        handler,
    )


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def registry(recorder):
    """Built-in capabilities plus a few recording fakes."""
    reg = CapabilityRegistry.from_registered()
    _register(reg, recorder, "Send Message", result={"sent": True, "messageId": "m-1"})
    _register(reg, recorder, "Fetch Order", result={"id": 42, "count": 10, "status": "active"})
    _register(reg, recorder, "Always Fails", result={"success": False, "error": "provider rejected message"})
    _register(reg, recorder, "Explodes", exc=RuntimeError("boom"))
    _register(reg, recorder, "Ask Question", result={"queued": True}, slug="ask-question")
    return reg


@pytest.fixture
def store():
    return InMemoryConversationStore()


@pytest.fixture
def policy_provider():
    """No retries, no backoff, no timeout: keeps tests fast and deterministic."""
    return StaticPolicyProvider(ExecutionPolicy(retry_count=0, retry_delay_ms=0, timeout_ms=0))


@pytest.fixture
def executor(registry, store, policy_provider):
    return WorkflowExecutor(
        registry=registry, store=store, policy_provider=policy_provider, phone_region="BR",
    )
