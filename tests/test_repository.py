"""Repository — the SQL ConversationStore on an in-memory SQLite database."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from helpers import action, chain, trigger
from relayflow.core.engine import WorkflowExecutor
from relayflow.core.resume import ConversationResumer
from relayflow.db.models import Base
from relayflow.db.repository import Repository
from relayflow.exceptions import ConversationConsumed, ConversationNotFound
from relayflow.types import ConversationStatus, ExecutionStatus, WorkflowRunInput


# ── Fixtures ────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def session():
    """In-memory SQLite async session with schema created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as s:
        yield s
    await engine.dispose()


@pytest.fixture
def repo(session):
    return Repository(session)


async def _conversation(repo, phone="+5511987654321", **overrides):
    fields = {
        "workflow_id": "wf-1",
        "phone": phone,
        "resume_node_id": "n3",
        "variable_key": "name",
        "variables": {"plan": "gold"},
        **overrides,
    }
    return await repo.create_conversation(**fields)


# ── Conversations ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_and_get_conversation(repo):
    created = await _conversation(repo)
    assert created.status == ConversationStatus.WAITING

    fetched = await repo.get_conversation(created.id)
    assert fetched.workflow_id == "wf-1"
    assert fetched.phone == "+5511987654321"
    assert fetched.resume_node_id == "n3"
    assert fetched.variables == {"plan": "gold"}


@pytest.mark.asyncio
async def test_get_unknown_conversation(repo):
    assert await repo.get_conversation("missing") is None


@pytest.mark.asyncio
async def test_find_waiting_conversation_filters_by_workflow_and_phone(repo):
    mine = await _conversation(repo)
    await _conversation(repo, phone="+15550001")
    await _conversation(repo, workflow_id="wf-2")

    found = await repo.find_waiting_conversation("wf-1", "+5511987654321")
    assert found.id == mine.id
    assert await repo.find_waiting_conversation("wf-3", "+5511987654321") is None


@pytest.mark.asyncio
async def test_consume_once(repo):
    created = await _conversation(repo)
    consumed = await repo.consume_conversation(created.id)
    assert consumed.status == ConversationStatus.CONSUMED
    assert consumed.consumed_at is not None

    with pytest.raises(ConversationConsumed):
        await repo.consume_conversation(created.id)
    assert await repo.find_waiting_conversation("wf-1", "+5511987654321") is None


@pytest.mark.asyncio
async def test_consume_unknown(repo):
    with pytest.raises(ConversationNotFound):
        await repo.consume_conversation("missing")


# ── Execution records ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_execution_record_lifecycle(repo):
    await repo.start_execution("exec-1", "wf-1")
    record = await repo.get_execution("exec-1")
    assert record.status == ExecutionStatus.RUNNING
    assert record.workflow_id == "wf-1"
    assert record.finished_at is None

    await repo.update_execution_status("exec-1", ExecutionStatus.SUCCESS, output={"sent": True})
    record = await repo.get_execution("exec-1")
    assert record.status == ExecutionStatus.SUCCESS
    assert record.output == {"sent": True}
    assert record.workflow_id == "wf-1"
    assert record.finished_at is not None


@pytest.mark.asyncio
async def test_update_creates_missing_record(repo):
    await repo.update_execution_status("exec-2", ExecutionStatus.ERROR, error="boom")
    record = await repo.get_execution("exec-2")
    assert record.status == ExecutionStatus.ERROR
    assert record.error == "boom"


@pytest.mark.asyncio
async def test_waiting_keeps_finished_at_empty(repo):
    await repo.start_execution("exec-3")
    await repo.update_execution_status("exec-3", ExecutionStatus.WAITING, finished_at=None)
    assert (await repo.get_execution("exec-3")).finished_at is None


@pytest.mark.asyncio
async def test_get_unknown_execution(repo):
    assert await repo.get_execution("missing") is None


# ── End to end on SQL ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_pause_and_resume_through_repository(repo, registry, policy_provider, recorder):
    executor = WorkflowExecutor(registry=registry, store=repo, policy_provider=policy_provider)
    nodes = [
        trigger("t1"),
        action("ask", "Ask Question", variableKey="name"),
        action("reply", "Send Message", message="Hi {{var.name}}"),
    ]
    edges = chain("t1", "ask", "reply")

    await repo.start_execution("exec-1", "wf-1")
    paused = await executor.execute(WorkflowRunInput(
        nodes=nodes, edges=edges, trigger_input={"from": "+5511987654321"},
        execution_id="exec-1", workflow_id="wf-1",
    ))
    assert paused.paused is True
    assert (await repo.get_execution("exec-1")).status == ExecutionStatus.WAITING

    result = await ConversationResumer(executor, repo).resume(
        paused.conversation_id, "Ana", nodes, edges, execution_id="exec-2",
    )
    assert result.success is True
    assert recorder.input_for("Send Message")["message"] == "Hi Ana"
    assert (await repo.get_execution("exec-2")).status == ExecutionStatus.SUCCESS
