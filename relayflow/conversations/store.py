"""Pause/resume store: conversations awaiting a reply + execution records.

The executor only needs the ``ConversationStore`` protocol.  Two
implementations ship: ``InMemoryConversationStore`` (tests, CLI dry runs)
and ``relayflow.db.repository.Repository`` (SQL).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Protocol, runtime_checkable

from relayflow.exceptions import ConversationConsumed, ConversationNotFound
from relayflow.types import (
    Conversation,
    ConversationStatus,
    ExecutionRecord,
    ExecutionStatus,
)

logger = logging.getLogger(__name__)

UNSET: Any = object()


@runtime_checkable
class ConversationStore(Protocol):
    """Persistence the executor and resume driver rely on."""

    async def create_conversation(
        self,
        workflow_id: str,
        phone: str,
        resume_node_id: str,
        variable_key: str,
        variables: dict[str, Any],
    ) -> Optional[Conversation]:
        """Persist a waiting conversation. None means it could not be saved."""
        ...

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        ...

    async def find_waiting_conversation(
        self, workflow_id: str, phone: str
    ) -> Optional[Conversation]:
        """Most recent waiting conversation for this workflow + phone."""
        ...

    async def consume_conversation(self, conversation_id: str) -> Conversation:
        """Mark a waiting conversation consumed.

        Raises:
            ConversationNotFound: unknown id
            ConversationConsumed: already consumed
        """
        ...

    async def start_execution(self, execution_id: str, workflow_id: Optional[str] = None) -> None:
        """Create a ``running`` execution record."""
        ...

    async def update_execution_status(
        self,
        execution_id: str,
        status: ExecutionStatus,
        output: Any = None,
        error: Optional[str] = None,
        finished_at: Optional[datetime] = UNSET,
    ) -> None:
        """Upsert the execution record. finished_at defaults to now."""
        ...

    async def get_execution(self, execution_id: str) -> Optional[ExecutionRecord]:
        ...


class InMemoryConversationStore:
    """Dict-backed store. Not shared across processes."""

    def __init__(self):
        self.conversations: dict[str, Conversation] = {}
        self.executions: dict[str, ExecutionRecord] = {}

    async def create_conversation(
        self,
        workflow_id: str,
        phone: str,
        resume_node_id: str,
        variable_key: str,
        variables: dict[str, Any],
    ) -> Optional[Conversation]:
        conversation = Conversation(
            workflow_id=workflow_id,
            phone=phone,
            resume_node_id=resume_node_id,
            variable_key=variable_key,
            variables=dict(variables),
        )
        self.conversations[conversation.id] = conversation
        return conversation

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return self.conversations.get(conversation_id)

    async def find_waiting_conversation(
        self, workflow_id: str, phone: str
    ) -> Optional[Conversation]:
        waiting = [
            c for c in self.conversations.values()
            if c.workflow_id == workflow_id
            and c.phone == phone
            and c.status == ConversationStatus.WAITING
        ]
        if not waiting:
            return None
        return max(waiting, key=lambda c: c.created_at)

    async def consume_conversation(self, conversation_id: str) -> Conversation:
        conversation = self.conversations.get(conversation_id)
        if conversation is None:
            raise ConversationNotFound(
                f"Conversation '{conversation_id}' not found",
                conversation_id=conversation_id,
            )
        if conversation.status == ConversationStatus.CONSUMED:
            raise ConversationConsumed(
                f"Conversation '{conversation_id}' was already consumed",
                conversation_id=conversation_id,
            )
        conversation = conversation.model_copy(update={
            "status": ConversationStatus.CONSUMED,
            "consumed_at": datetime.now(timezone.utc),
        })
        self.conversations[conversation_id] = conversation
        return conversation

    async def update_execution_status(
        self,
        execution_id: str,
        status: ExecutionStatus,
        output: Any = None,
        error: Optional[str] = None,
        finished_at: Optional[datetime] = UNSET,
    ) -> None:
        if finished_at is UNSET:
            finished_at = datetime.now(timezone.utc)
        existing = self.executions.get(execution_id)
        record = ExecutionRecord(
            execution_id=execution_id,
            workflow_id=existing.workflow_id if existing else None,
            status=status,
            output=output,
            error=error,
            started_at=existing.started_at if existing else datetime.now(timezone.utc),
            finished_at=finished_at,
        )
        self.executions[execution_id] = record

    async def start_execution(self, execution_id: str, workflow_id: Optional[str] = None) -> None:
        self.executions[execution_id] = ExecutionRecord(
            execution_id=execution_id, workflow_id=workflow_id,
        )

    async def get_execution(self, execution_id: str) -> Optional[ExecutionRecord]:
        return self.executions.get(execution_id)
