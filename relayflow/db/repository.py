"""Data access layer: the SQL implementation of ConversationStore.

This is the ONLY layer that talks to the database.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import desc, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from relayflow.conversations.store import UNSET
from relayflow.db.models import ConversationModel, ExecutionRecordModel
from relayflow.exceptions import ConversationConsumed, ConversationNotFound
from relayflow.types import (
    Conversation,
    ConversationStatus,
    ExecutionRecord,
    ExecutionStatus,
)

logger = logging.getLogger(__name__)


def _json_safe(value: Any) -> Any:
    """Round-trip through JSON so datetimes etc. fit a JSON column."""
    if value is None:
        return None
    return json.loads(json.dumps(value, default=str))


def _to_conversation(m: ConversationModel) -> Conversation:
    return Conversation(
        id=m.id,
        workflow_id=m.workflow_id,
        phone=m.phone,
        resume_node_id=m.resume_node_id,
        variable_key=m.variable_key,
        variables=m.variables or {},
        status=ConversationStatus(m.status),
        created_at=m.created_at,
        consumed_at=m.consumed_at,
    )


def _to_record(m: ExecutionRecordModel) -> ExecutionRecord:
    return ExecutionRecord(
        execution_id=m.id,
        workflow_id=m.workflow_id,
        status=ExecutionStatus(m.status),
        output=m.output,
        error=m.error,
        started_at=m.started_at,
        finished_at=m.finished_at,
    )


class Repository:
    """All database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ── Conversations ──
    async def create_conversation(
        self,
        workflow_id: str,
        phone: str,
        resume_node_id: str,
        variable_key: str,
        variables: dict[str, Any],
    ) -> Optional[Conversation]:
        """Persist a waiting conversation; None when the insert fails."""
        model = ConversationModel(
            workflow_id=workflow_id,
            phone=phone,
            resume_node_id=resume_node_id,
            variable_key=variable_key,
            variables=_json_safe(variables) or {},
            status=ConversationStatus.WAITING.value,
        )
        try:
            self.session.add(model)
            await self.session.commit()
            await self.session.refresh(model)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error(f"[Repository] Failed to save conversation: {exc}")
            return None
        return _to_conversation(model)

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """Get conversation by ID."""
        result = await self.session.execute(
            select(ConversationModel).where(ConversationModel.id == conversation_id)
        )
        model = result.scalar_one_or_none()
        return _to_conversation(model) if model else None

    async def find_waiting_conversation(
        self, workflow_id: str, phone: str
    ) -> Optional[Conversation]:
        """Newest waiting conversation for a workflow + phone."""
        result = await self.session.execute(
            select(ConversationModel)
            .where(
                ConversationModel.workflow_id == workflow_id,
                ConversationModel.phone == phone,
                ConversationModel.status == ConversationStatus.WAITING.value,
            )
            .order_by(desc(ConversationModel.created_at))
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return _to_conversation(model) if model else None

    async def consume_conversation(self, conversation_id: str) -> Conversation:
        """Flip waiting → consumed in one conditional UPDATE."""
        result = await self.session.execute(
            update(ConversationModel)
            .where(
                ConversationModel.id == conversation_id,
                ConversationModel.status == ConversationStatus.WAITING.value,
            )
            .values(
                status=ConversationStatus.CONSUMED.value,
                consumed_at=datetime.now(timezone.utc),
            )
        )
        await self.session.commit()

        conversation = await self.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFound(
                f"Conversation '{conversation_id}' not found",
                conversation_id=conversation_id,
            )
        if result.rowcount == 0:
            raise ConversationConsumed(
                f"Conversation '{conversation_id}' was already consumed",
                conversation_id=conversation_id,
            )
        return conversation

    # ── Execution records ──
    async def start_execution(self, execution_id: str, workflow_id: Optional[str] = None) -> None:
        """Create (or reset) a running execution record."""
        model = await self.session.get(ExecutionRecordModel, execution_id)
        if model is None:
            model = ExecutionRecordModel(id=execution_id)
            self.session.add(model)
        model.workflow_id = workflow_id
        model.status = ExecutionStatus.RUNNING.value
        model.output = None
        model.error = None
        model.finished_at = None
        await self.session.commit()

    async def update_execution_status(
        self,
        execution_id: str,
        status: ExecutionStatus,
        output: Any = None,
        error: Optional[str] = None,
        finished_at: Optional[datetime] = UNSET,
    ) -> None:
        """Upsert status/output/error; finished_at defaults to now."""
        if finished_at is UNSET:
            finished_at = datetime.now(timezone.utc)
        model = await self.session.get(ExecutionRecordModel, execution_id)
        if model is None:
            model = ExecutionRecordModel(id=execution_id)
            self.session.add(model)
        model.status = ExecutionStatus(status).value
        model.output = _json_safe(output)
        model.error = error
        model.finished_at = finished_at
        await self.session.commit()

    async def get_execution(self, execution_id: str) -> Optional[ExecutionRecord]:
        """Fetch an execution record by ID."""
        model = await self.session.get(ExecutionRecordModel, execution_id)
        return _to_record(model) if model else None
