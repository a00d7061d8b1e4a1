"""ORM models. These map 1:1 to the Pydantic types in relayflow.types.

Tables: conversations, workflow_executions
"""

from sqlalchemy import Column, String, DateTime, JSON, Text, Index
from sqlalchemy.orm import DeclarativeBase
from datetime import datetime, timezone
import uuid


class Base(DeclarativeBase):
    pass


class ConversationModel(Base):
    __tablename__ = "conversations"
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    workflow_id = Column(String, nullable=False, index=True)
    phone = Column(String, nullable=False)
    resume_node_id = Column(String, nullable=False)
    variable_key = Column(String, nullable=False)
    variables = Column(JSON, default=dict)
    status = Column(String, default="waiting")      # ConversationStatus value
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    consumed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_conversation_workflow_phone_status", "workflow_id", "phone", "status"),
    )


class ExecutionRecordModel(Base):
    __tablename__ = "workflow_executions"
    id = Column(String, primary_key=True)
    workflow_id = Column(String, nullable=True, index=True)
    status = Column(String, default="running")      # ExecutionStatus value
    output = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)
    started_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    finished_at = Column(DateTime, nullable=True)
