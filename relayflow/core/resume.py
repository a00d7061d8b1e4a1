"""Resume a paused run when the contact replies to an Ask Question."""

import logging
from typing import Any, Optional

from relayflow.conversations.store import ConversationStore
from relayflow.core.engine import WorkflowExecutor
from relayflow.exceptions import ConversationConsumed, ConversationNotFound
from relayflow.types import (
    ConversationStatus,
    WorkflowEdge,
    WorkflowNode,
    WorkflowRunInput,
    WorkflowRunResult,
)
from relayflow.utils.phone import normalize_phone_number

logger = logging.getLogger(__name__)


class ConversationResumer:
    """Turns an inbound answer into a scoped executor invocation.

    The answer is stored under the conversation's variable key, merged over
    the variables captured at pause time, and the run continues from the
    node after the Ask Question.  A conversation can be consumed only once.
    """

    def __init__(self, executor: WorkflowExecutor, store: ConversationStore):
        self.executor = executor
        self.store = store

    async def resume(
        self,
        conversation_id: str,
        answer: Any,
        nodes: list[WorkflowNode],
        edges: list[WorkflowEdge],
        execution_id: Optional[str] = None,
        trigger_input: Optional[dict] = None,
    ) -> WorkflowRunResult:
        """Resume the run behind conversation_id.

        Raises:
            ConversationNotFound: unknown conversation
            ConversationConsumed: reply already used
        """
        conversation = await self.store.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFound(
                f"Conversation '{conversation_id}' not found",
                conversation_id=conversation_id,
            )
        if conversation.status != ConversationStatus.WAITING:
            raise ConversationConsumed(
                f"Conversation '{conversation_id}' was already consumed",
                conversation_id=conversation_id,
            )

        conversation = await self.store.consume_conversation(conversation_id)
        logger.info(
            f"[Resume] Resuming workflow {conversation.workflow_id} at "
            f"{conversation.resume_node_id} (conversation={conversation_id})"
        )

        if execution_id:
            await self.store.start_execution(execution_id, conversation.workflow_id)

        run_input = WorkflowRunInput(
            nodes=nodes,
            edges=edges,
            trigger_input=trigger_input or {"from": conversation.phone},
            execution_id=execution_id,
            workflow_id=conversation.workflow_id,
            start_node_ids=[conversation.resume_node_id],
            initial_variables={**conversation.variables, conversation.variable_key: answer},
        )
        return await self.executor.execute(run_input)

    async def resume_by_phone(
        self,
        workflow_id: str,
        phone: str,
        answer: Any,
        nodes: list[WorkflowNode],
        edges: list[WorkflowEdge],
        execution_id: Optional[str] = None,
        trigger_input: Optional[dict] = None,
    ) -> WorkflowRunResult:
        """Resume the newest waiting conversation for an inbound phone number."""
        normalized = normalize_phone_number(phone, self.executor.phone_region)
        conversation = await self.store.find_waiting_conversation(workflow_id, normalized)
        if conversation is None:
            raise ConversationNotFound(
                f"No waiting conversation for {normalized} in workflow '{workflow_id}'",
            )
        return await self.resume(
            conversation.id, answer, nodes, edges,
            execution_id=execution_id, trigger_input=trigger_input,
        )
