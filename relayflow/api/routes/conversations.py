"""Reply routes: resume runs paused on an Ask Question node."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request

from relayflow.api.deps import build_executor, get_store
from relayflow.api.schemas import ConversationReplyRequest, InboundReplyRequest
from relayflow.core.resume import ConversationResumer
from relayflow.exceptions import ConversationConsumed, ConversationNotFound

logger = logging.getLogger(__name__)
router = APIRouter(tags=["conversations"])


def _payload(execution_id: str, result) -> dict:
    return {"executionId": execution_id, **result.to_payload()}


@router.post("/conversations/{conversation_id}/reply")
async def reply_to_conversation(
    conversation_id: str,
    body: ConversationReplyRequest,
    request: Request,
    store=Depends(get_store),
):
    """Store the answer and continue the run after the Ask Question node."""
    resumer = ConversationResumer(build_executor(request, store), store)
    execution_id = body.execution_id or str(uuid.uuid4())
    try:
        result = await resumer.resume(
            conversation_id,
            body.answer,
            body.nodes,
            body.edges,
            execution_id=execution_id,
            trigger_input=body.trigger_input,
        )
    except ConversationNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ConversationConsumed as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return _payload(execution_id, result)


@router.post("/workflows/{workflow_id}/replies")
async def inbound_reply(
    workflow_id: str,
    body: InboundReplyRequest,
    request: Request,
    store=Depends(get_store),
):
    """Match an inbound message to the sender's waiting conversation and resume it."""
    resumer = ConversationResumer(build_executor(request, store), store)
    execution_id = body.execution_id or str(uuid.uuid4())
    try:
        result = await resumer.resume_by_phone(
            workflow_id,
            body.phone,
            body.answer,
            body.nodes,
            body.edges,
            execution_id=execution_id,
            trigger_input=body.trigger_input,
        )
    except ConversationNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ConversationConsumed as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return _payload(execution_id, result)
