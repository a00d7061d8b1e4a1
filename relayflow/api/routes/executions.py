"""Workflow execution routes."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request

from relayflow.api.deps import build_executor, get_store
from relayflow.api.schemas import ExecuteWorkflowRequest, ExecutionRecordResponse
from relayflow.config import config
from relayflow.exceptions import WorkflowValidationError
from relayflow.types import WorkflowDefinition, WorkflowRunInput
from relayflow.workflows.validator import WorkflowValidator

logger = logging.getLogger(__name__)
router = APIRouter(tags=["executions"])


@router.post("/executions")
async def execute_workflow(
    body: ExecuteWorkflowRequest,
    request: Request,
    store=Depends(get_store),
):
    """Run a workflow graph and return per-node results.

    A run that stops on an Ask Question node returns ``paused: true`` with
    the conversation id to reply to.
    """
    executor = build_executor(request, store)
    definition = WorkflowDefinition(
        id=body.workflow_id or str(uuid.uuid4()), nodes=body.nodes, edges=body.edges,
    )

    if config.validate_before_run:
        try:
            WorkflowValidator().validate_or_raise(
                definition, registry=executor.registry, max_nodes=config.max_workflow_nodes,
            )
        except WorkflowValidationError as exc:
            raise HTTPException(
                status_code=422,
                detail={"message": str(exc), "violations": exc.violations},
            )

    execution_id = body.execution_id or str(uuid.uuid4())
    await store.start_execution(execution_id, definition.id)

    result = await executor.execute(WorkflowRunInput(
        nodes=definition.nodes,
        edges=definition.edges,
        trigger_input=body.trigger_input,
        execution_id=execution_id,
        workflow_id=definition.id,
    ))
    logger.info(f"[api] Execution {execution_id} finished: success={result.success} paused={result.paused}")
    return {"executionId": execution_id, "workflowId": definition.id, **result.to_payload()}


@router.get("/executions/{execution_id}", response_model=ExecutionRecordResponse, response_model_by_alias=True)
async def get_execution(execution_id: str, store=Depends(get_store)):
    """Read the execution record (running / waiting / success / error)."""
    record = await store.get_execution(execution_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Execution not found")
    return ExecutionRecordResponse(
        execution_id=record.execution_id,
        workflow_id=record.workflow_id,
        status=record.status.value,
        output=record.output,
        error=record.error,
        started_at=record.started_at.isoformat(),
        finished_at=record.finished_at.isoformat() if record.finished_at else None,
    )
