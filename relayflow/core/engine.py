"""Workflow executor. Drives a trigger/action graph to completion.

Scheduling is a single FIFO ready queue:

  1. Seed with every node whose incoming-edge count is 0 (within the resume
     subgraph when ``start_node_ids`` is given).
  2. Pop a node, resolve templates in its config, run it, record the result.
  3. Mark each outgoing edge satisfied (node succeeded, or a Condition node
     evaluated to exactly True) or blocked.  Once every incoming edge of a
     target is accounted for, the target is enqueued if at least one edge
     was satisfied, otherwise skipped; skips propagate downstream.

Node failures never abort the run.  An Ask Question node that stores a
conversation stops the run immediately with ``paused=True``.
"""

import asyncio
import inspect
import json
import logging
import math
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from relayflow.capabilities.builtin import system as system_capabilities
from relayflow.capabilities.registry import CapabilityRegistry
from relayflow.config import (
    FALLBACK_POLICY,
    ConfigPolicyProvider,
    ExecutionPolicyProvider,
    config,
)
from relayflow.conversations.store import ConversationStore
from relayflow.core.runner import resolve_execution_number, run_with_retry
from relayflow.exceptions import NodeConfigurationError
from relayflow.types import (
    BUILTIN_ACTIONS,
    SKIPPED_ERROR,
    EdgeResolution,
    ExecutionPolicy,
    ExecutionResult,
    ExecutionStatus,
    NodeOutput,
    NodeType,
    WorkflowDefinition,
    WorkflowNode,
    WorkflowRunInput,
    WorkflowRunResult,
)
from relayflow.utils.phone import normalize_phone_number
from relayflow.workflows.conditions import ConditionGrammar, evaluate_condition_expression
from relayflow.workflows.graph import GraphIndex, build_graph_index, sanitize_node_id
from relayflow.workflows.templates import TemplateResolver

logger = logging.getLogger(__name__)

# Used when the registry has no override for these
_SYSTEM_HANDLERS = {
    "Trigger": system_capabilities.trigger,
    "Condition": system_capabilities.condition,
}


@dataclass
class RunState:
    """Everything one invocation mutates. Never shared across runs."""

    variables: dict[str, Any] = field(default_factory=dict)
    outputs: dict[str, NodeOutput] = field(default_factory=dict)
    results: dict[str, ExecutionResult] = field(default_factory=dict)
    resolved: set[str] = field(default_factory=set)
    satisfied: dict[str, int] = field(default_factory=dict)
    blocked: dict[str, int] = field(default_factory=dict)
    ready: deque = field(default_factory=deque)


@dataclass
class _Pause:
    conversation_id: str
    resume_node_id: str
    variable_key: str


class WorkflowExecutor:
    """Runs WorkflowRunInput graphs.

    Constructor dependencies (all injected, all optional):
        - registry: CapabilityRegistry (defaults to every @capability handler)
        - store: ConversationStore for Ask Question and execution records
        - policy_provider: ExecutionPolicyProvider for default retry/timeout
        - callbacks: RunCallback objects or ``async (event, data)`` callables
        - phone_region: region for numbers without a country code
    """

    def __init__(
        self,
        registry: Optional[CapabilityRegistry] = None,
        store: Optional[ConversationStore] = None,
        policy_provider: Optional[ExecutionPolicyProvider] = None,
        callbacks: list = None,
        phone_region: Optional[str] = None,
        condition_grammar: Optional[ConditionGrammar] = None,
    ):
        self.registry = registry or CapabilityRegistry.from_registered()
        self.store = store
        self.policy_provider = policy_provider or ConfigPolicyProvider()
        self.callbacks = callbacks or []
        self.phone_region = phone_region or config.default_phone_region
        self.condition_grammar = condition_grammar or ConditionGrammar()
        self.template_resolver = TemplateResolver()

    # ── Entry points ─────────────────────────────────────────────────────────

    async def run_workflow(
        self,
        definition: WorkflowDefinition,
        trigger_input: Optional[dict] = None,
        execution_id: Optional[str] = None,
        **kwargs: Any,
    ) -> WorkflowRunResult:
        """Execute a WorkflowDefinition; its id is used as the workflow id."""
        run_input = WorkflowRunInput(
            nodes=definition.nodes,
            edges=definition.edges,
            trigger_input=trigger_input or {},
            execution_id=execution_id,
            workflow_id=kwargs.pop("workflow_id", None) or definition.id,
            **kwargs,
        )
        return await self.execute(run_input)

    async def execute(self, run_input: WorkflowRunInput) -> WorkflowRunResult:
        """Run the graph once (or the resume subgraph) and return every result."""
        started = time.monotonic()
        execution_id = run_input.execution_id
        state = RunState(variables=dict(run_input.initial_variables))

        logger.info(
            f"[Executor] Starting execution: nodes={len(run_input.nodes)} "
            f"edges={len(run_input.edges)} execution_id={execution_id} "
            f"resume_from={run_input.start_node_ids or '-'}"
        )
        await self._fire_callbacks(
            "run_started",
            {"execution_id": execution_id or "", "node_count": len(run_input.nodes)},
            hook=("on_run_start", (execution_id or "", len(run_input.nodes)), {}),
        )

        try:
            policy = await self._load_policy()
            index = build_graph_index(run_input.nodes, run_input.edges, run_input.start_node_ids)
            state.ready.extend(index.initial_ready())

            while state.ready:
                node_id = state.ready.popleft()
                if node_id in state.resolved:
                    continue
                node = index.node_map.get(node_id)
                if node is None:
                    logger.warning(f"[Executor] Edge points at unknown node '{node_id}'")
                    state.resolved.add(node_id)
                    continue
                if not node.enabled:
                    await self._skip_node(node_id, index, state)
                    continue

                result, pause = await self._run_node(node, index, state, run_input, policy)
                self._record(node, result, state)
                await self._fire_callbacks(
                    "node_completed",
                    {
                        "node_id": node_id,
                        "action_type": node.action_type or node.type,
                        "success": result.success,
                        "error": result.error,
                    },
                    hook=("on_node_complete", (node_id, result), {"action_type": node.action_type or node.type}),
                )

                if pause is not None:
                    return await self._pause(pause, state, run_input)

                allow_outgoing = result.success
                if node.type == NodeType.ACTION.value and node.action_type == "Condition":
                    data = result.data if isinstance(result.data, dict) else {}
                    allow_outgoing = data.get("condition") is True
                resolution = EdgeResolution.SATISFIED if allow_outgoing else EdgeResolution.BLOCKED
                for target in index.children(node_id):
                    await self._mark_edge(target, resolution, index, state)

            unresolved = [nid for nid in index.incoming_count if nid not in state.resolved]
            if unresolved:
                logger.warning(
                    f"[Executor] {len(unresolved)} node(s) never became ready "
                    f"(cycle or missing dependency): {unresolved}"
                )

            success = all(r.success for r in state.results.values())
            logger.info(
                f"[Executor] Execution completed: success={success} "
                f"results={len(state.results)} duration={int((time.monotonic() - started) * 1000)}ms"
            )
            run_result = WorkflowRunResult(
                success=success, results=state.results, outputs=state.outputs,
            )
            await self._complete_record(execution_id, state)
            await self._fire_callbacks(
                "run_completed",
                {
                    "execution_id": execution_id or "",
                    "success": success,
                    "node_count": len(state.results),
                    "error": None,
                },
                hook=("on_run_complete", (run_result,), {"execution_id": execution_id or ""}),
            )
            return run_result

        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.exception(f"[Executor] Fatal error during workflow execution: {message}")
            await self._update_record(execution_id, ExecutionStatus.ERROR, error=message)
            await self._fire_callbacks(
                "run_failed",
                {"execution_id": execution_id or "", "error": message},
                hook=("on_error", (exc, {"execution_id": execution_id or ""}), {}),
            )
            return WorkflowRunResult(
                success=False, results=state.results, outputs=state.outputs, error=message,
            )

    # ── Scheduling ───────────────────────────────────────────────────────────

    async def _mark_edge(
        self, target: str, resolution: EdgeResolution, index: GraphIndex, state: RunState
    ) -> None:
        """Count one resolved incoming edge of target; enqueue or skip when all are in."""
        if target in state.resolved:
            return
        counter = state.satisfied if resolution == EdgeResolution.SATISFIED else state.blocked
        counter[target] = counter.get(target, 0) + 1

        total = index.incoming_count.get(target, 0)
        if total == 0:
            # start nodes are already queued
            return
        satisfied = state.satisfied.get(target, 0)
        if satisfied + state.blocked.get(target, 0) < total:
            return
        if satisfied > 0:
            state.ready.append(target)
        else:
            await self._skip_node(target, index, state)

    async def _skip_node(self, node_id: str, index: GraphIndex, state: RunState) -> None:
        """Resolve as skipped and block everything downstream of it."""
        if node_id in state.resolved:
            return
        state.resolved.add(node_id)
        state.results[node_id] = ExecutionResult(success=False, error=SKIPPED_ERROR)
        node = index.node_map.get(node_id)
        state.outputs[sanitize_node_id(node_id)] = NodeOutput(
            label=(node.label if node else "") or node_id, data=None,
        )
        logger.debug(f"[Executor] Skipped node '{node_id}'")
        await self._fire_callbacks(
            "node_skipped", {"node_id": node_id}, hook=("on_node_skipped", (node_id,), {}),
        )
        for target in index.children(node_id):
            await self._mark_edge(target, EdgeResolution.BLOCKED, index, state)

    def _record(self, node: WorkflowNode, result: ExecutionResult, state: RunState) -> None:
        state.results[node.id] = result
        state.resolved.add(node.id)
        state.outputs[sanitize_node_id(node.id)] = NodeOutput(
            label=node.label or node.id, data=result.data,
        )

    # ── Node dispatch ────────────────────────────────────────────────────────

    async def _run_node(
        self,
        node: WorkflowNode,
        index: GraphIndex,
        state: RunState,
        run_input: WorkflowRunInput,
        policy: ExecutionPolicy,
    ) -> tuple[ExecutionResult, Optional[_Pause]]:
        """Run one node; any exception becomes a failed result."""
        try:
            if node.type == NodeType.TRIGGER.value:
                return await self._run_trigger(node, run_input), None
            if node.type == NodeType.ACTION.value:
                return await self._run_action(node, index, state, run_input, policy)
            raise NodeConfigurationError(
                f'Unknown node type "{node.type}" in node "{node.label or node.id}".',
                node_id=node.id,
            )
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.warning(f"[Executor] Node '{node.id}' failed: {message}")
            return ExecutionResult(success=False, error=message), None

    async def _run_trigger(self, node: WorkflowNode, run_input: WorkflowRunInput) -> ExecutionResult:
        cfg = node.config.to_step_input()
        trigger_data: dict[str, Any] = {"triggered": True, "timestamp": int(time.time() * 1000)}
        mock = cfg.get("webhookMockRequest")

        if cfg.get("triggerType") == "Webhook" and mock and not run_input.trigger_input:
            try:
                parsed = json.loads(mock)
                if isinstance(parsed, dict):
                    trigger_data.update(parsed)
                else:
                    logger.error("[Executor] Webhook mock request must be a JSON object")
            except (json.JSONDecodeError, TypeError) as exc:
                logger.error(f"[Executor] Failed to parse webhook mock request: {exc}")
        elif run_input.trigger_input:
            trigger_data.update(run_input.trigger_input)

        handler = self._handler("Trigger")
        step_input = {
            "triggerData": trigger_data,
            "_context": self._step_context(node, run_input, node.type),
        }
        return ExecutionResult(success=True, data=await handler(step_input))

    async def _run_action(
        self,
        node: WorkflowNode,
        index: GraphIndex,
        state: RunState,
        run_input: WorkflowRunInput,
        policy: ExecutionPolicy,
    ) -> tuple[ExecutionResult, Optional[_Pause]]:
        action_type = node.action_type
        if not action_type:
            raise NodeConfigurationError(
                f'Action node "{node.label or node.id}" has no action type configured',
                node_id=node.id,
            )

        config_dict = self.template_resolver.resolve_config(
            node.config.to_step_input(), state.outputs, state.variables,
        )

        is_ask_question = self.registry.is_ask_question(action_type)
        resume_node_id = None
        if is_ask_question:
            targets = index.children(node.id)
            if not targets:
                logger.warning(f"[AskQuestion] No next node to resume: node={node.id}")
                return ExecutionResult(
                    success=False, error="Ask Question requires a following node to resume.",
                ), None
            if len(targets) > 1:
                logger.warning(f"[AskQuestion] Multiple next nodes: node={node.id} targets={targets}")
                return ExecutionResult(
                    success=False, error="Ask Question supports only one outgoing path.",
                ), None
            resume_node_id = targets[0]
            config_dict["resumeNodeId"] = resume_node_id
            config_dict.setdefault("to", self._inbound_phone(run_input))

        result = await self._run_step(action_type, config_dict, node, state, run_input, policy)

        if is_ask_question and result.success:
            return await self._suspend(node, result, config_dict, resume_node_id, state, run_input)
        return result, None

    async def _run_step(
        self,
        action_type: str,
        config_dict: dict[str, Any],
        node: WorkflowNode,
        state: RunState,
        run_input: WorkflowRunInput,
        policy: ExecutionPolicy,
    ) -> ExecutionResult:
        """Built-in steps inline, everything else through the registry with retry."""
        step_input = {
            **config_dict,
            "triggerData": run_input.trigger_input,
            "_context": self._step_context(node, run_input, action_type),
        }

        if action_type == "Delay":
            return await self._delay(step_input)
        if action_type == "Set Variable":
            key = str(step_input.get("variableKey") or "")
            if not key:
                return ExecutionResult(success=False, error="Variable key is required")
            value = step_input.get("variableValue")
            state.variables[key] = value
            return ExecutionResult(success=True, data={"key": key, "value": value})
        if action_type == "Get Variable":
            key = str(step_input.get("variableKey") or "")
            if not key:
                return ExecutionResult(success=False, error="Variable key is required")
            return ExecutionResult(success=True, data={"key": key, "value": state.variables.get(key)})

        if action_type == "Condition":
            expression = step_input.get("condition")
            evaluation = evaluate_condition_expression(
                expression, state.outputs, self.condition_grammar,
            )
            logger.info(f"[Condition] Final result: {evaluation.result}")
            step_input = {
                "condition": evaluation.result,
                "expression": expression if isinstance(expression, str) else None,
                "values": evaluation.resolved_values or None,
                "_context": step_input["_context"],
            }

        handler = self._handler(action_type)
        if handler is None:
            return ExecutionResult(
                success=False,
                error=(
                    f'Unknown action type: "{action_type}". This action is not registered '
                    f"in the plugin system. Available system actions: {', '.join(BUILTIN_ACTIONS)}."
                ),
            )

        cfg = node.config
        step_return = await run_with_retry(
            lambda: handler(step_input),
            retries=resolve_execution_number(cfg.retry_count, policy.retry_count),
            base_delay_ms=resolve_execution_number(cfg.retry_delay_ms, policy.retry_delay_ms),
            timeout_ms=resolve_execution_number(cfg.timeout_ms, policy.timeout_ms),
        )
        return self._to_result(step_return, action_type, node)

    async def _delay(self, step_input: dict[str, Any]) -> ExecutionResult:
        raw = step_input.get("delayMs")
        try:
            delay_ms = float(raw or 0)
        except (TypeError, ValueError):
            delay_ms = 0.0
        if not math.isfinite(delay_ms):
            delay_ms = 0.0
        delay_ms = max(0.0, delay_ms)
        await asyncio.sleep(delay_ms / 1000)
        safe = int(delay_ms) if delay_ms.is_integer() else delay_ms
        return ExecutionResult(success=True, data={"delayMs": safe})

    def _handler(self, action_type: str) -> Optional[Callable]:
        if self.registry.has(action_type):
            return self.registry.get(action_type)[1]
        return _SYSTEM_HANDLERS.get(action_type)

    def _to_result(self, step_return: Any, action_type: str, node: WorkflowNode) -> ExecutionResult:
        """Normalize a handler's return value into an ExecutionResult."""
        if isinstance(step_return, dict) and step_return.get("success") is False:
            error = step_return.get("error")
            if isinstance(error, dict):
                error = error.get("message")
            if not isinstance(error, str) or not error:
                error = (
                    f'Step "{action_type}" in node "{node.label or node.id}" '
                    "failed without a specific error message."
                )
            return ExecutionResult(success=False, error=error)
        return ExecutionResult(success=True, data=step_return)

    # ── Ask Question ─────────────────────────────────────────────────────────

    def _inbound_phone(self, run_input: WorkflowRunInput) -> str:
        trigger = run_input.trigger_input or {}
        raw = trigger.get("from") or trigger.get("to") or ""
        return normalize_phone_number(str(raw), self.phone_region)

    async def _suspend(
        self,
        node: WorkflowNode,
        step_result: ExecutionResult,
        config_dict: dict[str, Any],
        resume_node_id: str,
        state: RunState,
        run_input: WorkflowRunInput,
    ) -> tuple[ExecutionResult, Optional[_Pause]]:
        """Persist the conversation after a successful Ask Question step."""
        variable_key = str(config_dict.get("variableKey") or "").strip()
        if not variable_key:
            logger.warning(f"[AskQuestion] Missing variable key: node={node.id}")
            return ExecutionResult(success=False, error="Ask Question requires a variable key."), None
        if not run_input.workflow_id or not run_input.execution_id:
            logger.warning(f"[AskQuestion] Missing workflow context: node={node.id}")
            return ExecutionResult(success=False, error="Workflow context missing for Ask Question."), None
        if self.store is None:
            logger.warning(f"[AskQuestion] Conversation store not configured: node={node.id}")
            return ExecutionResult(success=False, error="Conversation store not configured."), None

        phone = self._inbound_phone(run_input)
        if not phone:
            logger.warning(f"[AskQuestion] Missing inbound phone: node={node.id}")
            return ExecutionResult(
                success=False, error="Missing inbound phone number for Ask Question.",
            ), None

        conversation = await self.store.create_conversation(
            workflow_id=run_input.workflow_id,
            phone=phone,
            resume_node_id=resume_node_id,
            variable_key=variable_key,
            variables=state.variables,
        )
        if conversation is None:
            logger.warning(f"[AskQuestion] Failed to save conversation: node={node.id} phone={phone}")
            return ExecutionResult(success=False, error="Failed to save conversation."), None

        logger.info(
            f"[AskQuestion] Waiting for reply: conversation={conversation.id} "
            f"resume_node={resume_node_id}"
        )
        result = ExecutionResult(
            success=True,
            data={
                "send": step_result.data,
                "conversationId": conversation.id,
                "resumeNodeId": resume_node_id,
                "variableKey": variable_key,
            },
        )
        return result, _Pause(conversation.id, resume_node_id, variable_key)

    async def _pause(
        self, pause: _Pause, state: RunState, run_input: WorkflowRunInput
    ) -> WorkflowRunResult:
        await self._update_record(
            run_input.execution_id,
            ExecutionStatus.WAITING,
            output={
                "status": ExecutionStatus.WAITING.value,
                "conversationId": pause.conversation_id,
                "resumeNodeId": pause.resume_node_id,
                "variableKey": pause.variable_key,
            },
            finished_at=None,
        )
        await self._fire_callbacks(
            "run_paused",
            {
                "execution_id": run_input.execution_id or "",
                "conversation_id": pause.conversation_id,
                "resume_node_id": pause.resume_node_id,
            },
            hook=(
                "on_run_paused",
                (run_input.execution_id or "", pause.conversation_id, pause.resume_node_id),
                {},
            ),
        )
        return WorkflowRunResult(
            success=True,
            results=state.results,
            outputs=state.outputs,
            paused=True,
            conversation_id=pause.conversation_id,
            resume_node_id=pause.resume_node_id,
        )

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _step_context(self, node: WorkflowNode, run_input: WorkflowRunInput, node_type: str) -> dict:
        return {
            "executionId": run_input.execution_id,
            "workflowId": run_input.workflow_id,
            "nodeId": node.id,
            "nodeName": self.node_name(node),
            "nodeType": node_type,
        }

    def node_name(self, node: WorkflowNode) -> str:
        """Display name: label, else capability label / type, else a generic name."""
        if node.label:
            return node.label
        if node.type == NodeType.ACTION.value:
            action_type = node.action_type
            if action_type:
                return self.registry.get_label(action_type) or action_type
            return "Action"
        if node.type == NodeType.TRIGGER.value:
            return node.config.to_step_input().get("triggerType") or "Trigger"
        return node.id

    async def _load_policy(self) -> ExecutionPolicy:
        try:
            return await self.policy_provider.get_policy()
        except Exception as exc:
            logger.warning(f"[Executor] Failed to load execution defaults, using fallback: {exc}")
            return FALLBACK_POLICY

    async def _complete_record(self, execution_id: Optional[str], state: RunState) -> None:
        if not execution_id:
            return
        results = list(state.results.values())
        success = all(r.success for r in results)
        first_error = next((r.error for r in results if not r.success), None)
        await self._update_record(
            execution_id,
            ExecutionStatus.SUCCESS if success else ExecutionStatus.ERROR,
            output=results[-1].data if results else None,
            error=first_error,
        )

    async def _update_record(
        self, execution_id: Optional[str], status: ExecutionStatus, **kwargs: Any
    ) -> None:
        """Best-effort execution record update; failures are only logged."""
        if not execution_id or self.store is None:
            return
        try:
            await self.store.update_execution_status(execution_id, status, **kwargs)
        except Exception as exc:
            logger.error(f"[Executor] Failed to update execution record {execution_id}: {exc}")

    async def _fire_callbacks(
        self, event: str, data: dict, hook: Optional[tuple[str, tuple, dict]] = None
    ) -> None:
        """Invoke all registered callbacks for a lifecycle event.

        Objects exposing the named hook get it called; plain callables get
        ``(event, data)``.
        """
        for cb in self.callbacks:
            try:
                method = getattr(cb, hook[0], None) if hook else None
                if method is not None:
                    await method(*hook[1], **hook[2])
                elif callable(cb):
                    outcome = cb(event, data)
                    if inspect.isawaitable(outcome):
                        await outcome
            except Exception as cb_exc:
                logger.warning(f"[Executor] Callback error on '{event}': {cb_exc}")
