"""System capabilities that run through the registry like any other step."""

import logging

from relayflow.capabilities.plugin import capability
from relayflow.types import ASK_QUESTION_ACTION, ASK_QUESTION_SLUG

logger = logging.getLogger(__name__)


@capability(name="Trigger", label="Trigger", category="system")
async def trigger(step_input: dict) -> dict:
    """Start a run; the trigger payload becomes the node's output."""
    return dict(step_input.get("triggerData") or {})


@capability(name="Condition", label="Condition", category="system")
async def condition(step_input: dict) -> dict:
    """Report an already-evaluated condition.

    The executor evaluates the expression and passes the boolean in
    ``condition``; downstream nodes run only when it is exactly True.
    """
    return {
        "condition": step_input.get("condition") is True,
        "expression": step_input.get("expression"),
        "values": step_input.get("values") or {},
    }


@capability(
    name=ASK_QUESTION_ACTION,
    label="Ask Question",
    slug=ASK_QUESTION_SLUG,
    category="system",
)
async def ask_question(step_input: dict) -> dict:
    """Build the outbound question for the contact.

    Delivery is left to the host: register a handler under the same name (or
    any name with the ``ask-question`` slug) that actually sends the message.
    """
    payload = {
        "to": step_input.get("to"),
        "message": step_input.get("message") or "",
        "variableKey": step_input.get("variableKey"),
        "resumeNodeId": step_input.get("resumeNodeId"),
    }
    logger.info(f"[AskQuestion] Prepared question for {payload['to']}")
    return payload
