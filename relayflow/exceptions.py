"""Typed exception hierarchy. Every error relayflow can raise."""


class RelayError(Exception):
    """Base exception for all relayflow errors."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


# ── Workflow definition ──────────────────────────────────────────────────────


class WorkflowError(RelayError):
    """Base exception for all workflow-related errors."""
    pass


class WorkflowValidationError(WorkflowError):
    """Workflow definition is structurally invalid (dangling edges, bad topology, etc.)."""
    def __init__(self, message: str, violations: list = None, **kwargs):
        super().__init__(message, **kwargs)
        self.violations = violations or []


class WorkflowCycleError(WorkflowValidationError):
    """Workflow graph contains a cycle; the scheduler would stall on it."""
    def __init__(self, message: str, cycle_nodes: list = None, **kwargs):
        super().__init__(message, **kwargs)
        self.cycle_nodes = cycle_nodes or []


class NodeConfigurationError(WorkflowError):
    """A node cannot run as configured (missing action type, bad pause topology)."""
    def __init__(self, message: str, node_id: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.node_id = node_id


# ── Conditions ───────────────────────────────────────────────────────────────


class ConditionValidationError(RelayError):
    """Condition expression uses syntax outside the permitted grammar."""
    def __init__(self, message: str, expression: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.expression = expression


# ── Step execution ───────────────────────────────────────────────────────────


class StepError(RelayError):
    """A step handler failed."""
    def __init__(self, message: str, node_id: str = "", action_type: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.node_id = node_id
        self.action_type = action_type


class StepTimeoutError(StepError):
    """A step exceeded its allotted time."""
    def __init__(self, message: str = "Step timeout", timeout_ms: float = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.timeout_ms = timeout_ms


class CapabilityNotFound(RelayError):
    """No handler is registered for the requested action type."""
    def __init__(self, message: str, action_type: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.action_type = action_type


# ── Conversations (pause/resume) ─────────────────────────────────────────────


class ConversationError(RelayError):
    """Base exception for conversation store and resume errors."""
    def __init__(self, message: str, conversation_id: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.conversation_id = conversation_id


class ConversationNotFound(ConversationError):
    """Conversation does not exist."""
    pass


class ConversationConsumed(ConversationError):
    """Conversation was already used to resume a run."""
    pass
