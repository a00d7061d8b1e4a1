"""Central registry of executable action types."""

import logging
from typing import Optional

from relayflow.capabilities.plugin import Handler, get_registered_capabilities
from relayflow.exceptions import CapabilityNotFound
from relayflow.types import ASK_QUESTION_ACTION, ASK_QUESTION_SLUG, CapabilityDefinition

logger = logging.getLogger(__name__)


class CapabilityRegistry:
    """Maps an action type to its definition and async handler."""

    def __init__(self):
        self._capabilities: dict[str, CapabilityDefinition] = {}
        self._handlers: dict[str, Handler] = {}

    @classmethod
    def from_registered(cls, include_builtins: bool = True) -> "CapabilityRegistry":
        """Build a registry from every @capability handler imported so far.

        Args:
            include_builtins: Import relayflow.capabilities.builtin first so the
                system capabilities are part of the table.
        """
        if include_builtins:
            import relayflow.capabilities.builtin  # noqa: F401

        registry = cls()
        for definition, handler in get_registered_capabilities().values():
            if not include_builtins and definition.category == "system":
                continue
            registry.register(definition, handler)
        logger.debug(f"[Registry] Loaded {len(registry._capabilities)} capabilities")
        return registry

    def register(self, definition: CapabilityDefinition, handler: Handler) -> None:
        """Register (or replace) the handler for definition.name."""
        self._capabilities[definition.name] = definition
        self._handlers[definition.name] = handler

    def get(self, action_type: str) -> tuple[CapabilityDefinition, Handler]:
        """Get definition and handler.

        Raises:
            CapabilityNotFound: if nothing is registered under action_type
        """
        if action_type not in self._capabilities:
            raise CapabilityNotFound(
                f"Capability '{action_type}' not found in registry",
                action_type=action_type,
            )
        return self._capabilities[action_type], self._handlers[action_type]

    def has(self, action_type: str) -> bool:
        return action_type in self._capabilities

    def get_label(self, action_type: str) -> Optional[str]:
        """Human-readable label for an action type, or None when unknown."""
        definition = self._capabilities.get(action_type)
        return definition.label if definition else None

    def find_by_slug(self, slug: str) -> Optional[CapabilityDefinition]:
        for definition in self._capabilities.values():
            if definition.slug == slug:
                return definition
        return None

    def is_ask_question(self, action_type: Optional[str]) -> bool:
        """True for the Ask Question action, by name or by registered slug."""
        if not action_type:
            return False
        if action_type == ASK_QUESTION_ACTION:
            return True
        definition = self._capabilities.get(action_type)
        return definition is not None and definition.slug == ASK_QUESTION_SLUG

    def list_capabilities(self) -> list[CapabilityDefinition]:
        """List all registered capabilities."""
        return list(self._capabilities.values())
