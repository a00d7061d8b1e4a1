"""@capability decorator for registering step handlers by action type.

Usage:
    @capability(name="Send SMS", label="Send SMS", description="Send a text message")
    async def send_sms(step_input: dict) -> dict:
        ...

Handlers are collected at import time into a module table; build a registry
from it once at startup with CapabilityRegistry.from_registered().
"""

import functools
import re
from typing import Any, Awaitable, Callable

from relayflow.types import CapabilityDefinition

Handler = Callable[[dict], Awaitable[Any]]

# Global table of decorated handlers, keyed by action type
_registered_capabilities: dict[str, tuple[CapabilityDefinition, Handler]] = {}


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def capability(
    name: str,
    label: str = None,
    slug: str = None,
    description: str = None,
    category: str = "plugin",
):
    """Decorator to register an async function as the handler for an action type.

    Args:
        name: The ``actionType`` string nodes use to select this handler
        label: Human-readable name (defaults to name)
        slug: Stable identifier (defaults to the slugified name)
        description: Defaults to the first docstring line
        category: "system" for built-ins, "plugin" otherwise
    """
    def decorator(func):
        definition = CapabilityDefinition(
            name=name,
            label=label or name,
            slug=slug or slugify(name),
            description=description or (func.__doc__ or "").strip().split("\n")[0],
            category=category,
        )

        @functools.wraps(func)
        async def wrapper(step_input: dict) -> Any:
            return await func(step_input)

        wrapper._relayflow_capability = definition
        _registered_capabilities[name] = (definition, wrapper)
        return wrapper

    return decorator


def get_registered_capabilities() -> dict[str, tuple[CapabilityDefinition, Handler]]:
    """Return all capabilities registered via @capability."""
    return _registered_capabilities.copy()
