from relayflow.capabilities.plugin import capability, get_registered_capabilities
from relayflow.capabilities.registry import CapabilityRegistry

__all__ = ["capability", "get_registered_capabilities", "CapabilityRegistry"]
