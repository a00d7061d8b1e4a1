"""Built-in capabilities package. Import to register all built-in capabilities."""

from relayflow.capabilities.builtin import database_query, http_request, system

__all__ = ["system", "http_request", "database_query"]
