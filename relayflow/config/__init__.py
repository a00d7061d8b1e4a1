"""Application configuration + declarative YAML loaders for relayflow.

All env vars defined here with RELAYFLOW_ prefix.
YAML loaders: load_workflow_yaml(), load_policy_yaml()
"""

import logging
from typing import Optional, Protocol, runtime_checkable

from pydantic_settings import BaseSettings

from relayflow.types import ExecutionPolicy

logger = logging.getLogger(__name__)

# Used when the policy provider itself fails
FALLBACK_POLICY = ExecutionPolicy(retry_count=0, retry_delay_ms=500, timeout_ms=10000)


class RelayConfig(BaseSettings):
    # ── App ──
    app_name: str = "relayflow"
    debug: bool = False
    log_level: str = "INFO"

    # ── Database ──
    database_url: str = "sqlite+aiosqlite:///./relayflow.db"

    # ── Step execution defaults ──
    default_retry_count: int = 0
    default_retry_delay_ms: int = 500
    default_timeout_ms: int = 10000             # 0 disables the per-step timeout
    http_default_timeout_s: float = 30.0

    # ── Workflows ──
    max_workflow_nodes: int = 200
    validate_before_run: bool = True            # reject cyclic/dangling graphs up front

    # ── Pause/resume ──
    default_phone_region: str = "BR"            # region assumed for numbers without +CC

    # ── Server ──
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["*"]

    model_config = {"env_prefix": "RELAYFLOW_", "env_file": ".env", "extra": "ignore"}

    def execution_policy(self) -> ExecutionPolicy:
        return ExecutionPolicy(
            retry_count=self.default_retry_count,
            retry_delay_ms=self.default_retry_delay_ms,
            timeout_ms=self.default_timeout_ms,
        )


config = RelayConfig()


@runtime_checkable
class ExecutionPolicyProvider(Protocol):
    """Supplies process-wide default retry/timeout policy."""

    async def get_policy(self) -> ExecutionPolicy:
        ...


class ConfigPolicyProvider:
    """Reads the default policy from RelayConfig (env / .env)."""

    def __init__(self, cfg: Optional[RelayConfig] = None):
        self.config = cfg or config

    async def get_policy(self) -> ExecutionPolicy:
        return self.config.execution_policy()


class StaticPolicyProvider:
    """Fixed policy, e.g. loaded from policy.yaml or built in tests."""

    def __init__(self, policy: ExecutionPolicy):
        self.policy = policy

    async def get_policy(self) -> ExecutionPolicy:
        return self.policy


from relayflow.config.loader import load_policy_yaml, load_workflow_yaml  # noqa: E402
from relayflow.config.schema import PolicyYAML, WorkflowYAML  # noqa: E402


__all__ = [
    "RelayConfig",
    "config",
    "FALLBACK_POLICY",
    "ExecutionPolicyProvider",
    "ConfigPolicyProvider",
    "StaticPolicyProvider",
    "load_workflow_yaml",
    "load_policy_yaml",
    "WorkflowYAML",
    "PolicyYAML",
]
