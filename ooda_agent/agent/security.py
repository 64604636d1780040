from __future__ import annotations

import logging
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ooda_agent.agent.views import ExecutionPlan, SandboxMode
from ooda_agent.config import CONFIG
from ooda_agent.exceptions import Denied, NotAllowlisted

logger = logging.getLogger(__name__)

WILDCARD = '*'


class SecurityPolicy(BaseModel):
    """Allow/deny tool sets plus isolation mode. Loaded once, read-only afterwards."""
    model_config = ConfigDict(frozen=True)

    sandbox_mode: SandboxMode = SandboxMode.PROCESS
    allowed_tools: frozenset[str] = Field(
        default_factory=frozenset,
        description="Exact, case-sensitive tool names. Empty means no allowlist; '*' allows everything not denied.",
    )
    denied_tools: frozenset[str] = Field(default_factory=frozenset, description='Always rejected, even under a wildcard allow.')

    @field_validator('allowed_tools', 'denied_tools', mode='before')
    @classmethod
    def _coerce_names(cls, v):
        if v is None:
            return frozenset()
        if isinstance(v, str):
            return frozenset([v])
        return frozenset(v)

    @property
    def allow_all(self) -> bool:
        return WILDCARD in self.allowed_tools

    @classmethod
    def default(cls) -> 'SecurityPolicy':
        return cls(sandbox_mode=SandboxMode.PROCESS, allowed_tools={'bash', 'read', 'write'}, denied_tools=set())

    @classmethod
    def from_env(cls) -> 'SecurityPolicy':
        allowed = CONFIG.OODA_AGENT_ALLOWED_TOOLS
        base = cls.default()
        return cls(
            sandbox_mode=SandboxMode(CONFIG.OODA_AGENT_SANDBOX_MODE),
            allowed_tools=base.allowed_tools if allowed is None else allowed,
            denied_tools=CONFIG.OODA_AGENT_DENIED_TOOLS,
        )


class SecurityGate:
    """Rejects unsafe plans before any step runs. Deny always wins over allow."""

    def __init__(self, policy: SecurityPolicy):
        self.policy = policy

    def check_tool(self, tool_name: str) -> None:
        allowed = self.policy.allowed_tools
        if allowed and not self.policy.allow_all and tool_name not in allowed:
            raise NotAllowlisted(tool_name)
        if tool_name in self.policy.denied_tools:
            raise Denied(tool_name)

    def authorize(self, plan: ExecutionPlan) -> None:
        for step in plan.steps:
            try:
                self.check_tool(step.tool_name)
            except (Denied, NotAllowlisted) as e:
                logger.warning(f'🚫 Plan {plan.task_id} rejected at {step.id}: {e}')
                raise
        logger.debug(f'🔐 Plan {plan.task_id} authorized ({len(plan.steps)} steps)')

    def permitted(self, tool_names: Iterable[str]) -> list[str]:
        """Filter names down to those the policy would authorize, keeping order."""
        result = []
        for name in tool_names:
            try:
                self.check_tool(name)
            except (Denied, NotAllowlisted):
                continue
            result.append(name)
        return result
