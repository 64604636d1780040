from __future__ import annotations

from typing import Dict, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ooda_agent.config import CONFIG


class ReasoningSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: Literal['fast', 'model'] = Field(
        'fast',
        description="'fast' scores tools by keyword overlap with no external calls; 'model' delegates to a reasoner collaborator.",
    )
    max_tools: int = Field(20, ge=1, description='Upper bound on tools returned in a single decision.')
    fallback_to_simple: bool = Field(
        True,
        description='In model mode, fall back to the heuristic decision when the reasoner picks no known tool.',
    )

    @classmethod
    def from_env(cls) -> 'ReasoningSettings':
        return cls(mode=CONFIG.OODA_AGENT_REASONING_MODE, max_tools=CONFIG.OODA_AGENT_MAX_TOOLS)


class ExecutorSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_parallel: int = Field(10, ge=1, description='Maximum number of plan steps running at once.')
    default_timeout_seconds: float = Field(30.0, gt=0, description='Per-call timeout applied to every step unless overridden.')
    tool_timeout_overrides: Dict[str, float] = Field(
        default_factory=dict,
        description='Tool name -> timeout seconds. Per-call overrides passed to execute() take precedence.',
    )
    stop_on_failure: bool = Field(
        False,
        description='Stop scheduling later dependency batches once a step in the current batch failed.',
    )

    @field_validator('tool_timeout_overrides')
    @classmethod
    def _positive_overrides(cls, v: Dict[str, float]) -> Dict[str, float]:
        for name, seconds in v.items():
            if seconds <= 0:
                raise ValueError(f'timeout override for {name!r} must be positive')
        return v

    @classmethod
    def from_env(cls) -> 'ExecutorSettings':
        return cls(
            max_parallel=CONFIG.OODA_AGENT_MAX_PARALLEL,
            default_timeout_seconds=CONFIG.OODA_AGENT_DEFAULT_TIMEOUT_SECONDS,
        )
