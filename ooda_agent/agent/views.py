from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ToolDescriptor(BaseModel):
    """A callable tool as the reasoning engine sees it. Name is the unique key."""
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ''
    keywords: frozenset[str] = Field(default_factory=frozenset)
    category: Optional[str] = None

    @field_validator('keywords', mode='before')
    @classmethod
    def _coerce_keywords(cls, v):
        if v is None:
            return frozenset()
        if isinstance(v, str):
            return frozenset([v])
        return frozenset(str(k) for k in v)


class HistoryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: str
    content: str


class Observation(BaseModel):
    """Snapshot of what the engine knows at the start of one OODA cycle."""
    model_config = ConfigDict(frozen=True)

    task: str
    history: Tuple[HistoryEntry, ...] = ()
    tools: Tuple[ToolDescriptor, ...] = ()
    memory_context: Optional[str] = None
    max_tools: int = 20
    notes: Tuple[str, ...] = ()


class ScoredTool(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool: ToolDescriptor
    score: float
    rationale: str = ''


class Orientation(BaseModel):
    model_config = ConfigDict(frozen=True)

    intent: str
    tokens: Tuple[str, ...] = ()
    candidates: Tuple[ScoredTool, ...] = ()
    confidence: float = 0.0
    risks: Tuple[str, ...] = ()


class Decision(BaseModel):
    """Tools to invoke next, highest relevance first. May be empty."""
    model_config = ConfigDict(frozen=True)

    selected_tools: Tuple[ToolDescriptor, ...] = ()
    scores: Tuple[float, ...] = ()
    rationale: str = ''
    fallback: str = ''
    confidence: float = 0.0
    is_terminal: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.selected_tools

    @property
    def tool_names(self) -> List[str]:
        return [tool.name for tool in self.selected_tools]


class OODAState(BaseModel):
    model_config = ConfigDict(frozen=True)

    observe: Observation
    orient: Orientation
    decide: Decision


class ToolChoice(BaseModel):
    """What a model-backed reasoner answers with: tool names in preferred order."""
    tool_names: List[str] = Field(default_factory=list)
    rationale: str = ''
    confidence: Optional[float] = None


class ToolCall(BaseModel):
    tool_name: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


class Task(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    description: str = ''
    tool_calls: List[ToolCall] = Field(default_factory=list)


class Step(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    tool_name: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    # Always empty from the planner; the executor still honours caller-supplied ids.
    dependencies: Tuple[str, ...] = ()


class ExecutionPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    task_id: str
    steps: Tuple[Step, ...] = ()


class StepResult(BaseModel):
    step_id: str
    tool_name: str
    success: bool
    output: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    duration_ms: float = 0.0


class TaskResult(BaseModel):
    task_id: str
    success: bool
    outputs: List[StepResult] = Field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def failed_steps(self) -> List[StepResult]:
        return [result for result in self.outputs if not result.success]


class ReflectionResult(BaseModel):
    success: bool
    summary: str
    adjustments: List[str] = Field(default_factory=list)
    should_continue: bool = False


class SandboxMode(str, Enum):
    NONE = 'none'
    PROCESS = 'process'
    CONTAINER = 'container'
    VM = 'vm'
