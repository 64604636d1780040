from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field

from ooda_agent.agent.executor import Executor
from ooda_agent.agent.planner import TaskPlanner
from ooda_agent.agent.reasoning import ReasoningEngine
from ooda_agent.agent.security import SecurityGate, SecurityPolicy
from ooda_agent.agent.views import HistoryEntry, OODAState, ReflectionResult, Task, TaskResult
from ooda_agent.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 5


class LoopIteration(BaseModel):
    index: int
    state: OODAState
    result: Optional[TaskResult] = None
    reflection: Optional[ReflectionResult] = None


class LoopOutcome(BaseModel):
    iterations: List[LoopIteration] = Field(default_factory=list)
    stop_reason: str = ''

    @property
    def success(self) -> bool:
        last = self.iterations[-1] if self.iterations else None
        return bool(last and last.result and last.result.success)


class Runtime:
    """
    Wires the planner, security gate and executor around one tool registry.

    ``run`` executes a task whose tool calls are already known. ``run_loop`` lets
    the reasoning engine pick the calls, repeating until a cycle selects nothing,
    reflection says to stop, or the iteration cap is hit.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        policy: Optional[SecurityPolicy] = None,
        planner: Optional[TaskPlanner] = None,
        executor: Optional[Executor] = None,
        engine: Optional[ReasoningEngine] = None,
    ):
        self.registry = registry
        self.policy = policy or SecurityPolicy.default()
        self.gate = SecurityGate(self.policy)
        self.planner = planner or TaskPlanner()
        self.executor = executor or Executor()
        self.engine = engine or ReasoningEngine()

    async def run(self, task: Task, timeout_overrides: Optional[Mapping[str, float]] = None) -> TaskResult:
        plan = self.planner.plan(task)
        self.gate.authorize(plan)
        return await self.executor.execute(plan, self.registry, timeout_overrides=timeout_overrides)

    async def run_loop(
        self,
        task_text: str,
        history: Iterable[HistoryEntry | Mapping[str, Any]] = (),
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        parameters: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> LoopOutcome:
        if max_iterations < 1:
            raise ValueError('max_iterations must be at least 1')

        history_entries = [HistoryEntry.model_validate(h) for h in history]
        # Only offer tools the policy would let through, so a selection never fails authorization.
        permitted = set(self.gate.permitted(self.registry.names()))
        tools = [d for d in self.registry.descriptors() if d.name in permitted]
        outcome = LoopOutcome()

        for index in range(max_iterations):
            state = await self.engine.select_tools(task_text, tools, history=history_entries)
            iteration = LoopIteration(index=index, state=state)
            outcome.iterations.append(iteration)

            if state.decide.is_empty:
                outcome.stop_reason = 'no-tools-selected'
                break

            calls = self.engine.act(state.decide, parameters)
            result = await self.run(Task(description=task_text, tool_calls=calls))
            reflection = self.engine.reflect(result)
            iteration.result = result
            iteration.reflection = reflection
            history_entries.append(HistoryEntry(role='assistant', content=f"Called {', '.join(state.decide.tool_names)}"))
            history_entries.append(HistoryEntry(role='tool', content=reflection.summary))
            logger.info(f'🔁 Iteration {index + 1}/{max_iterations}: {reflection.summary}')

            if not reflection.should_continue:
                outcome.stop_reason = 'completed'
                break
        else:
            outcome.stop_reason = 'max-iterations'
            logger.warning(f'⚠️ Stopped after {max_iterations} iterations without success')

        return outcome
