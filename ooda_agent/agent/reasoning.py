from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Sequence, runtime_checkable

from pydantic import ValidationError

from ooda_agent.agent.settings import ReasoningSettings
from ooda_agent.agent.tool_selector import ToolSelector, tokenize
from ooda_agent.agent.views import (
    Decision,
    HistoryEntry,
    Observation,
    OODAState,
    Orientation,
    ReflectionResult,
    StepResult,
    TaskResult,
    ToolCall,
    ToolChoice,
    ToolDescriptor,
)
from ooda_agent.exceptions import InvalidObservation

logger = logging.getLogger(__name__)


@runtime_checkable
class DecisionStrategy(Protocol):
    """Anything that can turn an orientation into an ordered Decision."""

    async def decide(self, orientation: Orientation, observation: Observation) -> Decision: ...


@runtime_checkable
class ToolReasoner(Protocol):
    """External model-backed collaborator. Prompting and the model call live behind it."""

    async def choose_tools(self, orientation: Orientation, observation: Observation) -> ToolChoice: ...


class HeuristicStrategy:
    """'fast' mode: keep candidates scoring above zero, best first, no external calls."""

    def __init__(self, max_tools: int = 20):
        self.max_tools = max_tools

    async def decide(self, orientation: Orientation, observation: Observation) -> Decision:
        limit = min(self.max_tools, observation.max_tools)
        # Orientation candidates are already stably sorted; re-sorting keeps catalog order on ties.
        ranked = sorted((c for c in orientation.candidates if c.score > 0), key=lambda c: -c.score)[:limit]
        if not ranked:
            return Decision(
                rationale='No tool matched the task.',
                fallback='Ask for clarification or provide tools explicitly.',
                confidence=0.0,
            )
        return Decision(
            selected_tools=tuple(c.tool for c in ranked),
            scores=tuple(c.score for c in ranked),
            rationale='Selected top tools based on keyword matching.',
            fallback='Provide all tools if selection is too narrow.',
            confidence=orientation.confidence,
        )


class ModelBackedStrategy:
    """
    Delegates the choice to a ToolReasoner and maps the returned names back onto the catalog.

    Unknown names are dropped. An explicit empty answer is kept as an empty decision.
    If names came back but none are in the catalog, the heuristic decision is used
    when fallback_to_simple is set; otherwise the decision is empty.
    """

    def __init__(self, reasoner: ToolReasoner, max_tools: int = 20, fallback_to_simple: bool = True):
        self.reasoner = reasoner
        self.max_tools = max_tools
        self.fallback_to_simple = fallback_to_simple
        self._heuristic = HeuristicStrategy(max_tools=max_tools)

    async def decide(self, orientation: Orientation, observation: Observation) -> Decision:
        choice = await self.reasoner.choose_tools(orientation, observation)
        by_name = {tool.name: tool for tool in observation.tools}
        ordered: List[ToolDescriptor] = []
        for name in choice.tool_names:
            tool = by_name.get(name)
            if tool is not None and tool not in ordered:
                ordered.append(tool)
        ordered = ordered[: min(self.max_tools, observation.max_tools)]

        if ordered:
            scores = {c.tool.name: c.score for c in orientation.candidates}
            return Decision(
                selected_tools=tuple(ordered),
                scores=tuple(scores.get(tool.name, 0.0) for tool in ordered),
                rationale=choice.rationale or 'Selected by reasoner.',
                fallback='Fall back to keyword matching if the reasoner is unavailable.',
                confidence=_clamp_unit(choice.confidence if choice.confidence is not None else 0.6),
            )

        if not choice.tool_names:
            return Decision(
                rationale=choice.rationale or 'Reasoner selected no tools.',
                fallback='',
                confidence=_clamp_unit(choice.confidence if choice.confidence is not None else 0.4),
            )
        logger.warning(f'Reasoner picked unknown tools {choice.tool_names}; none are in the catalog')
        if self.fallback_to_simple:
            logger.debug('Reasoner produced no usable tools, using heuristic decision')
            return await self._heuristic.decide(orientation, observation)
        return Decision(
            rationale='Reasoner selected no tools from the catalog.',
            fallback='',
            confidence=0.0,
        )


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


class ReasoningEngine:
    """
    Observe -> Orient -> Decide for one cycle. Act and the iteration cap belong to the caller.
    """

    def __init__(
        self,
        settings: Optional[ReasoningSettings] = None,
        reasoner: Optional[ToolReasoner] = None,
        strategy: Optional[DecisionStrategy] = None,
        tool_selector: Optional[ToolSelector] = None,
    ):
        self.settings = settings or ReasoningSettings()
        self.tool_selector = tool_selector or ToolSelector()
        if strategy is not None:
            self.strategy = strategy
        elif self.settings.mode == 'model':
            if reasoner is None:
                raise ValueError("Reasoning mode 'model' requires a reasoner collaborator")
            self.strategy = ModelBackedStrategy(
                reasoner,
                max_tools=self.settings.max_tools,
                fallback_to_simple=self.settings.fallback_to_simple,
            )
        else:
            self.strategy = HeuristicStrategy(max_tools=self.settings.max_tools)

    async def observe(
        self,
        task: Any,
        tools: Iterable[ToolDescriptor | Mapping[str, Any]] = (),
        history: Iterable[HistoryEntry | Mapping[str, Any]] = (),
        memory_context: Optional[str] = None,
    ) -> Observation:
        if isinstance(task, Mapping):
            context = dict(task)
            if 'task' not in context:
                raise InvalidObservation('Observation input is missing a task')
            tools = context.get('tools', tools)
            history = context.get('history', history)
            memory_context = context.get('memory_context', memory_context)
            task = context['task']

        if not isinstance(task, str) or not task.strip():
            raise InvalidObservation('Observation input requires a non-empty task string')

        try:
            tool_list = tuple(ToolDescriptor.model_validate(t) for t in (tools or ()))
            history_list = tuple(HistoryEntry.model_validate(h) for h in (history or ()))
        except ValidationError as e:
            raise InvalidObservation(f'Malformed observation input: {e}') from e

        observation = Observation(
            task=task,
            history=history_list,
            tools=tool_list,
            memory_context=memory_context,
            max_tools=self.settings.max_tools,
            notes=(
                'Memory context available' if memory_context else 'No memory context',
                f'Available tools: {len(tool_list)}',
            ),
        )
        logger.debug(f'👁️ Observed task with {len(tool_list)} tools and {len(history_list)} history entries')
        return observation

    async def orient(self, observation: Observation | Mapping[str, Any]) -> Orientation:
        observation = self._ensure_observation(observation)
        tokens = tokenize(observation.task)
        scored = self.tool_selector.score_tools(tokens, observation.tools)
        candidates = tuple(entry for entry in scored if entry.score > 0)
        confidence = min(1.0, candidates[0].score / 10) if candidates else 0.2
        orientation = Orientation(
            intent=observation.task,
            tokens=tokens,
            candidates=candidates,
            confidence=confidence,
            risks=() if candidates else ('No obvious tool matches found',),
        )
        logger.debug(f'🧭 Oriented: {len(candidates)} candidate tools, confidence={confidence:.2f}')
        return orientation

    async def decide(self, orientation: Orientation, observation: Observation | Mapping[str, Any]) -> Decision:
        observation = self._ensure_observation(observation)
        decision = await self.strategy.decide(orientation, observation)
        if decision.is_empty:
            logger.info('🤷 No tools selected for task')
        else:
            logger.info(f"🛠️ Selected tools: {', '.join(decision.tool_names)}")
        return decision

    async def select_tools(
        self,
        task: str,
        tools: Iterable[ToolDescriptor | Mapping[str, Any]],
        history: Iterable[HistoryEntry | Mapping[str, Any]] = (),
        memory_context: Optional[str] = None,
    ) -> OODAState:
        observation = await self.observe(task, tools, history=history, memory_context=memory_context)
        orientation = await self.orient(observation)
        decision = await self.decide(orientation, observation)
        return OODAState(observe=observation, orient=orientation, decide=decision)

    def act(self, decision: Decision, parameters: Optional[Mapping[str, Mapping[str, Any]]] = None) -> List[ToolCall]:
        """Turn a decision into tool calls. Parameters per tool name are optional."""
        parameters = parameters or {}
        return [ToolCall(tool_name=tool.name, parameters=dict(parameters.get(tool.name, {}))) for tool in decision.selected_tools]

    def reflect(self, results: TaskResult | Sequence[StepResult]) -> ReflectionResult:
        outputs = results.outputs if isinstance(results, TaskResult) else list(results)
        success = all(result.success for result in outputs)
        if success:
            return ReflectionResult(success=True, summary='All tools executed successfully.', should_continue=False)
        failed = [result.tool_name for result in outputs if not result.success]
        return ReflectionResult(
            success=False,
            summary=f"Some tools failed during execution: {', '.join(failed)}.",
            adjustments=['Consider alternative tools or inputs.'],
            should_continue=True,
        )

    @staticmethod
    def _ensure_observation(observation: Observation | Mapping[str, Any]) -> Observation:
        if isinstance(observation, Observation):
            if not observation.task.strip():
                raise InvalidObservation('Observation has an empty task')
            return observation
        if not isinstance(observation, Mapping) or 'task' not in observation:
            raise InvalidObservation('Observation is missing a task')
        try:
            parsed = Observation.model_validate(observation)
        except ValidationError as e:
            raise InvalidObservation(f'Malformed observation: {e}') from e
        if not parsed.task.strip():
            raise InvalidObservation('Observation has an empty task')
        return parsed
