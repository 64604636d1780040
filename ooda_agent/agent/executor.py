from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict, List, Mapping, Optional

from ooda_agent.agent.settings import ExecutorSettings
from ooda_agent.agent.views import ExecutionPlan, Step, StepResult, TaskResult
from ooda_agent.concurrency import KeyedLocks
from ooda_agent.exceptions import ExecutionTimeout, ToolNotFound
from ooda_agent.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_SESSION_KEY = 'default'


def dependency_batches(plan: ExecutionPlan) -> List[List[Step]]:
    """
    Group steps into batches that can run together, in plan order.

    With no dependencies (what the planner produces) everything lands in one batch.
    """
    known = {step.id for step in plan.steps}
    remaining = {step.id: set(step.dependencies) for step in plan.steps}
    for step_id, deps in remaining.items():
        unknown = deps - known
        if unknown:
            raise ValueError(f'Step {step_id} depends on unknown steps: {sorted(unknown)}')

    batches: List[List[Step]] = []
    done: set[str] = set()
    while len(done) < len(plan.steps):
        batch = [step for step in plan.steps if step.id not in done and remaining[step.id] <= done]
        if not batch:
            pending = [step.id for step in plan.steps if step.id not in done]
            raise ValueError(f'Dependency cycle between steps: {pending}')
        batches.append(batch)
        done.update(step.id for step in batch)
    return batches


class Executor:
    """
    Runs plan steps with bounded parallelism and a timeout around every call.

    A failed, timed out or unknown-tool step is reported in its StepResult and does
    not abort the other steps; whether that fails the whole task is the caller's call.
    Page-bound tools are serialized per session (the step's ``session_id`` parameter).
    """

    def __init__(self, settings: Optional[ExecutorSettings] = None):
        self.settings = settings or ExecutorSettings()
        self._session_locks = KeyedLocks()

    def timeout_for(self, step: Step, overrides: Optional[Mapping[str, float]] = None) -> float:
        overrides = overrides or {}
        for key in (step.id, step.tool_name):
            if key in overrides:
                return float(overrides[key])
        return float(self.settings.tool_timeout_overrides.get(step.tool_name, self.settings.default_timeout_seconds))

    async def execute(
        self,
        plan: ExecutionPlan,
        registry: ToolRegistry,
        timeout_overrides: Optional[Mapping[str, float]] = None,
    ) -> TaskResult:
        logger.info(f'▶️ Executing plan {plan.task_id} with {len(plan.steps)} steps')
        start = time.monotonic()
        semaphore = asyncio.Semaphore(self.settings.max_parallel)
        results: Dict[str, StepResult] = {}

        batches = dependency_batches(plan)
        for index, batch in enumerate(batches):
            batch_results = await asyncio.gather(
                *(self.execute_step(step, registry, semaphore, timeout_overrides) for step in batch)
            )
            for result in batch_results:
                results[result.step_id] = result

            if self.settings.stop_on_failure and any(not r.success for r in batch_results):
                for skipped_batch in batches[index + 1 :]:
                    for step in skipped_batch:
                        results[step.id] = StepResult(
                            step_id=step.id,
                            tool_name=step.tool_name,
                            success=False,
                            error='Skipped after an earlier step failed',
                            error_type='Skipped',
                        )
                break

        outputs = [results[step.id] for step in plan.steps]
        success = all(result.success for result in outputs)
        duration_ms = (time.monotonic() - start) * 1000
        if success:
            logger.info(f'✅ Plan {plan.task_id} finished in {duration_ms:.0f}ms')
        else:
            failed = [r.step_id for r in outputs if not r.success]
            logger.warning(f'⚠️ Plan {plan.task_id} finished with failed steps: {failed}')
        return TaskResult(task_id=plan.task_id, success=success, outputs=outputs, duration_ms=duration_ms)

    async def execute_step(
        self,
        step: Step,
        registry: ToolRegistry,
        semaphore: Optional[asyncio.Semaphore] = None,
        timeout_overrides: Optional[Mapping[str, float]] = None,
    ) -> StepResult:
        try:
            tool = registry.get(step.tool_name)
        except ToolNotFound as e:
            logger.error(f'❌ {step.id}: {e}')
            return StepResult(step_id=step.id, tool_name=step.tool_name, success=False, error=str(e), error_type='ToolNotFound')

        timeout = self.timeout_for(step, timeout_overrides)
        semaphore = semaphore or asyncio.Semaphore(self.settings.max_parallel)

        if tool.requires_page:
            session_key = str(step.parameters.get('session_id') or DEFAULT_SESSION_KEY)
            async with self._session_locks.hold(session_key):
                async with semaphore:
                    return await self._call(step, tool, timeout)
        async with semaphore:
            return await self._call(step, tool, timeout)

    async def _call(self, step: Step, tool, timeout: float) -> StepResult:
        start = time.monotonic()
        logger.debug(f'🔧 {step.id}: calling {step.tool_name} (timeout {timeout}s)')
        try:
            output = await asyncio.wait_for(tool.execute(step.parameters), timeout=timeout)
        except asyncio.TimeoutError:
            error = ExecutionTimeout(step.id, timeout)
            logger.warning(f'⏰ {error}')
            return StepResult(
                step_id=step.id,
                tool_name=step.tool_name,
                success=False,
                error=str(error),
                error_type='ExecutionTimeout',
                duration_ms=(time.monotonic() - start) * 1000,
            )
        except Exception as e:
            logger.error(f'❌ {step.id}: {step.tool_name} failed: {type(e).__name__}: {e}')
            return StepResult(
                step_id=step.id,
                tool_name=step.tool_name,
                success=False,
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=(time.monotonic() - start) * 1000,
            )
        return StepResult(
            step_id=step.id,
            tool_name=step.tool_name,
            success=True,
            output=output,
            duration_ms=(time.monotonic() - start) * 1000,
        )
