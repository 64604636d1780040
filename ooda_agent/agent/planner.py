from __future__ import annotations

import logging

from ooda_agent.agent.views import ExecutionPlan, Step, Task

logger = logging.getLogger(__name__)


class TaskPlanner:
    """
    Order-preserving decomposition of a task's tool calls into plan steps.

    Steps are numbered step-0, step-1, ... and carry no dependencies; inferring
    dependencies between calls is not implemented.
    """

    def plan(self, task: Task) -> ExecutionPlan:
        steps = tuple(
            Step(
                id=f'step-{index}',
                tool_name=call.tool_name,
                parameters=dict(call.parameters),
                dependencies=(),
            )
            for index, call in enumerate(task.tool_calls)
        )
        logger.debug(f'📋 Planned task {task.id} into {len(steps)} steps')
        return ExecutionPlan(task_id=task.id, steps=steps)
