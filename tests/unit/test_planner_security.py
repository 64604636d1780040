import pytest

from ooda_agent.agent.planner import TaskPlanner
from ooda_agent.agent.security import SecurityGate, SecurityPolicy
from ooda_agent.agent.views import ExecutionPlan, SandboxMode, Step, Task, ToolCall
from ooda_agent.exceptions import AuthorizationError, Denied, NotAllowlisted


def _plan(*tool_names):
    return ExecutionPlan(task_id='t1', steps=tuple(Step(id=f'step-{i}', tool_name=name) for i, name in enumerate(tool_names)))


def test_planner_preserves_order_and_numbers_steps():
    task = Task(tool_calls=[ToolCall(tool_name='A'), ToolCall(tool_name='B', parameters={'x': 1}), ToolCall(tool_name='C')])
    plan = TaskPlanner().plan(task)
    assert plan.task_id == task.id
    assert [s.id for s in plan.steps] == ['step-0', 'step-1', 'step-2']
    assert [s.tool_name for s in plan.steps] == ['A', 'B', 'C']
    assert all(s.dependencies == () for s in plan.steps)
    assert plan.steps[1].parameters == {'x': 1}


def test_planner_handles_task_without_calls():
    plan = TaskPlanner().plan(Task(id='empty'))
    assert plan.steps == ()


def test_denied_tool_is_rejected_even_when_allowlisted():
    gate = SecurityGate(SecurityPolicy(allowed_tools=['bash', 'read', 'write'], denied_tools=['bash']))
    with pytest.raises(Denied) as exc_info:
        gate.authorize(_plan('bash'))
    assert exc_info.value.tool_name == 'bash'
    assert 'bash' in str(exc_info.value)
    assert 'denied' in str(exc_info.value)


def test_wildcard_allow_never_overrides_deny():
    gate = SecurityGate(SecurityPolicy(allowed_tools=['*'], denied_tools=['rm']))
    gate.authorize(_plan('anything', 'else'))
    with pytest.raises(Denied):
        gate.authorize(_plan('anything', 'rm'))


def test_tool_outside_allowlist_is_rejected():
    gate = SecurityGate(SecurityPolicy(allowed_tools=['read']))
    with pytest.raises(NotAllowlisted) as exc_info:
        gate.authorize(_plan('read', 'write'))
    assert isinstance(exc_info.value, AuthorizationError)
    assert str(exc_info.value) == "Tool 'write' is not in allowlist"


def test_allowlist_miss_is_reported_before_deny():
    gate = SecurityGate(SecurityPolicy(allowed_tools=['read'], denied_tools=['bash']))
    with pytest.raises(NotAllowlisted):
        gate.authorize(_plan('bash'))
    with pytest.raises(NotAllowlisted):
        gate.check_tool('bash')


def test_empty_allowlist_allows_everything_not_denied():
    gate = SecurityGate(SecurityPolicy())
    gate.authorize(_plan('bash', 'browser_click'))


def test_allowlist_is_case_sensitive():
    gate = SecurityGate(SecurityPolicy(allowed_tools=['read']))
    with pytest.raises(NotAllowlisted):
        gate.check_tool('Read')


def test_permitted_filters_in_order():
    gate = SecurityGate(SecurityPolicy(allowed_tools=['read', 'write', 'bash'], denied_tools=['bash']))
    assert gate.permitted(['bash', 'write', 'x', 'read']) == ['write', 'read']


def test_default_policy():
    policy = SecurityPolicy.default()
    assert policy.sandbox_mode == SandboxMode.PROCESS
    assert policy.allowed_tools == frozenset({'bash', 'read', 'write'})
    assert policy.denied_tools == frozenset()


def test_policy_from_env(monkeypatch):
    monkeypatch.setenv('OODA_AGENT_ALLOWED_TOOLS', '*')
    monkeypatch.setenv('OODA_AGENT_DENIED_TOOLS', 'bash, write')
    monkeypatch.setenv('OODA_AGENT_SANDBOX_MODE', 'container')
    policy = SecurityPolicy.from_env()
    assert policy.allow_all
    assert policy.denied_tools == frozenset({'bash', 'write'})
    assert policy.sandbox_mode == SandboxMode.CONTAINER


def test_policy_from_env_falls_back_to_default_allowlist(monkeypatch):
    monkeypatch.delenv('OODA_AGENT_ALLOWED_TOOLS', raising=False)
    monkeypatch.delenv('OODA_AGENT_DENIED_TOOLS', raising=False)
    monkeypatch.delenv('OODA_AGENT_SANDBOX_MODE', raising=False)
    policy = SecurityPolicy.from_env()
    assert policy.allowed_tools == frozenset({'bash', 'read', 'write'})
