import pytest

from ooda_agent.agent.views import ToolDescriptor
from ooda_agent.exceptions import ToolNotFound
from ooda_agent.tools.registry import DEFAULT_TOOL_CATALOG, ToolRegistry, catalog_descriptor


def test_action_decorator_registers_in_order_and_honours_exclusions():
    registry = ToolRegistry(exclude_tools=['hidden'])

    @registry.action('First tool', keywords=['one'])
    def first(params):
        return 1

    @registry.action('Hidden tool')
    def hidden(params):
        return 0

    @registry.action('Second tool', keywords='two', name='second_tool', category='misc')
    async def second(params):
        return 2

    assert registry.names() == ['first', 'second_tool']
    assert 'hidden' not in registry
    assert len(registry) == 2
    descriptors = registry.descriptors()
    assert descriptors[1].keywords == frozenset({'two'})
    assert descriptors[1].category == 'misc'


@pytest.mark.asyncio
async def test_execute_handles_sync_and_async_handlers():
    registry = ToolRegistry()
    registry.register({'name': 'double', 'keywords': ['math']}, lambda params: params['x'] * 2)

    @registry.action('Async echo')
    async def echo(params):
        return params

    assert await registry.get('double').execute({'x': 4}) == 8
    assert await registry.get('echo').execute({'a': 1}) == {'a': 1}


def test_get_unknown_tool_raises():
    with pytest.raises(ToolNotFound) as exc_info:
        ToolRegistry().get('nope')
    assert str(exc_info.value) == 'Tool not found: nope'


def test_default_catalog_covers_system_and_web_tools():
    names = [d.name for d in DEFAULT_TOOL_CATALOG]
    assert names[:3] == ['bash', 'read', 'write']
    assert {'browser_navigate', 'browser_click', 'browser_fill', 'browser_submit', 'browser_extract', 'browser_observe'} <= set(names)
    assert len(names) == len(set(names))
    assert catalog_descriptor('bash').keywords >= {'command', 'shell', 'run'}
    with pytest.raises(ToolNotFound):
        catalog_descriptor('nope')


def test_descriptor_is_immutable_and_coerces_keywords():
    descriptor = ToolDescriptor(name='x', keywords=['a', 'b', 'a'])
    assert descriptor.keywords == frozenset({'a', 'b'})
    with pytest.raises(Exception):
        descriptor.name = 'y'
