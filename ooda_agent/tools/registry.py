from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ooda_agent.agent.views import ToolDescriptor
from ooda_agent.exceptions import ToolNotFound

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Dict[str, Any]], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True)
class RegisteredTool:
    descriptor: ToolDescriptor
    handler: ToolHandler
    # Page-bound tools are serialized per browser session by the executor.
    requires_page: bool = False

    @property
    def name(self) -> str:
        return self.descriptor.name

    async def execute(self, parameters: Mapping[str, Any]) -> Any:
        params = dict(parameters)
        if inspect.iscoroutinefunction(self.handler):
            return await self.handler(params)
        result = await asyncio.to_thread(self.handler, params)
        if inspect.isawaitable(result):
            return await result
        return result


class ToolRegistry:
    """Dispatch table of tool implementations, indexed by exact tool name."""

    def __init__(self, exclude_tools: Iterable[str] = ()):
        self.exclude_tools = set(exclude_tools)
        self._tools: Dict[str, RegisteredTool] = {}

    def register(self, descriptor: ToolDescriptor | Mapping[str, Any], handler: ToolHandler, requires_page: bool = False) -> None:
        descriptor = ToolDescriptor.model_validate(descriptor)
        if descriptor.name in self.exclude_tools:
            logger.debug(f'Skipping excluded tool {descriptor.name}')
            return
        if descriptor.name in self._tools:
            logger.warning(f'Tool {descriptor.name} is already registered; replacing it')
        self._tools[descriptor.name] = RegisteredTool(descriptor=descriptor, handler=handler, requires_page=requires_page)

    def action(
        self,
        description: str,
        keywords: Iterable[str] = (),
        name: Optional[str] = None,
        category: Optional[str] = None,
        requires_page: bool = False,
    ):
        """Decorator registering a function as a tool, named after the function by default."""

        def decorator(func: ToolHandler) -> ToolHandler:
            descriptor = ToolDescriptor(
                name=name or func.__name__,
                description=description,
                keywords=keywords,
                category=category,
            )
            self.register(descriptor, func, requires_page=requires_page)
            return func

        return decorator

    def get(self, name: str) -> RegisteredTool:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFound(name) from None

    def descriptors(self) -> Tuple[ToolDescriptor, ...]:
        """Catalog snapshot in registration order."""
        return tuple(tool.descriptor for tool in self._tools.values())

    def names(self) -> List[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


SYSTEM_TOOL_CATALOG: Tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        name='bash',
        description='Execute shell commands',
        keywords=frozenset({'command', 'shell', 'run', 'execute', 'terminal'}),
        category='system',
    ),
    ToolDescriptor(
        name='read',
        description='Read file contents',
        keywords=frozenset({'file', 'read', 'open', 'contents'}),
        category='filesystem',
    ),
    ToolDescriptor(
        name='write',
        description='Write content to a file',
        keywords=frozenset({'write', 'save', 'create'}),
        category='filesystem',
    ),
)

WEB_TOOL_CATALOG: Tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        name='browser_navigate',
        description='Navigate the browser session to an http or https url',
        keywords=frozenset({'navigate', 'url', 'visit', 'browse', 'website', 'go to'}),
        category='web',
    ),
    ToolDescriptor(
        name='browser_click',
        description='Click an element on the current page by css, text or role',
        keywords=frozenset({'click', 'press', 'button', 'link', 'tap'}),
        category='web',
    ),
    ToolDescriptor(
        name='browser_fill',
        description='Type a value into an input field on the current page',
        keywords=frozenset({'fill', 'type', 'input', 'enter', 'field', 'form'}),
        category='web',
    ),
    ToolDescriptor(
        name='browser_submit',
        description='Submit the current form on the page',
        keywords=frozenset({'submit', 'send', 'form'}),
        category='web',
    ),
    ToolDescriptor(
        name='browser_scroll',
        description='Scroll the current page vertically',
        keywords=frozenset({'scroll', 'down', 'up', 'page'}),
        category='web',
    ),
    ToolDescriptor(
        name='browser_wait',
        description='Wait for the page to settle for a number of milliseconds',
        keywords=frozenset({'wait', 'pause', 'sleep'}),
        category='web',
    ),
    ToolDescriptor(
        name='browser_extract',
        description='Extract the main text, headings and links of the current page',
        keywords=frozenset({'extract', 'scrape', 'content', 'article', 'text', 'links'}),
        category='web',
    ),
    ToolDescriptor(
        name='browser_observe',
        description='Observe the current page and list its interactive elements',
        keywords=frozenset({'observe', 'look', 'inspect', 'screenshot', 'elements'}),
        category='web',
    ),
)

DEFAULT_TOOL_CATALOG: Tuple[ToolDescriptor, ...] = SYSTEM_TOOL_CATALOG + WEB_TOOL_CATALOG


def catalog_descriptor(name: str, catalog: Iterable[ToolDescriptor] = DEFAULT_TOOL_CATALOG) -> ToolDescriptor:
    for descriptor in catalog:
        if descriptor.name == name:
            return descriptor
    raise ToolNotFound(name)
