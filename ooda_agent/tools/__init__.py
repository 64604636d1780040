from ooda_agent.tools.registry import (
    DEFAULT_TOOL_CATALOG,
    SYSTEM_TOOL_CATALOG,
    WEB_TOOL_CATALOG,
    RegisteredTool,
    ToolRegistry,
    catalog_descriptor,
)

__all__ = [
    'DEFAULT_TOOL_CATALOG',
    'SYSTEM_TOOL_CATALOG',
    'WEB_TOOL_CATALOG',
    'RegisteredTool',
    'ToolRegistry',
    'catalog_descriptor',
]
