from ooda_agent.config import CONFIG
from ooda_agent.logging_config import setup_logging

# Embedders that configure logging themselves can opt out with OODA_AGENT_SETUP_LOGGING=false
if CONFIG.OODA_AGENT_SETUP_LOGGING:
	logger = setup_logging()
else:
	import logging

	logger = logging.getLogger('ooda_agent')


# --- Lightweight, lazy re-exports ---
# Browser and controller modules pull in playwright; only import them when asked for.

_LAZY_EXPORTS = {
	# Agent core
	'ReasoningEngine': ('ooda_agent.agent.reasoning', 'ReasoningEngine'),
	'ReasoningSettings': ('ooda_agent.agent.settings', 'ReasoningSettings'),
	'ExecutorSettings': ('ooda_agent.agent.settings', 'ExecutorSettings'),
	'ToolSelector': ('ooda_agent.agent.tool_selector', 'ToolSelector'),
	'TaskPlanner': ('ooda_agent.agent.planner', 'TaskPlanner'),
	'SecurityGate': ('ooda_agent.agent.security', 'SecurityGate'),
	'SecurityPolicy': ('ooda_agent.agent.security', 'SecurityPolicy'),
	'Executor': ('ooda_agent.agent.executor', 'Executor'),
	'Runtime': ('ooda_agent.agent.runtime', 'Runtime'),
	'Task': ('ooda_agent.agent.views', 'Task'),
	'ToolCall': ('ooda_agent.agent.views', 'ToolCall'),
	'ToolDescriptor': ('ooda_agent.agent.views', 'ToolDescriptor'),
	'WebWorldModel': ('ooda_agent.agent.world_model', 'WebWorldModel'),
	# Tools
	'ToolRegistry': ('ooda_agent.tools.registry', 'ToolRegistry'),
	'DEFAULT_TOOL_CATALOG': ('ooda_agent.tools.registry', 'DEFAULT_TOOL_CATALOG'),
	# DOM and browser
	'PerceptionEngine': ('ooda_agent.dom.perception', 'PerceptionEngine'),
	'VisionResolver': ('ooda_agent.dom.vision', 'VisionResolver'),
	'BrowserSessionManager': ('ooda_agent.browser.session', 'BrowserSessionManager'),
	# Controller
	'Controller': ('ooda_agent.controller.service', 'Controller'),
	'WebActionExecutor': ('ooda_agent.controller.service', 'WebActionExecutor'),
	'WebPolicyEngine': ('ooda_agent.controller.policy', 'WebPolicyEngine'),
}


def __getattr__(name: str):
	entry = _LAZY_EXPORTS.get(name)
	if not entry:
		raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
	module_path, attr_name = entry
	from importlib import import_module

	try:
		module = import_module(module_path)
	except ImportError as e:
		raise ImportError(f'Failed to import {name} from {module_path}: {e}') from e
	attr = getattr(module, attr_name)
	# Cache for future lookups
	globals()[name] = attr
	return attr


__all__ = list(_LAZY_EXPORTS.keys())
