from typing import TYPE_CHECKING

from ooda_agent.browser.url_utils import canonicalize_url, is_http_url

# Type stubs for lazy imports
if TYPE_CHECKING:
	from ooda_agent.browser.session import BrowserSessionManager
	from ooda_agent.browser.types import PageHandle

# Playwright is only imported when a session manager or page type is asked for
_LAZY_IMPORTS = {
	'BrowserSessionManager': ('.session', 'BrowserSessionManager'),
	'PageHandle': ('.types', 'PageHandle'),
}


def __getattr__(name: str):
	"""Lazy import mechanism for heavy browser components."""
	if name in _LAZY_IMPORTS:
		module_path, attr_name = _LAZY_IMPORTS[name]
		from importlib import import_module

		full_module_path = f'ooda_agent.browser{module_path}'
		try:
			module = import_module(full_module_path)
		except ImportError as e:
			raise ImportError(f'Failed to import {name} from {full_module_path}: {e}') from e
		attr = getattr(module, attr_name)
		globals()[name] = attr
		return attr

	raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = ['BrowserSessionManager', 'PageHandle', 'canonicalize_url', 'is_http_url']
