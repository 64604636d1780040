# centralize imports for browser typing

from typing import Any, Optional, Protocol, runtime_checkable

from playwright.async_api import Browser, BrowserContext, Locator, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError


@runtime_checkable
class PageHandle(Protocol):
	"""What perception and vision need from a page: script evaluation and screenshots."""

	async def evaluate(self, expression: str, arg: Optional[Any] = None) -> Any: ...

	async def screenshot(self, *, path: Optional[str] = None, full_page: bool = False) -> bytes: ...


__all__ = [
	'Browser',
	'BrowserContext',
	'Locator',
	'Page',
	'PageHandle',
	'Playwright',
	'PlaywrightError',
	'PlaywrightTimeoutError',
	'async_playwright',
]
