import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ooda_agent.browser.types import Browser, BrowserContext, Playwright, async_playwright
from ooda_agent.browser.url_utils import canonicalize_url, is_http_url

logger = logging.getLogger(__name__)


@dataclass
class BrowserSessionEntry:
	session_id: str
	page: Any
	context: Optional[BrowserContext] = None
	browser: Optional[Browser] = None
	# Only sessions we launched ourselves get their browser closed on end_session().
	owns_browser: bool = False
	last_used: float = field(default_factory=time.monotonic)

	def touch(self) -> None:
		self.last_used = time.monotonic()


class BrowserSessionManager:
	"""
	Maps session ids to live pages.

	Pages can be registered from outside (any object with the page capabilities) or
	launched locally with Playwright Chromium via ``start_local``.
	"""

	def __init__(self, logger: logging.Logger | None = None):
		self._sessions: Dict[str, BrowserSessionEntry] = {}
		self._playwright: Optional[Playwright] = None
		self._start_lock = asyncio.Lock()
		self.logger = logger or logging.getLogger(__name__)

	def register(self, session_id: str, page: Any) -> BrowserSessionEntry:
		entry = BrowserSessionEntry(session_id=session_id, page=page)
		self._sessions[session_id] = entry
		self.logger.debug(f'🔗 Registered page for session {session_id}')
		return entry

	def get_page(self, session_id: str) -> Any:
		entry = self._sessions.get(session_id)
		if entry is None:
			raise KeyError(f"No active web session for '{session_id}'. Start one with start_local() or register().")
		entry.touch()
		return entry.page

	def has_session(self, session_id: str) -> bool:
		return session_id in self._sessions

	def session_ids(self) -> list[str]:
		return list(self._sessions)

	async def _get_or_start_playwright(self) -> Playwright:
		async with self._start_lock:
			if self._playwright is None:
				self._playwright = await async_playwright().start()
			return self._playwright

	async def start_local(self, session_id: str, headless: bool = True, start_url: Optional[str] = None) -> Any:
		"""Launch a Chromium page for this session, or reuse the one already running."""
		existing = self._sessions.get(session_id)
		if existing is not None:
			existing.touch()
			return existing.page

		playwright = await self._get_or_start_playwright()
		self.logger.info(f'🌎 Launching local Chromium for session {session_id} (headless={headless})')
		browser = await playwright.chromium.launch(headless=headless)
		context = await browser.new_context()
		page = await context.new_page()
		if start_url:
			target = canonicalize_url(start_url)
			if not is_http_url(target):
				await browser.close()
				raise ValueError(f'start_url must be an http/https url, got {start_url!r}')
			await page.goto(target, wait_until='load')

		self._sessions[session_id] = BrowserSessionEntry(
			session_id=session_id,
			page=page,
			context=context,
			browser=browser,
			owns_browser=True,
		)
		return page

	async def end_session(self, session_id: str) -> bool:
		entry = self._sessions.pop(session_id, None)
		if entry is None:
			return False
		if entry.owns_browser:
			self.logger.info(f'🛑 Closing local browser for session {session_id}')
			try:
				if entry.context is not None:
					await entry.context.close()
			finally:
				if entry.browser is not None:
					await entry.browser.close()
		return True

	async def cleanup_idle_sessions(self, idle_seconds: float = 600.0) -> int:
		now = time.monotonic()
		idle = [sid for sid, entry in self._sessions.items() if now - entry.last_used > idle_seconds]
		for session_id in idle:
			await self.end_session(session_id)
		if idle:
			self.logger.debug(f'🧹 Closed {len(idle)} idle sessions')
		return len(idle)

	async def close(self) -> None:
		for session_id in list(self._sessions):
			try:
				await self.end_session(session_id)
			except Exception as e:
				self.logger.warning(f'⚠️ Failed to close session {session_id}: {type(e).__name__}: {e}')
		if self._playwright is not None:
			await self._playwright.stop()
			self._playwright = None
