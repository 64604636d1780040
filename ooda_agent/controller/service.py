import asyncio
import logging
from typing import Any, Dict, Optional

from ooda_agent.agent.world_model import WebWorldModelStore
from ooda_agent.browser.session import BrowserSessionManager
from ooda_agent.browser.types import PlaywrightError, PlaywrightTimeoutError
from ooda_agent.browser.url_utils import canonicalize_url, is_http_url
from ooda_agent.controller.policy import WebPolicyEngine
from ooda_agent.dom.perception import PerceptionEngine
from ooda_agent.dom.views import (
	ObservationMode,
	ObserveOptions,
	StructuredExtraction,
	WebAction,
	WebActionResult,
	WebActionTarget,
	WebObservation,
)
from ooda_agent.dom.vision import VisionResolver
from ooda_agent.exceptions import WebActionError
from ooda_agent.tools.registry import ToolRegistry, catalog_descriptor

logger = logging.getLogger(__name__)

ELEMENT_TIMEOUT_MS = 10_000
DEFAULT_NAV_TIMEOUT_MS = 30_000
MIN_NAV_TIMEOUT_MS = 5_000
MAX_NAV_TIMEOUT_MS = 120_000
DEFAULT_SETTLE_MS = 1_200
MAX_SETTLE_MS = 5_000
DEFAULT_SCROLL_DELTA_Y = 1_000
DEFAULT_WAIT_MS = 750
WAIT_UNTIL_STATES = ('load', 'domcontentloaded', 'networkidle', 'commit')


def _clamp(value: float, low: float, high: float) -> float:
	return max(low, min(high, value))


class WebActionExecutor:
	"""
	Carries out one WebAction against a session's page.

	Every action passes the policy engine first. Element actions try a real
	locator (css, then role+name, then text) before falling back to the vision
	resolver; a submit with nothing to click presses Enter.
	"""

	def __init__(
		self,
		sessions: BrowserSessionManager,
		perception: Optional[PerceptionEngine] = None,
		vision: Optional[VisionResolver] = None,
		policy: Optional[WebPolicyEngine] = None,
		world_models: Optional[WebWorldModelStore] = None,
	):
		self.sessions = sessions
		self.perception = perception or PerceptionEngine()
		self.vision = vision or VisionResolver()
		self.policy = policy or WebPolicyEngine()
		self.world_models = world_models or WebWorldModelStore()

	async def execute(
		self,
		session_id: str,
		action: WebAction | Dict[str, Any],
		confirmation_token: Optional[str] = None,
		current_observation: Optional[WebObservation] = None,
		mode: ObservationMode = 'dom+vision',
	) -> WebActionResult:
		action = WebAction.model_validate(action)
		decision = self.policy.assert_allowed(action, session_id, confirmation_token)
		page = self.sessions.get_page(session_id)
		world = self.world_models.for_session(session_id)
		observation = current_observation or world.latest_observation

		try:
			data = await self._dispatch(session_id, page, action, observation, mode)
		except Exception:
			world.add_action(action, success=False)
			raise

		world.add_action(action, success=True)
		if isinstance(data.get('observation'), WebObservation):
			world.add_observation(data['observation'])
		logger.info(f'🌐 {session_id}: {action.type} done (risk={decision.risk})')
		return WebActionResult(
			success=True,
			action=action,
			risk=decision.risk,
			needs_confirmation=decision.needs_confirmation,
			data={key: value.model_dump() if hasattr(value, 'model_dump') else value for key, value in data.items()},
		)

	async def _dispatch(
		self,
		session_id: str,
		page: Any,
		action: WebAction,
		observation: Optional[WebObservation],
		mode: ObservationMode,
	) -> Dict[str, Any]:
		options = action.options
		if action.type == 'navigate':
			target_url = canonicalize_url(action.url or '')
			if not is_http_url(target_url):
				raise WebActionError('navigate action requires a valid http/https url')
			timeout_ms = _clamp(float(options.get('timeout_ms') or DEFAULT_NAV_TIMEOUT_MS), MIN_NAV_TIMEOUT_MS, MAX_NAV_TIMEOUT_MS)
			wait_until = str(options.get('wait_until') or 'load').lower()
			if wait_until not in WAIT_UNTIL_STATES:
				wait_until = 'domcontentloaded'
			settle_ms = _clamp(float(options.get('settle_ms') or DEFAULT_SETTLE_MS), 0, MAX_SETTLE_MS)
			await page.goto(target_url, wait_until=wait_until, timeout=timeout_ms)
			await self._wait_for_navigation_settled(page, timeout_ms, settle_ms)
			return {'url': page.url, 'title': await page.title()}

		if action.type == 'click':
			return {'clicked': await self._click(page, action, observation)}

		if action.type == 'fill':
			return {'filled': await self._fill(page, action, observation), 'value': action.value or ''}

		if action.type == 'submit':
			return {'submitted': await self._submit(page, action, observation)}

		if action.type == 'scroll':
			delta_y = float(options.get('delta_y') or DEFAULT_SCROLL_DELTA_Y)
			await page.mouse.wheel(0, delta_y)
			return {'delta_y': delta_y}

		if action.type == 'wait':
			wait_ms = max(0.0, float(options.get('wait_ms') or DEFAULT_WAIT_MS))
			await page.wait_for_timeout(wait_ms)
			return {'wait_ms': wait_ms}

		if action.type == 'extract':
			fresh = await self.perception.observe(
				page,
				ObserveOptions(mode=mode, include_screenshot=options.get('screenshot') is True, session_id=session_id),
			)
			structured = await self.perception.extract_structured(page)
			return {'observation': fresh, 'structured': structured}

		raise WebActionError(f'Unsupported web action type: {action.type}')

	async def observe(self, session_id: str, mode: ObservationMode = 'dom', include_screenshot: bool = False) -> WebObservation:
		page = self.sessions.get_page(session_id)
		observation = await self.perception.observe(
			page,
			ObserveOptions(mode=mode, include_screenshot=include_screenshot, session_id=session_id),
		)
		self.world_models.for_session(session_id).add_observation(observation)
		return observation

	async def extract_structured(self, session_id: str, url: Optional[str] = None) -> StructuredExtraction:
		page = self.sessions.get_page(session_id)
		if url and is_http_url(url):
			await page.goto(canonicalize_url(url), wait_until='load')
			await self._wait_for_navigation_settled(page, DEFAULT_NAV_TIMEOUT_MS, 800)
		extracted = await self.perception.extract_structured(page, url_override=page.url)
		logger.debug(f'📄 {session_id}: extracted {len(extracted.main_text)} chars from {extracted.url}')
		return extracted

	# region - element actions

	async def _click(self, page: Any, action: WebAction, observation: Optional[WebObservation]) -> str:
		locator = await self._resolve_locator(page, action.target)
		if locator is not None:
			await locator.first.click(timeout=ELEMENT_TIMEOUT_MS)
			return 'dom'

		if observation is None:
			raise WebActionError('No matching DOM target found for click action')

		fallback = await self.vision.resolve(page, action.target or WebActionTarget(), observation)
		if fallback.css:
			await page.locator(fallback.css).first.click(timeout=ELEMENT_TIMEOUT_MS)
			return 'vision-css'
		if fallback.bbox:
			x, y = fallback.bbox.center
			await page.mouse.click(x, y)
			return 'vision-bbox'

		raise WebActionError('Unable to resolve click target with DOM or vision fallback')

	async def _fill(self, page: Any, action: WebAction, observation: Optional[WebObservation]) -> str:
		value = action.value or ''
		locator = await self._resolve_locator(page, action.target)
		if locator is not None:
			await locator.first.fill(value, timeout=ELEMENT_TIMEOUT_MS)
			return 'dom'

		if observation is None:
			raise WebActionError('No matching DOM target found for fill action')

		fallback = await self.vision.resolve(page, action.target or WebActionTarget(), observation)
		if fallback.css:
			await page.locator(fallback.css).first.fill(value, timeout=ELEMENT_TIMEOUT_MS)
			return 'vision-css'

		raise WebActionError('Unable to resolve fill target with DOM or vision fallback')

	async def _submit(self, page: Any, action: WebAction, observation: Optional[WebObservation]) -> str:
		locator = await self._resolve_locator(page, action.target)
		if locator is not None:
			await locator.first.click(timeout=ELEMENT_TIMEOUT_MS)
			return 'dom'

		if observation is not None:
			fallback = await self.vision.resolve(page, action.target or WebActionTarget(), observation)
			if fallback.css:
				await page.locator(fallback.css).first.click(timeout=ELEMENT_TIMEOUT_MS)
				return 'vision-css'

		await page.keyboard.press('Enter')
		return 'keyboard-enter'

	async def _resolve_locator(self, page: Any, target: Optional[WebActionTarget]) -> Any:
		if target is None:
			return None

		if target.css:
			locator = page.locator(target.css)
			if await locator.count() > 0:
				return locator

		if target.role and target.text:
			try:
				locator = page.get_by_role(target.role, name=target.text)
				if await locator.count() > 0:
					return locator
			except PlaywrightError as e:
				logger.debug(f'Role locator {target.role!r} rejected: {e}')

		if target.text:
			locator = page.get_by_text(target.text, exact=False)
			if await locator.count() > 0:
				return locator

		return None

	# endregion

	async def _wait_for_navigation_settled(self, page: Any, timeout_ms: float, settle_ms: float) -> None:
		"""Best-effort readiness: load state, then a settle pause, then a short network-idle wait."""
		load_timeout_ms = _clamp(int(timeout_ms * 0.5), 1_500, 12_000)
		try:
			await page.wait_for_load_state('load', timeout=load_timeout_ms)
		except PlaywrightTimeoutError:
			logger.debug('Page did not reach load state in time, continuing')

		try:
			await page.wait_for_function("document.readyState !== 'loading'", timeout=min(4_000, load_timeout_ms))
		except PlaywrightTimeoutError:
			logger.debug('Document still loading, continuing')

		if settle_ms > 0:
			await page.wait_for_timeout(settle_ms)

		try:
			await page.wait_for_load_state('networkidle', timeout=_clamp(int(timeout_ms * 0.2), 1_000, 3_500))
		except PlaywrightTimeoutError:
			logger.debug('Network never went idle, continuing')


class Controller:
	"""Registers the browser_* tools on a ToolRegistry, all bound to one WebActionExecutor."""

	def __init__(self, registry: Optional[ToolRegistry] = None, executor: Optional[WebActionExecutor] = None):
		self.registry = registry or ToolRegistry()
		self.executor = executor or WebActionExecutor(BrowserSessionManager())
		self._register_web_actions()

	def _register(self, name: str, handler) -> None:
		self.registry.register(catalog_descriptor(name), handler, requires_page=True)

	async def _run(self, action_type: str, params: Dict[str, Any], **fields: Any) -> Dict[str, Any]:
		action = WebAction(type=action_type, **{key: value for key, value in fields.items() if value is not None})
		result = await self.executor.execute(
			str(params.get('session_id') or 'default'),
			action,
			confirmation_token=params.get('confirmation_token'),
		)
		return result.model_dump(mode='json')

	def _register_web_actions(self) -> None:
		async def browser_navigate(params: Dict[str, Any]):
			return await self._run('navigate', params, url=params.get('url'), options=params.get('options'))

		async def browser_click(params: Dict[str, Any]):
			return await self._run('click', params, target=params.get('target'))

		async def browser_fill(params: Dict[str, Any]):
			return await self._run('fill', params, target=params.get('target'), value=params.get('value'))

		async def browser_submit(params: Dict[str, Any]):
			return await self._run('submit', params, target=params.get('target'))

		async def browser_scroll(params: Dict[str, Any]):
			return await self._run('scroll', params, options={'delta_y': params.get('delta_y', DEFAULT_SCROLL_DELTA_Y)})

		async def browser_wait(params: Dict[str, Any]):
			return await self._run('wait', params, options={'wait_ms': params.get('wait_ms', DEFAULT_WAIT_MS)})

		async def browser_extract(params: Dict[str, Any]):
			extracted = await self.executor.extract_structured(str(params.get('session_id') or 'default'), params.get('url'))
			return extracted.model_dump(mode='json')

		async def browser_observe(params: Dict[str, Any]):
			observation = await self.executor.observe(
				str(params.get('session_id') or 'default'),
				mode=params.get('mode') or 'dom',
				include_screenshot=bool(params.get('include_screenshot', False)),
			)
			return observation.model_dump(mode='json')

		for handler in (
			browser_navigate,
			browser_click,
			browser_fill,
			browser_submit,
			browser_scroll,
			browser_wait,
			browser_extract,
			browser_observe,
		):
			self._register(handler.__name__, handler)
