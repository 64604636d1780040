import logging
import re
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional
from urllib.parse import urlparse

from pydantic import ValidationError

from ooda_agent.concurrency import page_lock
from ooda_agent.config import CONFIG
from ooda_agent.dom.views import (
	MAX_CSS_PATH_CHARS,
	MAX_ELEMENT_TEXT_CHARS,
	MAX_ELEMENTS,
	MAX_HEADINGS,
	MAX_LINK_TEXT_CHARS,
	MAX_LINKS,
	MAX_MAIN_TEXT_CHARS,
	MAX_VISIBLE_TEXT_CHARS,
	ExtractedLink,
	InteractiveElement,
	ObserveOptions,
	RawCandidate,
	StructuredExtraction,
	WebObservation,
)
from ooda_agent.exceptions import PerceptionFailure
from ooda_agent.utils import collapse_whitespace, now_epoch_ms, now_utc_iso, time_execution_async

if TYPE_CHECKING:
	from ooda_agent.browser.types import PageHandle

logger = logging.getLogger(__name__)

# Headings only feed the coarse dom_summary counts.
SUMMARY_HEADINGS = 10

_UNSAFE_SESSION_CHARS = re.compile(r'[^a-zA-Z0-9._-]')


@lru_cache(maxsize=None)
def load_script(name: str) -> str:
	return resources.files('ooda_agent.dom.dom_tree').joinpath(name).read_text()


# region - pure snapshot transforms


def infer_role(tag: str, role_attr: str = '') -> str:
	role = (role_attr or '').strip()
	if role:
		return role
	tag = (tag or 'div').lower()
	return 'link' if tag == 'a' else tag


def element_text(candidate: RawCandidate) -> str:
	text = collapse_whitespace(candidate.inner_text) or collapse_whitespace(candidate.aria_label)
	return text[:MAX_ELEMENT_TEXT_CHARS]


def css_path_from_chain(chain: Iterable[Mapping[str, Any]]) -> str:
	"""
	Build a best-effort selector from the element up through its ancestors.

	Stops at the first node with an id (emitted as tag#id), otherwise uses the tag
	plus up to two classes; segments are joined root-first with ' > '.
	"""
	parts: list[str] = []
	for node in chain:
		tag = str(node.get('tag') or 'div').lower()
		node_id = str(node.get('id') or '')
		if node_id:
			parts.insert(0, f'{tag}#{node_id}')
			break
		classes = [c for c in (node.get('classes') or []) if c][:2]
		parts.insert(0, f"{tag}.{'.'.join(classes)}" if classes else tag)
	return ' > '.join(parts)[:MAX_CSS_PATH_CHARS]


def build_elements(raw_candidates: Iterable[Mapping[str, Any]]) -> tuple[InteractiveElement, ...]:
	elements: list[InteractiveElement] = []
	for index, raw in enumerate(raw_candidates):
		if len(elements) >= MAX_ELEMENTS:
			break
		candidate = RawCandidate.model_validate(raw)
		role = infer_role(candidate.tag, candidate.role_attr)
		elements.append(
			InteractiveElement(
				id=candidate.id or f'{role}-{index + 1}',
				role=role,
				text=element_text(candidate),
				css_path=css_path_from_chain(candidate.ancestors),
			)
		)
	return tuple(elements)


def build_observation(snapshot: Mapping[str, Any], screenshot_path: Optional[str] = None, timestamp: Optional[str] = None) -> WebObservation:
	visible_text = collapse_whitespace(snapshot.get('body_text'))[:MAX_VISIBLE_TEXT_CHARS]
	elements = build_elements(snapshot.get('candidates') or [])
	headings = [h for h in (collapse_whitespace(h) for h in snapshot.get('headings') or []) if h][:SUMMARY_HEADINGS]
	dom_summary = f'headings={len(headings)}, interactive_elements={len(elements)}, text_chars={len(visible_text)}'
	return WebObservation(
		url=str(snapshot.get('url') or ''),
		title=str(snapshot.get('title') or ''),
		dom_summary=dom_summary,
		visible_text=visible_text,
		elements=elements,
		screenshot_path=screenshot_path,
		timestamp=timestamp or now_utc_iso(),
	)


def _is_absolute_http(url: str) -> bool:
	parsed = urlparse(url)
	return parsed.scheme.lower() in ('http', 'https') and bool(parsed.netloc)


def build_structured_extraction(raw: Mapping[str, Any], url_override: Optional[str] = None) -> StructuredExtraction:
	headings = [h for h in (collapse_whitespace(h) for h in raw.get('headings') or []) if h][:MAX_HEADINGS]
	links: list[ExtractedLink] = []
	for entry in raw.get('links') or []:
		url = str(entry.get('url') or '').strip()
		if not _is_absolute_http(url):
			continue
		links.append(ExtractedLink(text=collapse_whitespace(entry.get('text'))[:MAX_LINK_TEXT_CHARS], url=url))
		if len(links) >= MAX_LINKS:
			break
	byline = collapse_whitespace(raw.get('byline')) or None
	published_at = str(raw.get('published_at')).strip() if raw.get('published_at') else None
	return StructuredExtraction(
		url=url_override or str(raw.get('url') or ''),
		title=str(raw.get('title') or ''),
		byline=byline,
		published_at=published_at or None,
		main_text=collapse_whitespace(raw.get('body_text'))[:MAX_MAIN_TEXT_CHARS],
		headings=tuple(headings),
		links=tuple(links),
	)


def safe_session_id(session_id: str) -> str:
	"""Make an untrusted session id usable as a file name component (no separators, no '..')."""
	safe = _UNSAFE_SESSION_CHARS.sub('-', str(session_id or ''))
	if not safe.strip('.'):
		safe = 'session' + safe.replace('.', '-')
	return safe


def screenshot_path_for(session_id: str, directory: Path, epoch_ms: Optional[int] = None) -> Path:
	stamp = now_epoch_ms() if epoch_ms is None else epoch_ms
	return directory / f'{safe_session_id(session_id)}-{stamp}.png'


# endregion


class PerceptionEngine:
	"""Turns a live page into a WebObservation or a StructuredExtraction."""

	def __init__(self, screenshot_dir: Optional[Path | str] = None, logger: logging.Logger | None = None):
		self.screenshot_dir = Path(screenshot_dir) if screenshot_dir else None
		self.logger = logger or logging.getLogger(__name__)

	def _screenshot_dir(self) -> Path:
		return self.screenshot_dir or CONFIG.OODA_AGENT_SCREENSHOT_DIR

	@time_execution_async('--perception.observe')
	async def observe(self, page: 'PageHandle', options: Optional[ObserveOptions | Mapping[str, Any]] = None) -> WebObservation:
		opts = ObserveOptions.model_validate(options or {})
		timestamp = now_utc_iso()
		async with page_lock(page):
			try:
				snapshot = await page.evaluate(load_script('snapshot.js'), {'maxCandidates': MAX_ELEMENTS})
			except Exception as e:
				raise PerceptionFailure(f'DOM snapshot failed: {type(e).__name__}: {e}') from e
			if not isinstance(snapshot, Mapping):
				raise PerceptionFailure(f'DOM snapshot returned {type(snapshot).__name__}, expected an object')

			screenshot_path = None
			if opts.include_screenshot:
				screenshot_path = await self._capture_screenshot(page, opts.session_id)

		try:
			observation = build_observation(snapshot, screenshot_path=screenshot_path, timestamp=timestamp)
		except ValidationError as e:
			raise PerceptionFailure(f'DOM snapshot was malformed: {e}') from e
		self.logger.debug(f'👀 Observed {observation.url or "<blank>"}: {observation.dom_summary}')
		return observation

	async def _capture_screenshot(self, page: 'PageHandle', session_id: str) -> str:
		directory = self._screenshot_dir()
		path = screenshot_path_for(session_id, directory)
		try:
			directory.mkdir(parents=True, exist_ok=True)
			await page.screenshot(path=str(path), full_page=True)
		except Exception as e:
			raise PerceptionFailure(f'Screenshot capture failed: {type(e).__name__}: {e}') from e
		return str(path)

	@time_execution_async('--perception.extract_structured')
	async def extract_structured(self, page: 'PageHandle', url_override: Optional[str] = None) -> StructuredExtraction:
		async with page_lock(page):
			try:
				raw = await page.evaluate(load_script('extract.js'))
			except Exception as e:
				raise PerceptionFailure(f'Structured extraction failed: {type(e).__name__}: {e}') from e
		if not isinstance(raw, Mapping):
			raise PerceptionFailure(f'Structured extraction returned {type(raw).__name__}, expected an object')
		try:
			return build_structured_extraction(raw, url_override=url_override)
		except ValidationError as e:
			raise PerceptionFailure(f'Structured extraction was malformed: {e}') from e
