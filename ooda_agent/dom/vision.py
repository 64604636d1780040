import logging
from typing import TYPE_CHECKING, Any, Mapping, Optional

from pydantic import ValidationError

from ooda_agent.concurrency import page_lock
from ooda_agent.dom.perception import load_script
from ooda_agent.dom.views import BoundingBox, RawCandidate, VisionResolution, WebActionTarget, WebObservation
from ooda_agent.exceptions import PerceptionFailure
from ooda_agent.utils import collapse_whitespace, time_execution_async

if TYPE_CHECKING:
	from ooda_agent.browser.types import PageHandle

logger = logging.getLogger(__name__)

BBOX_CONFIDENCE = 0.95
CHEAP_MATCH_CONFIDENCE = 0.55
QUERY_CONFIDENCE_FLOOR = 0.5
QUERY_CONFIDENCE_CEILING = 0.8
ROLE_MISMATCH_PENALTY = 0.2


def _norm(value: Optional[str]) -> str:
	return collapse_whitespace(value).lower()


def match_observation(target: WebActionTarget, observation: Optional[WebObservation]) -> Optional[VisionResolution]:
	"""First element whose text contains the target text (and whose role matches, if given)."""
	if observation is None:
		return None
	text = _norm(target.text)
	role = _norm(target.role)
	match = next(
		(e for e in observation.elements if text in _norm(e.text) and (not role or _norm(e.role) == role)),
		None,
	)
	if match is not None and match.css_path:
		return VisionResolution(
			css=match.css_path,
			confidence=CHEAP_MATCH_CONFIDENCE,
			strategy='role-text-match' if role else 'text-match',
		)
	return None


def candidate_css(candidate: RawCandidate, index: int) -> str:
	tag = (candidate.tag or 'div').lower()
	if candidate.id:
		return f'#{candidate.id}'
	classes = [c for c in candidate.classes if c][:2]
	if classes:
		return f"{tag}.{'.'.join(classes)}"
	return f'{tag}:nth-of-type({index + 1})'


def score_candidate(candidate: RawCandidate, text: str, role: str) -> float:
	label = _norm(candidate.inner_text) or _norm(candidate.aria_label)
	score = 1.0 if text in label else 0.0
	if role:
		candidate_role = _norm(candidate.role_attr) or ('link' if candidate.tag.lower() == 'a' else candidate.tag.lower())
		if candidate_role != role:
			score -= ROLE_MISMATCH_PENALTY
	return score


def _clamp(value: float, low: float, high: float) -> float:
	return max(low, min(high, value))


class VisionResolver:
	"""
	Maps a fuzzy target (text/role or raw coordinates) onto something clickable.

	Resolution order:
	1. explicit bbox, used as-is
	2. the caller's last observation, matched without touching the page
	3. a fresh query of clickable candidates on the page
	Anything else resolves to strategy 'none' with zero confidence.
	"""

	def __init__(self, logger: logging.Logger | None = None):
		self.logger = logger or logging.getLogger(__name__)

	@time_execution_async('--vision.resolve')
	async def resolve(
		self,
		page: 'PageHandle',
		target: WebActionTarget | Mapping[str, Any],
		observation: Optional[WebObservation] = None,
	) -> VisionResolution:
		target = WebActionTarget.model_validate(target)

		if target.bbox is not None:
			return VisionResolution(bbox=target.bbox, confidence=BBOX_CONFIDENCE, strategy='bbox')

		text = _norm(target.text)
		if not text:
			return VisionResolution.unresolved()

		cheap = match_observation(target, observation)
		if cheap is not None:
			self.logger.debug(f'🎯 Resolved "{text}" from observation: {cheap.css}')
			return cheap

		return await self._query_page(page, text, _norm(target.role))

	async def _query_page(self, page: 'PageHandle', text: str, role: str) -> VisionResolution:
		async with page_lock(page):
			try:
				raw = await page.evaluate(load_script('candidates.js'))
			except Exception as e:
				raise PerceptionFailure(f'Candidate query failed: {type(e).__name__}: {e}') from e

		if raw is None:
			raw = []
		if not isinstance(raw, list):
			raise PerceptionFailure(f'Candidate query returned {type(raw).__name__}, expected a list')

		scored: list[tuple[float, int, RawCandidate]] = []
		for position, entry in enumerate(raw):
			try:
				candidate = RawCandidate.model_validate(entry)
			except ValidationError as e:
				raise PerceptionFailure(f'Candidate {position} was malformed: {e}') from e
			score = score_candidate(candidate, text, role)
			if score > 0:
				index = int(entry.get('index', position)) if isinstance(entry, Mapping) else position
				scored.append((score, index, candidate))

		if not scored:
			self.logger.debug(f'🎯 No candidate matched "{text}"')
			return VisionResolution.unresolved()

		# Stable: equal scores keep document order.
		scored.sort(key=lambda item: -item[0])
		score, index, best = scored[0]
		bbox = None
		if best.rect:
			bbox = BoundingBox(
				x=float(best.rect.get('x', 0)),
				y=float(best.rect.get('y', 0)),
				w=float(best.rect.get('w', 0)),
				h=float(best.rect.get('h', 0)),
			)
		css = candidate_css(best, index)
		self.logger.debug(f'🎯 Resolved "{text}" by page query: {css} (score {score:.2f})')
		return VisionResolution(
			css=css,
			bbox=bbox,
			confidence=_clamp(score, QUERY_CONFIDENCE_FLOOR, QUERY_CONFIDENCE_CEILING),
			strategy='role-text-match' if role else 'text-match',
		)
