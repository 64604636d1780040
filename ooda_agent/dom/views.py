from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ooda_agent.utils import now_utc_iso

MAX_ELEMENT_TEXT_CHARS = 160
MAX_CSS_PATH_CHARS = 240
MAX_VISIBLE_TEXT_CHARS = 12_000
MAX_ELEMENTS = 160

MAX_MAIN_TEXT_CHARS = 40_000
MAX_HEADINGS = 20
MAX_LINKS = 100
MAX_LINK_TEXT_CHARS = 120

ObservationMode = Literal['dom', 'dom+vision']
ResolutionStrategy = Literal['bbox', 'text-match', 'role-text-match', 'none']


class BoundingBox(BaseModel):
	model_config = ConfigDict(frozen=True)

	x: float
	y: float
	w: float
	h: float

	@property
	def center(self) -> tuple[float, float]:
		return (self.x + self.w / 2, self.y + self.h / 2)


class InteractiveElement(BaseModel):
	model_config = ConfigDict(frozen=True)

	id: str
	role: str
	text: str = Field('', max_length=MAX_ELEMENT_TEXT_CHARS)
	css_path: str = Field('', max_length=MAX_CSS_PATH_CHARS)


class WebObservation(BaseModel):
	"""Compact structured view of a page. Rebuilt on every perception call."""

	model_config = ConfigDict(frozen=True)

	url: str = ''
	title: str = ''
	dom_summary: str = ''
	visible_text: str = Field('', max_length=MAX_VISIBLE_TEXT_CHARS)
	# Document order, capped; never re-ranked.
	elements: tuple[InteractiveElement, ...] = Field(default=(), max_length=MAX_ELEMENTS)
	screenshot_path: Optional[str] = None
	timestamp: str = Field(default_factory=now_utc_iso)


class WebActionTarget(BaseModel):
	"""Either explicit coordinates or a fuzzy text/role description (css optional)."""

	model_config = ConfigDict(frozen=True)

	css: Optional[str] = None
	text: Optional[str] = None
	role: Optional[str] = None
	bbox: Optional[BoundingBox] = None


class VisionResolution(BaseModel):
	model_config = ConfigDict(frozen=True)

	css: Optional[str] = None
	bbox: Optional[BoundingBox] = None
	confidence: float = Field(0.0, ge=0.0, le=1.0)
	strategy: ResolutionStrategy = 'none'

	@model_validator(mode='after')
	def _none_means_nothing(self):
		if self.strategy == 'none' and (self.confidence != 0 or self.css is not None or self.bbox is not None):
			raise ValueError("strategy 'none' requires confidence 0 and no css/bbox")
		return self

	@property
	def resolved(self) -> bool:
		return self.strategy != 'none'

	@classmethod
	def unresolved(cls) -> 'VisionResolution':
		return cls(confidence=0.0, strategy='none')


class ExtractedLink(BaseModel):
	model_config = ConfigDict(frozen=True)

	text: str = Field('', max_length=MAX_LINK_TEXT_CHARS)
	url: str


class StructuredExtraction(BaseModel):
	"""Content-oriented page capture, heavier than an observation."""

	model_config = ConfigDict(frozen=True)

	url: str = ''
	title: str = ''
	byline: Optional[str] = None
	published_at: Optional[str] = None
	main_text: str = Field('', max_length=MAX_MAIN_TEXT_CHARS)
	headings: tuple[str, ...] = Field(default=(), max_length=MAX_HEADINGS)
	links: tuple[ExtractedLink, ...] = Field(default=(), max_length=MAX_LINKS)


class ObserveOptions(BaseModel):
	mode: ObservationMode = 'dom'
	include_screenshot: bool = False
	session_id: str = 'default'


class WebAction(BaseModel):
	type: Literal['navigate', 'click', 'fill', 'submit', 'scroll', 'wait', 'extract']
	target: Optional[WebActionTarget] = None
	value: Optional[str] = None
	url: Optional[str] = None
	options: Dict[str, Any] = Field(default_factory=dict)


RiskLevel = Literal['low', 'medium', 'high']


class WebActionResult(BaseModel):
	success: bool
	action: WebAction
	risk: RiskLevel
	needs_confirmation: bool = False
	data: Dict[str, Any] = Field(default_factory=dict)


class RawCandidate(BaseModel):
	"""One interactive node as reported by the page-side snapshot script."""

	tag: str = 'div'
	id: str = ''
	role_attr: str = ''
	classes: List[str] = Field(default_factory=list)
	inner_text: str = ''
	aria_label: str = ''
	ancestors: List[Dict[str, Any]] = Field(default_factory=list)
	rect: Optional[Dict[str, float]] = None
