from ooda_agent.dom.perception import PerceptionEngine
from ooda_agent.dom.views import (
	BoundingBox,
	InteractiveElement,
	ObserveOptions,
	StructuredExtraction,
	VisionResolution,
	WebAction,
	WebActionResult,
	WebActionTarget,
	WebObservation,
)
from ooda_agent.dom.vision import VisionResolver

__all__ = [
	'BoundingBox',
	'InteractiveElement',
	'ObserveOptions',
	'PerceptionEngine',
	'StructuredExtraction',
	'VisionResolution',
	'VisionResolver',
	'WebAction',
	'WebActionResult',
	'WebActionTarget',
	'WebObservation',
]
