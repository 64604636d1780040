from ooda_agent.controller.policy import (
	HIGH_RISK_KEYWORDS,
	PolicyDecision,
	WebPolicyEngine,
	compute_action_digest,
	sign_approval_token,
	verify_approval_token,
)
from ooda_agent.controller.service import Controller, WebActionExecutor

__all__ = [
	'Controller',
	'HIGH_RISK_KEYWORDS',
	'PolicyDecision',
	'WebActionExecutor',
	'WebPolicyEngine',
	'compute_action_digest',
	'sign_approval_token',
	'verify_approval_token',
]
