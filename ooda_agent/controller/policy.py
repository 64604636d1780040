import base64
import hashlib
import hmac
import json
import logging
from typing import Any, Mapping, Optional

from pydantic import BaseModel

from ooda_agent.config import CONFIG
from ooda_agent.dom.views import RiskLevel, WebAction
from ooda_agent.exceptions import ConfirmationRequired

logger = logging.getLogger(__name__)

HIGH_RISK_KEYWORDS = (
	'buy',
	'purchase',
	'order',
	'confirm',
	'delete',
	'remove',
	'send',
	'publish',
	'transfer',
	'save',
	'submit',
)


class PolicyDecision(BaseModel):
	risk: RiskLevel
	needs_confirmation: bool
	reason: str
	action_digest: str


def _action_payload(action: WebAction | Mapping[str, Any]) -> Any:
	if isinstance(action, BaseModel):
		return action.model_dump(mode='json', exclude_none=True)
	return action


def compute_action_digest(action: WebAction | Mapping[str, Any]) -> str:
	"""sha256 over a key-sorted JSON encoding, so equal actions always digest equally."""
	encoded = json.dumps(_action_payload(action), sort_keys=True, separators=(',', ':'), ensure_ascii=False)
	return hashlib.sha256(encoded.encode('utf-8')).hexdigest()


def sign_approval_token(session_id: str, action_digest: str, secret: Optional[str] = None) -> str:
	key = (secret or CONFIG.OODA_AGENT_CONFIRM_SECRET).encode('utf-8')
	mac = hmac.new(key, f'{session_id}:{action_digest}'.encode('utf-8'), hashlib.sha256).digest()
	return base64.urlsafe_b64encode(mac).rstrip(b'=').decode('ascii')


def verify_approval_token(session_id: str, action_digest: str, token: str, secret: Optional[str] = None) -> bool:
	expected = sign_approval_token(session_id, action_digest, secret)
	return hmac.compare_digest(expected, str(token or ''))


class WebPolicyEngine:
	"""Classifies web actions by risk; high-risk ones need a signed approval token."""

	def __init__(self, secret: Optional[str] = None):
		self.secret = secret

	def classify_risk(self, action: WebAction) -> RiskLevel:
		if action.type == 'submit':
			return 'high'
		if action.type == 'click':
			target = action.target
			haystack = f'{(target.text if target else None) or ""} {(target.css if target else None) or ""}'.lower().strip()
			if any(word in haystack for word in HIGH_RISK_KEYWORDS):
				return 'high'
			return 'medium'
		if action.type == 'fill':
			return 'medium'
		if action.type in ('navigate', 'extract', 'scroll', 'wait'):
			return 'low'
		return 'medium'

	def evaluate(self, action: WebAction) -> PolicyDecision:
		risk = self.classify_risk(action)
		needs_confirmation = risk == 'high'
		return PolicyDecision(
			risk=risk,
			needs_confirmation=needs_confirmation,
			reason='High-risk action requires human confirmation token' if needs_confirmation else 'Action allowed',
			action_digest=compute_action_digest(action),
		)

	def sign(self, session_id: str, action: WebAction) -> str:
		return sign_approval_token(session_id, compute_action_digest(action), self.secret)

	def assert_allowed(self, action: WebAction, session_id: str, token: Optional[str] = None) -> PolicyDecision:
		decision = self.evaluate(action)
		if not decision.needs_confirmation:
			return decision
		if not token or not verify_approval_token(session_id, decision.action_digest, token, self.secret):
			logger.warning(f'🔒 {action.type} on session {session_id} needs confirmation ({decision.action_digest[:12]})')
			raise ConfirmationRequired(session_id, decision.action_digest)
		return decision
