class OodaAgentError(Exception):
	"""Base class for every error raised by the agent core."""


class InvalidObservation(OodaAgentError):
	"""Observe was handed input that cannot form an Observation (e.g. no task)."""


class AuthorizationError(OodaAgentError):
	"""A plan step was rejected by the security gate before it ran."""

	def __init__(self, tool_name: str, message: str):
		self.tool_name = tool_name
		super().__init__(message)


class NotAllowlisted(AuthorizationError):
	def __init__(self, tool_name: str):
		super().__init__(tool_name, f"Tool '{tool_name}' is not in allowlist")


class Denied(AuthorizationError):
	def __init__(self, tool_name: str):
		super().__init__(tool_name, f"Tool '{tool_name}' is denied")


class PerceptionFailure(OodaAgentError):
	"""Evaluating the page failed. Not retried here; retry policy is the caller's."""


class ExecutionTimeout(OodaAgentError):
	def __init__(self, step_id: str, timeout_seconds: float):
		self.step_id = step_id
		self.timeout_seconds = timeout_seconds
		super().__init__(f'Step {step_id} timed out after {timeout_seconds}s')


class ToolNotFound(OodaAgentError):
	def __init__(self, tool_name: str):
		self.tool_name = tool_name
		super().__init__(f'Tool not found: {tool_name}')


class WebActionError(OodaAgentError):
	"""A web action could not be carried out against the page."""


class ConfirmationRequired(OodaAgentError):
	"""High-risk web action attempted without a valid approval token."""

	def __init__(self, session_id: str, action_digest: str):
		self.session_id = session_id
		self.action_digest = action_digest
		self.command_hint = f'approve {session_id} {action_digest}'
		super().__init__(f'Confirmation required for session {session_id} (action {action_digest[:12]})')
