"""Environment-backed configuration.

Every property re-reads the environment on access, so tests can patch
``os.environ`` without reloading the module.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _split_csv(raw: str) -> list[str]:
	return [part.strip() for part in raw.split(',') if part.strip()]


class Config:
	"""Lazy view over the ``OODA_AGENT_*`` environment variables."""

	@property
	def OODA_AGENT_LOGGING_LEVEL(self) -> str:
		return os.getenv('OODA_AGENT_LOGGING_LEVEL', 'info').lower()

	@property
	def OODA_AGENT_SETUP_LOGGING(self) -> bool:
		return os.getenv('OODA_AGENT_SETUP_LOGGING', 'true').lower() != 'false'

	@property
	def OODA_AGENT_SCREENSHOT_DIR(self) -> Path:
		raw = os.getenv('OODA_AGENT_SCREENSHOT_DIR')
		if raw:
			return Path(raw).expanduser()
		return Path.home() / '.ooda_agent' / 'screenshots'

	@property
	def OODA_AGENT_MAX_PARALLEL(self) -> int:
		return int(os.getenv('OODA_AGENT_MAX_PARALLEL', '10') or '10')

	@property
	def OODA_AGENT_DEFAULT_TIMEOUT_SECONDS(self) -> float:
		return float(os.getenv('OODA_AGENT_DEFAULT_TIMEOUT_SECONDS', '30') or '30')

	@property
	def OODA_AGENT_REASONING_MODE(self) -> str:
		return os.getenv('OODA_AGENT_REASONING_MODE', 'fast').lower()

	@property
	def OODA_AGENT_MAX_TOOLS(self) -> int:
		return int(os.getenv('OODA_AGENT_MAX_TOOLS', '20') or '20')

	@property
	def OODA_AGENT_ALLOWED_TOOLS(self) -> list[str] | None:
		raw = os.getenv('OODA_AGENT_ALLOWED_TOOLS')
		return None if raw is None else _split_csv(raw)

	@property
	def OODA_AGENT_DENIED_TOOLS(self) -> list[str]:
		return _split_csv(os.getenv('OODA_AGENT_DENIED_TOOLS', ''))

	@property
	def OODA_AGENT_SANDBOX_MODE(self) -> str:
		return os.getenv('OODA_AGENT_SANDBOX_MODE', 'process').lower()

	@property
	def OODA_AGENT_CONFIRM_SECRET(self) -> str:
		return os.getenv('OODA_AGENT_CONFIRM_SECRET', 'ooda-agent-local-secret')


CONFIG = Config()
