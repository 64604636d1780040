import locale
import logging
import sys

from ooda_agent.config import CONFIG
from ooda_agent.utils import now_utc_iso, process_start_utc_iso, uptime_seconds

RESULT_LEVEL = 35

PACKAGE_LOGGER = 'ooda_agent'

# Loggers that are chatty at INFO while the agent drives a browser
QUIET_LOGGERS = (
	'playwright',
	'asyncio',
	'httpx',
	'httpcore',
	'urllib3',
	'charset_normalizer',
)

LINE_FORMAT = '%(levelname)-8s [%(name)s] %(utc)s (+%(uptime)s) %(message)s'


def _register_result_level():
	"""
	Make RESULT available as `logging.RESULT` and `logger.result(...)`.

	RESULT sits between WARNING and ERROR so that final step and task outcomes
	still show when only results are requested.
	"""
	if hasattr(logging, 'RESULT'):
		return

	def result(self, message, *args, **kwargs):
		if self.isEnabledFor(RESULT_LEVEL):
			self._log(RESULT_LEVEL, message, args, **kwargs)

	logging.addLevelName(RESULT_LEVEL, 'RESULT')
	logging.RESULT = RESULT_LEVEL
	logging.getLoggerClass().result = result


def _root_level(log_type):
	if log_type == 'result':
		return RESULT_LEVEL
	if log_type == 'debug':
		return logging.DEBUG
	return logging.INFO


class SafeStreamHandler(logging.StreamHandler):
	"""Falls back to 'replace' encoding when the console cannot print a character (emoji on cp1252, etc)."""

	def emit(self, record):  # type: ignore[override]
		try:
			line = self.format(record) + self.terminator
			try:
				self.stream.write(line)
			except UnicodeEncodeError:
				encoding = getattr(self.stream, 'encoding', None) or locale.getpreferredencoding(False) or 'utf-8'
				self.stream.write(line.encode(encoding, errors='replace').decode(encoding, errors='replace'))
			self.flush()
		except Exception:
			self.handleError(record)


class OodaAgentFormatter(logging.Formatter):
	"""Adds `utc` and `uptime` fields so interleaved agent sessions can be lined up."""

	def format(self, record):
		record.utc = now_utc_iso()
		record.uptime = f'{uptime_seconds():.3f}s'
		return super().format(record)


def setup_logging(stream=None, log_level=None, force_setup=False):
	"""Setup logging configuration for ooda_agent.

	Args:
		stream: Output stream for logs (default: sys.stdout).
		log_level: 'debug', 'info' or 'result' (default: CONFIG.OODA_AGENT_LOGGING_LEVEL)
		force_setup: Replace existing root handlers instead of leaving them alone
	"""
	_register_result_level()
	package_logger = logging.getLogger(PACKAGE_LOGGER)

	root = logging.getLogger()
	if root.hasHandlers() and not force_setup:
		return package_logger

	log_type = (log_level or CONFIG.OODA_AGENT_LOGGING_LEVEL).lower()
	level = _root_level(log_type)

	console = SafeStreamHandler(stream or sys.stdout)
	console.setFormatter(OodaAgentFormatter('%(message)s' if log_type == 'result' else LINE_FORMAT))
	console.setLevel(level)

	root.handlers = [console]
	root.setLevel(level)

	package_logger.propagate = False
	package_logger.handlers = [console]
	package_logger.setLevel(level)
	package_logger.debug(f'Logging initialized at {now_utc_iso()} (process_start={process_start_utc_iso()})')

	for name in QUIET_LOGGERS:
		quiet = logging.getLogger(name)
		quiet.setLevel(logging.ERROR)
		quiet.propagate = False

	return package_logger
