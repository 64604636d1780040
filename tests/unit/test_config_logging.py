import io
import logging

from ooda_agent.agent.settings import ExecutorSettings, ReasoningSettings
from ooda_agent.config import CONFIG
from ooda_agent.logging_config import setup_logging


def test_config_reads_environment_lazily(monkeypatch, tmp_path):
    monkeypatch.setenv('OODA_AGENT_MAX_PARALLEL', '3')
    monkeypatch.setenv('OODA_AGENT_DEFAULT_TIMEOUT_SECONDS', '2.5')
    monkeypatch.setenv('OODA_AGENT_SCREENSHOT_DIR', str(tmp_path))
    monkeypatch.setenv('OODA_AGENT_REASONING_MODE', 'MODEL')
    assert CONFIG.OODA_AGENT_MAX_PARALLEL == 3
    assert CONFIG.OODA_AGENT_DEFAULT_TIMEOUT_SECONDS == 2.5
    assert CONFIG.OODA_AGENT_SCREENSHOT_DIR == tmp_path
    assert CONFIG.OODA_AGENT_REASONING_MODE == 'model'

    monkeypatch.delenv('OODA_AGENT_ALLOWED_TOOLS', raising=False)
    assert CONFIG.OODA_AGENT_ALLOWED_TOOLS is None
    monkeypatch.setenv('OODA_AGENT_ALLOWED_TOOLS', 'read, ,write')
    assert CONFIG.OODA_AGENT_ALLOWED_TOOLS == ['read', 'write']


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv('OODA_AGENT_MAX_PARALLEL', '4')
    monkeypatch.setenv('OODA_AGENT_DEFAULT_TIMEOUT_SECONDS', '12')
    monkeypatch.setenv('OODA_AGENT_MAX_TOOLS', '5')
    monkeypatch.delenv('OODA_AGENT_REASONING_MODE', raising=False)
    executor_settings = ExecutorSettings.from_env()
    reasoning_settings = ReasoningSettings.from_env()
    assert executor_settings.max_parallel == 4
    assert executor_settings.default_timeout_seconds == 12.0
    assert reasoning_settings.max_tools == 5
    assert reasoning_settings.mode == 'fast'


def test_setup_logging_adds_result_level_and_formats_lines():
    root = logging.getLogger()
    package_logger = logging.getLogger('ooda_agent')
    saved = (root.handlers[:], root.level, package_logger.handlers[:], package_logger.level, package_logger.propagate)
    stream = io.StringIO()
    try:
        logger = setup_logging(stream=stream, log_level='debug', force_setup=True)
        assert logger is package_logger
        assert hasattr(logging, 'RESULT')
        logging.getLogger('ooda_agent.tests').info('hello from tests')
        line = stream.getvalue().strip().splitlines()[-1]
        assert 'INFO' in line
        assert '[ooda_agent.tests]' in line
        assert line.endswith('hello from tests')
        assert logging.getLogger('playwright').level == logging.ERROR
    finally:
        root.handlers, root.level = saved[0], saved[1]
        package_logger.handlers, package_logger.level, package_logger.propagate = saved[2], saved[3], saved[4]
