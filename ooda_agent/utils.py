"""
Shared helpers for the agent core.

Log lines and observations carry UTC ISO timestamps with a trailing 'Z';
durations and uptime come from the monotonic clock.
"""
from __future__ import annotations

import logging
import re
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

_STARTED_AT = time.monotonic()
_STARTED_WALL = datetime.now(timezone.utc)

_WHITESPACE_RE = re.compile(r'\s+')

R = TypeVar('R')


def _iso_z(dt: datetime) -> str:
    return dt.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def uptime_seconds() -> float:
    return time.monotonic() - _STARTED_AT


def now_utc_iso() -> str:
    """Current time, e.g. 2025-08-25T12:34:56.789Z."""
    return _iso_z(datetime.now(timezone.utc))


def process_start_utc_iso() -> str:
    return _iso_z(_STARTED_WALL)


def now_epoch_ms() -> int:
    return time.time_ns() // 1_000_000


def collapse_whitespace(value: Any) -> str:
    """Flatten runs of whitespace to single spaces and strip the ends."""
    if value is None:
        return ''
    return _WHITESPACE_RE.sub(' ', str(value)).strip()


def time_execution_async(label: str = '') -> Callable[[Callable[..., Awaitable[R]]], Callable[..., Awaitable[R]]]:
    """Log how long an async callable took, at debug level."""

    def decorator(func: Callable[..., Awaitable[R]]) -> Callable[..., Awaitable[R]]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> R:
            start = time.monotonic()
            try:
                return await func(*args, **kwargs)
            finally:
                elapsed = time.monotonic() - start
                logger.debug(f'⏳ {label or func.__name__}() took {elapsed:.3f}s')

        return wrapper

    return decorator
