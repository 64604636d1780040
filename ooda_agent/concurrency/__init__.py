"""
Concurrency utilities package.
"""

from .locks import KeyedLocks, get_page_lock_stats, page_lock

__all__ = [
    'KeyedLocks',
    'page_lock',
    'get_page_lock_stats',
]
