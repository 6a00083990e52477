"""
Retry Logic with Exponential Backoff
=====================================
Backoff schedule and sleep primitive for bounded retry loops.
"""

from .backoff import BackoffPolicy, Sleep, default_sleep

__all__ = [
    "BackoffPolicy",
    "Sleep",
    "default_sleep",
]
