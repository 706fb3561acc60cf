"""Shared FastAPI dependencies.

Separated to avoid circular imports between route modules and ``main``.
"""

from __future__ import annotations

from functools import lru_cache

from config.settings import get_settings
from telephony.call_monitor import CallMonitor, MonitorConfig


@lru_cache(maxsize=1)
def _monitor_factory() -> CallMonitor:
    return CallMonitor(MonitorConfig.from_settings(get_settings()))


def get_monitor() -> CallMonitor:
    return _monitor_factory()
