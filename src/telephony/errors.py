"""Domain-specific exceptions for the AMI call monitor.

These exceptions are safe to import from API layers without opening any socket.
"""

from __future__ import annotations


class MonitorError(Exception):
    status_code: int = 500
    default_detail: str = "Call monitor error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class AmiConnectionError(MonitorError):
    status_code = 503
    default_detail = "Could not connect to the Asterisk Manager Interface."


class AmiAuthenticationError(MonitorError):
    status_code = 502
    default_detail = "AMI login failed."


class AmiConnectionLost(MonitorError):
    status_code = 503
    default_detail = "AMI connection closed."


class ActionTimeoutError(MonitorError):
    status_code = 504
    default_detail = "No AMI response received in time."


class SupervisorNotConfiguredError(MonitorError):
    status_code = 409
    default_detail = "Supervisor monitoring endpoint is not configured."


class MonitorNotRunningError(MonitorError):
    status_code = 503
    default_detail = "Call monitor is not running."
