"""Exception types raised by the worklog engine."""

from __future__ import annotations


class WorklogAppError(RuntimeError):
    """Base class for errors surfaced to callers of the service layer."""


class ExternalServiceError(WorklogAppError):
    """Raised when the upstream tracker answers with a non-2xx status.

    ``status_code`` is 0 when no HTTP response was received at all.
    """

    def __init__(self, service: str, status_code: int, body: str = ""):
        super().__init__(f"{service} error: {status_code}")
        self.service = service
        self.status_code = status_code
        self.body = body
