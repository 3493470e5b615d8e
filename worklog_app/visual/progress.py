"""Progress banner for long-running report builds."""

from __future__ import annotations

import logging
import time

import streamlit as st

from worklog_app.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)


def describe_error(exc: Exception) -> str:
    if isinstance(exc, ExternalServiceError):
        if exc.status_code == 0:
            return "Jira could not be reached. Check the server URL and your network."
        if exc.status_code in (401, 403):
            return f"Jira rejected the request ({exc.status_code}). Check the email and API token."
        return f"Jira returned {exc.status_code}."
    return str(exc)


class ProgressReporter:
    """Info banner, step line and progress bar fed by service progress callbacks.

    ``callback`` matches the ``progress(message, current, total)`` signature the
    service accepts. Steps without a total leave the bar where it was.
    """

    def __init__(self, title: str):
        self._started = time.monotonic()
        self._container = st.container()
        self._container.info(title)
        self._step = self._container.empty()
        self._bar = self._container.progress(0.0)
        self._steps = 0
        self._done = False

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._started

    def callback(self, message: str, current: int | None = None, total: int | None = None) -> None:
        if self._done:
            return
        self._steps += 1
        self._step.write(f"{self._steps}. {message}")
        if total:
            self._bar.progress(min(max((current or 0) / total, 0.0), 1.0))

    def complete(self, message: str) -> None:
        if self._done:
            return
        self._bar.progress(1.0)
        self._container.success(f"{message} ({self.elapsed:.1f}s)")
        self._done = True

    def error(self, message: str) -> None:
        if self._done:
            return
        self._container.error(message)
        self._done = True

    def fail(self, action: str, exc: Exception) -> None:
        logger.warning("%s failed after %.1fs: %s", action, self.elapsed, exc)
        self.error(f"{action} failed: {describe_error(exc)}")
