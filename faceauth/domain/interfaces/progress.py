"""Progress reporting capability injected into long enroll/verify calls."""
from typing import List, Protocol

from faceauth.core.logging import get_logger
from faceauth.domain.value_objects.verification import ProgressEvent

logger = get_logger(__name__)


class ProgressReporter(Protocol):
    def report(self, step: int, total: int, message: str) -> None:
        ...


class NullProgressReporter:
    """Discards progress notifications."""

    def report(self, step: int, total: int, message: str) -> None:
        return None


class LoggingProgressReporter:
    """Emits progress notifications as structured log events."""

    def report(self, step: int, total: int, message: str) -> None:
        logger.info("Progress", step=step, total=total, progress_message=message)


class RecordingProgressReporter:
    """Collects progress notifications, e.g. to return them with an HTTP response."""

    def __init__(self) -> None:
        self.events: List[ProgressEvent] = []

    def report(self, step: int, total: int, message: str) -> None:
        self.events.append(ProgressEvent(step=step, total=total, message=message))
