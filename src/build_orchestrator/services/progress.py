"""Progress lines streamed back to the caller during a build."""

from enum import Enum
from typing import Callable, List, Optional

import structlog
from pydantic import BaseModel

logger = structlog.get_logger(__name__)


class ProgressKind(str, Enum):
    """Semantic tag of a progress line."""
    INFO = "info"
    ERROR = "error"
    SYSTEM = "system"


class ProgressLine(BaseModel):
    """One human-readable progress message."""
    kind: ProgressKind
    text: str
    service: Optional[str] = None
    environment: Optional[str] = None
    job: Optional[str] = None


ProgressSink = Callable[[ProgressLine], None]


class ProgressStream:
    """Forwards progress lines to a sink and mirrors them into the log.

    ``bind`` returns a stream that tags every line with a service and
    environment; bound streams share the parent's sink.
    """

    def __init__(
        self,
        sink: Optional[ProgressSink] = None,
        service: Optional[str] = None,
        environment: Optional[str] = None,
    ):
        self._sink = sink
        self.service = service
        self.environment = environment

    def bind(self, service: Optional[str] = None, environment: Optional[str] = None) -> "ProgressStream":
        return ProgressStream(
            self._sink,
            service=service if service is not None else self.service,
            environment=environment if environment is not None else self.environment,
        )

    def emit(self, kind: ProgressKind, text: str, job: Optional[str] = None) -> ProgressLine:
        line = ProgressLine(
            kind=kind,
            text=text,
            service=self.service,
            environment=self.environment,
            job=job,
        )
        logger.debug(
            "progress",
            kind=kind.value,
            text=text if job is None else f"<{len(text)} chars of job log>",
            service=self.service,
            environment=self.environment,
            job=job,
        )
        if self._sink is not None:
            self._sink(line)
        return line

    def info(self, text: str, job: Optional[str] = None) -> ProgressLine:
        return self.emit(ProgressKind.INFO, text, job=job)

    def error(self, text: str) -> ProgressLine:
        return self.emit(ProgressKind.ERROR, text)

    def system(self, text: str) -> ProgressLine:
        return self.emit(ProgressKind.SYSTEM, text)


class ProgressRecorder:
    """Sink that keeps every line, handy for tests and summaries."""

    def __init__(self):
        self.lines: List[ProgressLine] = []

    def __call__(self, line: ProgressLine) -> None:
        self.lines.append(line)

    def texts(self, kind: Optional[ProgressKind] = None) -> List[str]:
        return [line.text for line in self.lines if kind is None or line.kind == kind]
