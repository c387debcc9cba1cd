"""Progress reporting for exports.

A report receives human-readable progress text. It is append-only and
must never fail the export: implementations swallow their own output
errors.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from cms_export.common.logging_config import REPORT_LOGGER
from .messages import message

logger = logging.getLogger(__name__)


class ReportFormat(Enum):
    """Emphasis of a report fragment."""
    DEFAULT = "default"
    NOTE = "note"
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"
    HEADLINE = "headline"


@dataclass
class ReportLine:
    """One finished report line."""
    text: str
    format: ReportFormat


class Report(ABC):
    """Progress sink.

    Text passed to ``print`` accumulates until ``println`` ends the line.
    A line takes the emphasis of its last fragment unless one of the
    fragments was a warning or error.
    """

    def __init__(self) -> None:
        self._fragments: List[str] = []
        self._format = ReportFormat.DEFAULT
        self.start_time = time.time()

    def key(self, message_key: str, *args: object) -> str:
        """Resolve a message key to its text."""
        return message(message_key, *args)

    def print(self, text: str, fmt: ReportFormat = ReportFormat.DEFAULT) -> None:
        self._fragments.append(str(text))
        if self._format not in (ReportFormat.WARNING, ReportFormat.ERROR):
            self._format = fmt

    def println(self, text: str = "", fmt: ReportFormat = ReportFormat.DEFAULT) -> None:
        self.print(text, fmt)
        line = ReportLine("".join(self._fragments), self._format)
        self._fragments = []
        self._format = ReportFormat.DEFAULT
        try:
            self._emit(line)
        except Exception as e:
            logger.warning(f"Report output failed: {e}")

    def println_error(self, error: BaseException) -> None:
        """Report an exception on its own line."""
        self.println(f"{self.key('report.error')}{error}", ReportFormat.ERROR)

    def elapsed_seconds(self) -> float:
        return time.time() - self.start_time

    @abstractmethod
    def _emit(self, line: ReportLine) -> None:
        """Write one finished line."""


class LoggingReport(Report):
    """Report that writes each line through ``logging``."""

    _LEVELS = {
        ReportFormat.WARNING: logging.WARNING,
        ReportFormat.ERROR: logging.ERROR,
    }

    def __init__(self, report_logger: Optional[logging.Logger] = None) -> None:
        super().__init__()
        self.report_logger = report_logger or logging.getLogger(REPORT_LOGGER)

    def _emit(self, line: ReportLine) -> None:
        self.report_logger.log(self._LEVELS.get(line.format, logging.INFO), line.text)


class MemoryReport(Report):
    """Report that keeps every line, for display after the export."""

    def __init__(self) -> None:
        super().__init__()
        self.lines: List[ReportLine] = []

    def _emit(self, line: ReportLine) -> None:
        self.lines.append(line)

    @property
    def text(self) -> List[str]:
        return [line.text for line in self.lines]

    def errors(self) -> List[str]:
        return [line.text for line in self.lines if line.format is ReportFormat.ERROR]
