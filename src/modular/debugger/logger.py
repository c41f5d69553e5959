"""
Logger: ordered fan-out of one formatted line to many writers.

Every writer whose threshold accepts the level gets the line, in the
order writers were added. A writer that raises is skipped and its
failure recorded; later writers are still served and the caller never
sees the exception.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from modular.debugger.writers import Comparison, Writer


@dataclass(frozen=True)
class WriterFailure:
    """A write that raised inside dispatch()."""
    writer_name: str
    error: BaseException
    line: str
    timestamp: datetime = field(default_factory=datetime.now)


class Logger:
    """
    Usage:
        logger = Logger()
        logger.add_writer(FileWriter("logs/app.log"), threshold=Facility.WARN)
        logger.add_writer(ScreenWriter())
        logger.dispatch(line, Facility.ERROR)
    """

    def __init__(self, failure_buffer_size: int = 100):
        self._writers: list[Writer] = []
        self._failures: deque[WriterFailure] = deque(maxlen=failure_buffer_size)

    # ── Writer Management ─────────────────────────────────────────

    def add_writer(
        self,
        writer: Writer,
        threshold: Optional[int] = None,
        comparison: str | Comparison | None = None,
    ) -> Writer:
        """Append a writer, optionally overriding its threshold/comparison."""
        if threshold is not None:
            writer.threshold = threshold
        if comparison is not None:
            writer.comparison = comparison
        self._writers.append(writer)
        return writer

    def clear_writers(self) -> None:
        """Close and drop every writer (re-initialization)."""
        writers, self._writers = self._writers, []
        for writer in writers:
            try:
                writer.close()
            except Exception as e:
                self._failures.append(WriterFailure(writer.name, e, ""))

    def get_writer(self, name: str) -> Optional[Writer]:
        for writer in self._writers:
            if writer.name == name:
                return writer
        return None

    @property
    def writers(self) -> list[Writer]:
        return list(self._writers)

    # ── Dispatch ──────────────────────────────────────────────────

    def dispatch(self, line: str, level: int, source: str = "") -> int:
        """
        Hand the line to every accepting writer. Returns how many wrote it.
        """
        written = 0
        for writer in self._writers:
            try:
                if writer.accept(level):
                    writer.emit(line, level, source)
                    written += 1
            except Exception as e:
                # One broken writer must not starve the others
                self._failures.append(WriterFailure(writer.name, e, line))
        return written

    @property
    def failures(self) -> list[WriterFailure]:
        return list(self._failures)

    # ── Cleanup ───────────────────────────────────────────────────

    def flush(self) -> None:
        for writer in self._writers:
            try:
                writer.flush()
            except Exception as e:
                self._failures.append(WriterFailure(writer.name, e, ""))

    def close(self) -> None:
        for writer in self._writers:
            try:
                writer.close()
            except Exception as e:
                self._failures.append(WriterFailure(writer.name, e, ""))
