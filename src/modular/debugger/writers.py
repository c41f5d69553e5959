"""
Writers (output destinations).

A writer receives an already formatted line plus its severity, and
decides through its own threshold and comparison whether to keep it.

    FileWriter    appends to a log file, opened lazily, kept open
    ScreenWriter  prints to stdout (or any stream)
    EmailWriter   buffers everything, sends one email on close
    EventWriter   persists each line as an event record
"""

import operator
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Optional, Protocol, TextIO

from modular.debugger.bitfield import severity_of
from modular.debugger.formatters import strip_terminator
from modular.debugger.records import Facility


Comparison = Callable[[int, int], bool]

COMPARISONS: dict[str, Comparison] = {
    "<=": operator.le,
    "<": operator.lt,
    "==": operator.eq,
    "!=": operator.ne,
    ">=": operator.ge,
    ">": operator.gt,
}


def resolve_comparison(comparison: str | Comparison) -> Comparison:
    if callable(comparison):
        return comparison
    try:
        return COMPARISONS[comparison]
    except KeyError:
        raise ValueError(
            f"Unknown comparison '{comparison}'. "
            f"Valid comparisons: {', '.join(COMPARISONS)}"
        )


class EmailSender(Protocol):
    def send(self, to: str, sender: str, subject: str, body: str) -> None: ...


class EventSink(Protocol):
    def create(self, fields: dict[str, Any]) -> None: ...


class Writer(ABC):
    """
    Base writer.

    accept() compares the severity part of a message level with the
    severity part of the threshold. With the default "<=" a message is
    kept when it is at least as severe as the threshold.
    """

    def __init__(
        self,
        name: str,
        threshold: int = Facility.INFO,
        comparison: str | Comparison = "<=",
    ):
        self.name = name
        self.threshold = threshold
        self.comparison = comparison

    @property
    def comparison(self) -> str | Comparison:
        return self._comparison

    @comparison.setter
    def comparison(self, value: str | Comparison) -> None:
        self._compare = resolve_comparison(value)
        self._comparison = value

    def accept(self, level: int) -> bool:
        return bool(self._compare(severity_of(level), severity_of(self.threshold)))

    @abstractmethod
    def write(self, line: str, level: int) -> None:
        """Persist or display a line. Called only after accept() passes."""
        ...

    def emit(self, line: str, level: int, source: str = "") -> None:
        """Entry point used by Logger.dispatch. Most writers ignore the source."""
        self.write(line, level)

    def flush(self) -> None:
        """Override in buffered writers."""
        pass

    def close(self) -> None:
        """Cleanup. Override if the writer holds resources."""
        self.flush()

    def describe(self) -> dict[str, Any]:
        comparison = self._comparison if isinstance(self._comparison, str) else "custom"
        return {
            "type": type(self).__name__,
            "threshold": int(self.threshold),
            "comparison": comparison,
        }


class FileWriter(Writer):
    """
    Appends lines to a file. The handle is opened on the first write and
    stays open until close(). In truncate mode an existing file is deleted
    before that first open.
    """

    def __init__(
        self,
        path: str | Path,
        threshold: int = Facility.INFO,
        comparison: str | Comparison = "<=",
        truncate: bool = False,
        name: str = "file",
    ):
        super().__init__(name, threshold, comparison)
        self.path = Path(path)
        self.truncate = truncate
        self._file: Optional[TextIO] = None

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def _ensure_open(self) -> TextIO:
        if self._file is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if self.truncate:
                self.path.unlink(missing_ok=True)
                self.truncate = False
            self._file = open(self.path, "a", encoding="utf-8")
        return self._file

    def write(self, line: str, level: int) -> None:
        self._ensure_open().write(line)

    def flush(self) -> None:
        if self._file:
            self._file.flush()

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    def read(self) -> str:
        """Everything written so far (empty when the file was never created)."""
        self.flush()
        if not self.path.exists():
            return ""
        return self.path.read_text(encoding="utf-8")

    def describe(self) -> dict[str, Any]:
        info = super().describe()
        info["path"] = str(self.path)
        return info


class ScreenWriter(Writer):
    """
    Prints lines verbatim. The line already carries the break marker that
    suits the context (plain newline on a terminal, <br/> for a web page).
    """

    def __init__(
        self,
        threshold: int = Facility.INFO,
        comparison: str | Comparison = "<=",
        stream: TextIO | None = None,
        name: str = "screen",
    ):
        super().__init__(name, threshold, comparison)
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        # Resolved late so redirected/captured stdout is honoured
        return self._stream if self._stream is not None else sys.stdout

    def write(self, line: str, level: int) -> None:
        self.stream.write(line)
        self.stream.flush()


class EmailWriter(Writer):
    """
    Collects lines and sends them as a single email when closed.
    Nothing is sent without a recipient or with an empty body, and
    nothing is sent twice.
    """

    def __init__(
        self,
        recipient: str,
        transport: EmailSender,
        threshold: int = Facility.INFO,
        comparison: str | Comparison = "<=",
        sender: str = "",
        subject: str = "Debug log",
        name: str = "email",
    ):
        super().__init__(name, threshold, comparison)
        self.recipient = recipient
        self.sender = sender
        self.subject = subject
        self._transport = transport
        self._buffer: list[str] = []
        self._sent = False

    @property
    def body(self) -> str:
        return "".join(self._buffer)

    @property
    def sent(self) -> bool:
        return self._sent

    def write(self, line: str, level: int) -> None:
        self._buffer.append(line)

    def close(self) -> None:
        if self._sent:
            return
        body = self.body
        if self.recipient and body:
            self._sent = True
            self._transport.send(self.recipient, self.sender, self.subject, body)
        self._buffer.clear()

    def describe(self) -> dict[str, Any]:
        info = super().describe()
        info["recipient"] = self.recipient
        info["buffered_lines"] = len(self._buffer)
        return info


class EventWriter(Writer):
    """
    Creates one persisted event per line through the event store.

    Events carry the source of the message that produced them; `source`
    is the fallback when a line arrives without one.
    """

    def __init__(
        self,
        store: EventSink,
        threshold: int = Facility.INFO,
        comparison: str | Comparison = "<=",
        source: str = "Global",
        name: str = "event",
    ):
        super().__init__(name, threshold, comparison)
        self.source = source
        self._store = store

    def emit(self, line: str, level: int, source: str = "") -> None:
        self._store.create({"body": strip_terminator(line), "source": source or self.source})

    def write(self, line: str, level: int) -> None:
        self.emit(line, level)
