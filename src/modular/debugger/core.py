"""
Debugger: leveled, multi-destination logging for one source label.

The level is a facilities value: one severity bit (the threshold) plus
destination bits saying which writers to attach. A message passes the
gate when its severity is at least as severe as the threshold, i.e.
numerically lower or equal:

    debugger = Debugger(config, Facility.INFO | Facility.FILE)
    debugger.warn("disk almost full")      # WARN(2) <= INFO(8) → written
    debugger.trace("cache miss")           # TRACE(16) > INFO(8) → dropped

Most calls that do not pass end at the gate with no formatting work.
"""

from __future__ import annotations

import inspect
import traceback
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterator, Mapping, Optional, TextIO

from modular.debugger.bitfield import has_bits, severity_of
from modular.debugger.digest import MessageCatalog, Translator, digest
from modular.debugger.errors import EscalatedError
from modular.debugger.formatters import LineFormatter, LogFormatter
from modular.debugger.logger import Logger
from modular.debugger.paths import resolve_log_file
from modular.debugger.records import (
    SEVERITY_MASK,
    Facility,
    LogRecord,
    describe_facilities,
    level_label,
)
from modular.debugger.sources import ScopedSource, SourceStack
from modular.debugger.writers import (
    EmailSender,
    EmailWriter,
    EventSink,
    EventWriter,
    FileWriter,
    ScreenWriter,
)

if TYPE_CHECKING:
    from modular.config import DebuggerConfig


class Debugger:
    """
    Owns one Logger, one SourceStack and the current level.

    Collaborators are injected; any that is missing simply means the
    matching writer is never attached.
    """

    # Re-export facilities for convenience: Debugger.INFO, etc.
    ERROR = Facility.ERROR
    WARN = Facility.WARN
    NOTICE = Facility.NOTICE
    INFO = Facility.INFO
    TRACE = Facility.TRACE
    FILE = Facility.FILE
    SCREEN = Facility.SCREEN
    EMAIL = Facility.EMAIL
    TRUNCATE = Facility.TRUNCATE
    EVENT = Facility.EVENT
    FROM_ENV = Facility.FROM_ENV

    def __init__(
        self,
        config: Optional["DebuggerConfig"] = None,
        level: int = Facility.FROM_ENV,
        source: str = "",
        *,
        transport: Optional[EmailSender] = None,
        event_store: Optional[EventSink] = None,
        catalog: MessageCatalog | Translator | None = None,
        stream: Optional[TextIO] = None,
        formatter: Optional[LogFormatter] = None,
    ) -> None:
        if config is None:
            from modular.config import DebuggerConfig
            config = DebuggerConfig()
        self.config = config
        self._transport = transport
        self._event_store = event_store
        self._catalog = catalog
        self._stream = stream
        self._formatter = formatter or LineFormatter(cli=config.cli)
        self._logger = Logger()
        self._sources = SourceStack()
        self._level: int = 0
        self._file_writer: Optional[FileWriter] = None
        self._closed = False

        self.initialize(level, source)
        self.info(f"Start of logging at {datetime.now():%Y-%m-%d %H:%M:%S}")

    # ── Setup ─────────────────────────────────────────────────────

    def initialize(
        self,
        level: int = Facility.FROM_ENV,
        source: Optional[str] = None,
        clear_writers: bool = True,
    ) -> "Debugger":
        """
        Set level and source, then attach a writer for every destination
        bit in the level. Raises ConfigurationError for an unmapped
        environment or an unsafe log file path.
        """
        if clear_writers:
            self._logger.clear_writers()
            self._file_writer = None

        self.set_level(level)
        self.set_source(source or self.source or type(self).__name__)

        level = self._level
        threshold = severity_of(level)
        enabled = set(self.config.writers)

        if "file" in enabled and has_bits(level, Facility.FILE):
            self.to_file(threshold, truncate=has_bits(level, Facility.TRUNCATE))

        if "screen" in enabled and has_bits(level, Facility.SCREEN):
            self._logger.add_writer(ScreenWriter(threshold, stream=self._stream))

        if "email" in enabled and has_bits(level, Facility.EMAIL):
            recipient = self.config.email.log_email
            if recipient and self._transport is not None:
                self._logger.add_writer(EmailWriter(
                    recipient,
                    self._transport,
                    threshold,
                    sender=self.sender,
                    subject=self.subject,
                ))

        if "event" in enabled and has_bits(level, Facility.EVENT):
            if self._event_store is not None:
                self._logger.add_writer(EventWriter(
                    self._event_store,
                    threshold,
                    source=self.config.event_sources[0] if self.config.event_sources else "Global",
                ))

        return self

    def to_file(self, threshold: int, truncate: bool = False, path=None) -> FileWriter:
        """Attach a FileWriter, by default at the configured path for the current source."""
        path = path or resolve_log_file(self.config, self.source)
        writer = FileWriter(path, threshold, "<=", truncate=truncate)
        self._logger.add_writer(writer)
        self._file_writer = writer
        return writer

    @property
    def logger(self) -> Logger:
        return self._logger

    @property
    def sources(self) -> SourceStack:
        return self._sources

    @property
    def log_file_path(self):
        return self._file_writer.path if self._file_writer else None

    @property
    def sender(self) -> str:
        return self.config.email.send_from or self.config.email.send_to or ""

    @property
    def subject(self) -> str:
        site = self.config.site_url or "localhost"
        return self.config.email.subject.format(site=site)

    # ── Level ─────────────────────────────────────────────────────

    @property
    def level(self) -> int:
        return self._level

    def set_level(self, level: int = Facility.FROM_ENV) -> "Debugger":
        if has_bits(level, Facility.FROM_ENV):
            self._level = self.env_level()
        else:
            self._level = int(level)
        return self

    def env_level(self, environment=None) -> int:
        """Facilities for an environment. Raises ConfigurationError if unmapped."""
        return self.config.level_for(environment)

    # ── Source ────────────────────────────────────────────────────

    @property
    def source(self) -> str:
        return self._sources.current

    def set_source(self, source: str) -> "Debugger":
        """Always pushes, so the previous source can be popped back."""
        self._sources.push(source)
        return self

    def pop_source(self) -> Optional[str]:
        return self._sources.pop()

    def scope(self, source: Optional[str] = None) -> ScopedSource:
        """
        Switch source until the returned guard exits. Without a source the
        calling function's name is used.

            with debugger.scope():
                debugger.info("in here")
        """
        if source is None:
            frame = inspect.currentframe()
            caller = frame.f_back if frame is not None else None
            source = caller.f_code.co_name if caller is not None else type(self).__name__
        return ScopedSource(self, source)

    # ── Core Logging ──────────────────────────────────────────────

    def passes(self, facilities: int, threshold: Optional[int] = None) -> int:
        """
        The gate. Returns the severity part of facilities if it is at least
        as severe as the threshold (default: current level), else 0.
        """
        gate = int(facilities) & SEVERITY_MASK
        threshold = severity_of(self._level if threshold is None else threshold)
        if gate and gate <= threshold:
            return gate
        return 0

    def log(
        self,
        message: str,
        facilities: int,
        source: Optional[str] = None,
        tokens: Optional[Mapping[str, Any]] = None,
    ) -> "Debugger":
        return self._log(message, facilities, source, tokens)

    def _log(
        self,
        message: str,
        facilities: int,
        source: Optional[str] = None,
        tokens: Optional[Mapping[str, Any]] = None,
        translate: bool = True,
    ) -> "Debugger":
        gate = self.passes(facilities)
        if not gate:
            return self

        source = source or self.source or type(self).__name__
        text = digest(message, source, tokens, self._catalog) if translate else str(message)
        record = LogRecord.create(gate, text, source=source, tokens=dict(tokens or {}))
        self._logger.dispatch(self._formatter.format(record), gate, source)
        return self

    def format_message(self, message: str, facilities: int, source: Optional[str] = None) -> str:
        """The line log() would write, without the gate or dispatch."""
        source = source or self.source or type(self).__name__
        record = LogRecord.create(
            int(facilities) & SEVERITY_MASK,
            digest(message, source, None, self._catalog),
            source=source,
        )
        return self._formatter.format(record)

    # ── Convenience Methods ───────────────────────────────────────

    def info(self, message: str, source: Optional[str] = None, tokens: Optional[Mapping[str, Any]] = None) -> "Debugger":
        return self.log(message, Facility.INFO, source, tokens)

    def trace(self, message: str, source: Optional[str] = None, tokens: Optional[Mapping[str, Any]] = None) -> "Debugger":
        return self.log(message, Facility.TRACE, source, tokens)

    def notice(self, message: str, source: Optional[str] = None, tokens: Optional[Mapping[str, Any]] = None) -> "Debugger":
        return self.log(message, Facility.NOTICE, source, tokens)

    def warn(self, message: str, source: Optional[str] = None, tokens: Optional[Mapping[str, Any]] = None) -> "Debugger":
        return self.log(message, Facility.WARN, source, tokens)

    def error(self, message, source: Optional[str] = None, tokens: Optional[Mapping[str, Any]] = None) -> "Debugger":
        """
        Strict mode (dev by default) raises through fail(); otherwise this
        is an ERROR log line.
        """
        if self.config.is_strict:
            if not isinstance(message, BaseException):
                source = source or self.source
                message = EscalatedError(digest(message, source, tokens, self._catalog), source)
            return self.fail(message, source, tokens)
        if isinstance(message, BaseException):
            message = str(message)
        return self.log(message, Facility.ERROR, source, tokens)

    def fail(self, message_or_error, source: Optional[str] = None, tokens: Optional[Mapping[str, Any]] = None) -> "Debugger":
        """
        Given an exception: log it with its origin at ERROR and its
        traceback at TRACE, then re-raise the very same object. Given a
        message: log it at ERROR and carry on.
        """
        if isinstance(message_or_error, BaseException):
            error = message_or_error
            context = error_context(error)
            message = str(error) or type(error).__name__
            details = " ".join(f"{k}={v}" for k, v in context.items() if v is not None and k != "backtrace")
            merged = {**(tokens or {}), **context}
            # EscalatedError text went through the catalog already
            translate = not isinstance(error, EscalatedError)
            self._log(f"{message} | {details}" if details else message, Facility.ERROR, source, merged, translate)
            if context["backtrace"]:
                self._log(context["backtrace"].rstrip(), Facility.TRACE, source, translate=False)
            raise error

        return self.log(message_or_error, Facility.ERROR, source, tokens)

    # ── Log Read-back ─────────────────────────────────────────────

    def read_log(self) -> Iterator[str]:
        """Lines of the current log file; nothing when not logging to file."""
        if self._file_writer is None:
            return
        self._file_writer.flush()
        if not self._file_writer.path.exists():
            return
        with open(self._file_writer.path, "r", encoding="utf-8") as f:
            yield from f

    # ── Status ────────────────────────────────────────────────────

    def status(self) -> dict:
        return {
            "level": self._level,
            "level_name": describe_facilities(self._level),
            "threshold": level_label(severity_of(self._level)).strip(),
            "source": self.source,
            "source_depth": self._sources.depth,
            "strict": self.config.is_strict,
            "writers": {w.name: w.describe() for w in self._logger.writers},
            "failures": [
                {"writer": f.writer_name, "error": repr(f.error)}
                for f in self._logger.failures
            ],
            "closed": self._closed,
        }

    # ── Teardown ──────────────────────────────────────────────────

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """
        Close writers (the email writer sends its buffer here) and, when
        email_log_file_to is set, mail the whole log file once.
        Runs at most once.
        """
        if self._closed:
            return
        self._closed = True

        email_to = self.config.email.email_log_file_to
        body = ""
        if email_to and self._file_writer is not None:
            self.info(f"End of logging at {datetime.now():%Y-%m-%d %H:%M:%S}")
            body = self._file_writer.read()

        self._logger.close()

        if body and self._transport is not None:
            self._transport.send(email_to, self.sender, self.subject, body)

    def __enter__(self) -> "Debugger":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False


def error_context(error: BaseException) -> dict[str, Any]:
    """Where an exception came from: file, line, code and formatted traceback."""
    file = line = None
    frames = traceback.extract_tb(error.__traceback__) if error.__traceback__ else []
    if frames:
        file, line = frames[-1].filename, frames[-1].lineno
    code = getattr(error, "code", None)
    if code is None:
        code = getattr(error, "errno", None)
    backtrace = "".join(traceback.format_exception(type(error), error, error.__traceback__)) if frames else ""
    return {"file": file, "line": line, "code": code, "backtrace": backtrace}
