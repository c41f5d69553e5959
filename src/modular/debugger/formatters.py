"""
Log line formatting.

One tab-separated line per record:

    2026-10-19	14:32:05	WARN  	Importer	Row 12 skipped

terminated by a newline, with an HTML break in front of it when the
output ends up in a web page rather than a terminal.
"""

import os
from abc import ABC, abstractmethod

from modular.debugger.records import LogRecord


HTML_BREAK = "<br/>"


def is_cli() -> bool:
    """Best guess whether we run from a command line rather than a web server."""
    return not ("GATEWAY_INTERFACE" in os.environ or "SERVER_SOFTWARE" in os.environ)


class LogFormatter(ABC):
    """Base formatter. Transforms LogRecord → line (terminator included)."""

    @abstractmethod
    def format(self, record: LogRecord) -> str: ...


class LineFormatter(LogFormatter):
    """Tab-separated date, time, label, source and message."""

    def __init__(self, cli: bool | None = None):
        self.cli = is_cli() if cli is None else cli

    @property
    def terminator(self) -> str:
        return "\n" if self.cli else HTML_BREAK + "\n"

    def format(self, record: LogRecord) -> str:
        fields = [
            record.timestamp.strftime("%Y-%m-%d"),
            record.timestamp.strftime("%H:%M:%S"),
            record.label,
            record.source,
            record.message,
        ]
        return "\t".join(fields) + self.terminator


def strip_terminator(line: str) -> str:
    """Drop the trailing newline and HTML break, if any."""
    line = line.rstrip("\r\n")
    if line.endswith(HTML_BREAK):
        line = line[: -len(HTML_BREAK)]
    return line
