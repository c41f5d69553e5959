"""
Modular Debugger

Leveled, multi-destination logging with a scoped source label.
One Debugger per source, a bit-field gate, and a fan-out of each
formatted line to file, screen, email and event writers.
"""

from modular.debugger.core import Debugger
from modular.debugger.records import Facility, LogRecord, Environment, SEVERITY_MASK
from modular.debugger.bitfield import has_bits, set_bits, clear_bits, severity_of
from modular.debugger.sources import SourceStack, ScopedSource
from modular.debugger.writers import (
    Writer,
    FileWriter,
    ScreenWriter,
    EmailWriter,
    EventWriter,
)
from modular.debugger.logger import Logger, WriterFailure
from modular.debugger.formatters import LogFormatter, LineFormatter
from modular.debugger.digest import MessageCatalog, digest
from modular.debugger.registry import DebuggerRegistry
from modular.debugger.errors import ConfigurationError, UnsafePathError, EscalatedError

__all__ = [
    "Debugger",
    "Facility",
    "LogRecord",
    "Environment",
    "SEVERITY_MASK",
    "has_bits",
    "set_bits",
    "clear_bits",
    "severity_of",
    "SourceStack",
    "ScopedSource",
    "Writer",
    "FileWriter",
    "ScreenWriter",
    "EmailWriter",
    "EventWriter",
    "Logger",
    "WriterFailure",
    "LogFormatter",
    "LineFormatter",
    "MessageCatalog",
    "digest",
    "DebuggerRegistry",
    "ConfigurationError",
    "UnsafePathError",
    "EscalatedError",
]
