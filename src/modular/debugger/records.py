"""
Facility flags and log records.

Severity and destination share one integer space. Severity bits are
ordered so that a smaller value is more severe:

    ERROR(1) < WARN(2) < NOTICE(4) < INFO(8) < TRACE(16)

Destination bits sit above the severity mask and never take part in
the level comparison.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntFlag
from typing import Any


class Facility(IntFlag):
    """Severity, destination and sentinel bits."""
    ERROR = 1
    WARN = 2
    NOTICE = 4
    INFO = 8
    TRACE = 16

    FILE = 32
    SCREEN = 64
    EMAIL = 128
    TRUNCATE = 256
    EVENT = 512

    FROM_ENV = 1024  # Resolve level through the environment map

    @classmethod
    def from_name(cls, name: str) -> "Facility":
        """Resolve a single flag from its name, case-insensitive."""
        name_upper = name.strip().upper()
        try:
            return cls[name_upper]
        except KeyError:
            raise ValueError(
                f"Unknown facility '{name}'. "
                f"Valid facilities: {', '.join(m.name for m in cls)}"
            )


SEVERITY_MASK: int = (
    Facility.ERROR | Facility.WARN | Facility.NOTICE | Facility.INFO | Facility.TRACE
).value

DESTINATION_MASK: int = (
    Facility.FILE | Facility.SCREEN | Facility.EMAIL | Facility.TRUNCATE | Facility.EVENT
).value

SEVERITIES: tuple[Facility, ...] = (
    Facility.ERROR,
    Facility.WARN,
    Facility.NOTICE,
    Facility.INFO,
    Facility.TRACE,
)

# Fixed width so the severity column lines up in log files
LEVEL_LABELS: dict[int, str] = {
    Facility.ERROR: "ERROR ",
    Facility.WARN: "WARN  ",
    Facility.NOTICE: "NOTICE",
    Facility.INFO: "INFO  ",
    Facility.TRACE: "TRACE ",
}


class Environment(str, Enum):
    DEV = "dev"
    TEST = "test"
    LIVE = "live"


DEFAULT_ENVIRONMENT_LEVELS: dict[str, int] = {
    Environment.DEV.value: int(Facility.TRACE | Facility.FILE),
    Environment.TEST.value: int(Facility.INFO | Facility.FILE),
    Environment.LIVE.value: int(Facility.WARN | Facility.FILE),
}


def parse_facilities(value: int | str) -> int:
    """
    Convert a facilities value to an int.

    Accepts ints, digit strings and names joined by '|',
    e.g. "info|file|screen".
    """
    if isinstance(value, bool):
        raise TypeError("Expected int or str for facilities, got bool")
    if isinstance(value, int):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return int(text)
        result = 0
        for part in text.split("|"):
            if part.strip():
                result |= Facility.from_name(part).value
        return result
    raise TypeError(f"Expected int or str for facilities, got {type(value).__name__}")


def level_label(level: int) -> str:
    """
    Display label for the most severe bit in `level`.
    Falls back to the numeric value padded to the label width.
    """
    for severity in SEVERITIES:
        if level & severity:
            return LEVEL_LABELS[severity]
    return f"{level:<6}"


def describe_facilities(value: int) -> str:
    """Human readable form, e.g. 'INFO|FILE'."""
    names = [member.name for member in Facility if value & member]
    return "|".join(names) if names else "0"


@dataclass(frozen=True)
class LogRecord:
    """
    One message, formatted once and fanned out to every writer.
    """
    timestamp: datetime
    level: int
    label: str
    source: str
    message: str
    tokens: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        level: int,
        message: str,
        source: str = "",
        tokens: dict[str, Any] | None = None,
    ) -> "LogRecord":
        """Factory with local-time timestamp and label resolution."""
        return cls(
            timestamp=datetime.now(),
            level=level,
            label=level_label(level),
            source=source,
            message=message,
            tokens=dict(tokens) if tokens else {},
        )
