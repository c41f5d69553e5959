"""
Debugger exceptions.

Writer failures are deliberately absent: they never leave Logger.dispatch.
"""


class ConfigurationError(ValueError):
    """Bad environment mapping, unknown facility name or unusable log path."""


class UnsafePathError(ConfigurationError):
    """Requested log file would land outside every configured safe path."""


class EscalatedError(RuntimeError):
    """Raised by Debugger.error() in strict mode for plain messages."""

    def __init__(self, message: str, source: str = ""):
        super().__init__(message)
        self.source = source
