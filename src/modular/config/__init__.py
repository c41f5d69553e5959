"""
Pydantic configuration schemas for the Modular debugger.

Everything has a sensible default: an empty YAML document validates and
gives a live-environment debugger logging WARN and worse to a file under
assets/logs.

Usage:
    config = DebuggerConfig.from_yaml("debugger.yaml")
    config.level_for("dev")          # → facilities int
    config.to_dict()
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from modular.debugger.errors import ConfigurationError
from modular.debugger.records import (
    DEFAULT_ENVIRONMENT_LEVELS,
    Environment,
    parse_facilities,
)


WRITER_KINDS = ("file", "screen", "email", "event")


# ═══════════════════════════════════════════════════════════════════
#  Log File
# ═══════════════════════════════════════════════════════════════════

class LogFileConfig(BaseModel):
    # '/...' or '../...' → relative to base_path, anything else → inside assets_path
    path: str = "logs"
    name: str = "debug.log"
    prefix_date: bool = False
    # list: these sources get '<source>.log'; mapping: source → file name
    class_own_logs: Optional[list[str] | dict[str, str]] = None


# ═══════════════════════════════════════════════════════════════════
#  Email
# ═══════════════════════════════════════════════════════════════════

class SmtpConfig(BaseModel):
    host: str = "localhost"
    port: int = 25
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = False
    timeout: float = 10.0


class EmailConfig(BaseModel):
    send_from: str = "debugger@localhost"
    send_to: Optional[str] = None             # admin address, fallback sender of log mails
    log_email: Optional[str] = None           # recipient for the EMAIL writer
    email_log_file_to: Optional[str] = None   # mail the whole log file on close
    subject: str = "Debug log from: {site}"
    smtp: Optional[SmtpConfig] = None


# ═══════════════════════════════════════════════════════════════════
#  Debug Cookie Trigger
# ═══════════════════════════════════════════════════════════════════

class CookieConfig(BaseModel):
    request_path: str = "/"
    request_param: Optional[str] = None
    request_value: Optional[str] = None       # None → any truthy value triggers
    cookie_name: Optional[str] = None
    cookie_value: Optional[str] = None
    environments: list[Environment] = Field(default_factory=lambda: [Environment.DEV])


# ═══════════════════════════════════════════════════════════════════
#  Top-Level Debugger Config
# ═══════════════════════════════════════════════════════════════════

class DebuggerConfig(BaseModel):
    """
    Top-level debugger configuration.

    Example:
        environment: test
        environment_levels:
          dev: trace|file|screen
          test: info|file
          live: warn|file|email
        log_file:
          path: logs
          class_own_logs: [Importer]
        email:
          log_email: ops@example.com
    """

    environment: Environment = Environment.LIVE
    environment_levels: dict[str, int | str] = Field(
        default_factory=lambda: dict(DEFAULT_ENVIRONMENT_LEVELS)
    )
    # None → strict only in dev
    strict: Optional[bool] = None
    # None → detect from the process environment
    cli: Optional[bool] = None
    writers: list[str] = Field(default_factory=lambda: list(WRITER_KINDS))

    base_path: str = "."
    assets_path: str = "assets"
    safe_paths: list[str] = Field(default_factory=list)

    log_file: LogFileConfig = Field(default_factory=LogFileConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    cookie: CookieConfig = Field(default_factory=CookieConfig)

    event_sources: list[str] = Field(default_factory=lambda: ["Global"])
    site_url: Optional[str] = None

    @field_validator("writers")
    @classmethod
    def validate_writers(cls, value: list[str]) -> list[str]:
        unknown = [w for w in value if w not in WRITER_KINDS]
        if unknown:
            raise ValueError(
                f"Unknown writer(s) {unknown}. Valid writers: {', '.join(WRITER_KINDS)}"
            )
        return value

    @model_validator(mode="after")
    def validate_environment_levels(self) -> "DebuggerConfig":
        """Every environment needs a level, and every level must parse."""
        missing = [env.value for env in Environment if env.value not in self.environment_levels]
        if missing:
            raise ValueError(f"environment_levels has no level for: {', '.join(missing)}")
        for env, level in self.environment_levels.items():
            try:
                parse_facilities(level)
            except (ValueError, TypeError) as e:
                raise ValueError(f"environment_levels.{env}: {e}")
        return self

    @property
    def is_strict(self) -> bool:
        if self.strict is not None:
            return self.strict
        return self.environment == Environment.DEV

    def level_for(self, environment: Environment | str | None = None) -> int:
        """Facilities for an environment (default: the configured one)."""
        env = environment if environment is not None else self.environment
        key = env.value if isinstance(env, Environment) else str(env)
        if key not in self.environment_levels:
            raise ConfigurationError(f"No debug level configured for environment '{key}'")
        return parse_facilities(self.environment_levels[key])

    @classmethod
    def from_yaml(cls, path: str | Path) -> "DebuggerConfig":
        """Load and validate from a YAML file."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.from_yaml_string(raw)

    @classmethod
    def from_yaml_string(cls, yaml_string: str) -> "DebuggerConfig":
        data = yaml.safe_load(yaml_string) or {}
        return cls.model_validate(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DebuggerConfig":
        return cls.model_validate(data)

    def to_dict(self, exclude_none: bool = True) -> dict:
        return self.model_dump(mode="json", exclude_none=exclude_none)
