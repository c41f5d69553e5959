"""
Debug cookie trigger.

A request to a configured path carrying a configured GET parameter turns
on a debug cookie for that path; the same parameter with a non-matching
value turns it off. The host framework applies the returned directive.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Mapping, Optional

from modular.debugger.records import Environment

if TYPE_CHECKING:
    from modular.config import DebuggerConfig


@dataclass(frozen=True)
class CookieDirective:
    """value None means: clear the cookie."""
    name: str
    value: Optional[str]
    expires_days: int = 1
    path: str = "/"

    @property
    def clears(self) -> bool:
        return self.value is None


def _normalise_path(path: str) -> str:
    return "/" + path.lstrip("/")


def debug_cookie(
    request_path: str,
    params: Mapping[str, str],
    config: "DebuggerConfig",
    environment: Environment | str | None = None,
    match_path: Optional[str] = None,
    param_name: Optional[str] = None,
) -> Optional[CookieDirective]:
    """
    Decide what to do with the debug cookie for one request.

    Returns None when nothing should change: no cookie configured, an
    environment not listed, a path outside the prefix or the parameter
    missing from the request.
    """
    cookie = config.cookie
    env = environment if environment is not None else config.environment
    env = Environment(env.value if isinstance(env, Environment) else env)

    if not cookie.cookie_name or env not in cookie.environments:
        return None

    prefix = _normalise_path(match_path or cookie.request_path or "/")
    if not _normalise_path(request_path).startswith(prefix):
        return None

    name = param_name or cookie.request_param
    if not (cookie.cookie_value and name and name in params):
        return None

    value = params[name]
    wanted = cookie.request_value
    if (not wanted and value) or (wanted and value == wanted):
        return CookieDirective(cookie.cookie_name, cookie.cookie_value, 1, prefix)
    return CookieDirective(cookie.cookie_name, None, 0, prefix)
