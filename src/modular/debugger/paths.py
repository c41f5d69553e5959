"""
Log file location.

Picks the file name for a source (dedicated per-class logs, optional
date prefix), the directory (relative to the base path or inside the
assets folder) and refuses anything outside the configured safe paths.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from modular.debugger.errors import UnsafePathError

if TYPE_CHECKING:
    from modular.config import DebuggerConfig


LOG_EXTENSION = ".log"
PREFIX_DATE_FORMAT = "%Y-%m-%d"


def own_log_name(source: str, class_own_logs: list[str] | dict[str, str] | None) -> Optional[str]:
    """
    File name for a source that has its own log, else None.

    A list names the sources (file becomes '<source>.log' with separators
    removed); a mapping gives the file name per source.
    """
    if not source or not class_own_logs:
        return None
    if isinstance(class_own_logs, dict):
        return class_own_logs.get(source)
    if source in class_own_logs:
        return "".join(ch for ch in source if ch not in "\\/.") + LOG_EXTENSION
    return None


def log_file_name(
    config: "DebuggerConfig",
    source: str = "",
    today: Optional[date] = None,
) -> str:
    name = own_log_name(source, config.log_file.class_own_logs) or config.log_file.name
    if config.log_file.prefix_date:
        name = f"{(today or date.today()).strftime(PREFIX_DATE_FORMAT)}-{name}"
    if not name.endswith(LOG_EXTENSION):
        name += LOG_EXTENSION
    return name


def log_directory(config: "DebuggerConfig", create: bool = True) -> Path:
    """
    '/x' and '../x' are taken relative to base_path and must already
    exist (otherwise assets_path is used). Anything else lives inside
    assets_path and is created on demand unless `create` is False.
    """
    base = Path(config.base_path).resolve()
    assets = Path(config.assets_path)
    if not assets.is_absolute():
        assets = base / assets
    path = config.log_file.path

    if path.startswith("/") or path.startswith(".."):
        candidate = (base / path.lstrip("/")).resolve()
        directory = candidate if candidate.is_dir() else assets.resolve()
    else:
        directory = (assets / path).resolve()

    if create:
        directory.mkdir(parents=True, exist_ok=True)
    return directory


def safe_roots(config: "DebuggerConfig") -> list[Path]:
    base = Path(config.base_path).resolve()
    roots = config.safe_paths or [str(base)]
    return [(base / r).resolve() if not Path(r).is_absolute() else Path(r).resolve() for r in roots]


def is_safe(path: Path, roots: list[Path]) -> bool:
    resolved = path.resolve()
    return any(resolved == root or resolved.is_relative_to(root) for root in roots)


def resolve_log_file(config: "DebuggerConfig", source: str = "") -> Path:
    """
    Full path of the log file for `source`. Raises UnsafePathError before
    any directory is created.
    """
    path = log_directory(config, create=False) / log_file_name(config, source)
    roots = safe_roots(config)
    if not is_safe(path, roots):
        raise UnsafePathError(
            f"Log file '{path}' is outside the safe paths: "
            f"{', '.join(str(r) for r in roots)}"
        )
    path.resolve().parent.mkdir(parents=True, exist_ok=True)
    return path
