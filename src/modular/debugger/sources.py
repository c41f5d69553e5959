"""
Source label stack and scope guard.

The current source is the label printed in every log line. Nested code
pushes its own label on entry and pops it on exit; ScopedSource makes
the pop happen on every exit path.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from modular.debugger.core import Debugger


class SourceStack:
    """
    Exclusively owned by one Debugger. Never share an instance.

    Usage:
        stack = SourceStack("global")
        stack.push("Importer.run")
        stack.current        # "Importer.run"
        stack.pop()          # "Importer.run", current back to "global"
    """

    def __init__(self, initial: str = ""):
        self._current = initial
        self._saved: list[str] = []

    @property
    def current(self) -> str:
        return self._current

    @property
    def depth(self) -> int:
        """Number of unmatched pushes."""
        return len(self._saved)

    def push(self, source: str) -> None:
        self._saved.append(self._current)
        self._current = source

    def pop(self) -> Optional[str]:
        """
        Discard the current source and restore the one saved before it.

        Returns the discarded source, or None when nothing was pushed
        (the current source is left alone in that case).
        """
        if not self._saved:
            return None
        popped = self._current
        self._current = self._saved.pop()
        return popped

    def unwind(self, depth: int) -> None:
        """Pop until only `depth` pushes remain."""
        while len(self._saved) > max(depth, 0):
            self.pop()

    def snapshot(self) -> list[str]:
        """Saved labels oldest first, followed by the current one."""
        return [*self._saved, self._current]


class ScopedSource:
    """
    Scope guard that swaps the debugger's source for the lifetime of a block.

    The new label is pushed as soon as the guard is constructed. Leaving the
    `with` block (normally or by exception) unwinds the stack to the depth
    captured before the push, so pushes leaked by the guarded code are
    discarded too. Restoring happens once; later calls are no-ops.

        with debugger.scope("Importer.run"):
            debugger.info("starting")     # logged with source Importer.run
    """

    def __init__(self, debugger: "Debugger", source: str):
        self._debugger = debugger
        self._depth = debugger.sources.depth
        self._restored = False
        self.source = source
        debugger.set_source(source)

    @property
    def restored(self) -> bool:
        return self._restored

    def restore(self) -> None:
        if self._restored:
            return
        self._restored = True
        self._debugger.sources.unwind(self._depth)

    def __enter__(self) -> "ScopedSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.restore()
        return False
