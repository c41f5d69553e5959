"""
Debugger registry.

At most one Debugger per source label. The registry is created by the
host application's composition root and handed to whatever needs a
debugger; there is no process-wide instance.

Usage:
    registry = DebuggerRegistry(config, transport=SmtpTransport())
    log = registry.debugger("Importer")
    log.info("starting")

    log = registry.debugger_for(self)          # label from the class name
    registry.close()                           # request/process teardown
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Iterator, Optional, TextIO

from modular.debugger.core import Debugger
from modular.debugger.digest import MessageCatalog, Translator
from modular.debugger.records import Facility
from modular.debugger.sources import ScopedSource
from modular.debugger.writers import EmailSender, EventSink

if TYPE_CHECKING:
    from modular.config import DebuggerConfig


GLOBAL_SOURCE = "global"

DebuggerFactory = Callable[..., Debugger]


class DebuggerRegistry:
    """Mapping from source label to its Debugger, created lazily."""

    def __init__(
        self,
        config: Optional["DebuggerConfig"] = None,
        *,
        transport: Optional[EmailSender] = None,
        event_store: Optional[EventSink] = None,
        catalog: MessageCatalog | Translator | None = None,
        stream: Optional[TextIO] = None,
        factory: DebuggerFactory = Debugger,
    ):
        if config is None:
            from modular.config import DebuggerConfig
            config = DebuggerConfig()
        self.config = config
        self._transport = transport
        self._event_store = event_store
        self._catalog = catalog
        self._stream = stream
        self._factory = factory
        self._debuggers: dict[str, Debugger] = {}

    def debugger(self, source: str = "", level: Optional[int] = None) -> Debugger:
        """
        Debugger for `source` ("global" when empty). A level passed for an
        existing debugger replaces its current level. Creating any other
        debugger makes sure the global one exists as well.
        """
        label = source or GLOBAL_SOURCE
        existing = self._debuggers.get(label)
        if existing is not None:
            if level is not None:
                existing.set_level(level)
            return existing

        debugger = self._factory(
            self.config,
            Facility.FROM_ENV if level is None else level,
            label,
            transport=self._transport,
            event_store=self._event_store,
            catalog=self._catalog,
            stream=self._stream,
        )
        self._debuggers[label] = debugger
        if label != GLOBAL_SOURCE:
            self.debugger(GLOBAL_SOURCE)
        return debugger

    def debugger_for(self, owner: object, level: Optional[int] = None) -> Debugger:
        """Debugger labelled with the owner's class (or the class itself)."""
        return self.debugger(label_for(owner), level)

    def scope(self, source: str, label: str = GLOBAL_SOURCE) -> ScopedSource:
        """Switch the source of the `label` debugger for a `with` block."""
        return self.debugger(label).scope(source)

    @property
    def labels(self) -> list[str]:
        return list(self._debuggers)

    def __contains__(self, label: str) -> bool:
        return label in self._debuggers

    def __len__(self) -> int:
        return len(self._debuggers)

    def __iter__(self) -> Iterator[Debugger]:
        return iter(list(self._debuggers.values()))

    def close(self) -> None:
        """Close every debugger once and forget them."""
        debuggers, self._debuggers = self._debuggers, {}
        for debugger in debuggers.values():
            debugger.close()

    def status(self) -> dict:
        return {label: d.status() for label, d in self._debuggers.items()}


def label_for(owner: object) -> str:
    cls = owner if isinstance(owner, type) else type(owner)
    return cls.__qualname__
