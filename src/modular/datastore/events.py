"""
DuckDB-backed store for debugger events.

Supports two modes:
- persistent: DuckDB file on disk
- ephemeral: in-memory DuckDB, gone with the process
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence

import duckdb

from modular.datastore.schema import ALL_TABLES, ALL_INDEXES


DEFAULT_SOURCES: tuple[str, ...] = ("Global",)


class EventStore:
    """
    Persistence collaborator for EventWriter.

    Usage:
        store = EventStore("data/events.duckdb")
        store.initialize()
        store.create({"body": "Import failed", "source": "Global"})
        store.recent(10)

        store = EventStore.ephemeral()      # In-memory, no file
    """

    def __init__(
        self,
        path: str | Path | None = None,
        allowed_sources: Sequence[str] = DEFAULT_SOURCES,
    ):
        """
        Args:
            path: Path to DuckDB file. None = in-memory (ephemeral mode).
            allowed_sources: Valid event sources. Anything else is stored
                under the first one. Empty = accept any source.
        """
        self._path = Path(path) if path else None
        self._mode = "persistent" if path else "ephemeral"
        self.allowed_sources = list(allowed_sources)

        if self._path:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = duckdb.connect(str(self._path))
        else:
            self._conn = duckdb.connect(":memory:")

        self._initialized = False
        self._seq = 0

    @classmethod
    def ephemeral(cls, allowed_sources: Sequence[str] = DEFAULT_SOURCES) -> "EventStore":
        return cls(path=None, allowed_sources=allowed_sources)

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        return self._conn

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> dict:
        """Create tables and indexes. Returns {tables: N, indexes: N}."""
        results = {"tables": 0, "indexes": 0}
        for _name, ddl in ALL_TABLES:
            self._conn.execute(ddl)
            results["tables"] += 1
        for _name, ddl in ALL_INDEXES:
            self._conn.execute(ddl)
            results["indexes"] += 1

        row = self._conn.execute("SELECT COALESCE(MAX(event_id), 0) FROM debugger_event").fetchone()
        self._seq = row[0] if row else 0
        self._initialized = True
        return results

    # ── Writes ────────────────────────────────────────────────────

    def resolve_source(self, source: Optional[str]) -> str:
        if not self.allowed_sources:
            return source or ""
        if source in self.allowed_sources:
            return source
        return self.allowed_sources[0]

    def create(self, fields: dict[str, Any]) -> int:
        """Insert one event. Returns the new event_id."""
        if not self._initialized:
            self.initialize()
        self._seq += 1
        self._conn.execute(
            "INSERT INTO debugger_event (event_id, created, body, source) VALUES (?, ?, ?, ?)",
            [
                self._seq,
                datetime.now(),
                str(fields.get("body", "")),
                self.resolve_source(fields.get("source")),
            ],
        )
        return self._seq

    # ── Reads ─────────────────────────────────────────────────────

    def recent(self, n: int = 100, source: Optional[str] = None) -> list[dict]:
        """Newest events first, optionally for one source."""
        if not self._initialized:
            return []
        sql = "SELECT event_id, created, body, source FROM debugger_event"
        params: list[Any] = []
        if source is not None:
            sql += " WHERE source = ?"
            params.append(source)
        sql += " ORDER BY event_id DESC LIMIT ?"
        params.append(n)
        rows = self._conn.execute(sql, params).fetchall()
        return [
            {"event_id": r[0], "created": r[1], "body": r[2], "source": r[3]}
            for r in rows
        ]

    def count(self) -> int:
        if not self._initialized:
            return 0
        row = self._conn.execute("SELECT COUNT(*) FROM debugger_event").fetchone()
        return row[0] if row else 0

    def status(self) -> dict:
        return {
            "mode": self._mode,
            "path": str(self._path) if self._path else ":memory:",
            "initialized": self._initialized,
            "events": self.count(),
            "allowed_sources": list(self.allowed_sources),
        }

    def close(self) -> None:
        self._conn.close()
