"""
DuckDB table DDL for persisted debugger events.

Event records are the durable copy of log lines written by EventWriter,
one row per line, tagged with the source that produced it.
"""

# ═══════════════════════════════════════════════════════════════════
#  debugger_event
# ═══════════════════════════════════════════════════════════════════

DEBUGGER_EVENT = """
CREATE TABLE IF NOT EXISTS debugger_event (
    event_id BIGINT PRIMARY KEY,
    created TIMESTAMP NOT NULL,
    body TEXT NOT NULL,
    source VARCHAR NOT NULL
);
"""

DEBUGGER_EVENT_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_debugger_event_created ON debugger_event (created DESC);
"""


# ═══════════════════════════════════════════════════════════════════
#  Ordered lists for initialization
# ═══════════════════════════════════════════════════════════════════

ALL_TABLES = [
    ("debugger_event", DEBUGGER_EVENT),
]

ALL_INDEXES = [
    ("idx_debugger_event_created", DEBUGGER_EVENT_INDEXES),
]
