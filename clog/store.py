"""DuckDB-backed persistence for sessions, events, harvested messages and offsets."""

import logging
from datetime import datetime, timezone

import duckdb

from clog.models import (
    Event,
    SearchResult,
    Session,
    StoredMessage,
    SummaryResult,
    TimeFilter,
    ToolResult,
    Turn,
)
from clog.schema import CORE_SCHEMA, embedding_schema

logger = logging.getLogger(__name__)

_EVENT_COLUMNS = (
    "session_id", "event_type", "timestamp", "permission_mode",
    "source", "model", "agent_type", "prompt",
    "tool_name", "tool_input", "tool_use_id", "tool_response",
    "permission_suggestions", "error", "is_interrupt",
    "message", "title", "notification_type",
    "agent_id", "agent_transcript_path", "stop_hook_active",
    "trigger_type", "custom_instructions", "reason",
)

INSERT_MESSAGE_SQL = """
    INSERT INTO messages (session_id, uuid, parent_uuid, role, content, raw_content, model, timestamp)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT (uuid) DO NOTHING
"""

UPSERT_OFFSET_SQL = """
    INSERT INTO transcript_offsets (transcript_path, last_offset)
    VALUES (?, ?)
    ON CONFLICT (transcript_path) DO UPDATE SET last_offset = excluded.last_offset
"""


def null_str(value: str | None) -> str | None:
    """Map empty strings to NULL."""
    return value if value else None


def to_db_time(ts: datetime) -> datetime:
    """Aware datetime -> naive UTC for TIMESTAMP columns."""
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


def from_db_time(ts: datetime | None) -> datetime | None:
    if ts is None or ts.tzinfo is not None:
        return ts
    return ts.replace(tzinfo=timezone.utc)


def format_float_array(values: list[float]) -> str:
    """Render a vector as a DuckDB list literal, e.g. [0.1,0.2]."""
    return "[" + ",".join(repr(float(v)) for v in values) + "]"


def append_time_clauses(tf: TimeFilter | None, ts_column: str, has_where: bool,
                        params: list) -> tuple[str, list]:
    """Build SQL for time bounds.

    With has_where=True every clause starts with AND; otherwise the first one
    starts with WHERE.
    """
    if tf is None:
        return "", params

    clauses = []
    if tf.since is not None:
        clauses.append(f"{ts_column} >= ?")
        params.append(to_db_time(tf.since))
    if tf.until is not None:
        clauses.append(f"{ts_column} <= ?")
        params.append(to_db_time(tf.until))

    sql = ""
    for i, clause in enumerate(clauses):
        keyword = "WHERE" if i == 0 and not has_where else "AND"
        sql += f" {keyword} {clause}"
    return sql, params


class Store:
    """A single project's DuckDB database."""

    def __init__(self, db_path: str):
        self._path = db_path
        self._con = duckdb.connect(db_path)

    @property
    def path(self) -> str:
        return self._path

    def close(self):
        self._con.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # --- schema ---

    def init_core_schema(self):
        self._con.execute(CORE_SCHEMA)

    def init_embedding_schema(self, dimension: int):
        self._con.execute(embedding_schema(dimension))

    # --- sessions and events ---

    def upsert_session(self, session: Session):
        self._con.execute("""
            INSERT INTO sessions (session_id, cwd, transcript_path, created_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (session_id) DO UPDATE SET transcript_path = excluded.transcript_path
        """, [session.id, session.cwd, null_str(session.transcript_path),
              to_db_time(session.created_at)])

    def insert_event(self, event: Event):
        values = [getattr(event, col) for col in _EVENT_COLUMNS]
        values[_EVENT_COLUMNS.index("timestamp")] = to_db_time(event.timestamp)
        placeholders = ", ".join("?" for _ in _EVENT_COLUMNS)
        self._con.execute(
            f"INSERT INTO events ({', '.join(_EVENT_COLUMNS)}) VALUES ({placeholders})",
            values,
        )

    # --- offsets ---

    def get_offset(self, path: str) -> int:
        """Last committed offset for a transcript, 0 if it was never harvested."""
        row = self._con.execute(
            "SELECT last_offset FROM transcript_offsets WHERE transcript_path = ?", [path]
        ).fetchone()
        return int(row[0]) if row else 0

    def commit_offset(self, path: str, offset: int):
        """Record *offset* for *path*, replacing any previous value."""
        self._con.execute(UPSERT_OFFSET_SQL, [path, offset])

    # --- harvested messages ---

    def save_harvested_messages(self, turns: list[Turn], path: str, new_offset: int):
        """Insert turns and move the transcript offset in one transaction.

        Turns whose uuid is already stored are dropped. On any failure the
        transaction is rolled back and the error re-raised.
        """
        rows = [
            [t.session_id, null_str(t.uuid), null_str(t.parent_uuid), t.role,
             null_str(t.content), null_str(t.raw_content), null_str(t.model),
             to_db_time(t.timestamp)]
            for t in turns
        ]

        self._con.begin()
        try:
            if rows:
                self._con.executemany(INSERT_MESSAGE_SQL, rows)
            self._con.execute(UPSERT_OFFSET_SQL, [path, new_offset])
            self._con.commit()
        except Exception:
            self._con.rollback()
            raise
        logger.info("Committed %d turn(s) from %s, offset now %d", len(turns), path, new_offset)

    def session_messages(self, session_id: str, limit: int) -> list[StoredMessage]:
        """Non-empty messages of a session, oldest first."""
        rows = self._con.execute("""
            SELECT id, session_id, role, content, timestamp
            FROM messages
            WHERE session_id = ? AND content IS NOT NULL AND content != ''
            ORDER BY timestamp ASC, id ASC
            LIMIT ?
        """, [session_id, limit]).fetchall()
        return [StoredMessage(r[0], r[1], r[2], r[3], from_db_time(r[4])) for r in rows]

    # --- embeddings ---

    def unembedded_messages(self, limit: int) -> list[StoredMessage]:
        rows = self._con.execute("""
            SELECT m.id, m.session_id, m.role, m.content, m.timestamp
            FROM messages m
            LEFT JOIN message_embeddings e ON m.id = e.message_id
            WHERE e.message_id IS NULL
              AND m.content IS NOT NULL
              AND m.content != ''
            ORDER BY m.id
            LIMIT ?
        """, [limit]).fetchall()
        return [StoredMessage(r[0], r[1], r[2], r[3], from_db_time(r[4])) for r in rows]

    def save_embedding(self, message_id: int, embedding: list[float]):
        self._con.execute(
            f"INSERT INTO message_embeddings (message_id, embedding) "
            f"VALUES (?, {format_float_array(embedding)}::FLOAT[{len(embedding)}]) "
            f"ON CONFLICT DO NOTHING",
            [message_id],
        )

    def search_similar(self, embedding: list[float], limit: int,
                       tf: TimeFilter | None = None) -> list[SearchResult]:
        """Messages ranked by cosine similarity to *embedding*, best first."""
        time_sql, params = append_time_clauses(tf, "m.timestamp", False, [])
        rows = self._con.execute(f"""
            SELECT m.id, m.session_id, m.role, m.content,
                   array_cosine_similarity(
                       e.embedding, {format_float_array(embedding)}::FLOAT[{len(embedding)}]
                   ) AS score,
                   m.timestamp
            FROM messages m
            JOIN message_embeddings e ON m.id = e.message_id
            {time_sql}
            ORDER BY score DESC
            LIMIT ?
        """, params + [limit]).fetchall()
        return [SearchResult(r[0], r[1], r[2], r[3], float(r[4]), from_db_time(r[5]))
                for r in rows]

    # --- text and tool search ---

    def text_search(self, pattern: str, limit: int,
                    tf: TimeFilter | None = None) -> list[SearchResult]:
        """Case-insensitive substring search over message text, newest first."""
        time_sql, params = append_time_clauses(tf, "m.timestamp", True, [pattern])
        rows = self._con.execute(f"""
            SELECT m.id, m.session_id, m.role, m.content, 0.0 AS score, m.timestamp
            FROM messages m
            WHERE contains(lower(m.content), lower(?))
            {time_sql}
            ORDER BY m.timestamp DESC
            LIMIT ?
        """, params + [limit]).fetchall()
        return [SearchResult(r[0], r[1], r[2], r[3], float(r[4]), from_db_time(r[5]))
                for r in rows]

    def tool_search(self, tool_name: str, limit: int,
                    tf: TimeFilter | None = None) -> list[ToolResult]:
        """PostToolUse events, newest first. "" or "*" matches every tool."""
        if not tool_name or tool_name == "*":
            name_sql, params = "AND tool_name IS NOT NULL", []
        else:
            name_sql, params = "AND contains(lower(tool_name), lower(?))", [tool_name]
        time_sql, params = append_time_clauses(tf, "timestamp", True, params)

        rows = self._con.execute(f"""
            SELECT session_id, tool_name, CAST(tool_input AS VARCHAR),
                   CAST(tool_response AS VARCHAR), timestamp
            FROM events
            WHERE event_type = 'PostToolUse'
            {name_sql}
            {time_sql}
            ORDER BY timestamp DESC
            LIMIT ?
        """, params + [limit]).fetchall()
        return [ToolResult(r[0], r[1], r[2] or "", r[3] or "", from_db_time(r[4]))
                for r in rows]

    # --- summaries ---

    def save_summary(self, session_id: str, summary: str, model: str):
        self._con.execute("""
            INSERT INTO session_summaries (session_id, summary, model, generated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (session_id) DO UPDATE
            SET summary = excluded.summary, model = excluded.model,
                generated_at = excluded.generated_at
        """, [session_id, summary, model, to_db_time(datetime.now(timezone.utc))])

    def list_summaries(self, limit: int, tf: TimeFilter | None = None) -> list[SummaryResult]:
        time_sql, params = append_time_clauses(tf, "ss.generated_at", False, [])
        rows = self._con.execute(f"""
            SELECT ss.session_id, ss.summary, ss.model, ss.generated_at, s.cwd
            FROM session_summaries ss
            JOIN sessions s ON ss.session_id = s.session_id
            {time_sql}
            ORDER BY ss.generated_at DESC
            LIMIT ?
        """, params + [limit]).fetchall()
        return [SummaryResult(r[0], r[1], r[2] or "", from_db_time(r[3]), r[4]) for r in rows]
