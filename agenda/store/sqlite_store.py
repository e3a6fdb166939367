"""
agenda/store/sqlite_store.py
SQLite backend for the Store interface.

SCHEMA DESIGN NOTES:
- channels / messages are the context layer (bounded per channel)
- calendar_events / reminders are the tracked-item layer
- analysis_traces is append-only audit; no foreign keys so a trace
  write can never fail on a missing parent
- Datetimes stored as ISO-8601 TEXT with offset. Message timestamps
  are normalized to UTC so history sorts lexically.
- quality_flags / details_json are JSON text
- One connection per call: the live processor writes from worker threads
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from agenda.errors import StoreError
from agenda.models.record import (
    STATUS_CONFIRMED, STATUS_PENDING, STATUS_SYNCED,
    AnalysisTrace, Attendee, CalendarEvent, Channel, EmailSource,
    InboundMessage, Reminder, SourceMessage,
)
from agenda.store.base import Store

logger = logging.getLogger(__name__)

SCHEMA_VERSION = '1.0'

ACTIVE_EVENT_STATUSES    = (STATUS_PENDING, STATUS_SYNCED)
ACTIVE_REMINDER_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)


# ── SCHEMA ───────────────────────────────────────────────────

SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS agenda_meta (
        key             TEXT PRIMARY KEY,
        value           TEXT
    );

    CREATE TABLE IF NOT EXISTS users (
        id                    INTEGER PRIMARY KEY AUTOINCREMENT,
        email                 TEXT UNIQUE,
        timezone              TEXT DEFAULT '',
        selected_calendar_id  TEXT DEFAULT '',
        created_at            TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS channels (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id         INTEGER NOT NULL REFERENCES users(id),
        source_type     TEXT    NOT NULL,
        identifier      TEXT    NOT NULL,
        name            TEXT    DEFAULT '',
        calendar_id     TEXT    DEFAULT '',
        enabled         INTEGER DEFAULT 1,
        created_at      TEXT    NOT NULL,
        UNIQUE(user_id, source_type, identifier)
    );

    CREATE TABLE IF NOT EXISTS messages (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id         INTEGER NOT NULL,
        source_type     TEXT    NOT NULL,
        channel_id      INTEGER NOT NULL REFERENCES channels(id) ON DELETE CASCADE,
        sender_id       TEXT,
        sender_name     TEXT,
        text            TEXT,
        subject         TEXT    DEFAULT '',
        timestamp       TEXT    NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_messages_channel
        ON messages(channel_id, timestamp);

    CREATE TABLE IF NOT EXISTS calendar_events (
        id                INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id           INTEGER NOT NULL,
        channel_id        INTEGER NOT NULL REFERENCES channels(id),
        google_event_id   TEXT,
        calendar_id       TEXT    DEFAULT 'primary',
        title             TEXT    NOT NULL,
        description       TEXT    DEFAULT '',
        start_time        TEXT    NOT NULL,
        end_time          TEXT    NOT NULL,
        location          TEXT    DEFAULT '',
        status            TEXT    NOT NULL DEFAULT 'pending',
        action_type       TEXT    NOT NULL DEFAULT 'create',
        origin_message_id INTEGER,
        email_source_id   INTEGER,
        source            TEXT    DEFAULT '',
        llm_reasoning     TEXT    DEFAULT '',
        llm_confidence    REAL    DEFAULT 0,
        quality_flags     TEXT    DEFAULT '[]',    -- JSON array
        created_at        TEXT    NOT NULL,
        updated_at        TEXT    NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_events_channel_status
        ON calendar_events(channel_id, status);
    CREATE INDEX IF NOT EXISTS idx_events_google
        ON calendar_events(user_id, google_event_id);

    CREATE TABLE IF NOT EXISTS event_attendees (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        event_id        INTEGER NOT NULL REFERENCES calendar_events(id) ON DELETE CASCADE,
        name            TEXT    DEFAULT '',
        email           TEXT    NOT NULL,
        optional        INTEGER DEFAULT 0
    );

    CREATE TABLE IF NOT EXISTS reminders (
        id                INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id           INTEGER NOT NULL,
        channel_id        INTEGER NOT NULL REFERENCES channels(id),
        title             TEXT    NOT NULL,
        description       TEXT    DEFAULT '',
        due_date          TEXT    NOT NULL,
        reminder_time     TEXT,
        priority          TEXT    DEFAULT 'normal',
        status            TEXT    NOT NULL DEFAULT 'pending',
        action_type       TEXT    NOT NULL DEFAULT 'create',
        origin_message_id INTEGER,
        email_source_id   INTEGER,
        source            TEXT    DEFAULT '',
        llm_reasoning     TEXT    DEFAULT '',
        llm_confidence    REAL    DEFAULT 0,
        quality_flags     TEXT    DEFAULT '[]',    -- JSON array
        created_at        TEXT    NOT NULL,
        updated_at        TEXT    NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_reminders_channel_status
        ON reminders(channel_id, status);

    CREATE TABLE IF NOT EXISTS email_sources (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id         INTEGER NOT NULL REFERENCES users(id),
        source_type     TEXT    NOT NULL,          -- sender / domain / category
        identifier      TEXT    NOT NULL,
        name            TEXT    DEFAULT '',
        calendar_id     TEXT    DEFAULT '',
        UNIQUE(user_id, source_type, identifier)
    );

    CREATE TABLE IF NOT EXISTS analysis_traces (
        id                 INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id            INTEGER NOT NULL,
        channel_id         INTEGER NOT NULL,
        source_type        TEXT    NOT NULL,
        trigger_message_id INTEGER,
        intent             TEXT    NOT NULL,
        router_confidence  REAL    DEFAULT 0,
        action             TEXT    DEFAULT '',
        confidence         REAL    DEFAULT 0,
        reasoning          TEXT    DEFAULT '',
        status             TEXT    NOT NULL,
        details_json       TEXT    DEFAULT '{}',
        created_at         TEXT    NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_traces_channel
        ON analysis_traces(channel_id, created_at);
"""


# ── CONVERSION HELPERS ───────────────────────────────────────

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _to_utc_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _load_list(value: Optional[str]) -> List[Any]:
    if not value:
        return []
    try:
        data = json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return []
    return data if isinstance(data, list) else []


class SQLiteStore(Store):
    """
    Usage:
        store   = SQLiteStore(Path("agenda.db"))
        user_id = store.create_user("me@example.com", timezone="Europe/London")
        channel = store.create_channel(user_id, "telegram", "chat-42", "Family")
    """

    def __init__(self, db_path: Path = Path('agenda.db'), init_schema: bool = True):
        self.db_path = Path(db_path)
        if init_schema:
            self.init_schema()

    # ── INTERNAL ─────────────────────────────────────────────

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=30)
        except sqlite3.Error as e:
            raise StoreError(f"{self.db_path}: {e}") from e
        try:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(f"{self.db_path}: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA_SQL)
            conn.execute(
                "INSERT OR REPLACE INTO agenda_meta (key, value) VALUES ('schema_version', ?)",
                (SCHEMA_VERSION,),
            )
        logger.debug(f"Schema ready at {self.db_path}")

    # ── USERS ────────────────────────────────────────────────

    def create_user(
        self,
        email:                str,
        timezone:             str = '',
        selected_calendar_id: str = '',
    ) -> int:
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO users (email, timezone, selected_calendar_id, created_at) "
                "VALUES (?,?,?,?)",
                (email, timezone, selected_calendar_id, _now_iso()),
            )
            return cur.lastrowid

    def set_user_timezone(self, user_id: int, tz_name: str) -> None:
        with self._connect() as conn:
            conn.execute("UPDATE users SET timezone = ? WHERE id = ?", (tz_name, user_id))

    def set_selected_calendar(self, user_id: int, calendar_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE users SET selected_calendar_id = ? WHERE id = ?",
                (calendar_id, user_id),
            )

    def get_user_timezone(self, user_id: int) -> str:
        with self._connect() as conn:
            row = conn.execute("SELECT timezone FROM users WHERE id = ?", (user_id,)).fetchone()
        return (row['timezone'] or '') if row else ''

    def get_selected_calendar_id(self, user_id: int) -> str:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT selected_calendar_id FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        return (row['selected_calendar_id'] or '') if row else ''

    # ── CHANNELS ─────────────────────────────────────────────

    @staticmethod
    def _row_to_channel(row: sqlite3.Row) -> Channel:
        return Channel(
            id          = row['id'],
            user_id     = row['user_id'],
            source_type = row['source_type'],
            identifier  = row['identifier'],
            name        = row['name'] or '',
            calendar_id = row['calendar_id'] or '',
            enabled     = bool(row['enabled']),
        )

    def create_channel(
        self,
        user_id:     int,
        source_type: str,
        identifier:  str,
        name:        str  = '',
        calendar_id: str  = '',
        enabled:     bool = True,
    ) -> Channel:
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO channels (user_id, source_type, identifier, name, "
                "calendar_id, enabled, created_at) VALUES (?,?,?,?,?,?,?)",
                (user_id, source_type, identifier, name, calendar_id,
                 1 if enabled else 0, _now_iso()),
            )
            channel_id = cur.lastrowid
        return Channel(channel_id, user_id, source_type, identifier, name, calendar_id, enabled)

    def set_channel_enabled(self, channel_id: int, enabled: bool) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE channels SET enabled = ? WHERE id = ?",
                (1 if enabled else 0, channel_id),
            )

    def get_channel(self, channel_id: int) -> Optional[Channel]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM channels WHERE id = ?", (channel_id,)).fetchone()
        return self._row_to_channel(row) if row else None

    def get_or_create_channel(
        self,
        user_id:     int,
        source_type: str,
        identifier:  str,
        name:        str,
        calendar_id: str = '',
    ) -> Channel:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO channels (user_id, source_type, identifier, name, "
                "calendar_id, enabled, created_at) VALUES (?,?,?,?,?,1,?)",
                (user_id, source_type, identifier, name, calendar_id, _now_iso()),
            )
            row = conn.execute(
                "SELECT * FROM channels WHERE user_id = ? AND source_type = ? AND identifier = ?",
                (user_id, source_type, identifier),
            ).fetchone()
        return self._row_to_channel(row)

    # ── MESSAGES ─────────────────────────────────────────────

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> SourceMessage:
        return SourceMessage(
            id          = row['id'],
            user_id     = row['user_id'],
            source_type = row['source_type'],
            channel_id  = row['channel_id'],
            sender_id   = row['sender_id'] or '',
            sender_name = row['sender_name'] or '',
            text        = row['text'] or '',
            subject     = row['subject'] or '',
            timestamp   = _from_iso(row['timestamp']),
        )

    def store_message(self, msg: InboundMessage) -> SourceMessage:
        ts = _to_utc_iso(msg.timestamp)
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO messages (user_id, source_type, channel_id, sender_id, "
                "sender_name, text, subject, timestamp) VALUES (?,?,?,?,?,?,?,?)",
                (msg.user_id, msg.source_type, msg.channel_id, msg.sender_id,
                 msg.sender_name, msg.text, msg.subject, ts),
            )
            message_id = cur.lastrowid
        return SourceMessage(
            id          = message_id,
            user_id     = msg.user_id,
            source_type = msg.source_type,
            channel_id  = msg.channel_id,
            sender_id   = msg.sender_id,
            sender_name = msg.sender_name,
            text        = msg.text,
            subject     = msg.subject,
            timestamp   = _from_iso(ts),
        )

    def prune_messages(self, channel_id: int, keep: int) -> int:
        with self._connect() as conn:
            cur = conn.execute("""
                DELETE FROM messages
                WHERE channel_id = ?
                  AND id NOT IN (
                      SELECT id FROM messages
                      WHERE channel_id = ?
                      ORDER BY timestamp DESC, id DESC
                      LIMIT ?
                  )
            """, (channel_id, channel_id, max(keep, 0)))
            return cur.rowcount

    def get_message_history(self, channel_id: int, limit: int) -> List[SourceMessage]:
        with self._connect() as conn:
            rows = conn.execute("""
                SELECT * FROM messages
                WHERE channel_id = ?
                ORDER BY timestamp DESC, id DESC
                LIMIT ?
            """, (channel_id, limit)).fetchall()
        return [self._row_to_message(r) for r in reversed(rows)]

    # ── EVENTS ───────────────────────────────────────────────

    def _row_to_event(self, row: sqlite3.Row, attendees: List[Attendee] = None) -> CalendarEvent:
        return CalendarEvent(
            id                = row['id'],
            user_id           = row['user_id'],
            channel_id        = row['channel_id'],
            google_event_id   = row['google_event_id'],
            calendar_id       = row['calendar_id'] or 'primary',
            title             = row['title'],
            description       = row['description'] or '',
            start_time        = _from_iso(row['start_time']),
            end_time          = _from_iso(row['end_time']),
            location          = row['location'] or '',
            status            = row['status'],
            action_type       = row['action_type'],
            origin_message_id = row['origin_message_id'],
            email_source_id   = row['email_source_id'],
            source            = row['source'] or '',
            llm_reasoning     = row['llm_reasoning'] or '',
            llm_confidence    = row['llm_confidence'] or 0.0,
            quality_flags     = _load_list(row['quality_flags']),
            attendees         = attendees or [],
            created_at        = _from_iso(row['created_at']),
        )

    def get_active_events(self, channel_id: int) -> List[CalendarEvent]:
        with self._connect() as conn:
            rows = conn.execute("""
                SELECT * FROM calendar_events
                WHERE channel_id = ? AND status IN (?, ?)
                ORDER BY start_time ASC, id ASC
            """, (channel_id, *ACTIVE_EVENT_STATUSES)).fetchall()
        return [self._row_to_event(r) for r in rows]

    def create_pending_event(self, event: CalendarEvent) -> CalendarEvent:
        now = _now_iso()
        with self._connect() as conn:
            cur = conn.execute("""
                INSERT INTO calendar_events
                (user_id, channel_id, google_event_id, calendar_id, title, description,
                 start_time, end_time, location, status, action_type, origin_message_id,
                 email_source_id, source, llm_reasoning, llm_confidence, quality_flags,
                 created_at, updated_at)
                VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
            """, (
                event.user_id, event.channel_id, event.google_event_id,
                event.calendar_id or 'primary', event.title, event.description,
                _to_iso(event.start_time), _to_iso(event.end_time), event.location,
                STATUS_PENDING, event.action_type, event.origin_message_id,
                event.email_source_id, event.source, event.llm_reasoning,
                event.llm_confidence, json.dumps(list(event.quality_flags)),
                now, now,
            ))
            event_id = cur.lastrowid
        created = self.get_event_by_id(event_id)
        if created is None:
            raise StoreError(f"event {event_id} vanished after insert")
        return created

    def update_pending_event(self, event: CalendarEvent) -> None:
        with self._connect() as conn:
            cur = conn.execute("""
                UPDATE calendar_events
                SET title = ?, description = ?, start_time = ?, end_time = ?,
                    location = ?, llm_reasoning = ?, llm_confidence = ?,
                    quality_flags = ?, updated_at = ?
                WHERE id = ? AND status = ?
            """, (
                event.title, event.description, _to_iso(event.start_time),
                _to_iso(event.end_time), event.location, event.llm_reasoning,
                event.llm_confidence, json.dumps(list(event.quality_flags)),
                _now_iso(), event.id, STATUS_PENDING,
            ))
            if cur.rowcount == 0:
                raise StoreError(f"event {event.id} is not pending")

    def update_event_status(self, event_id: int, status: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE calendar_events SET status = ?, updated_at = ? WHERE id = ?",
                (status, _now_iso(), event_id),
            )

    def _attendees_for(self, conn: sqlite3.Connection, event_id: int) -> List[Attendee]:
        rows = conn.execute(
            "SELECT name, email, optional FROM event_attendees WHERE event_id = ? ORDER BY id",
            (event_id,),
        ).fetchall()
        return [Attendee(r['name'] or '', r['email'], bool(r['optional'])) for r in rows]

    def get_event_by_id(self, event_id: int) -> Optional[CalendarEvent]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM calendar_events WHERE id = ?", (event_id,)
            ).fetchone()
            if row is None:
                return None
            attendees = self._attendees_for(conn, event_id)
        return self._row_to_event(row, attendees)

    def get_event_by_external_id(self, user_id: int, external_id: str) -> Optional[CalendarEvent]:
        with self._connect() as conn:
            row = conn.execute("""
                SELECT * FROM calendar_events
                WHERE user_id = ? AND google_event_id = ?
                ORDER BY id DESC LIMIT 1
            """, (user_id, external_id)).fetchone()
            if row is None:
                return None
            attendees = self._attendees_for(conn, row['id'])
        return self._row_to_event(row, attendees)

    def set_event_attendees(self, event_id: int, attendees: List[Attendee]) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM event_attendees WHERE event_id = ?", (event_id,))
            conn.executemany(
                "INSERT INTO event_attendees (event_id, name, email, optional) VALUES (?,?,?,?)",
                [(event_id, a.name, a.email, 1 if a.optional else 0) for a in attendees],
            )

    def list_events(
        self,
        status:     Optional[str] = None,
        channel_id: Optional[int] = None,
        limit:      int           = 100,
        offset:     int           = 0,
    ) -> List[CalendarEvent]:
        clauses: List[str] = []
        params:  List[Any] = []
        if status:
            clauses.append("status = ?")
            params.append(status.lower())
        if channel_id is not None:
            clauses.append("channel_id = ?")
            params.append(channel_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ''
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM calendar_events {where} ORDER BY id DESC LIMIT ? OFFSET ?",
                (*params, limit, offset),
            ).fetchall()
        return [self._row_to_event(r) for r in rows]

    # ── REMINDERS ────────────────────────────────────────────

    @staticmethod
    def _row_to_reminder(row: sqlite3.Row) -> Reminder:
        return Reminder(
            id                = row['id'],
            user_id           = row['user_id'],
            channel_id        = row['channel_id'],
            title             = row['title'],
            description       = row['description'] or '',
            due_date          = _from_iso(row['due_date']),
            reminder_time     = _from_iso(row['reminder_time']),
            priority          = row['priority'] or 'normal',
            status            = row['status'],
            action_type       = row['action_type'],
            origin_message_id = row['origin_message_id'],
            email_source_id   = row['email_source_id'],
            source            = row['source'] or '',
            llm_reasoning     = row['llm_reasoning'] or '',
            llm_confidence    = row['llm_confidence'] or 0.0,
            quality_flags     = _load_list(row['quality_flags']),
            created_at        = _from_iso(row['created_at']),
        )

    def get_active_reminders(self, channel_id: int) -> List[Reminder]:
        with self._connect() as conn:
            rows = conn.execute("""
                SELECT * FROM reminders
                WHERE channel_id = ? AND status IN (?, ?)
                ORDER BY due_date ASC, id ASC
            """, (channel_id, *ACTIVE_REMINDER_STATUSES)).fetchall()
        return [self._row_to_reminder(r) for r in rows]

    def create_pending_reminder(self, reminder: Reminder) -> Reminder:
        now = _now_iso()
        with self._connect() as conn:
            cur = conn.execute("""
                INSERT INTO reminders
                (user_id, channel_id, title, description, due_date, reminder_time,
                 priority, status, action_type, origin_message_id, email_source_id,
                 source, llm_reasoning, llm_confidence, quality_flags,
                 created_at, updated_at)
                VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
            """, (
                reminder.user_id, reminder.channel_id, reminder.title,
                reminder.description, _to_iso(reminder.due_date),
                _to_iso(reminder.reminder_time), reminder.priority, STATUS_PENDING,
                reminder.action_type, reminder.origin_message_id,
                reminder.email_source_id, reminder.source, reminder.llm_reasoning,
                reminder.llm_confidence, json.dumps(list(reminder.quality_flags)),
                now, now,
            ))
            reminder_id = cur.lastrowid
        created = self.get_reminder_by_id(reminder_id)
        if created is None:
            raise StoreError(f"reminder {reminder_id} vanished after insert")
        return created

    def update_pending_reminder(self, reminder: Reminder) -> None:
        with self._connect() as conn:
            cur = conn.execute("""
                UPDATE reminders
                SET title = ?, description = ?, due_date = ?, reminder_time = ?,
                    priority = ?, llm_reasoning = ?, llm_confidence = ?,
                    quality_flags = ?, updated_at = ?
                WHERE id = ? AND status = ?
            """, (
                reminder.title, reminder.description, _to_iso(reminder.due_date),
                _to_iso(reminder.reminder_time), reminder.priority,
                reminder.llm_reasoning, reminder.llm_confidence,
                json.dumps(list(reminder.quality_flags)), _now_iso(),
                reminder.id, STATUS_PENDING,
            ))
            if cur.rowcount == 0:
                raise StoreError(f"reminder {reminder.id} is not pending")

    def update_reminder_status(self, reminder_id: int, status: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE reminders SET status = ?, updated_at = ? WHERE id = ?",
                (status, _now_iso(), reminder_id),
            )

    def get_reminder_by_id(self, reminder_id: int) -> Optional[Reminder]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM reminders WHERE id = ?", (reminder_id,)).fetchone()
        return self._row_to_reminder(row) if row else None

    def list_reminders(
        self,
        status:     Optional[str] = None,
        channel_id: Optional[int] = None,
        limit:      int           = 100,
        offset:     int           = 0,
    ) -> List[Reminder]:
        clauses: List[str] = []
        params:  List[Any] = []
        if status:
            clauses.append("status = ?")
            params.append(status.lower())
        if channel_id is not None:
            clauses.append("channel_id = ?")
            params.append(channel_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ''
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM reminders {where} ORDER BY id DESC LIMIT ? OFFSET ?",
                (*params, limit, offset),
            ).fetchall()
        return [self._row_to_reminder(r) for r in rows]

    # ── EMAIL SOURCES ────────────────────────────────────────

    def create_email_source(
        self,
        user_id:     int,
        source_type: str,
        identifier:  str,
        name:        str = '',
        calendar_id: str = '',
    ) -> EmailSource:
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO email_sources (user_id, source_type, identifier, name, calendar_id) "
                "VALUES (?,?,?,?,?)",
                (user_id, source_type, identifier, name, calendar_id),
            )
            source_id = cur.lastrowid
        return EmailSource(source_id, user_id, source_type, identifier, name, calendar_id)

    def get_email_source(self, source_id: int) -> Optional[EmailSource]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM email_sources WHERE id = ?", (source_id,)).fetchone()
        if row is None:
            return None
        return EmailSource(
            id          = row['id'],
            user_id     = row['user_id'],
            source_type = row['source_type'],
            identifier  = row['identifier'],
            name        = row['name'] or '',
            calendar_id = row['calendar_id'] or '',
        )

    # ── TRACES ───────────────────────────────────────────────

    def create_analysis_trace(self, trace: AnalysisTrace) -> AnalysisTrace:
        created_at = _now_iso()
        with self._connect() as conn:
            cur = conn.execute("""
                INSERT INTO analysis_traces
                (user_id, channel_id, source_type, trigger_message_id, intent,
                 router_confidence, action, confidence, reasoning, status,
                 details_json, created_at)
                VALUES (?,?,?,?,?,?,?,?,?,?,?,?)
            """, (
                trace.user_id, trace.channel_id, trace.source_type,
                trace.trigger_message_id, trace.intent, trace.router_confidence,
                trace.action, trace.confidence, trace.reasoning, trace.status,
                json.dumps(trace.details or {}), created_at,
            ))
            trace.id = cur.lastrowid
        trace.created_at = _from_iso(created_at)
        return trace

    def list_traces(
        self,
        channel_id: Optional[int] = None,
        status:     Optional[str] = None,
        limit:      int           = 100,
        offset:     int           = 0,
    ) -> List[AnalysisTrace]:
        clauses: List[str] = []
        params:  List[Any] = []
        if channel_id is not None:
            clauses.append("channel_id = ?")
            params.append(channel_id)
        if status:
            clauses.append("status = ?")
            params.append(status.lower())
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ''
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM analysis_traces {where} ORDER BY id ASC LIMIT ? OFFSET ?",
                (*params, limit, offset),
            ).fetchall()
        return [self._row_to_trace(r) for r in rows]

    @staticmethod
    def _row_to_trace(row: sqlite3.Row) -> AnalysisTrace:
        try:
            details: Dict[str, Any] = json.loads(row['details_json'] or '{}')
        except (json.JSONDecodeError, TypeError):
            details = {}
        return AnalysisTrace(
            id                 = row['id'],
            user_id            = row['user_id'],
            channel_id         = row['channel_id'],
            source_type        = row['source_type'],
            trigger_message_id = row['trigger_message_id'],
            intent             = row['intent'],
            router_confidence  = row['router_confidence'] or 0.0,
            action             = row['action'] or '',
            confidence         = row['confidence'] or 0.0,
            reasoning          = row['reasoning'] or '',
            status             = row['status'],
            details            = details,
            created_at         = _from_iso(row['created_at']),
        )
