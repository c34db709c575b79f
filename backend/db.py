"""SQLite database for sessions and the audit log.

Uses aiosqlite for async access. The database file location comes from
settings (default backend/data/nfs-manager.db) and is created automatically.
The exports themselves never live here; they are in the JSON document.
"""

import os
import time
import uuid
import logging

import aiosqlite

from config import settings

logger = logging.getLogger(__name__)

DB_PATH = str(settings.db_path)

_db: aiosqlite.Connection | None = None

SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id          TEXT PRIMARY KEY,
    username    TEXT NOT NULL,
    created_at  REAL NOT NULL,
    expires_at  REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS audit_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp   REAL NOT NULL,
    username    TEXT NOT NULL,
    action      TEXT NOT NULL,
    target      TEXT NOT NULL,
    detail      TEXT DEFAULT '',
    success     INTEGER NOT NULL DEFAULT 1
);

CREATE INDEX IF NOT EXISTS idx_sessions_expires ON sessions(expires_at);
CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
"""


async def get_db() -> aiosqlite.Connection:
    """Get the database connection, creating it if needed."""
    global _db
    if _db is None:
        os.makedirs(os.path.dirname(DB_PATH), exist_ok=True)
        _db = await aiosqlite.connect(DB_PATH)
        _db.row_factory = aiosqlite.Row
        await _db.executescript(SCHEMA)
        await _db.commit()
        logger.info("Database initialized at %s", DB_PATH)
    return _db


async def close_db() -> None:
    """Close the database connection."""
    global _db
    if _db is not None:
        await _db.close()
        _db = None


# --- Session helpers ---

SESSION_LIFETIME = settings.session_lifetime


async def create_session(username: str) -> str:
    """Create a new session, return the session token."""
    db = await get_db()
    session_id = uuid.uuid4().hex
    now = time.time()
    await db.execute(
        "INSERT INTO sessions (id, username, created_at, expires_at) VALUES (?, ?, ?, ?)",
        (session_id, username, now, now + SESSION_LIFETIME),
    )
    await db.commit()
    return session_id


async def get_session(session_id: str) -> dict | None:
    """Look up a session by token. Returns None if expired or not found."""
    db = await get_db()
    cursor = await db.execute(
        "SELECT id, username, created_at, expires_at FROM sessions WHERE id = ?",
        (session_id,),
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    if row["expires_at"] < time.time():
        await db.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        await db.commit()
        return None
    return dict(row)


async def delete_session(session_id: str) -> None:
    """Delete a session (logout)."""
    db = await get_db()
    await db.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
    await db.commit()


async def cleanup_sessions() -> int:
    """Delete all expired sessions. Returns count deleted."""
    db = await get_db()
    cursor = await db.execute(
        "DELETE FROM sessions WHERE expires_at < ?", (time.time(),)
    )
    await db.commit()
    return cursor.rowcount


# --- Audit log helpers ---


async def audit_log(
    username: str, action: str, target: str, detail: str = "", success: bool = True
) -> None:
    """Write an entry to the audit log."""
    db = await get_db()
    await db.execute(
        "INSERT INTO audit_log (timestamp, username, action, target, detail, success) VALUES (?, ?, ?, ?, ?, ?)",
        (time.time(), username, action, target, detail, int(success)),
    )
    await db.commit()


async def get_audit_log(limit: int = 100, offset: int = 0) -> list[dict]:
    """Retrieve recent audit log entries."""
    db = await get_db()
    cursor = await db.execute(
        "SELECT * FROM audit_log ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?",
        (limit, offset),
    )
    rows = await cursor.fetchall()
    return [dict(r) for r in rows]
