"""SQLite record store for users, preferences and custom presets.

One connection per session, opened with busy_timeout so concurrent
writers wait instead of failing. Write sessions run inside
``BEGIN IMMEDIATE`` so check-then-insert sequences are atomic.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import aiosqlite

from .models import CustomPreset, Preference, User
from .validation import PREFERENCE_DEFAULTS

PREFERENCE_COLUMNS = tuple(PREFERENCE_DEFAULTS)
PRESET_COLUMNS = ("name", "work_duration", "short_break", "long_break")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


def _sql_default(value: Any) -> str:
    return str(int(value)) if isinstance(value, bool) else str(value)


class StoreSession:
    """Queries bound to one open connection."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def _fetchone(self, sql: str, params: tuple = ()) -> Optional[aiosqlite.Row]:
        cursor = await self.db.execute(sql, params)
        return await cursor.fetchone()

    async def _fetchall(self, sql: str, params: tuple = ()) -> list[aiosqlite.Row]:
        cursor = await self.db.execute(sql, params)
        return list(await cursor.fetchall())

    # ── Users ──────────────────────────────────────────────────

    async def get_user(self, user_id: str) -> Optional[User]:
        row = await self._fetchone("SELECT id, email, name, created_at FROM users WHERE id = ?", (user_id,))
        return User(**dict(row)) if row else None

    async def get_user_credentials(self, email: str) -> Optional[tuple[User, str]]:
        row = await self._fetchone(
            "SELECT id, email, name, created_at, password_hash FROM users WHERE email = ?", (email,)
        )
        if not row:
            return None
        data = dict(row)
        password_hash = data.pop("password_hash")
        return User(**data), password_hash

    async def insert_user(self, email: str, password_hash: str, name: Optional[str]) -> User:
        """Insert a user. Raises sqlite3.IntegrityError on a duplicate email."""
        user_id = _new_id()
        created_at = _now_iso()
        await self.db.execute(
            "INSERT INTO users (id, email, password_hash, name, created_at) VALUES (?, ?, ?, ?, ?)",
            (user_id, email, password_hash, name, created_at),
        )
        return User(id=user_id, email=email, name=name, created_at=created_at)

    # ── Preferences ────────────────────────────────────────────

    async def get_preferences(self, user_id: str) -> Optional[Preference]:
        row = await self._fetchone("SELECT * FROM preferences WHERE user_id = ?", (user_id,))
        return Preference(**dict(row)) if row else None

    async def ensure_preferences(self, user_id: str) -> Preference:
        """Get-or-create with defaults. Idempotent: user_id is UNIQUE."""
        now = _now_iso()
        await self.db.execute(
            "INSERT OR IGNORE INTO preferences (id, user_id, created_at, updated_at) VALUES (?, ?, ?, ?)",
            (_new_id(), user_id, now, now),
        )
        return await self.get_preferences(user_id)

    async def update_preferences(self, user_id: str, fields: dict[str, Any]) -> Preference:
        await self.ensure_preferences(user_id)
        updates = {k: v for k, v in fields.items() if k in PREFERENCE_COLUMNS}
        if updates:
            assignments = ", ".join(f"{column} = ?" for column in updates)
            await self.db.execute(
                f"UPDATE preferences SET {assignments}, updated_at = ? WHERE user_id = ?",
                (*updates.values(), _now_iso(), user_id),
            )
        return await self.get_preferences(user_id)

    # ── Presets ────────────────────────────────────────────────

    async def list_presets(self, user_id: str) -> list[CustomPreset]:
        rows = await self._fetchall(
            "SELECT * FROM custom_presets WHERE user_id = ? ORDER BY created_at ASC, rowid ASC", (user_id,)
        )
        return [CustomPreset(**dict(row)) for row in rows]

    async def count_presets(self, user_id: str) -> int:
        row = await self._fetchone("SELECT COUNT(*) FROM custom_presets WHERE user_id = ?", (user_id,))
        return row[0]

    async def get_preset(self, user_id: str, preset_id: str) -> Optional[CustomPreset]:
        """Owner-scoped lookup: another user's preset looks exactly like a missing one."""
        row = await self._fetchone(
            "SELECT * FROM custom_presets WHERE id = ? AND user_id = ?", (preset_id, user_id)
        )
        return CustomPreset(**dict(row)) if row else None

    async def find_preset_by_name(self, user_id: str, name: str,
                                  exclude_id: Optional[str] = None) -> Optional[CustomPreset]:
        sql = "SELECT * FROM custom_presets WHERE user_id = ? AND name = ?"
        params: tuple = (user_id, name)
        if exclude_id is not None:
            sql += " AND id != ?"
            params += (exclude_id,)
        row = await self._fetchone(sql, params)
        return CustomPreset(**dict(row)) if row else None

    async def insert_preset(self, user_id: str, fields: dict[str, Any]) -> CustomPreset:
        preset_id = _new_id()
        now = _now_iso()
        await self.db.execute(
            """INSERT INTO custom_presets
               (id, user_id, name, work_duration, short_break, long_break, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (preset_id, user_id, *(fields[c] for c in PRESET_COLUMNS), now, now),
        )
        return await self.get_preset(user_id, preset_id)

    async def update_preset(self, user_id: str, preset_id: str, fields: dict[str, Any]) -> Optional[CustomPreset]:
        updates = {k: v for k, v in fields.items() if k in PRESET_COLUMNS}
        if updates:
            assignments = ", ".join(f"{column} = ?" for column in updates)
            await self.db.execute(
                f"UPDATE custom_presets SET {assignments}, updated_at = ? WHERE id = ? AND user_id = ?",
                (*updates.values(), _now_iso(), preset_id, user_id),
            )
        return await self.get_preset(user_id, preset_id)

    async def delete_preset(self, user_id: str, preset_id: str) -> bool:
        cursor = await self.db.execute(
            "DELETE FROM custom_presets WHERE id = ? AND user_id = ?", (preset_id, user_id)
        )
        return cursor.rowcount > 0


class RecordStore:
    """Entry point injected into the app; hands out sessions over ``db_path``."""

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)

    async def get_db(self) -> aiosqlite.Connection:
        """Open a connection with busy_timeout and foreign keys enabled."""
        db = await aiosqlite.connect(self.db_path, isolation_level=None)
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA busy_timeout=5000")
        await db.execute("PRAGMA foreign_keys=ON")
        return db

    @asynccontextmanager
    async def session(self, write: bool = False) -> AsyncIterator[StoreSession]:
        """Yield a session; ``write`` sessions are one IMMEDIATE transaction."""
        db = await self.get_db()
        try:
            if not write:
                yield StoreSession(db)
                return
            await db.execute("BEGIN IMMEDIATE")
            try:
                yield StoreSession(db)
            except BaseException:
                await db.execute("ROLLBACK")
                raise
            await db.execute("COMMIT")
        finally:
            await db.close()

    async def init_tables(self) -> None:
        """Create tables idempotently."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        pref_columns = ",\n".join(
            f"{column} INTEGER NOT NULL DEFAULT {_sql_default(default)}"
            for column, default in PREFERENCE_DEFAULTS.items()
        )
        db = await self.get_db()
        try:
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT UNIQUE NOT NULL,
                    password_hash TEXT NOT NULL,
                    name TEXT,
                    created_at TEXT NOT NULL
                )
            """)
            await db.execute(f"""
                CREATE TABLE IF NOT EXISTS preferences (
                    id TEXT PRIMARY KEY,
                    user_id TEXT UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    {pref_columns},
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS custom_presets (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    name TEXT NOT NULL,
                    work_duration INTEGER NOT NULL,
                    short_break INTEGER NOT NULL,
                    long_break INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (user_id, name)
                )
            """)
            await db.execute(
                "CREATE INDEX IF NOT EXISTS idx_presets_user_created ON custom_presets(user_id, created_at)"
            )
        finally:
            await db.close()

