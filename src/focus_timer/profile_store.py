"""
Profile store: aiosqlite-backed points sink.

Keeps one row per student profile. The signed-in identity is whatever
``user_id`` the store was created with; without one, reads return None and
awards are treated as failures by the engine.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiosqlite

from .points import Profile

logger = logging.getLogger("focus_timer.profile_store")


def _now_iso() -> str:
    return datetime.now().isoformat()


class SqliteProfileStore:
    """Profile persistence for the focus engine's point awards."""

    def __init__(self, db_path: Path, user_id: Optional[str] = None):
        self.db_path = Path(db_path)
        self.user_id = user_id

    # ── Schema ─────────────────────────────────────────────────

    @staticmethod
    async def init_tables(db: aiosqlite.Connection):
        await db.execute("""
            CREATE TABLE IF NOT EXISTS profiles (
                id TEXT PRIMARY KEY,
                email TEXT DEFAULT '',
                name TEXT DEFAULT '',
                points INTEGER NOT NULL DEFAULT 0,
                streak INTEGER NOT NULL DEFAULT 0,
                rank TEXT DEFAULT 'Scholar',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

    async def init_db(self):
        """Create the database file and tables if missing."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("PRAGMA journal_mode=WAL")
            await self.init_tables(db)
            await db.commit()

    # ── Reads ──────────────────────────────────────────────────

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT id, email, name, points, streak, rank FROM profiles WHERE id = ?",
                (user_id,),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return Profile(**dict(row))

    async def get_current_profile(self) -> Optional[Profile]:
        if not self.user_id:
            return None
        return await self.get_profile(self.user_id)

    async def points_for(self, user_id: str) -> int:
        profile = await self.get_profile(user_id)
        return profile.points if profile else 0

    # ── Writes ─────────────────────────────────────────────────

    async def upsert_profile(self, profile: Profile):
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                INSERT INTO profiles (id, email, name, points, streak, rank, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    email = excluded.email,
                    name = excluded.name,
                    points = excluded.points,
                    streak = excluded.streak,
                    rank = excluded.rank,
                    updated_at = excluded.updated_at
            """, (
                profile.id, profile.email, profile.name,
                profile.points, profile.streak, profile.rank,
                _now_iso(), _now_iso(),
            ))
            await db.commit()

    async def save_profile(self, profile: Profile) -> bool:
        try:
            await self.upsert_profile(profile)
        except aiosqlite.Error as e:
            logger.error(f"Failed to save profile {profile.id}: {e}")
            return False
        return True
