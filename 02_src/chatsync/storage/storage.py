"""SQLite storage for per-role credentials."""

from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path


class IStorage(Protocol):
    """Persistent local storage (SQLite)."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    async def save_credential(self, key: str, token: str) -> None:
        """Store the credential for a role key, replacing any previous one."""
        ...

    async def get_credential(self, key: str) -> str | None:
        """Get the stored credential for a role key."""
        ...

    async def clear_credential(self, key: str) -> None:
        """Remove the credential for a role key."""
        ...

    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def save_credential(self, key: str, token: str) -> None:
        """Store the credential for a role key, replacing any previous one."""
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        await self._conn.execute(
            """
            INSERT OR REPLACE INTO credentials (key, token, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            """,
            (key, token),
        )
        await self._conn.commit()

    async def get_credential(self, key: str) -> str | None:
        """Get the stored credential for a role key."""
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        async with self._conn.execute(
            "SELECT token FROM credentials WHERE key = ?", (key,)
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else None

    async def clear_credential(self, key: str) -> None:
        """Remove the credential for a role key."""
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        await self._conn.execute("DELETE FROM credentials WHERE key = ?", (key,))
        await self._conn.commit()

    async def clear(self) -> None:
        """Clear all data."""
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        await self._conn.execute("DELETE FROM credentials")
        await self._conn.commit()
