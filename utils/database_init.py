import os
import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite


class AsyncDatabaseInitializer:
    """
    Manage an async SQLite database using the DATABASE_DIR environment variable.

    - The database file is located at: <DATABASE_DIR>/app.db
    - DATABASE_DIR is required unless `db_dir` is passed explicitly. A
      RuntimeError is raised if it is missing or invalid (not a directory and
      cannot be created).
    - On the first call to `ensure_database()` for a given instance the
      `interview_sessions` table is created if missing. Existing data is kept
      so that interviews survive restarts.
    - Subsequent calls to `ensure_database()` on the same instance are no-ops,
      so it is safe for `connection()` to call it.
    """

    def __init__(self, db_dir: Optional[Path | str] = None) -> None:
        env_dir = str(db_dir) if db_dir is not None else os.getenv("DATABASE_DIR")

        if env_dir is None or not env_dir.strip():
            raise RuntimeError(
                "DATABASE_DIR environment variable must be set to a writable "
                "directory path where the SQLite database file will be stored."
            )

        path = Path(env_dir).expanduser()

        if path.exists() and not path.is_dir():
            raise RuntimeError(
                f"DATABASE_DIR={env_dir!r} points to a file, not a directory "
                f"({path}). Please set DATABASE_DIR to a directory path."
            )

        try:
            path.mkdir(parents=True, exist_ok=True)
        except Exception as exc:
            raise RuntimeError(
                f"Failed to create or access database directory at {path}"
            ) from exc

        self.db_dir = path
        self.db_path = self.db_dir / "app.db"
        self._initialized = False

    async def ensure_database(self) -> None:
        """
        Ensure the SQLite database at `self.db_path` has the sessions schema.

        Subsequent calls on the same instance are no-ops.
        """
        if self._initialized:
            return

        max_attempts = 3
        for attempt in range(1, max_attempts + 1):
            try:
                async with aiosqlite.connect(self.db_path) as db:
                    await db.execute(
                        """
                        CREATE TABLE IF NOT EXISTS interview_sessions (
                            user_id TEXT PRIMARY KEY,
                            messages TEXT NOT NULL,
                            phase TEXT NOT NULL,
                            question_count INTEGER NOT NULL DEFAULT 0,
                            final_spec TEXT,
                            is_modification_mode INTEGER NOT NULL DEFAULT 0,
                            spec_message_count INTEGER,
                            updated_at REAL NOT NULL
                        )
                        """
                    )

                    # Databases created before modification mode existed lack these columns.
                    cur = await db.execute("PRAGMA table_info(interview_sessions)")
                    cols = await cur.fetchall()
                    col_names = {col[1] for col in cols}
                    if "is_modification_mode" not in col_names:
                        await db.execute(
                            "ALTER TABLE interview_sessions ADD COLUMN is_modification_mode INTEGER NOT NULL DEFAULT 0"
                        )
                    if "spec_message_count" not in col_names:
                        await db.execute("ALTER TABLE interview_sessions ADD COLUMN spec_message_count INTEGER")

                    await db.commit()
                break
            except FileNotFoundError:
                # On some platforms a transient missing file error may occur; retry a few times.
                if attempt >= max_attempts:
                    raise
                await asyncio.sleep(0.1 * attempt)

        self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Async context manager yielding an `aiosqlite.Connection`.

        The schema is created on the first use via `ensure_database()`.
        """
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()
