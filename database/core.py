import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

import aiosqlite
from utils.logger import get_logger

# Initialize logger
log = get_logger()

DB_PATH = "janitor_database.sqlite"
BACKUP_FILENAME = "janitor_database_backup.sqlite"

class DatabaseManager:
    def __init__(self, db_path: str = DB_PATH):
        self.db_path = db_path
        self.connection = None
        self._write_lock = asyncio.Lock()

    async def connect(self):
        try:
            self.connection = await aiosqlite.connect(self.db_path)
            self._write_lock = asyncio.Lock()
            self.connection.row_factory = aiosqlite.Row
            await self.connection.execute("PRAGMA foreign_keys = ON")
            log.database(f"Connected to SQLite database at {self.db_path}")
            await self.init_schema()
        except aiosqlite.Error as e:
            log.error("Failed to connect to database", exc_info=e)
            raise

    async def restore_from_drive(self):
        """Restores the database file from the Google Drive backup, if one exists."""
        from utils.drive import drive_manager

        # The network might not be up yet right after boot
        for i in range(3):
            if drive_manager.service:
                break
            drive_manager.initialize_service()
            if not drive_manager.service:
                log.database(f"Drive service not ready, retrying in 2s... ({i+1}/3)")
                await asyncio.sleep(2)

        if not drive_manager.service:
            log.database("Drive restore skipped (No service after retries).")
            return

        file_id = drive_manager.find_file(BACKUP_FILENAME)
        if not file_id:
            log.database(f"No remote backup found to restore: '{BACKUP_FILENAME}'")
            return

        log.database(f"Found remote backup ({file_id}). Downloading...")
        content = drive_manager.download_file(file_id)

        if not content:
            log.error("Failed to download backup content.")
            return

        # Called before connect(), nothing holds the file open yet
        try:
            with open(self.db_path, 'wb') as f:
                f.write(content)
        except OSError as e:
            log.error("Failed to write restored database file", exc_info=e)
            return
        log.database("Database restored from Drive backup successfully.")

    async def init_schema(self):
        if not self.connection:
            return

        queries = [
            """
            CREATE TABLE IF NOT EXISTS admins (
                id INTEGER PRIMARY KEY,
                created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY,
                servers TEXT NOT NULL DEFAULT '[]', -- JSON list of guild ids
                user_type TEXT NOT NULL CHECK (user_type IN ('reporter', 'listener')),
                created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS server_configs (
                guild_id INTEGER PRIMARY KEY,
                log_channel_id INTEGER,
                honeypot_channel_id INTEGER,
                ping_users INTEGER NOT NULL DEFAULT 0,
                ping_role INTEGER,
                spam_action_level INTEGER NOT NULL DEFAULT 0,
                impersonation_action_level INTEGER NOT NULL DEFAULT 0,
                bigotry_action_level INTEGER NOT NULL DEFAULT 0,
                honeypot_action_level INTEGER NOT NULL DEFAULT 0,
                ignored_roles TEXT NOT NULL DEFAULT '[]', -- JSON list of role ids
                ban_reason TEXT,
                honeypot_timeout INTEGER NOT NULL DEFAULT 0, -- minutes, 0 is off
                created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
                updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS bad_actors (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                actor_type TEXT NOT NULL CHECK (actor_type IN ('spam', 'impersonation', 'bigotry', 'honeypot')),
                origin_guild_id INTEGER NOT NULL,
                screenshot_proof TEXT,
                explanation TEXT,
                created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
                updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
                updated_by_user_id INTEGER NOT NULL
            );
            """,
            """
            CREATE INDEX IF NOT EXISTS idx_bad_actors_user ON bad_actors(user_id);
            """,
            """
            CREATE TABLE IF NOT EXISTS user_scores (
                user_id INTEGER PRIMARY KEY,
                score INTEGER NOT NULL DEFAULT 0
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS guild_scores (
                guild_id INTEGER PRIMARY KEY,
                score INTEGER NOT NULL DEFAULT 0
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS webhooks (
                guild_id INTEGER PRIMARY KEY,
                guild_name TEXT NOT NULL,
                webhook_url TEXT NOT NULL
            );
            """
        ]

        try:
            for q in queries:
                await self.connection.execute(q)
            await self.connection.commit()
            log.database("Database schema initialization complete.")
        except aiosqlite.Error as e:
            log.error("Failed to initialize database schema", exc_info=e)
            raise

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Runs the enclosed statements as one write transaction.

        Every write goes through here. Writers hold the lock from BEGIN until the commit or
        rollback, so no coroutine ever commits or discards another one's statements on the
        shared connection. Reads stay lock free.
        """
        async with self._write_lock:
            await self.connection.execute("BEGIN")
            try:
                yield self.connection
            except BaseException:
                await self.connection.rollback()
                raise
            await self.connection.commit()

    async def close(self):
        if self.connection:
            await self.connection.close()
            self.connection = None
            log.database("Database connection closed.")

# Global DB instance
db = DatabaseManager()
