"""
SQLite connection management.

A single aiosqlite connection is shared by the ledger and the conversation
store; aiosqlite runs statements one at a time on its worker thread.
"""

from __future__ import annotations

import logging

import aiosqlite


DEFAULT_DB_FILE = "yuka_history.db"

_HISTORY_SCHEMA = """
    CREATE TABLE IF NOT EXISTS history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT,
        prompt TEXT,
        response TEXT,
        created_at TEXT
    )
"""

_USAGE_SCHEMA = """
    CREATE TABLE IF NOT EXISTS model_usage (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        model TEXT,
        success INTEGER,
        used_at TEXT
    )
"""


async def _column_names(conn: aiosqlite.Connection, table: str) -> list[str]:
    async with conn.execute(f"PRAGMA table_info({table})") as cursor:
        return [row[1] for row in await cursor.fetchall()]


async def initialize_schema(conn: aiosqlite.Connection) -> None:
    """
    Create both tables and bring an older `history` table up to date.

    Databases created before the `model` column existed keep their rows; the
    column is added and left NULL for them.
    """
    await conn.execute(_HISTORY_SCHEMA)
    if "model" not in await _column_names(conn, "history"):
        await conn.execute("ALTER TABLE history ADD COLUMN model TEXT")
        logging.info("Added 'model' column to history table")
    await conn.execute(_USAGE_SCHEMA)
    await conn.commit()


async def open_database(path: str = DEFAULT_DB_FILE) -> aiosqlite.Connection:
    conn = await aiosqlite.connect(path)
    conn.row_factory = aiosqlite.Row
    await initialize_schema(conn)
    logging.info("Database ready: %s", path)
    return conn
