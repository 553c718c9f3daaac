"""
Per-user conversation history backed by the `history` table.
"""

from __future__ import annotations

import logging
from datetime import datetime

import aiosqlite

from .models import ConversationTurn


DEFAULT_MAX_STORED_RESPONSE_CHARS = 10000


def _parse_timestamp(value: str) -> datetime:
    # Older rows carry JavaScript ISO strings ending in "Z".
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def _row_to_turn(row: aiosqlite.Row) -> ConversationTurn:
    return ConversationTurn(
        user_id=row["user_id"],
        prompt=row["prompt"],
        response=row["response"],
        model=row["model"],
        created_at=_parse_timestamp(row["created_at"]),
    )


class ConversationStore:
    def __init__(self, conn: aiosqlite.Connection, max_response_chars: int = DEFAULT_MAX_STORED_RESPONSE_CHARS):
        self._conn = conn
        self.max_response_chars = max_response_chars

    async def recent_turns(self, user_id: str, limit: int) -> list[ConversationTurn]:
        """Return the user's last `limit` turns, oldest first."""
        async with self._conn.execute(
            "SELECT user_id, prompt, response, model, created_at FROM history "
            "WHERE user_id = ? ORDER BY id DESC LIMIT ?",
            (str(user_id), limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_turn(row) for row in reversed(rows)]

    async def find_turn_by_response(self, text: str) -> ConversationTurn | None:
        """
        Turn whose response matches `text`, ignoring surrounding whitespace
        (Discord strips it from message content).
        """
        async with self._conn.execute(
            "SELECT user_id, prompt, response, model, created_at FROM history WHERE trim(response, ' \t\r\n') = ? LIMIT 1",
            (text.strip(),),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_turn(row) if row else None

    async def append(self, turn: ConversationTurn) -> bool:
        """
        Persist one turn.

        Oversized responses are skipped, not rejected. Storage errors are
        logged and swallowed, like ledger writes.
        """
        if len(turn.response) > self.max_response_chars:
            logging.info(
                "Not storing %d-char response for user %s (cap %d)",
                len(turn.response), turn.user_id, self.max_response_chars,
            )
            return False
        try:
            await self._conn.execute(
                "INSERT INTO history (user_id, prompt, response, created_at, model) VALUES (?, ?, ?, ?, ?)",
                (str(turn.user_id), turn.prompt, turn.response, turn.created_at.isoformat(), turn.model),
            )
            await self._conn.commit()
        except Exception:  # noqa: BLE001
            logging.exception("Failed to store history for user %s", turn.user_id)
            return False
        return True

    async def clear(self, user_id: str) -> int:
        cursor = await self._conn.execute("DELETE FROM history WHERE user_id = ?", (str(user_id),))
        await self._conn.commit()
        return cursor.rowcount
