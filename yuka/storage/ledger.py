"""
Append-only model usage ledger backed by the `model_usage` table.
"""

from __future__ import annotations

import logging
from datetime import datetime

import aiosqlite

from .models import ModelStats, UsageEvent, utcnow


class UsageLedger:
    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn

    async def record(self, model: str, success: bool, occurred_at: datetime | None = None) -> bool:
        """
        Append one usage event.

        Storage errors are logged and reported through the return value
        only; they never propagate to the caller.
        """
        event = UsageEvent(model, success, occurred_at or utcnow())
        try:
            await self._conn.execute(
                "INSERT INTO model_usage (model, success, used_at) VALUES (?, ?, ?)",
                (event.model, int(event.success), event.occurred_at.isoformat()),
            )
            await self._conn.commit()
        except Exception:  # noqa: BLE001
            logging.exception("Failed to record usage for %s (success=%s)", model, success)
            return False
        return True

    async def aggregate_success_rates(self, since: datetime | None = None) -> dict[str, float]:
        """
        Map each model with at least one event to successes / attempts.

        All retained history is used unless `since` is given.
        """
        query = "SELECT model, SUM(success) AS ok, COUNT(*) AS total FROM model_usage"
        params: tuple = ()
        if since is not None:
            query += " WHERE used_at >= ?"
            params = (since.isoformat(),)
        query += " GROUP BY model"

        async with self._conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return {row["model"]: row["ok"] / row["total"] for row in rows if row["total"]}

    async def stats(self) -> list[ModelStats]:
        async with self._conn.execute(
            """
            SELECT model,
                   SUM(success) AS ok,
                   COUNT(*) AS total,
                   ROUND((SUM(success) * 100.0) / COUNT(*), 2) AS rate
            FROM model_usage
            GROUP BY model
            ORDER BY rate DESC
            """
        ) as cursor:
            rows = await cursor.fetchall()
        return [ModelStats(row["model"], row["ok"], row["total"], row["rate"]) for row in rows]
