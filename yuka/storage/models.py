from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UsageEvent:
    model: str
    success: bool
    occurred_at: datetime


@dataclass(frozen=True)
class ConversationTurn:
    user_id: str
    prompt: str
    response: str
    model: str | None
    created_at: datetime


@dataclass(frozen=True)
class ModelStats:
    """Aggregated ledger row for one model, as shown by the stats command."""

    model: str
    successes: int
    total: int
    rate_percent: float
