"""
Adaptive model ordering.

The selector owns the process-wide priority tuple. `refresh()` re-ranks the
configured candidates by ledger success rate and swaps the tuple in one
assignment, so concurrent readers see either the old or the new order.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Mapping, Sequence

from yuka.storage.ledger import UsageLedger


# Rate assumed for a model with no ledger history, so untried models rank
# ahead of anything that has failed at least once.
UNSEEN_MODEL_RATE = 1.0

Notifier = Callable[[Sequence[str]], Awaitable[None]]


class ModelSelector:
    def __init__(
        self,
        candidates: Sequence[str],
        ledger: UsageLedger,
        notifier: Notifier | None = None,
        unseen_rate: float = UNSEEN_MODEL_RATE,
    ):
        if not candidates:
            raise ValueError("ModelSelector needs at least one candidate model")
        if len(set(candidates)) != len(candidates):
            raise ValueError("Candidate models must be unique")
        self.candidates: tuple[str, ...] = tuple(candidates)
        self.unseen_rate = unseen_rate
        self._ledger = ledger
        self._notifier = notifier
        self._order: tuple[str, ...] = self.candidates
        self._refresh_lock = asyncio.Lock()

    def current_order(self) -> tuple[str, ...]:
        return self._order

    def rank(self, rates: Mapping[str, float]) -> tuple[str, ...]:
        # sorted() is stable: equal rates keep the configured order
        return tuple(sorted(self.candidates, key=lambda m: rates.get(m, self.unseen_rate), reverse=True))

    def shuffled(self) -> tuple[str, ...]:
        order = list(self.candidates)
        random.shuffle(order)
        return tuple(order)

    async def refresh(self) -> bool:
        """
        Recompute the priority from the ledger; returns True if it changed.
        """
        async with self._refresh_lock:
            rates = await self._ledger.aggregate_success_rates()
            new_order = self.rank(rates)
            if new_order == self._order:
                logging.debug("Model priority unchanged")
                return False

            self._order = new_order
            logging.info("🔄 Model priority updated: %s", list(new_order))

        if self._notifier is not None:
            try:
                await self._notifier(new_order)
            except Exception as e:  # noqa: BLE001
                logging.warning("Failed to announce model priority change: %s", e)
        return True
