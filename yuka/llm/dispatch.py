"""
Dispatch engine: one user prompt in, at most one model reply out.

Models are tried strictly in order. Each model gets up to `max_attempts`
calls; rate-limit responses are retried after an exponentially growing
delay, any other failure moves on to the next model immediately. The first
success wins and is written to the conversation store.

The attempt loop is driven as a small state machine:

    IDLE -> ATTEMPTING(n) -> SUCCESS
                          -> BACKOFF(delay) -> ATTEMPTING(n + 1)
                          -> NEXT_MODEL -> ATTEMPTING(1) | EXHAUSTED
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol, Sequence

from yuka.storage.history import ConversationStore
from yuka.storage.ledger import UsageLedger
from yuka.storage.models import ConversationTurn, utcnow

from .context import DEFAULT_TRIM_CHARS, build_messages
from .errors import LLMError, LLMRateLimitError, parse_error_message
from .selector import ModelSelector


DEFAULT_HISTORY_COUNT = 5
DEFAULT_MAX_ATTEMPTS = 4
DEFAULT_INITIAL_BACKOFF_MS = 2000

Sleep = Callable[[float], Awaitable[Any]]


class CompletionBackend(Protocol):
    async def complete(self, model: str, messages: list[dict[str, Any]], credential: str) -> str: ...


class DispatchState(enum.Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    BACKOFF = "backoff"
    NEXT_MODEL = "next_model"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class Completion:
    content: str
    model: str


class DispatchEngine:
    def __init__(
        self,
        backend: CompletionBackend,
        selector: ModelSelector,
        ledger: UsageLedger,
        store: ConversationStore,
        system_prompt: str,
        history_count: int = DEFAULT_HISTORY_COUNT,
        trim_chars: int = DEFAULT_TRIM_CHARS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_backoff_ms: int = DEFAULT_INITIAL_BACKOFF_MS,
        dispatch_timeout: float | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.backend = backend
        self.selector = selector
        self.ledger = ledger
        self.store = store
        self.system_prompt = system_prompt
        self.history_count = history_count
        self.trim_chars = trim_chars
        self.max_attempts = max_attempts
        self.initial_backoff_ms = initial_backoff_ms
        self.dispatch_timeout = dispatch_timeout
        self._sleep = sleep

    async def build_context(self, prompt: str, user_id: str, reply_text: str | None = None) -> list[dict[str, Any]]:
        turns = await self.store.recent_turns(user_id, self.history_count)
        if reply_text:
            replied = await self.store.find_turn_by_response(reply_text)
            if replied is not None:
                turns.append(replied)
        return build_messages(self.system_prompt, turns, prompt, self.trim_chars)

    async def dispatch(
        self,
        prompt: str,
        user_id: str,
        credential: str,
        ordering: Sequence[str] | None = None,
        reply_text: str | None = None,
    ) -> Completion | None:
        """
        Answer `prompt` for `user_id`, or return None when every model failed.

        `ordering` overrides the selector's current priority for this call.
        """
        if not prompt or not prompt.strip():
            raise ValueError("prompt must not be empty")

        run = self._dispatch(prompt, user_id, credential, ordering, reply_text)
        if self.dispatch_timeout:
            return await asyncio.wait_for(run, timeout=self.dispatch_timeout)
        return await run

    async def _dispatch(
        self,
        prompt: str,
        user_id: str,
        credential: str,
        ordering: Sequence[str] | None,
        reply_text: str | None,
    ) -> Completion | None:
        messages = await self.build_context(prompt, user_id, reply_text)
        models = tuple(ordering) if ordering is not None else self.selector.current_order()

        completion = await self.call_models(messages, credential, models)
        if completion is not None:
            await self.store.append(
                ConversationTurn(
                    user_id=str(user_id),
                    prompt=prompt,
                    response=completion.content,
                    model=completion.model,
                    created_at=utcnow(),
                )
            )
        return completion

    async def call_models(
        self,
        messages: list[dict[str, Any]],
        credential: str,
        models: Sequence[str],
    ) -> Completion | None:
        state = DispatchState.IDLE
        pending = list(models)
        model: str | None = None
        attempt = 0
        delay_ms = self.initial_backoff_ms

        while True:
            if state in (DispatchState.IDLE, DispatchState.NEXT_MODEL):
                if not pending:
                    state = self._transition(state, DispatchState.EXHAUSTED, model)
                    logging.warning("All %d models exhausted", len(models))
                    return None
                model = pending.pop(0)
                attempt, delay_ms = 1, self.initial_backoff_ms
                state = self._transition(state, DispatchState.ATTEMPTING, model, attempt)

            elif state is DispatchState.ATTEMPTING:
                try:
                    content = await self.backend.complete(model, messages, credential)
                except LLMRateLimitError:
                    if attempt >= self.max_attempts:
                        logging.info("⏳ %s still rate limited after %d attempts, moving on", model, attempt)
                        state = self._transition(state, DispatchState.NEXT_MODEL, model)
                    else:
                        logging.info(
                            "⏳ %s rate limited. Retry %d/%d in %.0fs...",
                            model, attempt, self.max_attempts, delay_ms / 1000,
                        )
                        state = self._transition(state, DispatchState.BACKOFF, model, delay_ms)
                    continue
                except LLMError as e:
                    logging.warning("❌ Model %s failed: %s", model, parse_error_message(e))
                    await self.ledger.record(model, False)
                    state = self._transition(state, DispatchState.NEXT_MODEL, model)
                    continue

                await self.ledger.record(model, True)
                self._transition(state, DispatchState.SUCCESS, model)
                return Completion(content=content, model=model)

            elif state is DispatchState.BACKOFF:
                await self._sleep(delay_ms / 1000)
                delay_ms *= 2
                attempt += 1
                state = self._transition(state, DispatchState.ATTEMPTING, model, attempt)

    @staticmethod
    def _transition(old: DispatchState, new: DispatchState, model: str | None, detail: Any = None) -> DispatchState:
        logging.debug("dispatch %s -> %s (model=%s, %s)", old.value, new.value, model, detail)
        return new
