from __future__ import annotations

from typing import Any, Iterable

from yuka.storage.models import ConversationTurn


DEFAULT_TRIM_CHARS = 700


def build_messages(
    system_prompt: str,
    turns: Iterable[ConversationTurn],
    prompt: str,
    trim_chars: int = DEFAULT_TRIM_CHARS,
) -> list[dict[str, Any]]:
    """
    Flatten stored turns into an OpenAI-format message list.

    Each turn contributes a user/assistant pair, keeping only the last
    `trim_chars` characters of each side. The new prompt goes last, untrimmed.
    """
    messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    for turn in turns:
        messages.append({"role": "user", "content": turn.prompt[-trim_chars:]})
        messages.append({"role": "assistant", "content": turn.response[-trim_chars:]})
    messages.append({"role": "user", "content": prompt})
    return messages
