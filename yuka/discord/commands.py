"""
Prefix command parsing.

Raw message text becomes one of a closed set of command variants; the bot
dispatches on the variant type and never inspects the text again.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Union


SUBMIT_COMMAND = "yuka"
RANDOM_FLAGS = ("--random", "-r")

_SUBMIT_RE = re.compile(rf"^{SUBMIT_COMMAND}(\d*)(?=\s|$)\s*(.*)$", re.DOTALL)


@dataclass(frozen=True)
class Submit:
    prompt: str
    api: str | None = None  # None: pick any configured API
    randomize: bool = False


@dataclass(frozen=True)
class ShowHistory:
    pass


@dataclass(frozen=True)
class ClearHistory:
    pass


@dataclass(frozen=True)
class ShowStats:
    pass


@dataclass(frozen=True)
class Help:
    pass


@dataclass(frozen=True)
class Ping:
    pass


@dataclass(frozen=True)
class Invalid:
    reason: str


Command = Union[Submit, ShowHistory, ClearHistory, ShowStats, Help, Ping, Invalid]

_SIMPLE_COMMANDS: dict[str, Command] = {
    "history": ShowHistory(),
    "clearhistory": ClearHistory(),
    "stats": ShowStats(),
    "help": Help(),
    "ping": Ping(),
}


def _split_random_flag(text: str) -> tuple[bool, str]:
    parts = text.split(None, 1)
    if parts and parts[0] in RANDOM_FLAGS:
        return True, parts[1].strip() if len(parts) > 1 else ""
    return False, text


def parse_command(content: str, prefix: str = "?", api_commands: Iterable[str] = ()) -> Command | None:
    """
    Parse one message. Returns None for text that is not a command.
    """
    content = content.strip()
    if not content.startswith(prefix):
        return None
    body = content[len(prefix):]

    if body in _SIMPLE_COMMANDS:
        return _SIMPLE_COMMANDS[body]

    match = _SUBMIT_RE.match(body)
    if not match:
        return None

    api_number, rest = match.groups()
    api = f"{SUBMIT_COMMAND}{api_number}" if api_number else None
    if api is not None and api not in set(api_commands):
        return Invalid(f"❌ No API is configured for {prefix}{api}.")

    randomize, prompt = _split_random_flag(rest.strip())
    if not prompt:
        return Invalid(f"❌ Write your question after {prefix}{api or SUBMIT_COMMAND}.")
    return Submit(prompt=prompt, api=api, randomize=randomize)
