from __future__ import annotations

import logging
from pathlib import Path
from typing import Any


PERSONAS_DIR = Path(__file__).parent / "personas"


def load_persona(name: str, base: Path = PERSONAS_DIR) -> str:
    """Read the system prompt from `<base>/<name>.md`."""
    path = base / f"{name}.md"
    if not path.is_file():
        raise FileNotFoundError(f"Persona '{name}' not found in {base}")
    return path.read_text(encoding="utf-8").strip()


def resolve_system_prompt(config: dict[str, Any]) -> str:
    """
    Persona file first, then the inline system_prompt.

    A missing or unreadable persona is logged and falls through.
    """
    name = config.get("persona")
    if name:
        try:
            return load_persona(name)
        except OSError as e:
            logging.warning("Failed to load persona '%s': %s", name, e)
    return config.get("system_prompt") or ""
