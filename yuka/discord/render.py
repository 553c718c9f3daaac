"""
Text and embed rendering for replies, history, stats and announcements.
"""

from __future__ import annotations

from typing import Sequence

import discord

from yuka.storage.models import ConversationTurn, ModelStats


FOOTER_TEXT = "Yuka AI Bot"
ATTRIBUTION_PREFIX = "✅ **Model:** "
EMBED_DESCRIPTION_LIMIT = 4096
STATS_BAR_SEGMENTS = 20

THINKING_TEXT = "⏳ Yuka is thinking..."
EXHAUSTED_TEXT = "❌ All free models are busy right now. Please try again later."


def chunk_text(text: str, size: int) -> list[str]:
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return [text[i:i + size] for i in range(0, len(text), size)] or [""]


def format_reply(model: str, content: str) -> str:
    return f"{ATTRIBUTION_PREFIX}{model}\n\n{content}"


def strip_attribution(text: str) -> str:
    """Recover the raw model content from a message produced by format_reply."""
    if text.startswith(ATTRIBUTION_PREFIX):
        _, sep, rest = text.partition("\n\n")
        if sep:
            return rest
    return text


def make_bar(rate_percent: float, segments: int = STATS_BAR_SEGMENTS) -> str:
    filled = max(0, min(segments, round(rate_percent / (100 / segments))))
    return "█" * filled + "░" * (segments - filled)


def format_priority_announcement(order: Sequence[str]) -> str:
    lines = "\n".join(f"{i}. {model}" for i, model in enumerate(order, 1))
    return f"🔄 **Model priority updated:**\n{lines}"


def history_embed(turns: Sequence[ConversationTurn]) -> discord.Embed:
    """Newest-first summary of the given turns."""
    desc = "".join(
        f"**Q:** {t.prompt}\n**A:** {t.response}\n*{t.created_at.isoformat()}*\n\n" for t in turns
    )
    embed = discord.Embed(
        title=f"🕒 Your chat history (last {len(turns)})",
        color=0xFFAA00,
        description=desc[:EMBED_DESCRIPTION_LIMIT],
        timestamp=discord.utils.utcnow(),
    )
    embed.set_footer(text=FOOTER_TEXT)
    return embed


def stats_embed(stats: Sequence[ModelStats]) -> discord.Embed:
    desc = "\n\n".join(
        f"✅ **{s.model}**\n[{make_bar(s.rate_percent)}] {s.rate_percent}% ({s.successes}/{s.total})"
        for s in stats
    )
    embed = discord.Embed(
        title="📊 Model statistics",
        color=0x33CC33,
        description=desc[:EMBED_DESCRIPTION_LIMIT],
        timestamp=discord.utils.utcnow(),
    )
    embed.set_footer(text="Yuka AI - Adaptive Mode")
    return embed


def help_embed(prefix: str, api_commands: Sequence[str]) -> discord.Embed:
    api_list = " / ".join(f"{prefix}{c}" for c in api_commands)
    lines = [
        f"**{prefix}yuka [question]** - Ask Yuka using any API, best models first",
    ]
    if api_list:
        lines.append(f"**{api_list} [question]** - Ask Yuka through a specific API")
    lines += [
        f"**{prefix}yuka --random [question]** - Try the models in random order",
        f"**{prefix}history** - Show your recent chats",
        f"**{prefix}clearhistory** - Delete all of your chat history",
        f"**{prefix}stats** - Show model success statistics",
        f"**{prefix}ping** - Check bot latency",
        f"**{prefix}help** - Show this list",
    ]
    embed = discord.Embed(
        title="📖 Yuka Commands",
        color=0x00FFFF,
        description="\n".join(lines),
        timestamp=discord.utils.utcnow(),
    )
    embed.set_footer(text=FOOTER_TEXT)
    return embed


def ping_embed(latency_ms: int) -> discord.Embed:
    return discord.Embed(title="🏓 Pong!", color=0x00FF00, description=f"Latency: {latency_ms}ms")
