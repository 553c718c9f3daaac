from __future__ import annotations

from datetime import datetime
import logging
from typing import Any

import discord

from yuka.llm.errors import format_user_friendly_error, parse_error_message


async def notify_admin_error(
    discord_bot: discord.Client,
    config: dict[str, Any],
    error: Exception,
    context: str = "",
) -> None:
    """
    Send a concise error notification to all configured admins.
    """
    try:
        admin_ids = config.get("permissions", {}).get("users", {}).get("admin_ids", [])
        if not admin_ids:
            return

        msg = (
            "🤖 **Bot Error Notification**\n"
            f"⏰ Time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n"
            f"📝 Context: {context}\n\nError: {parse_error_message(error)}"
        )
        for admin_id in admin_ids:
            try:
                user = discord_bot.get_user(admin_id) or await discord_bot.fetch_user(
                    admin_id
                )
                await user.send(msg)
            except Exception as e:  # noqa: BLE001
                logging.warning("Could not notify admin %s: %s", admin_id, e)
    except Exception as e:  # noqa: BLE001
        logging.warning("Failed to notify admins: %s", e)


async def handle_command_error(
    message: discord.Message,
    error: Exception,
    discord_bot: discord.Client,
    config: dict[str, Any],
    context: str = "",
) -> None:
    """
    Standard handler for errors escaping a prefix command: log, tell the
    admins, and give the user one safe reply.
    """
    logging.exception("Command error (%s): %s", context or "unknown", error)
    user_msg = format_user_friendly_error(error)
    await notify_admin_error(discord_bot, config, error, context)
    try:
        await message.reply(f"❌ {user_msg}")
    except Exception:  # noqa: BLE001
        pass


async def send_to_channel(discord_bot: discord.Client, channel_id: int | None, text: str) -> bool:
    """
    Best-effort send to a configured channel; failures are only logged.
    """
    if not channel_id:
        return False
    try:
        channel = discord_bot.get_channel(channel_id) or await discord_bot.fetch_channel(channel_id)
        await channel.send(text)
    except Exception as e:  # noqa: BLE001
        logging.error("❌ Failed to send to channel %s: %s", channel_id, e)
        return False
    return True
