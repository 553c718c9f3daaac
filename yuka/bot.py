"""
Discord client: routes prefix commands to the dispatch engine and the
stores, and keeps the model priority refreshed on a timer.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Sequence

import discord
import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from yuka.config.loader import usable_apis
from yuka.config.personas import resolve_system_prompt
from yuka.discord.commands import (
    ClearHistory,
    Command,
    Help,
    Invalid,
    Ping,
    ShowHistory,
    ShowStats,
    Submit,
    parse_command,
)
from yuka.discord.errors import handle_command_error, notify_admin_error, send_to_channel
from yuka.discord.render import (
    EXHAUSTED_TEXT,
    THINKING_TEXT,
    chunk_text,
    format_priority_announcement,
    format_reply,
    help_embed,
    history_embed,
    ping_embed,
    stats_embed,
    strip_attribution,
)
from yuka.llm.client import CompletionClient
from yuka.llm.dispatch import DispatchEngine
from yuka.llm.errors import format_user_friendly_error
from yuka.llm.selector import ModelSelector
from yuka.storage import ConversationStore, UsageLedger, open_database


HISTORY_COMMAND_LIMIT = 5
REFRESH_JOB_ID = "refresh_model_priority"


class YukaBot(discord.Client):
    def __init__(self, config: dict[str, Any]):
        intents = discord.Intents.default()
        intents.message_content = True
        super().__init__(intents=intents, activity=discord.CustomActivity(name=f"{config['prefix']}help"))

        self.config = config
        self.prefix: str = config["prefix"]
        self.apis = usable_apis(config)
        self.httpx_client = httpx.AsyncClient()
        self.scheduler = AsyncIOScheduler()

        self.db = None
        self.ledger: UsageLedger | None = None
        self.store: ConversationStore | None = None
        self.selector: ModelSelector | None = None
        self.engine: DispatchEngine | None = None

    async def setup_hook(self) -> None:
        cfg = self.config
        self.db = await open_database(cfg["database"])
        self.ledger = UsageLedger(self.db)
        self.store = ConversationStore(self.db, cfg["max_stored_response_chars"])
        self.selector = ModelSelector(cfg["models"], self.ledger, notifier=self.announce_priority)
        self.engine = DispatchEngine(
            CompletionClient(cfg["base_url"], cfg["request_timeout_seconds"], http_client=self.httpx_client),
            self.selector,
            self.ledger,
            self.store,
            system_prompt=resolve_system_prompt(cfg),
            history_count=cfg["history_count"],
            trim_chars=cfg["trim_chars"],
            max_attempts=cfg["max_attempts"],
            initial_backoff_ms=cfg["initial_backoff_ms"],
            dispatch_timeout=cfg.get("dispatch_timeout_seconds"),
        )
        logging.info(
            "🚀 Bot starting | models: %s | apis: %s", list(cfg["models"]), list(self.apis)
        )

    async def close(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        await self.httpx_client.aclose()
        if self.db is not None:
            await self.db.close()
        await super().close()

    # ── Model priority ──────────────────────────────────────────────────────

    async def announce_priority(self, order: Sequence[str]) -> None:
        await send_to_channel(self, self.config.get("announce_channel_id"), format_priority_announcement(order))

    # ── Events ──────────────────────────────────────────────────────────────

    async def on_ready(self) -> None:
        logging.info("✅ Yuka ready! Logged in as %s", self.user)

        # on_ready fires again after every reconnect
        if not self.scheduler.running:
            if not self.config.get("announce_channel_id"):
                logging.warning("⚠️ announce_channel_id is not set")
            else:
                await send_to_channel(self, self.config["announce_channel_id"], "✅ Hi everyone! Yuka is ready to help 🚀")

            self.scheduler.add_job(
                self.selector.refresh,
                "interval",
                minutes=self.config["refresh_interval_minutes"],
                id=REFRESH_JOB_ID,
                replace_existing=True,
            )
            self.scheduler.start()
            logging.info("Scheduler started (refresh every %s min)", self.config["refresh_interval_minutes"])
            await self.selector.refresh()

    async def on_message(self, msg: discord.Message) -> None:
        if msg.author.bot:
            return

        command = parse_command(msg.content, self.prefix, self.config["apis"].keys())
        if command is None:
            return

        try:
            await self.handle_command(msg, command)
        except Exception as e:  # noqa: BLE001
            await handle_command_error(msg, e, self, self.config, type(command).__name__)

    async def handle_command(self, msg: discord.Message, command: Command) -> None:
        user_id = str(msg.author.id)

        if isinstance(command, Invalid):
            await msg.reply(command.reason)

        elif isinstance(command, Submit):
            await self.handle_submit(msg, command)

        elif isinstance(command, ShowHistory):
            turns = await self.store.recent_turns(user_id, HISTORY_COMMAND_LIMIT)
            if not turns:
                await msg.reply("No history yet.")
            else:
                await msg.reply(embed=history_embed(turns[::-1]))

        elif isinstance(command, ClearHistory):
            removed = await self.store.clear(user_id)
            logging.info("History cleared for %s (%d turns)", user_id, removed)
            await msg.reply("🗑️ All of your chat history has been deleted!")

        elif isinstance(command, ShowStats):
            stats = await self.ledger.stats()
            if not stats:
                await msg.reply("📊 No model usage data yet.")
            else:
                await msg.reply(embed=stats_embed(stats))

        elif isinstance(command, Help):
            await msg.reply(embed=help_embed(self.prefix, list(self.config["apis"])))

        elif isinstance(command, Ping):
            latency = int((discord.utils.utcnow() - msg.created_at).total_seconds() * 1000)
            await msg.reply(embed=ping_embed(latency))

    # ── Prompt submission ───────────────────────────────────────────────────

    async def handle_submit(self, msg: discord.Message, command: Submit) -> None:
        if command.api is not None:
            api = self.apis.get(command.api)
        else:
            api = random.choice(list(self.apis.values())) if self.apis else None
        if api is None:
            await msg.reply("❌ No API is available for this command.")
            return

        ordering = self.selector.shuffled() if command.randomize else None
        reply_text = await self.fetch_reply_text(msg)

        logging.info(
            "Prompt (uid:%s, api:%s, random:%s, reply:%s): %s",
            msg.author.id, api["name"], command.randomize, reply_text is not None, command.prompt,
        )
        thinking = await msg.reply(THINKING_TEXT)

        try:
            completion = await self.engine.dispatch(
                command.prompt, str(msg.author.id), api["api_key"], ordering=ordering, reply_text=reply_text
            )
        except Exception as e:  # noqa: BLE001
            logging.exception("Dispatch failed for %s", msg.author.id)
            await notify_admin_error(self, self.config, e, f"Dispatch in #{getattr(msg.channel, 'name', 'DM')}")
            await thinking.edit(content=f"❌ {format_user_friendly_error(e)}")
            return

        if completion is None:
            await thinking.edit(content=EXHAUSTED_TEXT)
            return

        chunks = chunk_text(format_reply(completion.model, completion.content), self.config["max_output_chars"])
        await thinking.edit(content=chunks[0])
        for chunk in chunks[1:]:
            await msg.channel.send(chunk)

    async def fetch_reply_text(self, msg: discord.Message) -> str | None:
        """
        Text of the bot message this one replies to, without the model header.
        """
        ref = msg.reference
        if ref is None or ref.message_id is None:
            return None
        try:
            replied = ref.cached_message or await msg.channel.fetch_message(ref.message_id)
        except (discord.NotFound, discord.HTTPException):
            logging.exception("Error fetching replied message")
            return None
        if self.user is None or replied.author.id != self.user.id:
            return None
        return strip_attribution(replied.content)
