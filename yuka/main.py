"""
Entrypoint: `python -m yuka.main` or the `yuka` console script.
"""

import asyncio
import logging
import os
from typing import Any

from yuka.bot import YukaBot
from yuka.config.loader import get_config


def setup_logging() -> None:
    if os.environ.get("DEBUG"):
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s: %(message)s")
        logging.getLogger("httpx").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")


async def run_bot(config: dict[str, Any] | None = None) -> None:
    config = config or get_config()
    bot = YukaBot(config)
    async with bot:
        await bot.start(config["bot_token"])


def main() -> None:
    setup_logging()
    try:
        asyncio.run(run_bot())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
