from __future__ import annotations

import logging
import os
import sys
from typing import Any

import yaml
from dotenv import load_dotenv

from .validator import validate_config, ConfigValidationError


DEFAULT_CONFIG_FILE = "config.yaml"
CONFIG_ENV_VAR = "CONFIG_PATH"

DEFAULTS: dict[str, Any] = {
    "prefix": "?",
    "database": "yuka_history.db",
    "base_url": "https://openrouter.ai/api/v1",
    "persona": "yuka",
    "system_prompt": "You are Yuka, a polite and informative AI assistant. Always refer to yourself as Yuka.",
    "history_count": 5,
    "trim_chars": 700,
    "max_output_chars": 1800,
    "max_stored_response_chars": 10000,
    "request_timeout_seconds": 30,
    "max_attempts": 4,
    "initial_backoff_ms": 2000,
    "refresh_interval_minutes": 10,
    "dispatch_timeout_seconds": None,
}


def get_config_path() -> str:
    """
    Resolve the config path, preferring an explicit environment override.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return env_path
    return DEFAULT_CONFIG_FILE


def _load_raw_config(path: str | None = None) -> dict[str, Any]:
    cfg_path = path or get_config_path()
    try:
        with open(cfg_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logging.error("Config file not found: %s", cfg_path)
        sys.exit(1)
    except yaml.YAMLError as e:
        logging.error("YAML parsing error in %s: %s", cfg_path, e)
        sys.exit(1)

    if not isinstance(data, dict):
        logging.error("Config root must be a mapping, got %s", type(data).__name__)
        sys.exit(1)

    return data


def apply_environment(cfg: dict[str, Any]) -> dict[str, Any]:
    """
    Fill defaults and secrets that live in the environment (.env supported).

    - bot_token falls back to $DISCORD_TOKEN
    - announce_channel_id falls back to $CHANNEL_ID
    - each api entry's api_key falls back to the variable named by api_key_env
    """
    load_dotenv()
    cfg = DEFAULTS | cfg

    cfg["bot_token"] = cfg.get("bot_token") or os.getenv("DISCORD_TOKEN", "")
    channel = cfg.get("announce_channel_id") or os.getenv("CHANNEL_ID")
    cfg["announce_channel_id"] = int(channel) if str(channel or "").isdigit() else channel or None

    if not isinstance(cfg.get("apis"), dict):
        return cfg  # reported by validate_config

    apis = {}
    for command, api_cfg in cfg["apis"].items():
        if not isinstance(api_cfg, dict):
            apis[command] = api_cfg
            continue
        api_cfg = dict(api_cfg)
        if not api_cfg.get("api_key") and api_cfg.get("api_key_env"):
            api_cfg["api_key"] = os.getenv(api_cfg["api_key_env"], "")
        api_cfg.setdefault("name", command)
        apis[command] = api_cfg
    cfg["apis"] = apis
    return cfg


def usable_apis(cfg: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """API entries that actually have a key to send."""
    return {command: api for command, api in cfg.get("apis", {}).items() if api.get("api_key")}


def get_config(path: str | None = None) -> dict[str, Any]:
    """
    Public helper for loading configuration.

    - Respects CONFIG_PATH if set.
    - Resolves secrets from the environment.
    - Performs comprehensive validation.
    - Exits with error code 1 if validation fails.
    """
    cfg_path = path or get_config_path()
    cfg = apply_environment(_load_raw_config(cfg_path))

    try:
        validate_config(cfg, cfg_path)
    except ConfigValidationError:
        sys.exit(1)

    return cfg
