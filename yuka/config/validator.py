"""
Configuration validator for config.yaml.

Validates structure, required fields, and common misconfigurations.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from yuka.discord.commands import SUBMIT_COMMAND


logger = logging.getLogger(__name__)

API_COMMAND_PATTERN = re.compile(rf"^{SUBMIT_COMMAND}\d+$")

POSITIVE_INT_KEYS = (
    "history_count",
    "trim_chars",
    "max_output_chars",
    "max_stored_response_chars",
    "request_timeout_seconds",
    "max_attempts",
    "initial_backoff_ms",
    "refresh_interval_minutes",
)


class ConfigValidationError(Exception):
    """Raised when config validation fails."""
    pass


def validate_config(cfg: dict[str, Any], config_path: str = "config.yaml") -> None:
    """
    Comprehensive validation of the loaded configuration.

    Raises ConfigValidationError if validation fails.
    Logs detailed error messages before raising.

    Args:
        cfg: The loaded config dictionary (after environment resolution)
        config_path: Path to config file (for error messages)

    Raises:
        ConfigValidationError: If validation fails
    """
    errors = []
    warnings = []

    # ── Check root structure ────────────────────────────────────────────────
    if not isinstance(cfg, dict):
        errors.append(f"Config root must be a mapping, got {type(cfg).__name__}")
        cfg = {}

    # ── Check required top-level keys ───────────────────────────────────────
    for key in ("apis", "models"):
        if key not in cfg:
            errors.append(f"Missing required top-level key: '{key}'")

    # ── Validate apis section ───────────────────────────────────────────────
    if "apis" in cfg:
        apis = cfg["apis"]
        if not isinstance(apis, dict):
            errors.append(f"'apis' must be a mapping, got {type(apis).__name__}")
        elif not apis:
            errors.append("'apis' section is empty (must define at least one API key entry)")
        else:
            for command, api_cfg in apis.items():
                if not isinstance(command, str) or not API_COMMAND_PATTERN.match(command):
                    errors.append(
                        f"API command '{command}' must be '{SUBMIT_COMMAND}' followed by a number (e.g. '{SUBMIT_COMMAND}1')"
                    )
                if not isinstance(api_cfg, dict):
                    errors.append(
                        f"API '{command}' config must be a mapping, "
                        f"got {type(api_cfg).__name__}"
                    )
                elif not api_cfg.get("api_key"):
                    warnings.append(
                        f"API '{command}' has no key (set 'api_key' or the variable named by 'api_key_env')"
                    )

    # ── Validate models section ─────────────────────────────────────────────
    if "models" in cfg:
        models = cfg["models"]
        if not isinstance(models, list):
            errors.append(
                f"'models' must be a list, got {type(models).__name__}. "
                f"Use: models:\n  - \"model1\"\n  - \"model2\""
            )
        elif not models:
            errors.append("'models' list is empty (must define at least one model)")
        else:
            seen = set()
            for i, model_name in enumerate(models):
                if not isinstance(model_name, str) or not model_name.strip():
                    errors.append(f"'models[{i}]' must be a non-empty string, got {model_name!r}")
                elif model_name in seen:
                    errors.append(f"'models[{i}]' duplicates '{model_name}'")
                else:
                    seen.add(model_name)

    # ── Validate numeric settings ───────────────────────────────────────────
    for key in POSITIVE_INT_KEYS:
        if key in cfg:
            value = cfg[key]
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                errors.append(f"'{key}' must be a positive integer, got {value!r}")

    timeout = cfg.get("dispatch_timeout_seconds")
    if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0):
        errors.append(f"'dispatch_timeout_seconds' must be a positive number or null, got {timeout!r}")

    # ── Validate prefix and announcement channel ────────────────────────────
    prefix = cfg.get("prefix", "?")
    if not isinstance(prefix, str) or not prefix or any(c.isspace() for c in prefix):
        errors.append(f"'prefix' must be a non-empty string without spaces, got {prefix!r}")

    channel = cfg.get("announce_channel_id")
    if channel is None:
        warnings.append("'announce_channel_id' is not set; model priority changes will only be logged")
    elif isinstance(channel, bool) or not isinstance(channel, int):
        errors.append(f"'announce_channel_id' must be a channel ID number, got {channel!r}")

    # ── Validate permissions section ────────────────────────────────────────
    if "permissions" in cfg:
        perms = cfg["permissions"]
        if not isinstance(perms, dict):
            errors.append(
                f"'permissions' must be a mapping, got {type(perms).__name__}"
            )
        elif "users" in perms:
            users = perms["users"]
            if not isinstance(users, dict):
                errors.append(
                    f"'permissions.users' must be a mapping, got {type(users).__name__}"
                )
            elif not isinstance(users.get("admin_ids", []), list):
                errors.append(
                    f"'permissions.users.admin_ids' must be a list, "
                    f"got {type(users['admin_ids']).__name__}"
                )

    # ── Log warnings ────────────────────────────────────────────────────────
    for warning in warnings:
        logger.warning("Config warning: %s", warning)

    # ── Log errors and raise if any ─────────────────────────────────────────
    if errors:
        logger.error("=" * 70)
        logger.error("CONFIG VALIDATION FAILED (%s)", config_path)
        logger.error("=" * 70)
        for i, error in enumerate(errors, 1):
            logger.error("[%d] %s", i, error)
        logger.error("=" * 70)
        logger.error("Please fix the errors above and restart the bot.")
        logger.error("=" * 70)
        raise ConfigValidationError(f"Config validation failed with {len(errors)} error(s)")
