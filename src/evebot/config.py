"""Application configuration — reads env vars into a Config object.

Loads TELEGRAM_BOT_TOKEN, ALLOWED_USERS, the Eve server URL and timing
knobs from environment variables (with .env support).
.env loading priority: local .env (cwd) > $EVEBOT_DIR/.env (default ~/.config/relay).
The entry point builds one Config and hands it to bot.create_bot().

Key class: Config.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from .utils import MAPPINGS_FILE_NAME, evebot_dir

logger = logging.getLogger(__name__)

DEFAULT_EVE_URL = "http://localhost:3000"


def _positive_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        self.config_dir = evebot_dir()
        self.config_dir.mkdir(parents=True, exist_ok=True)

        # Load .env: local (cwd) takes priority over config_dir
        # load_dotenv default override=False means first-loaded wins
        local_env = Path(".env")
        global_env = self.config_dir / ".env"
        if local_env.is_file():
            load_dotenv(local_env)
            logger.debug("Loaded env from %s", local_env.resolve())
        if global_env.is_file():
            load_dotenv(global_env)
            logger.debug("Loaded env from %s", global_env)

        self.telegram_bot_token: str = os.getenv("TELEGRAM_BOT_TOKEN") or ""
        if not self.telegram_bot_token:
            raise ValueError("TELEGRAM_BOT_TOKEN environment variable is required")

        # TELEGRAM_ALLOWED_USER_ID is the single-user name older deployments use
        allowed_users_str = os.getenv("ALLOWED_USERS") or os.getenv(
            "TELEGRAM_ALLOWED_USER_ID", ""
        )
        if not allowed_users_str:
            raise ValueError("ALLOWED_USERS environment variable is required")
        try:
            self.allowed_users: set[int] = {
                int(uid.strip()) for uid in allowed_users_str.split(",") if uid.strip()
            }
        except ValueError as e:
            raise ValueError(
                f"ALLOWED_USERS contains non-numeric value: {e}. "
                "Expected comma-separated Telegram user IDs."
            ) from e

        self.eve_url = (os.getenv("EVE_URL") or DEFAULT_EVE_URL).rstrip("/")
        # Longer than Eve's own 5 minute limit so Eve's 504 wins the race
        self.eve_timeout = _positive_float("EVE_TIMEOUT", "360")
        self.typing_interval = _positive_float("TYPING_INTERVAL", "5.0")

        self.mappings_file = self.config_dir / MAPPINGS_FILE_NAME

        logger.debug(
            "Config initialized: dir=%s, token=%s..., allowed_users=%d, eve=%s",
            self.config_dir,
            self.telegram_bot_token[:8],
            len(self.allowed_users),
            self.eve_url,
        )

    def is_user_allowed(self, user_id: int) -> bool:
        """Check if a user is in the allowed list."""
        return user_id in self.allowed_users
