"""Telegram bot wiring — the application layer of EveBot.

Builds the python-telegram-bot Application, the MappingStore, the Eve client
and the Relay, and registers every handler. Each Telegram chat links to one
Eve project; each forum topic in that chat gets its own Eve session.

Core responsibilities:
  - Command handlers: /start, /help, /link, /unlink, /projects, /status,
    /clear (see handlers/commands.py).
  - Forwarding of any other /command and of plain text to Eve
    (see handlers/text_handler.py).
  - Updates are processed concurrently, one task per update, so a slow
    Eve reply in one topic does not hold up the others.
  - Bot lifecycle management: post_init, post_shutdown, create_bot.

Key function: create_bot().
"""

import logging

from telegram import BotCommand, Update
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from .config import Config
from .eve_client import EveClient
from .handlers.commands import (
    BOT_COMMANDS,
    clear_command,
    help_command,
    link_command,
    projects_command,
    start_command,
    status_command,
    unlink_command,
)
from .handlers.helpers import CONFIG_KEY, RELAY_KEY
from .handlers.text_handler import (
    forward_command_handler,
    text_handler,
    unsupported_content_handler,
)
from .mappings import MappingStore
from .relay import Relay

logger = logging.getLogger(__name__)


async def post_init(application: Application) -> None:
    try:
        await application.bot.set_my_commands(
            [BotCommand(name, desc) for name, desc in BOT_COMMANDS]
        )
        logger.info("Registered %d bot commands", len(BOT_COMMANDS))
    except TelegramError:
        logger.exception("Failed to register bot commands")

    relay: Relay = application.bot_data[RELAY_KEY]
    logger.info("Relaying to Eve at %s", relay.client.base_url)


async def post_shutdown(application: Application) -> None:
    relay: Relay | None = application.bot_data.get(RELAY_KEY)
    if relay:
        await relay.client.aclose()
        logger.info("Eve client closed")


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Log anything a handler let escape; the bot keeps running."""
    logger.error(
        "Unhandled error while processing update %s",
        update.update_id if isinstance(update, Update) else update,
        exc_info=context.error,
    )


def build_relay(config: Config) -> Relay:
    """Construct the store, Eve client and relay for one bot process."""
    store = MappingStore(config.mappings_file)
    client = EveClient(config.eve_url, timeout=config.eve_timeout)
    return Relay(store, client, presence_interval=config.typing_interval)


def create_bot(config: Config, relay: Relay | None = None) -> Application:
    application = (
        Application.builder()
        .token(config.telegram_bot_token)
        .concurrent_updates(True)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )
    application.bot_data[CONFIG_KEY] = config
    application.bot_data[RELAY_KEY] = relay or build_relay(config)

    application.add_handler(CommandHandler("start", start_command))
    application.add_handler(CommandHandler("help", help_command))
    application.add_handler(CommandHandler("link", link_command))
    application.add_handler(CommandHandler("unlink", unlink_command))
    application.add_handler(CommandHandler("projects", projects_command))
    application.add_handler(CommandHandler("status", status_command))
    application.add_handler(CommandHandler("clear", clear_command))
    # Forward any other /command to Eve
    application.add_handler(MessageHandler(filters.COMMAND, forward_command_handler))
    application.add_handler(
        MessageHandler(filters.TEXT & ~filters.COMMAND, text_handler)
    )
    # Catch-all: non-text content (images, stickers, voice, etc.)
    application.add_handler(
        MessageHandler(
            ~filters.COMMAND & ~filters.TEXT & ~filters.StatusUpdate.ALL,
            unsupported_content_handler,
        )
    )
    application.add_error_handler(error_handler)

    return application
