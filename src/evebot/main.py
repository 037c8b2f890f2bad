"""Application entry point — Click CLI dispatcher and bot bootstrap.

The ``main()`` function invokes the Click command group defined in cli.py,
which dispatches to subcommands (run, status, doctor).
``run_bot()`` contains the actual bot startup logic, called by the ``run``
command after CLI flags have been applied to the environment.
"""

import logging
import os
import sys


class _ShortNameFilter(logging.Filter):
    """Strip 'evebot.' and 'handlers.' prefixes, cap at 20 chars."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith("evebot.handlers."):
            name = name[len("evebot.handlers.") :]
        elif name.startswith("evebot."):
            name = name[len("evebot.") :]
        record.short_name = name[:20]  # type: ignore[attr-defined]
        return True


def setup_logging(log_level: str) -> None:
    """Configure colored, compact logging for interactive CLI use."""
    numeric_level = getattr(logging, log_level, None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    import colorlog

    handler = colorlog.StreamHandler()
    handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s %(levelname)-8s %(short_name)-20s %(message)s",
            datefmt="%H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
        )
    )
    handler.addFilter(_ShortNameFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    logging.getLogger("evebot").setLevel(numeric_level)
    for name in ("httpx", "httpcore", "telegram.ext"):
        logging.getLogger(name).setLevel(logging.WARNING)


def run_bot() -> None:
    """Start the bot. Called by the ``run`` Click command after env is set."""
    log_level = os.environ.get("EVEBOT_LOG_LEVEL", "INFO").upper()
    setup_logging(log_level)

    from .config import Config

    try:
        config = Config()
    except ValueError as e:
        from .utils import evebot_dir

        env_path = evebot_dir() / ".env"
        print(f"Error: {e}\n")
        print(f"Create {env_path} with the following content:\n")
        print("  TELEGRAM_BOT_TOKEN=your_bot_token_here")
        print("  ALLOWED_USERS=your_telegram_user_id")
        print("  EVE_URL=http://localhost:3000")
        print()
        print("Get your bot token from @BotFather on Telegram.")
        print("Get your user ID from @userinfobot on Telegram.")
        sys.exit(1)

    logger = logging.getLogger(__name__)

    from .bot import build_relay, create_bot

    try:
        relay = build_relay(config)
    except (OSError, ValueError) as e:
        logger.critical("Failed to load mappings from %s: %s", config.mappings_file, e)
        sys.exit(1)

    logger.info("Allowed users: %s", config.allowed_users)
    logger.info("Mappings file: %s", config.mappings_file)
    logger.info("Starting Telegram bot (Eve: %s)...", config.eve_url)

    application = create_bot(config, relay)
    application.run_polling(allowed_updates=["message"])
    logger.info("Shutting down...")


def main() -> None:
    """Main entry point — dispatches via Click CLI group."""
    from .cli import cli

    cli()


if __name__ == "__main__":
    main()
