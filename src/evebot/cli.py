"""Click-based CLI for evebot.

``evebot`` with no subcommand starts the bot. ``run`` flags override the
environment (flag > env var > .env > default) by being written into
os.environ before Config is built.
"""

import os
from pathlib import Path

import click

_POSITIVE = click.FloatRange(min=0, min_open=True)

# run option name -> environment variable Config reads
_RUN_OVERRIDES = {
    "config_dir": "EVEBOT_DIR",
    "allowed_users": "ALLOWED_USERS",
    "eve_url": "EVE_URL",
    "eve_timeout": "EVE_TIMEOUT",
    "typing_interval": "TYPING_INTERVAL",
}


def apply_args_to_env(**kwargs: object) -> None:
    """Export explicitly given run flags; None means the flag was not given."""
    if kwargs.get("verbose"):
        os.environ["EVEBOT_LOG_LEVEL"] = "DEBUG"
    for name, env_var in _RUN_OVERRIDES.items():
        value = kwargs.get(name)
        if isinstance(value, Path):
            value = value.expanduser().resolve()
        if value is not None:
            os.environ[env_var] = str(value)


@click.group(
    invoke_without_command=True,
    help="Telegram bot relaying chats and topics to Eve agent sessions.",
)
@click.version_option(package_name="evebot", prog_name="evebot")
@click.pass_context
def cli(ctx: click.Context) -> None:
    if ctx.invoked_subcommand is None:
        ctx.invoke(run_cmd)


@cli.command("run")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option(
    "--config-dir",
    type=click.Path(path_type=Path),
    help="Config directory (default: ~/.config/relay).",
)
@click.option("--allowed-users", help="Comma-separated Telegram user IDs.")
@click.option("--eve-url", help="Eve server URL (default: http://localhost:3000).")
@click.option(
    "--eve-timeout",
    type=_POSITIVE,
    help="Seconds to wait for an Eve reply (default: 360).",
)
@click.option(
    "--typing-interval",
    type=_POSITIVE,
    help="Seconds between typing indicators (default: 5.0).",
)
def run_cmd(**kwargs: object) -> None:
    """Start the bot."""
    apply_args_to_env(**kwargs)

    from .main import run_bot

    run_bot()


@cli.command("status")
def status_cmd() -> None:
    """Show linked chats and topic sessions."""
    from .status_cmd import status_main

    status_main()


@cli.command("doctor")
def doctor_cmd() -> None:
    """Validate setup and diagnose issues."""
    from .doctor_cmd import doctor_main

    doctor_main()
