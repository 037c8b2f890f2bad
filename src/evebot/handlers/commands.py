"""Bot-owned slash commands.

  /start     health check against Eve (answers unauthorized users too)
  /help      static help, plus Eve's own /help when the topic has a session
  /link      bind this chat to an Eve project by (partial) name
  /unlink    drop the chat's binding and all its topic sessions
  /projects  list Eve projects
  /status    show the linked project and how many topic sessions exist
  /clear     forget this topic's session; the next message starts fresh

Unauthorized senders are ignored silently except on /start.
"""

import logging

from telegram import Update
from telegram.ext import ContextTypes

from ..eve_client import EveError
from ..mappings import PersistError
from ..relay import RelayError
from .helpers import get_chat_key, get_relay, get_thread_key, is_authorized
from .message_sender import safe_reply

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "Bot commands:\n"
    "/start - Health check\n"
    "/help - This message\n"
    "/link <name> - Link chat to an Eve project\n"
    "/unlink - Remove link\n"
    "/projects - List Eve projects\n"
    "/status - Show current mapping\n"
    "/clear - Start new session\n"
    "\n"
    "Other /commands are forwarded to Eve."
)

# (command, description) pairs for the Telegram command menu
BOT_COMMANDS: list[tuple[str, str]] = [
    ("start", "Health check"),
    ("help", "Show help"),
    ("link", "Link chat to an Eve project"),
    ("unlink", "Remove link"),
    ("projects", "List Eve projects"),
    ("status", "Show current mapping"),
    ("clear", "Start new session"),
]


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.message:
        return
    if not is_authorized(update, context):
        await safe_reply(update.message, "New phone, who dis?")
        return

    try:
        await get_relay(context).list_projects()
    except EveError as e:
        logger.warning("Eve health check failed: %s", e)
        await safe_reply(update.message, "Online, but Eve is unreachable.")
        return
    await safe_reply(update.message, "Online. Eve is connected.")


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.message or not is_authorized(update, context):
        return

    await update.message.reply_text(HELP_TEXT)

    # Eve has its own /help; show it when this topic already has a session
    relay = get_relay(context)
    session = relay.store.get_session(get_chat_key(update), get_thread_key(update))
    if session is None:
        return
    try:
        reply = await relay.client.send_message(session.eve_session_id, "/help")
    except EveError as e:
        logger.debug("Eve /help failed: %s", e)
        return
    if reply.response:
        await safe_reply(update.message, reply.response)


async def link_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.message or not is_authorized(update, context):
        return

    query = " ".join(context.args or []).strip()
    if not query:
        await safe_reply(update.message, "Usage: /link <projectName>")
        return

    try:
        project = await get_relay(context).link(get_chat_key(update), query)
    except PersistError as e:
        await safe_reply(update.message, f"Failed to save mapping: {e}")
        return
    except EveError as e:
        await safe_reply(update.message, f"Failed to reach Eve: {e}")
        return
    except RelayError as e:
        await safe_reply(update.message, str(e))
        return
    await safe_reply(update.message, f"Linked to project: {project.name}")


async def unlink_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.message or not is_authorized(update, context):
        return

    try:
        binding = get_relay(context).unlink(get_chat_key(update))
    except PersistError as e:
        await safe_reply(update.message, f"Failed to unlink: {e}")
        return
    except RelayError:
        await safe_reply(
            update.message, "This chat is not linked to any project."
        )
        return
    await safe_reply(update.message, f"Unlinked from project: {binding.project_name}")


async def projects_command(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    if not update.message or not is_authorized(update, context):
        return

    try:
        projects = await get_relay(context).list_projects()
    except EveError as e:
        await safe_reply(update.message, f"Failed to reach Eve: {e}")
        return

    if not projects:
        await safe_reply(update.message, "No projects found.")
        return

    lines = [
        f"  {p.name} [{p.model}]{' (disabled)' if p.disabled else ''}"
        for p in projects
    ]
    # Plain text: project names may contain Markdown-significant characters
    await update.message.reply_text("Projects:\n" + "\n".join(lines))


async def status_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.message or not is_authorized(update, context):
        return

    try:
        status = get_relay(context).status(get_chat_key(update))
    except RelayError:
        await safe_reply(
            update.message, "This chat is not linked. Use /link <projectName>"
        )
        return
    await safe_reply(
        update.message,
        f"Project: {status.project_name}\nSessions: {status.session_count}",
    )


async def clear_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.message or not is_authorized(update, context):
        return

    try:
        get_relay(context).clear_session(get_chat_key(update), get_thread_key(update))
    except PersistError as e:
        await safe_reply(update.message, f"Failed to clear session: {e}")
        return
    await safe_reply(
        update.message,
        "Session cleared. Next message will start a new conversation.",
    )
