"""Text relay — forwards chat text and unknown /commands to Eve.

Flow per message: resolve chat/thread keys → Relay.relay_message (with a
typing indicator while Eve works) → deliver the chunked answer in order.
Every relay, Eve or Telegram failure ends in a reply to the user; nothing
is retried automatically.
"""

import logging

from telegram import Message, Update
from telegram.constants import ChatAction
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from ..eve_client import EveError
from ..relay import RelayError
from .helpers import get_chat_key, get_relay, get_thread_key, is_authorized
from .message_sender import safe_reply, send_chunks

logger = logging.getLogger(__name__)

EMPTY_RESPONSE_TEXT = "(Eve returned an empty response.)"


def _typing_notifier(message: Message, context: ContextTypes.DEFAULT_TYPE):
    """Build the presence callback: a typing action in the message's topic."""

    async def _notify() -> None:
        await context.bot.send_chat_action(
            chat_id=message.chat_id,
            action=ChatAction.TYPING,
            message_thread_id=message.message_thread_id,
        )

    return _notify


async def relay_text(
    update: Update, context: ContextTypes.DEFAULT_TYPE, text: str
) -> None:
    """Relay text to the topic's Eve session and reply with the answer."""
    message = update.message
    if message is None:
        return

    chat_id = get_chat_key(update)
    thread_id = get_thread_key(update)
    logger.debug(
        "Relaying %d chars from chat %s thread %s", len(text), chat_id, thread_id
    )

    try:
        reply = await get_relay(context).relay_message(
            chat_id,
            thread_id,
            text,
            notify=_typing_notifier(message, context),
        )
    except RelayError as e:
        await safe_reply(message, str(e))
        return
    except EveError as e:
        logger.info("Eve send failed for chat %s thread %s: %s", chat_id, thread_id, e)
        await safe_reply(message, f"Error: {e}")
        return

    if not reply.chunks:
        await safe_reply(message, EMPTY_RESPONSE_TEXT)
        return

    try:
        sent = await send_chunks(message, reply.chunks)
    except TelegramError as e:
        logger.error(
            "Failed to deliver reply to chat %s thread %s: %s", chat_id, thread_id, e
        )
        return
    logger.debug(
        "Delivered %d/%d chunk(s) to chat %s", sent, len(reply.chunks), chat_id
    )


async def text_handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.message or not update.message.text:
        return
    if not is_authorized(update, context):
        return

    await relay_text(update, context, update.message.text)


async def forward_command_handler(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Forward any non-bot /command to Eve as ordinary message text."""
    if not update.message or not update.message.text:
        return
    if not is_authorized(update, context):
        return

    # Split into command word + arguments, then strip @botname from command
    parts = update.message.text.split(None, 1)  # ["/cmd@botname", "optional args"]
    command = parts[0].split("@")[0]
    args = parts[1] if len(parts) > 1 else ""
    text = f"{command} {args}" if args else command

    logger.info("Forwarding command %s to Eve", command)
    await relay_text(update, context, text)


async def unsupported_content_handler(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Reply to non-text messages (images, stickers, voice, etc.)."""
    if not update.message or not is_authorized(update, context):
        return
    await safe_reply(
        update.message,
        "\u26a0 Only text messages are supported. Images, stickers, voice, "
        "and other media cannot be forwarded to Eve.",
    )
