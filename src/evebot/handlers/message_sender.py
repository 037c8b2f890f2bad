"""Safe message sending helpers with MarkdownV2 fallback.

Provides utility functions for replying to Telegram messages with automatic
conversion to MarkdownV2 format and fallback to plain text on failure.

Functions:
  - safe_reply: Reply with MarkdownV2, fallback to plain text
  - send_chunks: Deliver a pre-split response in order, pausing between parts
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from telegram import LinkPreviewOptions, Message
from telegram.error import BadRequest, RetryAfter, TelegramError

from ..markdown_v2 import convert_markdown

logger = logging.getLogger(__name__)

# Disable link previews in all messages to reduce visual noise
NO_LINK_PREVIEW = LinkPreviewOptions(is_disabled=True)

# Pause between consecutive chunks of one response (Telegram flood control)
CHUNK_SEND_INTERVAL = 0.1


async def safe_reply(message: Message, text: str, **kwargs: Any) -> Message | None:
    """Reply with MarkdownV2, falling back to plain text on failure.

    Returns None if the original message no longer exists (e.g. deleted topic).
    Errors from the plain-text attempt propagate to the caller.
    """
    kwargs.setdefault("link_preview_options", NO_LINK_PREVIEW)
    try:
        return await message.reply_text(
            convert_markdown(text),
            parse_mode="MarkdownV2",
            **kwargs,
        )
    except BadRequest as exc:
        if "not found" in str(exc).lower():
            logger.warning("Cannot reply: original message gone (%s)", exc)
            return None
        logger.debug("MarkdownV2 rejected, resending as plain text: %s", exc)
    except RetryAfter:
        raise
    except TelegramError as exc:
        logger.debug("MarkdownV2 send failed, resending as plain text: %s", exc)
    return await message.reply_text(text, **kwargs)


async def send_chunks(message: Message, chunks: Sequence[str]) -> int:
    """Reply with each chunk in order; returns how many were delivered.

    Stops at the first failure: a TelegramError propagates and the remaining
    chunks are dropped. A vanished original message also ends delivery.
    """
    sent = 0
    for i, chunk in enumerate(chunks):
        if i:
            await asyncio.sleep(CHUNK_SEND_INTERVAL)
        if await safe_reply(message, chunk) is None:
            logger.warning(
                "Stopped after %d of %d chunks: reply target gone", sent, len(chunks)
            )
            break
        sent += 1
    return sent
