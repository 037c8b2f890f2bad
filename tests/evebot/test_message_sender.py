"""Tests for safe_reply fallback and ordered chunk delivery."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from telegram import Message
from telegram.error import BadRequest, NetworkError, RetryAfter

from evebot.handlers.message_sender import (
    CHUNK_SEND_INTERVAL,
    NO_LINK_PREVIEW,
    safe_reply,
    send_chunks,
)


def _message() -> MagicMock:
    message = MagicMock(spec=Message)
    message.reply_text = AsyncMock()
    return message


class TestSafeReply:
    async def test_markdown_success(self) -> None:
        message = _message()
        sent = MagicMock(spec=Message)
        message.reply_text.return_value = sent

        result = await safe_reply(message, "hello")

        assert result is sent
        message.reply_text.assert_called_once()
        kwargs = message.reply_text.call_args.kwargs
        assert kwargs["parse_mode"] == "MarkdownV2"
        assert kwargs["link_preview_options"] is NO_LINK_PREVIEW

    async def test_text_is_converted(self) -> None:
        message = _message()

        with patch(
            "evebot.handlers.message_sender.convert_markdown",
            return_value="converted",
        ):
            await safe_reply(message, "raw *text*")

        assert message.reply_text.call_args.args[0] == "converted"

    async def test_parse_error_falls_back_to_plain(self) -> None:
        message = _message()
        plain = MagicMock(spec=Message)
        message.reply_text.side_effect = [
            BadRequest("Can't parse entities"),
            plain,
        ]

        result = await safe_reply(message, "a_b")

        assert result is plain
        assert message.reply_text.call_count == 2
        fallback = message.reply_text.call_args
        assert fallback.args[0] == "a_b"
        assert "parse_mode" not in fallback.kwargs

    async def test_network_error_falls_back_to_plain(self) -> None:
        message = _message()
        message.reply_text.side_effect = [NetworkError("reset"), None]

        await safe_reply(message, "hi")

        assert message.reply_text.call_count == 2

    async def test_message_gone_returns_none(self) -> None:
        message = _message()
        message.reply_text.side_effect = BadRequest("Message to reply not found")

        result = await safe_reply(message, "hi")

        assert result is None
        message.reply_text.assert_called_once()

    async def test_retry_after_propagates(self) -> None:
        message = _message()
        message.reply_text.side_effect = RetryAfter(5)

        with pytest.raises(RetryAfter):
            await safe_reply(message, "hi")
        message.reply_text.assert_called_once()

    async def test_plain_failure_propagates(self) -> None:
        message = _message()
        message.reply_text.side_effect = [
            BadRequest("Can't parse entities"),
            NetworkError("down"),
        ]

        with pytest.raises(NetworkError):
            await safe_reply(message, "hi")


class TestSendChunks:
    async def test_sends_in_order(self) -> None:
        message = _message()
        with (
            patch(
                "evebot.handlers.message_sender.safe_reply",
                new_callable=AsyncMock,
                return_value=MagicMock(),
            ) as mock_reply,
            patch(
                "evebot.handlers.message_sender.asyncio.sleep",
                new_callable=AsyncMock,
                spec=asyncio.sleep,
            ) as mock_sleep,
        ):
            sent = await send_chunks(message, ["one", "two", "three"])

        assert sent == 3
        assert [c.args[1] for c in mock_reply.call_args_list] == [
            "one",
            "two",
            "three",
        ]
        assert mock_sleep.call_count == 2
        mock_sleep.assert_called_with(CHUNK_SEND_INTERVAL)

    async def test_single_chunk_no_pause(self) -> None:
        with (
            patch(
                "evebot.handlers.message_sender.safe_reply",
                new_callable=AsyncMock,
                return_value=MagicMock(),
            ),
            patch(
                "evebot.handlers.message_sender.asyncio.sleep",
                new_callable=AsyncMock,
                spec=asyncio.sleep,
            ) as mock_sleep,
        ):
            assert await send_chunks(_message(), ["only"]) == 1

        mock_sleep.assert_not_called()

    async def test_stops_when_target_gone(self) -> None:
        with (
            patch(
                "evebot.handlers.message_sender.safe_reply",
                new_callable=AsyncMock,
                side_effect=[MagicMock(), None, MagicMock()],
            ) as mock_reply,
            patch(
                "evebot.handlers.message_sender.asyncio.sleep",
                new_callable=AsyncMock,
                spec=asyncio.sleep,
            ),
        ):
            sent = await send_chunks(_message(), ["a", "b", "c"])

        assert sent == 1
        assert mock_reply.call_count == 2

    async def test_failure_drops_remaining(self) -> None:
        with (
            patch(
                "evebot.handlers.message_sender.safe_reply",
                new_callable=AsyncMock,
                side_effect=[MagicMock(), NetworkError("down")],
            ) as mock_reply,
            patch(
                "evebot.handlers.message_sender.asyncio.sleep",
                new_callable=AsyncMock,
                spec=asyncio.sleep,
            ),
        ):
            with pytest.raises(NetworkError):
                await send_chunks(_message(), ["a", "b", "c"])

        assert mock_reply.call_count == 2

    async def test_empty_sends_nothing(self) -> None:
        message = _message()
        assert await send_chunks(message, []) == 0
        message.reply_text.assert_not_called()
