"""Tests for text relay, command forwarding and non-text refusal."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from telegram.constants import ChatAction
from telegram.error import NetworkError as TelegramNetworkError

from evebot.eve_client import AgentError, BusyError, CreatedSession, MessageReply
from evebot.handlers.text_handler import (
    EMPTY_RESPONSE_TEXT,
    forward_command_handler,
    relay_text,
    text_handler,
    unsupported_content_handler,
)
from evebot.mappings import DEFAULT_THREAD, MappingStore

CHAT = "-100123"


@pytest.fixture
def reply():
    with patch(
        "evebot.handlers.text_handler.safe_reply", new_callable=AsyncMock
    ) as mock_reply:
        yield mock_reply


@pytest.fixture
def chunks():
    with patch(
        "evebot.handlers.text_handler.send_chunks", new_callable=AsyncMock
    ) as mock_send:
        mock_send.side_effect = lambda _msg, parts: len(parts)
        yield mock_send


@pytest.fixture
def linked(store: MappingStore, eve: MagicMock) -> MappingStore:
    store.bind(CHAT, "p1", "Proj")
    eve.create_session.return_value = CreatedSession("s1", "p1")
    return store


class TestTextHandler:
    async def test_relays_and_delivers_chunks(
        self, make_update, make_context, linked, eve, reply, chunks
    ) -> None:
        eve.send_message.return_value = MessageReply("hi there")
        update = make_update("hello eve")

        await text_handler(update, make_context())

        eve.send_message.assert_awaited_once_with("s1", "hello eve")
        chunks.assert_awaited_once_with(update.message, ["hi there"])
        reply.assert_not_called()

    async def test_topic_keyed_separately(
        self, make_update, make_context, linked, eve, reply, chunks
    ) -> None:
        eve.send_message.return_value = MessageReply("ok")

        await text_handler(make_update("hi", thread_id=42), make_context())

        eve.create_session.assert_awaited_once_with("p1", "Telegram thread 42")
        session = linked.get_session(CHAT, "42")
        assert session is not None and session.eve_session_id == "s1"
        assert linked.get_session(CHAT, DEFAULT_THREAD) is None

    async def test_unlinked_chat_gets_hint(
        self, make_update, make_context, eve, reply, chunks
    ) -> None:
        await text_handler(make_update("hello"), make_context())

        reply.assert_called_once()
        assert "/link" in reply.call_args.args[1]
        eve.send_message.assert_not_called()
        chunks.assert_not_called()

    async def test_unauthorized_ignored(
        self, make_update, make_context, linked, eve, reply, chunks
    ) -> None:
        await text_handler(make_update("hi", user_id=999), make_context())

        eve.send_message.assert_not_called()
        reply.assert_not_called()

    async def test_busy_reported(
        self, make_update, make_context, linked, eve, reply, chunks
    ) -> None:
        eve.send_message.side_effect = BusyError()

        await text_handler(make_update("hi"), make_context())

        reply.assert_called_once()
        assert reply.call_args.args[1] == (
            "Error: session is busy processing another message"
        )

    async def test_expired_session_reported(
        self, make_update, make_context, linked, eve, reply, chunks
    ) -> None:
        linked.set_session(CHAT, DEFAULT_THREAD, "s-old")
        eve.send_message.side_effect = AgentError("Session not found", 404)

        await text_handler(make_update("hi"), make_context())

        assert reply.call_args.args[1].startswith("Session expired.")
        assert linked.get_session(CHAT, DEFAULT_THREAD) is None
        chunks.assert_not_called()

    async def test_empty_response(
        self, make_update, make_context, linked, eve, reply, chunks
    ) -> None:
        eve.send_message.return_value = MessageReply("")

        await text_handler(make_update("hi"), make_context())

        reply.assert_called_once()
        assert reply.call_args.args[1] == EMPTY_RESPONSE_TEXT
        chunks.assert_not_called()

    async def test_delivery_failure_is_logged_not_raised(
        self, make_update, make_context, linked, eve, reply, chunks
    ) -> None:
        eve.send_message.return_value = MessageReply("answer")
        chunks.side_effect = TelegramNetworkError("down")

        await text_handler(make_update("hi"), make_context())

        linked_session = linked.get_session(CHAT, DEFAULT_THREAD)
        assert linked_session is not None

    async def test_typing_indicator_sent(
        self, make_update, make_context, linked, eve, reply, chunks
    ) -> None:
        eve.send_message.return_value = MessageReply("ok")
        context = make_context()

        await text_handler(make_update("hi", thread_id=42), context)

        context.bot.send_chat_action.assert_awaited_with(
            chat_id=-100123, action=ChatAction.TYPING, message_thread_id=42
        )

    async def test_no_text_ignored(
        self, make_update, make_context, eve, reply
    ) -> None:
        update = make_update()
        update.message.text = None

        await text_handler(update, make_context())

        reply.assert_not_called()
        eve.send_message.assert_not_called()


class TestForwardCommand:
    @pytest.mark.parametrize(
        "text, expected",
        [
            pytest.param("/model", "/model", id="bare"),
            pytest.param("/model@evebot", "/model", id="bot_suffix"),
            pytest.param("/cost  today please", "/cost today please", id="args"),
            pytest.param("/ask@evebot what now", "/ask what now", id="suffix_args"),
        ],
    )
    async def test_forwards_command_text(
        self,
        make_update,
        make_context,
        linked,
        eve,
        reply,
        chunks,
        text: str,
        expected: str,
    ) -> None:
        eve.send_message.return_value = MessageReply("done")

        await forward_command_handler(make_update(text), make_context())

        eve.send_message.assert_awaited_once_with("s1", expected)

    async def test_unauthorized_ignored(
        self, make_update, make_context, linked, eve, reply
    ) -> None:
        await forward_command_handler(
            make_update("/model", user_id=999), make_context()
        )

        eve.send_message.assert_not_called()


class TestRelayText:
    async def test_relays_given_text_not_message_text(
        self, make_update, make_context, linked, eve, reply, chunks
    ) -> None:
        eve.send_message.return_value = MessageReply("ok")

        await relay_text(make_update("/raw@evebot x"), make_context(), "/raw x")

        eve.send_message.assert_awaited_once_with("s1", "/raw x")


class TestUnsupportedContent:
    async def test_refuses_media(self, make_update, make_context, reply) -> None:
        await unsupported_content_handler(make_update(), make_context())

        reply.assert_called_once()
        assert "Only text messages are supported" in reply.call_args.args[1]

    async def test_unauthorized_ignored(
        self, make_update, make_context, reply
    ) -> None:
        await unsupported_content_handler(make_update(user_id=999), make_context())

        reply.assert_not_called()
