"""Shared fixtures for evebot unit tests.

Provides a real MappingStore on tmp_path, a spec'd mock EveClient, a Relay
wired to both, and factories for fake Telegram updates and handler contexts.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from evebot.config import Config
from evebot.eve_client import EveClient, EveProject
from evebot.handlers.helpers import CONFIG_KEY, RELAY_KEY
from evebot.mappings import MappingStore
from evebot.relay import Relay

ALLOWED_USER = 12345


@pytest.fixture
def make_projects():
    """Factory: EveProject objects with ids p1, p2, ... in the given order."""

    def _make(*names: str, disabled: tuple[str, ...] = ()) -> list[EveProject]:
        return [
            EveProject(
                id=f"p{i}", name=name, model="sonnet", disabled=name in disabled
            )
            for i, name in enumerate(names, start=1)
        ]

    return _make


class TickingClock:
    """Deterministic clock: each call is one second after the previous."""

    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def store(tmp_path, clock) -> MappingStore:
    return MappingStore(tmp_path / "mappings.json", clock=clock)


@pytest.fixture
def eve() -> MagicMock:
    """Mock EveClient; its coroutine methods are AsyncMocks via spec."""
    client = MagicMock(spec=EveClient)
    client.base_url = "http://eve.test"
    return client


@pytest.fixture
def relay(store: MappingStore, eve: MagicMock) -> Relay:
    return Relay(store, eve, presence_interval=0.01)


@pytest.fixture
def make_update():
    """Factory: fake Update with a message in a chat (and optional topic)."""

    def _make(
        text: str = "hello",
        *,
        chat_id: int = -100123,
        thread_id: int | None = None,
        user_id: int = ALLOWED_USER,
    ) -> MagicMock:
        message = MagicMock()
        message.text = text
        message.chat_id = chat_id
        message.message_thread_id = thread_id
        message.reply_text = AsyncMock()

        update = MagicMock()
        update.message = message
        update.effective_message = message
        update.effective_chat.id = chat_id
        update.effective_user.id = user_id
        return update

    return _make


@pytest.fixture
def make_context(relay: Relay):
    """Factory: fake handler context carrying the relay and an allow-list."""

    def _make(args: list[str] | None = None) -> MagicMock:
        config = MagicMock(spec=Config)
        config.is_user_allowed.side_effect = lambda uid: uid == ALLOWED_USER

        context = MagicMock()
        context.args = args or []
        context.bot = AsyncMock()
        context.bot_data = {RELAY_KEY: relay, CONFIG_KEY: config}
        return context

    return _make
