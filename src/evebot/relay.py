"""Relay protocol — chat/thread state machine between Telegram and Eve.

Per (chat, thread) the states are:
  Unbound           no ChatBinding for the chat
  Bound/NoSession   chat linked to a project, thread has no Eve session
  Bound/Active      thread has an Eve session

Transitions:
  link          any state -> Bound/NoSession (prior sessions forgotten)
  unlink        Bound/* -> Unbound (error if already Unbound)
  relay_message Bound/NoSession -> Bound/Active (session created on demand);
                Bound/Active -> Bound/NoSession when Eve no longer knows the
                session. The send is never retried automatically.
  clear_session Bound/Active -> Bound/NoSession

Every failure is raised as RelayError (user-facing text), EveError or
PersistError; handlers turn them into replies. Only an expired session
mutates state on the error path.

Key class: Relay (constructed by bot.create_bot, stored in bot_data).
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .chunker import TELEGRAM_MAX_MESSAGE_LENGTH, split_message
from .eve_client import AgentError, EveClient, EveError, EveProject
from .mappings import DEFAULT_THREAD, ChatBinding, MappingStore, PersistError
from .presence import DEFAULT_INTERVAL, Notify, presence_signal

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """Protocol-level failure; str(error) is the reply shown to the user."""


class NotLinkedError(RelayError):
    def __init__(self) -> None:
        super().__init__(
            "This chat is not linked to a project. Use /link <projectName>"
        )


class ProjectNotFoundError(RelayError):
    def __init__(self, query: str) -> None:
        super().__init__(f'No project found matching "{query}"')
        self.query = query


class AmbiguousProjectError(RelayError):
    def __init__(self, query: str, candidates: list[str]) -> None:
        listing = "\n".join(f"  {name}" for name in candidates)
        super().__init__(f"Multiple matches:\n{listing}\n\nBe more specific.")
        self.query = query
        self.candidates = candidates


class SessionExpiredError(RelayError):
    def __init__(self) -> None:
        super().__init__(
            "Session expired. Send your message again to start a new conversation."
        )


class SessionCreateError(RelayError):
    def __init__(self, cause: EveError) -> None:
        super().__init__(f"Failed to create session: {cause}")


@dataclass(frozen=True)
class RelayStatus:
    project_id: str
    project_name: str
    session_count: int


@dataclass(frozen=True)
class RelayReply:
    """Eve's answer, already split into Telegram-sized chunks."""

    text: str
    stats: Any = None
    chunks: list[str] = field(default_factory=list)


def resolve_project(projects: Iterable[EveProject], query: str) -> EveProject:
    """Pick one enabled project by name.

    A case-insensitive exact name match wins outright; otherwise exactly one
    case-insensitive substring match is required. Disabled projects are never
    candidates.
    """
    needle = query.lower()
    matches: list[EveProject] = []
    for project in projects:
        if project.disabled:
            continue
        name = project.name.lower()
        if name == needle:
            return project
        if needle in name:
            matches.append(project)

    if len(matches) == 1:
        return matches[0]
    if matches:
        raise AmbiguousProjectError(query, [p.name for p in matches])
    raise ProjectNotFoundError(query)


def session_name_for_thread(thread_id: str) -> str:
    """Display name for a new Eve session; empty for the default thread."""
    if thread_id == DEFAULT_THREAD:
        return ""
    return f"Telegram thread {thread_id}"


class Relay:
    """Binds chats to Eve projects and forwards thread messages to Eve."""

    def __init__(
        self,
        store: MappingStore,
        client: EveClient,
        max_message_length: int = TELEGRAM_MAX_MESSAGE_LENGTH,
        presence_interval: float = DEFAULT_INTERVAL,
    ) -> None:
        self.store = store
        self.client = client
        self.max_message_length = max_message_length
        self.presence_interval = presence_interval

    async def list_projects(self) -> list[EveProject]:
        return await self.client.list_projects()

    async def link(self, chat_id: str, query: str) -> EveProject:
        """Resolve query against Eve's projects and bind the chat to the match."""
        project = resolve_project(await self.client.list_projects(), query)
        self.store.bind(chat_id, project.id, project.name)
        logger.info(
            "Linked chat %s to project %s (%s)", chat_id, project.name, project.id
        )
        return project

    def unlink(self, chat_id: str) -> ChatBinding:
        """Remove the chat's binding; returns the binding that was removed."""
        binding = self.store.get_binding(chat_id)
        if binding is None:
            raise NotLinkedError()
        self.store.unbind(chat_id)
        logger.info("Unlinked chat %s from project %s", chat_id, binding.project_name)
        return binding

    def status(self, chat_id: str) -> RelayStatus:
        binding = self.store.get_binding(chat_id)
        if binding is None:
            raise NotLinkedError()
        return RelayStatus(
            project_id=binding.project_id,
            project_name=binding.project_name,
            session_count=len(binding.sessions),
        )

    def clear_session(self, chat_id: str, thread_id: str) -> None:
        self.store.clear_session(chat_id, thread_id)
        logger.info("Cleared session for chat %s thread %s", chat_id, thread_id)

    async def _ensure_session(
        self, chat_id: str, thread_id: str, project_id: str
    ) -> str:
        existing = self.store.get_session(chat_id, thread_id)
        if existing is not None:
            return existing.eve_session_id

        try:
            created = await self.client.create_session(
                project_id, session_name_for_thread(thread_id)
            )
        except EveError as e:
            raise SessionCreateError(e) from e

        try:
            self.store.set_session(
                chat_id, thread_id, created.session_id, project_id=project_id
            )
        except PersistError as e:
            logger.warning(
                "Session %s for chat %s thread %s not persisted: %s",
                created.session_id,
                chat_id,
                thread_id,
                e,
            )
        logger.info(
            "Created Eve session %s for chat %s thread %s",
            created.session_id,
            chat_id,
            thread_id,
        )
        return created.session_id

    async def relay_message(
        self,
        chat_id: str,
        thread_id: str,
        text: str,
        notify: Notify | None = None,
    ) -> RelayReply:
        """Forward text to the thread's Eve session, creating one if needed.

        notify, when given, is called right away and then every
        presence_interval seconds until Eve answers or fails.
        """
        binding = self.store.get_binding(chat_id)
        if binding is None:
            raise NotLinkedError()

        session_id = await self._ensure_session(chat_id, thread_id, binding.project_id)

        try:
            async with presence_signal(notify, self.presence_interval):
                reply = await self.client.send_message(session_id, text)
        except AgentError as e:
            if not e.session_not_found:
                raise
            logger.info(
                "Eve session %s expired (chat %s thread %s): %s",
                session_id,
                chat_id,
                thread_id,
                e,
            )
            try:
                self.store.clear_session(chat_id, thread_id, session_id)
            except PersistError as pe:
                logger.warning(
                    "Expired session %s cleared in memory only: %s", session_id, pe
                )
            raise SessionExpiredError() from e

        # Refresh only; a /clear or re-link during the call must not be undone
        try:
            self.store.touch_session(chat_id, thread_id, session_id)
        except PersistError as e:
            logger.warning(
                "Last-active for session %s not persisted: %s", session_id, e
            )

        chunks = (
            split_message(reply.response, self.max_message_length)
            if reply.response
            else []
        )
        return RelayReply(text=reply.response, stats=reply.stats, chunks=chunks)
