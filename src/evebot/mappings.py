"""Chat → Eve project/session mapping store — the durable state hub.

Manages the key mappings:
  Chat→Binding (chat_mappings): which Eve project a Telegram chat is linked to.
  Binding→Thread→Session: which Eve session each topic of that chat talks to.

Responsibilities:
  - Load state once from telegram-mappings.json (missing file = empty store).
  - Apply every mutation in memory and rewrite the whole file before returning,
    under one lock shared by all chats.
  - Hand out copies on every read so callers never hold the lock or see a
    half-applied mutation.

File format (camelCase keys):
  {"chatMappings": {chatId: {"projectId", "projectName",
                             "sessions": {threadId: {"eveSessionId", "lastActive"}}}}}

Key class: MappingStore (constructed by bot.create_bot and passed around).
"""

import json
import logging
import re
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Self

from .utils import atomic_write_json

logger = logging.getLogger(__name__)

# Thread key for messages outside any forum topic
DEFAULT_THREAD = "default"


class PersistError(OSError):
    """Writing the mapping file failed; in-memory state was still updated."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# lastActive may carry nanosecond fractions; datetime keeps six digits
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def _parse_timestamp(raw: Any) -> datetime:
    if isinstance(raw, str) and raw:
        text = _FRACTION_RE.sub(r"\1", raw.replace("Z", "+00:00"))
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            logger.debug("Unparseable lastActive %r, using epoch", raw)
    return datetime.fromtimestamp(0, timezone.utc)


@dataclass(frozen=True)
class ThreadSession:
    """Eve session bound to one (chat, thread) pair.

    Attributes:
        eve_session_id: Opaque session id issued by Eve
        last_active: Time of the last successful exchange (UTC)
    """

    eve_session_id: str
    last_active: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "eveSessionId": self.eve_session_id,
            "lastActive": self.last_active.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            eve_session_id=data.get("eveSessionId", ""),
            last_active=_parse_timestamp(data.get("lastActive")),
        )


@dataclass
class ChatBinding:
    """Link between one chat and one Eve project.

    sessions: thread key -> ThreadSession
    """

    project_id: str
    project_name: str
    sessions: dict[str, ThreadSession] = field(default_factory=dict)

    def copy(self) -> Self:
        return type(self)(self.project_id, self.project_name, dict(self.sessions))

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectId": self.project_id,
            "projectName": self.project_name,
            "sessions": {tid: s.to_dict() for tid, s in self.sessions.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        sessions = data.get("sessions") or {}
        if not isinstance(sessions, dict):
            raise ValueError("sessions is not an object")
        return cls(
            project_id=data.get("projectId", ""),
            project_name=data.get("projectName", ""),
            sessions={
                str(tid): ThreadSession.from_dict(s)
                for tid, s in sessions.items()
                if isinstance(s, dict)
            },
        )


class MappingStore:
    """Durable chat → binding map with whole-file synchronous persistence.

    Mutations (bind, unbind, set_session, touch_session, clear_session) hold
    the lock for both the in-memory update and the file write. A failed
    write raises PersistError but the in-memory change stays; the next
    successful write brings the file back in line.

    Session writes on an unbound chat are silent no-ops so a late write can
    never resurrect state for a chat that was just unlinked. touch_session
    and the guarded forms of set_session/clear_session also refuse to touch
    a thread whose session or binding changed under a slow Eve call.
    """

    def __init__(self, path: Path, clock: Callable[[], datetime] = _utcnow) -> None:
        self.path = path
        self._clock = clock
        self._lock = threading.Lock()
        self._chats: dict[str, ChatBinding] = {}
        self._load()

    def _load(self) -> None:
        """Read the state file; a missing file is an empty store."""
        if not self.path.exists():
            logger.debug("No mapping file at %s, starting empty", self.path)
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Corrupt mapping file {self.path}: {e}") from e
        if not isinstance(raw, dict):
            raise ValueError(f"Corrupt mapping file {self.path}: not a JSON object")
        chats = raw.get("chatMappings") or {}
        if not isinstance(chats, dict):
            raise ValueError(
                f"Corrupt mapping file {self.path}: chatMappings is not an object"
            )
        for chat_id, data in chats.items():
            if not isinstance(data, dict):
                continue
            try:
                self._chats[str(chat_id)] = ChatBinding.from_dict(data)
            except ValueError as e:
                raise ValueError(
                    f"Corrupt mapping file {self.path}: chat {chat_id}: {e}"
                ) from e
        logger.info("Loaded %d chat binding(s) from %s", len(self._chats), self.path)

    def _save(self) -> None:
        """Rewrite the whole file. Caller must hold the lock."""
        state = {
            "chatMappings": {cid: b.to_dict() for cid, b in self._chats.items()}
        }
        try:
            atomic_write_json(self.path, state)
        except OSError as e:
            logger.error("Failed to save mappings to %s: %s", self.path, e)
            raise PersistError(f"failed to save mappings: {e}") from e
        logger.debug("Mappings saved to %s", self.path)

    # --- Reads ---

    def get_binding(self, chat_id: str) -> ChatBinding | None:
        with self._lock:
            binding = self._chats.get(chat_id)
            return binding.copy() if binding else None

    def get_session(self, chat_id: str, thread_id: str) -> ThreadSession | None:
        with self._lock:
            binding = self._chats.get(chat_id)
            if binding is None:
                return None
            return binding.sessions.get(thread_id)

    # --- Mutations ---

    def bind(self, chat_id: str, project_id: str, project_name: str) -> None:
        """Link a chat to a project, replacing any prior binding and its sessions."""
        with self._lock:
            self._chats[chat_id] = ChatBinding(project_id, project_name)
            self._save()

    def unbind(self, chat_id: str) -> None:
        """Remove a chat's binding. Idempotent."""
        with self._lock:
            self._chats.pop(chat_id, None)
            self._save()

    def set_session(
        self,
        chat_id: str,
        thread_id: str,
        eve_session_id: str,
        project_id: str | None = None,
    ) -> None:
        """Record a thread's session with the current time.

        With project_id, a no-op unless the chat is still bound to that
        project, so a session created before a re-link is not attached to
        the new binding.
        """
        with self._lock:
            binding = self._chats.get(chat_id)
            if binding is None:
                return
            if project_id is not None and binding.project_id != project_id:
                return
            binding.sessions[thread_id] = ThreadSession(
                eve_session_id=eve_session_id, last_active=self._clock()
            )
            self._save()

    def touch_session(self, chat_id: str, thread_id: str, eve_session_id: str) -> None:
        """Refresh last_active if the thread still holds eve_session_id.

        A no-op when the session was cleared or replaced in the meantime.
        """
        with self._lock:
            binding = self._chats.get(chat_id)
            if binding is None:
                return
            current = binding.sessions.get(thread_id)
            if current is None or current.eve_session_id != eve_session_id:
                return
            binding.sessions[thread_id] = ThreadSession(
                eve_session_id=eve_session_id, last_active=self._clock()
            )
            self._save()

    def clear_session(
        self, chat_id: str, thread_id: str, eve_session_id: str | None = None
    ) -> None:
        """Forget a thread's session; the chat stays linked.

        With eve_session_id, only that session is removed; a newer one is kept.
        """
        with self._lock:
            binding = self._chats.get(chat_id)
            if binding is None:
                return
            current = binding.sessions.get(thread_id)
            if current is None:
                return
            if eve_session_id is not None and current.eve_session_id != eve_session_id:
                return
            del binding.sessions[thread_id]
            self._save()
