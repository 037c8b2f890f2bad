"""Async HTTP client for the Eve agent API.

Wraps the three Eve endpoints the relay needs:
  - GET  /api/projects                      -> list of projects
  - POST /api/sessions                      -> new session in a project
  - POST /api/sessions/{sessionId}/message  -> send text, wait for the reply

The client timeout defaults to 6 minutes, longer than Eve's own 5 minute
limit, so a slow agent surfaces as Eve's 504 rather than a local timeout.

Errors are mapped onto a small taxonomy (EveError and subclasses) that the
relay turns into user-facing replies.

Key class: EveClient.
"""

import logging
from dataclasses import dataclass
from typing import Any, Self
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 360.0

# Structured error code Eve may attach to a failed send
SESSION_NOT_FOUND_CODE = "session_not_found"


class EveError(Exception):
    """Base class for everything the Eve client raises."""


class NetworkError(EveError):
    """Eve could not be reached (refused, reset, DNS, local timeout)."""


class DecodeError(EveError):
    """Eve answered with a body that is not the expected JSON."""


class BusyError(EveError):
    """HTTP 409: another message is already in flight for this session."""

    def __init__(self) -> None:
        super().__init__("session is busy processing another message")


class ResponseTimeoutError(EveError):
    """HTTP 504: Eve gave up waiting for the agent."""

    def __init__(self) -> None:
        super().__init__("response timed out")


class AgentError(EveError):
    """Any other non-200 answer, carrying Eve's message when it sent one."""

    def __init__(
        self, message: str, status_code: int, code: str | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code

    @property
    def session_not_found(self) -> bool:
        """True when Eve no longer knows the session id.

        Prefers the structured ``code`` field; older Eve builds only say
        "not found" in the error text, so that is matched as a fallback.
        """
        if self.code:
            return self.code == SESSION_NOT_FOUND_CODE
        return "not found" in str(self).lower()


@dataclass(frozen=True)
class EveProject:
    id: str
    name: str
    path: str = ""
    model: str = ""
    disabled: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            path=str(data.get("path", "")),
            model=str(data.get("model", "")),
            disabled=bool(data.get("disabled", False)),
        )


@dataclass(frozen=True)
class CreatedSession:
    session_id: str
    project_id: str
    model: str = ""


@dataclass(frozen=True)
class MessageReply:
    response: str
    stats: Any = None


def _decode_json(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        raise DecodeError(f"failed to decode response: {e}") from e


class EveClient:
    """Stateless request/response wrapper around one Eve server."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Eve request %s %s failed: %s", method, url, e)
            raise NetworkError(f"failed to reach Eve: {e}") from e

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        if resp.status_code != 200:
            raise AgentError(
                f"Eve returned {resp.status_code}: {resp.text.strip()}",
                resp.status_code,
            )

    async def list_projects(self) -> list[EveProject]:
        resp = await self._request("GET", "/api/projects")
        self._raise_for_status(resp)
        data = _decode_json(resp)
        if not isinstance(data, list):
            raise DecodeError("failed to decode projects: expected a JSON array")
        return [EveProject.from_dict(p) for p in data if isinstance(p, dict)]

    async def create_session(self, project_id: str, name: str = "") -> CreatedSession:
        payload: dict[str, str] = {"projectId": project_id}
        if name:
            payload["name"] = name
        resp = await self._request("POST", "/api/sessions", json=payload)
        self._raise_for_status(resp)
        data = _decode_json(resp)
        if not isinstance(data, dict) or not data.get("sessionId"):
            raise DecodeError("failed to decode response: missing sessionId")
        logger.debug("Created Eve session %s in %s", data["sessionId"], project_id)
        return CreatedSession(
            session_id=str(data["sessionId"]),
            project_id=str(data.get("projectId", project_id)),
            model=str(data.get("model", "")),
        )

    async def send_message(self, session_id: str, text: str) -> MessageReply:
        """Send text to a session and wait for the agent's full reply."""
        resp = await self._request(
            "POST",
            f"/api/sessions/{quote(session_id, safe='')}/message",
            json={"text": text},
        )

        if resp.status_code == 409:
            raise BusyError()
        if resp.status_code == 504:
            raise ResponseTimeoutError()

        if resp.status_code != 200:
            try:
                body = resp.json()
            except ValueError:
                body = None
            if not isinstance(body, dict):
                body = {}
            message = body.get("error") or f"Eve returned {resp.status_code}"
            raise AgentError(str(message), resp.status_code, body.get("code"))

        data = _decode_json(resp)
        if not isinstance(data, dict):
            raise DecodeError("failed to decode response: expected a JSON object")
        return MessageReply(
            response=str(data.get("response") or ""), stats=data.get("stats")
        )
