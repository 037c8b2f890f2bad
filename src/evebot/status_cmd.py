"""CLI `evebot status` — show linked chats without a bot token.

Reads the mapping file directly to display:
  - evebot version and mapping file path
  - Per-chat binding: project name and id
  - Per-topic Eve session id and last-active time

No Config import needed — uses utils.mappings_file().
"""

import json
import sys
from pathlib import Path

from .utils import mappings_file


def _read_json(path: Path) -> dict:
    """Read a JSON file, returning empty dict on any error."""
    try:
        data = json.loads(path.read_text()) if path.exists() else {}
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def status_main() -> None:
    """Entry point for `evebot status`."""
    from . import __version__

    path = mappings_file()
    chats = _read_json(path).get("chatMappings") or {}

    print(f"evebot {__version__}")
    print(f"Mappings file: {path}")
    print(f"Linked chats: {len(chats)}")

    for chat_id, binding in chats.items():
        if not isinstance(binding, dict):
            continue
        sessions = binding.get("sessions") or {}
        print()
        print(
            f"  chat {chat_id} -> {binding.get('projectName', '?')} "
            f"({binding.get('projectId', '?')}), {len(sessions)} session(s)"
        )
        for thread_id, session in sessions.items():
            if not isinstance(session, dict):
                continue
            print(
                f"    topic {thread_id:<10} {session.get('eveSessionId', '?'):<36} "
                f"last active {session.get('lastActive', '?')}"
            )

    sys.exit(0)
