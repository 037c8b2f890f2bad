"""CLI `evebot doctor` — validate evebot setup.

Checks configuration, the mapping file and Eve reachability without
requiring a running bot. Exits 1 when any check fails.
No Config import needed — uses utils.evebot_dir() and reads env directly.
"""

import json
import os
import sys
from collections.abc import Callable
from pathlib import Path

import httpx

from .config import DEFAULT_EVE_URL
from .utils import evebot_dir, mappings_file

_PASS = "pass"
_FAIL = "fail"
_WARN = "warn"

_SYMBOLS = {_PASS: "\u2713", _FAIL: "\u2717", _WARN: "\u26a0"}

_EVE_CHECK_TIMEOUT = 5.0


def _print_check(status: str, message: str) -> None:
    """Print a single check result."""
    sym = _SYMBOLS.get(status, "?")
    print(f"  {sym} {message}")


def _load_env_files() -> None:
    from dotenv import load_dotenv

    local_env = Path(".env")
    global_env = evebot_dir() / ".env"
    if local_env.is_file():
        load_dotenv(local_env)
    if global_env.is_file():
        load_dotenv(global_env)


def _check_config_dir() -> tuple[str, str]:
    """Check config directory exists."""
    config_dir = evebot_dir()
    if config_dir.is_dir():
        return _PASS, f"config dir {config_dir} exists"
    return _FAIL, f"config dir {config_dir} not found"


def _check_mappings_file() -> tuple[str, str]:
    """Check the mapping file parses (absence is fine)."""
    path = mappings_file()
    if not path.exists():
        return _WARN, f"{path.name} not created yet (no chats linked)"
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError) as e:
        return _FAIL, f"{path} unreadable: {e}"
    chats = data.get("chatMappings") if isinstance(data, dict) else None
    if not isinstance(chats, dict):
        return _FAIL, f"{path} has no chatMappings object"
    return _PASS, f"{path.name}: {len(chats)} linked chat(s)"


def _check_bot_token() -> tuple[str, str]:
    """Check bot token is set (without printing it)."""
    token = os.environ.get("TELEGRAM_BOT_TOKEN", "")
    if token:
        return _PASS, "TELEGRAM_BOT_TOKEN set"
    return _FAIL, "TELEGRAM_BOT_TOKEN not set"


def _check_allowed_users() -> tuple[str, str]:
    """Check allowed users configured."""
    users_str = os.environ.get("ALLOWED_USERS") or os.environ.get(
        "TELEGRAM_ALLOWED_USER_ID", ""
    )
    if not users_str:
        return _FAIL, "ALLOWED_USERS not set"
    try:
        users = [int(u.strip()) for u in users_str.split(",") if u.strip()]
        return _PASS, f"ALLOWED_USERS: {len(users)} user(s)"
    except ValueError:
        return _FAIL, "ALLOWED_USERS contains non-numeric values"


def _check_eve() -> tuple[str, str]:
    """Check Eve answers GET /api/projects."""
    eve_url = (os.environ.get("EVE_URL") or DEFAULT_EVE_URL).rstrip("/")
    try:
        resp = httpx.get(f"{eve_url}/api/projects", timeout=_EVE_CHECK_TIMEOUT)
    except httpx.HTTPError as e:
        return _FAIL, f"Eve unreachable at {eve_url}: {e}"
    if resp.status_code != 200:
        return _FAIL, f"Eve at {eve_url} returned {resp.status_code}"
    try:
        projects = resp.json()
    except ValueError:
        return _FAIL, f"Eve at {eve_url} returned invalid JSON"
    count = len(projects) if isinstance(projects, list) else 0
    return _PASS, f"Eve reachable at {eve_url} ({count} project(s))"


def _run_check(check_fn: Callable[[], tuple[str, str]]) -> bool:
    """Run a check function, print it, and return True on failure."""
    status, msg = check_fn()
    _print_check(status, msg)
    return status == _FAIL


def doctor_main() -> None:
    """Entry point for `evebot doctor`."""
    _load_env_files()
    has_failures = False

    for check_fn in (
        _check_config_dir,
        _check_mappings_file,
        _check_bot_token,
        _check_allowed_users,
        _check_eve,
    ):
        has_failures = _run_check(check_fn) or has_failures

    sys.exit(1 if has_failures else 0)
