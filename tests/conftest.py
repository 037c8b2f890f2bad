"""Root conftest — isolates env vars BEFORE any evebot module is imported.

Config reads TELEGRAM_BOT_TOKEN, ALLOWED_USERS and EVEBOT_DIR from the
environment; a developer's real values must never leak into tests or let
a test write to the real ~/.config/relay.
"""

import os
import tempfile

# Force-set (not setdefault) to prevent real env vars from leaking into tests
os.environ["TELEGRAM_BOT_TOKEN"] = "test:0000000000:AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA"
os.environ["ALLOWED_USERS"] = "12345"
os.environ["EVEBOT_DIR"] = tempfile.mkdtemp(prefix="evebot-test-")
os.environ.pop("EVE_URL", None)
os.environ.pop("EVE_TIMEOUT", None)
os.environ.pop("TYPING_INTERVAL", None)
