"""Shared helpers for handler modules.

Provides:
  - get_chat_key / get_thread_key: mapping-store keys for an update
  - get_relay / get_config: services stored in Application.bot_data
  - is_authorized: allowed-user check for the update's sender
"""

from telegram import Update
from telegram.ext import ContextTypes

from ..config import Config
from ..mappings import DEFAULT_THREAD
from ..relay import Relay

RELAY_KEY = "relay"
CONFIG_KEY = "config"


def get_relay(context: ContextTypes.DEFAULT_TYPE) -> Relay:
    return context.bot_data[RELAY_KEY]


def get_config(context: ContextTypes.DEFAULT_TYPE) -> Config:
    return context.bot_data[CONFIG_KEY]


def is_authorized(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    user = update.effective_user
    return user is not None and get_config(context).is_user_allowed(user.id)


def get_chat_key(update: Update) -> str:
    """Chat id as the decimal string used in the mapping file."""
    chat = update.effective_chat
    if chat is None:
        raise ValueError("update has no chat")
    return str(chat.id)


def get_thread_key(update: Update) -> str:
    """Forum topic id as a string, or the default thread outside named topics."""
    msg = update.effective_message
    tid = getattr(msg, "message_thread_id", None) if msg else None
    # Thread 1 is the forum's General topic; treat it like no topic
    if tid is None or tid == 1:
        return DEFAULT_THREAD
    return str(tid)
