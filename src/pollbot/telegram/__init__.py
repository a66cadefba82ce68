"""Telegram Bot API client, decoder and polling engine."""

from .bot import Bot
from .client import (
    BotClient,
    TelegramClient,
    TelegramRetryAfter,
    TelegramTransportError,
)
from .loop import EngineState, OffsetTracker, PollingEngine
from .parsing import DecodeError, decode_message, decode_update, decode_updates
from .types import Message, Update

__all__ = [
    "Bot",
    "BotClient",
    "DecodeError",
    "EngineState",
    "Message",
    "OffsetTracker",
    "PollingEngine",
    "TelegramClient",
    "TelegramRetryAfter",
    "TelegramTransportError",
    "Update",
    "decode_message",
    "decode_update",
    "decode_updates",
]
