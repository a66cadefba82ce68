from __future__ import annotations

from dataclasses import dataclass

from ..config import ConfigError
from ..logging import get_logger
from .client import BotClient, TelegramTransportError

logger = get_logger(__name__)


def _display_name(me: dict) -> str:
    username = me.get("username")
    if isinstance(username, str) and username:
        return username
    first_name = me.get("first_name")
    if isinstance(first_name, str) and first_name:
        return first_name
    return ""


@dataclass(slots=True)
class Bot:
    """What command handlers get: the client plus the bot's own identity."""

    client: BotClient
    username: str

    @classmethod
    async def connect(cls, client: BotClient) -> Bot:
        """Check the credential with getMe; fail loudly if it is rejected."""
        try:
            me = await client.get_me()
        except TelegramTransportError as exc:
            raise ConfigError(f"Failed to connect to Telegram API: {exc}") from exc
        username = _display_name(me)
        if not username:
            raise ConfigError("Telegram getMe returned no bot username.")
        logger.info("bot.connected", username=username)
        return cls(client=client, username=username)

    async def get_name(self) -> str:
        me = await self.client.get_me()
        return _display_name(me)

    async def send_message(self, chat_id: int, text: str) -> None:
        await self.client.send_message(chat_id=chat_id, text=text)
