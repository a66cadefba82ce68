from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from pollbot.commands import CommandRegistry
from pollbot.handlers import register_builtin_commands
from pollbot.telegram import Bot


class FakeBotClient:
    """Scripted BotClient: each get_updates call pops the next scripted batch.

    A scripted entry that is an exception is raised instead of returned.
    """

    def __init__(self, batches: list[Any] | None = None) -> None:
        self.batches: list[Any] = list(batches or [])
        self.sent: list[tuple[int, str]] = []
        self.offsets: list[int | None] = []
        self.timeouts: list[int] = []
        self.commands: list[list[dict[str, Any]]] = []
        self.me: dict[str, Any] | Exception = {"id": 1, "username": "pollbot_test"}
        self.send_error: Exception | None = None
        self.closed = False
        self.me_calls = 0

    async def close(self) -> None:
        self.closed = True

    async def get_updates(
        self,
        offset: int | None,
        timeout_s: int = 30,
        allowed_updates: list[str] | None = None,
    ) -> Any:
        _ = allowed_updates
        self.offsets.append(offset)
        self.timeouts.append(timeout_s)
        if not self.batches:
            return []
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return batch

    async def send_message(self, chat_id: int, text: str) -> dict | None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((chat_id, text))
        return {"message_id": len(self.sent)}

    async def set_my_commands(self, commands: list[dict[str, Any]]) -> bool:
        self.commands.append(commands)
        return True

    async def get_me(self) -> dict:
        self.me_calls += 1
        if isinstance(self.me, Exception):
            raise self.me
        return self.me


def _raw_update(
    update_id: int,
    text: str | None = None,
    *,
    chat_id: int = 100,
    message_id: int | None = None,
    username: str | None = "alice",
) -> dict[str, Any]:
    message: dict[str, Any] = {
        "message_id": message_id if message_id is not None else update_id * 10,
        "chat": {"id": chat_id, "type": "private"},
    }
    if username is not None:
        message["from"] = {"id": 7, "is_bot": False, "username": username}
    if text is not None:
        message["text"] = text
    return {"update_id": update_id, "message": message}


@pytest.fixture
def make_update() -> Callable[..., dict[str, Any]]:
    return _raw_update


@pytest.fixture
def make_client() -> Callable[..., FakeBotClient]:
    def _factory(batches: list[Any] | None = None) -> FakeBotClient:
        return FakeBotClient(batches)

    return _factory


@pytest.fixture
def fake_client() -> FakeBotClient:
    return FakeBotClient()


@pytest.fixture
def bot(fake_client: FakeBotClient) -> Bot:
    return Bot(client=fake_client, username="pollbot_test")


@pytest.fixture
def registry() -> CommandRegistry:
    return register_builtin_commands(CommandRegistry())
