from __future__ import annotations

from typing import Any

import msgspec

__all__ = [
    "Chat",
    "Message",
    "Update",
    "User",
]


class User(msgspec.Struct, forbid_unknown_fields=False):
    id: int | None = None
    is_bot: bool | None = None
    username: str | None = None
    first_name: str | None = None


class Chat(msgspec.Struct, forbid_unknown_fields=False):
    id: int
    type: str | None = None


class Message(msgspec.Struct, forbid_unknown_fields=False):
    message_id: int
    chat: Chat
    from_: User | None = msgspec.field(default=None, name="from")
    text: str | None = None


class Update(msgspec.Struct, forbid_unknown_fields=False):
    update_id: int
    message: dict[str, Any] | None = None
