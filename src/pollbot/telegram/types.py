from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Message:
    message_id: int
    chat_id: int
    from_username: str = ""
    text: str = ""


@dataclass(frozen=True, slots=True)
class Update:
    update_id: int
    message: Message | None = None
