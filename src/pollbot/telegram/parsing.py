from __future__ import annotations

from typing import Any

import msgspec

from . import api_models
from .types import Message, Update

__all__ = [
    "DecodeError",
    "decode_message",
    "decode_update",
    "decode_updates",
]


class DecodeError(ValueError):
    """A raw Telegram record is missing a required field or has the wrong shape."""

    def __init__(self, message: str, *, update_id: int | None = None) -> None:
        super().__init__(message)
        self.update_id = update_id


def _convert(raw: Any, kind: type, what: str) -> Any:
    if not isinstance(raw, dict):
        raise DecodeError(f"{what}: expected an object, got {type(raw).__name__}")
    try:
        return msgspec.convert(raw, type=kind)
    except msgspec.ValidationError as exc:
        raise DecodeError(f"{what}: {exc}") from exc


def _message_from_model(msg: api_models.Message) -> Message:
    sender = msg.from_
    username = sender.username if sender is not None else None
    return Message(
        message_id=msg.message_id,
        chat_id=msg.chat.id,
        from_username=username or "",
        text=msg.text or "",
    )


def decode_message(raw: Any) -> Message:
    return _message_from_model(_convert(raw, api_models.Message, "message"))


def decode_update(raw: Any) -> Update:
    """Decode one `getUpdates` entry.

    Updates without a `message` payload (edited messages, callback queries,
    ...) decode to an `Update` whose `message` is None.
    """
    update = _convert(raw, api_models.Update, "update")
    if update.message is None:
        return Update(update_id=update.update_id)
    try:
        message = decode_message(update.message)
    except DecodeError as exc:
        raise DecodeError(str(exc), update_id=update.update_id) from exc
    return Update(update_id=update.update_id, message=message)


def _peek_update_id(raw: Any) -> int | None:
    if not isinstance(raw, dict):
        return None
    value = raw.get("update_id")
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def decode_updates(result: Any) -> list[Update | DecodeError]:
    """Decode a whole `getUpdates` result, keeping the transport's order.

    Raises DecodeError when the result is not a list. Entries that fail to
    decode are returned in place as DecodeError instances.
    """
    if not isinstance(result, list):
        raise DecodeError(
            f"updates: expected a list, got {type(result).__name__}"
        )
    decoded: list[Update | DecodeError] = []
    for raw in result:
        try:
            decoded.append(decode_update(raw))
        except DecodeError as exc:
            if exc.update_id is None:
                exc.update_id = _peek_update_id(raw)
            decoded.append(exc)
    return decoded
