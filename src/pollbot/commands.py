from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .logging import get_logger

if TYPE_CHECKING:
    from .telegram.bot import Bot
    from .telegram.types import Message

logger = get_logger(__name__)

COMMAND_PREFIX = "/"

# Telegram's setMyCommands only accepts these names.
_MENU_COMMAND_RE = re.compile(r"^[a-z0-9_]{1,32}$")
_WHITESPACE_RE = re.compile(r"\s")


@runtime_checkable
class CommandHandler(Protocol):
    description: str

    async def handle(self, bot: Bot, message: Message) -> None: ...


class DispatchError(RuntimeError):
    def __init__(self, command: str, cause: BaseException) -> None:
        super().__init__(f"/{command} failed: {cause}")
        self.command = command
        self.cause = cause


@dataclass(frozen=True, slots=True)
class ParsedCommand:
    name: str
    args: str = ""


def parse_command(text: str) -> ParsedCommand | None:
    """Split `/name args` into its parts.

    The name ends at the first whitespace character; `args` is everything
    after that character, untouched.
    """
    if not text or not text.startswith(COMMAND_PREFIX):
        return None
    body = text[len(COMMAND_PREFIX) :]
    match = _WHITESPACE_RE.search(body)
    if match is None:
        return ParsedCommand(name=body)
    return ParsedCommand(name=body[: match.start()], args=body[match.end() :])


class CommandRegistry:
    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def register(self, name: str, handler: CommandHandler) -> None:
        if self._frozen:
            raise RuntimeError(
                f"cannot register /{name}: the registry is frozen while polling"
            )
        if name in self._handlers:
            logger.debug("commands.replaced", command=name)
        self._handlers[name] = handler

    def get(self, name: str) -> CommandHandler | None:
        return self._handlers.get(name)

    def names(self) -> list[str]:
        return list(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def menu(self) -> list[dict[str, Any]]:
        entries: list[dict[str, Any]] = []
        for name, handler in self._handlers.items():
            if not _MENU_COMMAND_RE.match(name):
                logger.debug("commands.menu.skipped", command=name)
                continue
            description = getattr(handler, "description", "") or name
            entries.append({"command": name, "description": description[:256]})
        return entries

    async def dispatch(self, name: str, bot: Bot, message: Message) -> bool:
        handler = self._handlers.get(name)
        if handler is None:
            return False
        try:
            await handler.handle(bot, message)
        except Exception as exc:
            raise DispatchError(name, exc) from exc
        return True
