from __future__ import annotations

from dataclasses import dataclass

from .commands import CommandRegistry, parse_command
from .telegram.bot import Bot
from .telegram.types import Message

START_TEXT = "Hello! I'm a Telegram bot. Use /help to see available commands."
ECHO_USAGE = "Usage: /echo [text]"


class StartHandler:
    description = "Start the bot"

    async def handle(self, bot: Bot, message: Message) -> None:
        await bot.send_message(message.chat_id, START_TEXT)


@dataclass(slots=True)
class HelpHandler:
    registry: CommandRegistry
    description: str = "Show this help message"

    async def handle(self, bot: Bot, message: Message) -> None:
        lines = ["Available commands:"]
        for name in self.registry.names():
            handler = self.registry.get(name)
            description = getattr(handler, "description", "")
            lines.append(f"/{name} - {description}" if description else f"/{name}")
        await bot.send_message(message.chat_id, "\n".join(lines))


class EchoHandler:
    description = "Echo back your text"

    async def handle(self, bot: Bot, message: Message) -> None:
        parsed = parse_command(message.text)
        args = parsed.args if parsed is not None else ""
        if not args:
            await bot.send_message(message.chat_id, ECHO_USAGE)
            return
        await bot.send_message(message.chat_id, args)


def register_builtin_commands(registry: CommandRegistry) -> CommandRegistry:
    registry.register("start", StartHandler())
    registry.register("help", HelpHandler(registry))
    registry.register("echo", EchoHandler())
    return registry
