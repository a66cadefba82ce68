from __future__ import annotations

import enum
from collections.abc import Awaitable, Callable

import anyio

from ..commands import CommandRegistry, DispatchError, parse_command
from ..logging import get_logger
from .bot import Bot
from .client import TelegramRetryAfter, TelegramTransportError
from .parsing import DecodeError, decode_updates
from .types import Update

logger = get_logger(__name__)

DEFAULT_POLL_TIMEOUT_S = 30
DEFAULT_POLL_INTERVAL_S = 0.5
DEFAULT_ERROR_DELAY_S = 2.0
ALLOWED_UPDATES = ["message"]


class OffsetTracker:
    """Watermark of consumed updates: always max(processed update_id) + 1."""

    def __init__(self, initial: int = 0) -> None:
        self._offset = initial

    def current(self) -> int:
        return self._offset

    def advance(self, update_id: int) -> None:
        self._offset = max(self._offset, update_id + 1)


class EngineState(enum.Enum):
    IDLE = "idle"
    POLLING = "polling"
    STOPPING = "stopping"
    STOPPED = "stopped"


class PollingEngine:
    def __init__(
        self,
        bot: Bot,
        registry: CommandRegistry,
        *,
        poll_timeout_s: int = DEFAULT_POLL_TIMEOUT_S,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        error_delay_s: float = DEFAULT_ERROR_DELAY_S,
        drop_pending_updates: bool = False,
        publish_commands: bool = True,
        offset: OffsetTracker | None = None,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self.bot = bot
        self.registry = registry
        self.offset = offset or OffsetTracker()
        self._poll_timeout_s = poll_timeout_s
        self._poll_interval_s = poll_interval_s
        self._error_delay_s = error_delay_s
        self._drop_pending_updates = drop_pending_updates
        self._publish_commands = publish_commands
        self._sleep = sleep
        self._state = EngineState.IDLE

    @property
    def state(self) -> EngineState:
        return self._state

    def stop(self) -> None:
        if self._state is EngineState.POLLING:
            logger.info("loop.stopping")
            self._state = EngineState.STOPPING
        elif self._state is EngineState.IDLE:
            self._state = EngineState.STOPPED

    async def run(self, shutdown: anyio.Event | None = None) -> None:
        if self._state is not EngineState.IDLE:
            logger.debug("loop.run.ignored", state=self._state.value)
            return
        self._state = EngineState.POLLING
        self.registry.freeze()
        logger.info(
            "loop.started",
            username=self.bot.username,
            commands=self.registry.names(),
            offset=self.offset.current(),
        )
        try:
            if self._publish_commands:
                await self._publish_menu()
            if self._drop_pending_updates:
                await self._drain_backlog()
            while True:
                if shutdown is not None and shutdown.is_set():
                    self.stop()
                if self._state is not EngineState.POLLING:
                    break
                try:
                    delay = await self.poll_once()
                except Exception as exc:
                    logger.exception("loop.iteration_failed", error=str(exc))
                    delay = self._error_delay_s
                await self._sleep(delay)
        finally:
            self._state = EngineState.STOPPED
            logger.info("loop.stopped", offset=self.offset.current())

    async def poll_once(self) -> float:
        """Run one fetch/dispatch cycle and return the delay before the next one."""
        try:
            result = await self.bot.client.get_updates(
                offset=self.offset.current(),
                timeout_s=self._poll_timeout_s,
                allowed_updates=ALLOWED_UPDATES,
            )
        except TelegramRetryAfter as exc:
            logger.warning("loop.rate_limited", retry_after=exc.retry_after)
            return exc.retry_after
        except TelegramTransportError as exc:
            logger.warning("loop.fetch_failed", error=str(exc))
            return self._error_delay_s
        try:
            updates = decode_updates(result)
        except DecodeError as exc:
            logger.error("loop.decode_failed", error=str(exc))
            return self._error_delay_s
        if updates:
            logger.debug("loop.updates", count=len(updates))
        for update in updates:
            if isinstance(update, DecodeError):
                logger.warning(
                    "loop.update.skipped",
                    update_id=update.update_id,
                    error=str(update),
                )
                if update.update_id is not None:
                    self.offset.advance(update.update_id)
                continue
            await self.process_update(update)
            self.offset.advance(update.update_id)
        return self._poll_interval_s

    async def process_update(self, update: Update) -> None:
        message = update.message
        if message is None:
            logger.debug("loop.update.no_message", update_id=update.update_id)
            return
        command = parse_command(message.text)
        if command is None:
            return
        logger.info(
            "loop.command",
            update_id=update.update_id,
            chat_id=message.chat_id,
            command=command.name,
        )
        try:
            found = await self.registry.dispatch(command.name, self.bot, message)
        except DispatchError as exc:
            logger.error(
                "loop.handler_failed",
                update_id=update.update_id,
                command=exc.command,
                error=str(exc.cause),
                error_type=exc.cause.__class__.__name__,
                exc_info=exc.cause,
            )
            return
        if found:
            return
        try:
            await self.bot.send_message(
                message.chat_id, f"Unknown command: /{command.name}"
            )
        except TelegramTransportError as exc:
            logger.warning(
                "loop.unknown_command_reply_failed",
                update_id=update.update_id,
                error=str(exc),
            )

    async def _publish_menu(self) -> None:
        menu = self.registry.menu()
        if not menu:
            return
        try:
            await self.bot.client.set_my_commands(menu)
        except TelegramTransportError as exc:
            logger.warning("loop.commands.publish_failed", error=str(exc))
            return
        logger.info("loop.commands.published", count=len(menu))

    async def _drain_backlog(self) -> None:
        drained = 0
        while True:
            try:
                result = await self.bot.client.get_updates(
                    offset=self.offset.current(),
                    timeout_s=0,
                    allowed_updates=ALLOWED_UPDATES,
                )
                updates = decode_updates(result)
            except (TelegramTransportError, DecodeError) as exc:
                logger.info("loop.backlog.failed", error=str(exc))
                return
            update_ids = [
                item.update_id
                for item in updates
                if item.update_id is not None
            ]
            if not update_ids:
                if drained:
                    logger.info("loop.backlog.drained", count=drained)
                return
            self.offset.advance(max(update_ids))
            drained += len(updates)
