from __future__ import annotations

import signal
from functools import partial
from pathlib import Path

import anyio
import typer

from .. import __version__
from ..commands import CommandRegistry
from ..config import BotSettings, ConfigError, load_settings
from ..handlers import register_builtin_commands
from ..logging import get_logger, setup_logging
from ..telegram import (
    Bot,
    PollingEngine,
    TelegramClient,
    TelegramTransportError,
)

logger = get_logger(__name__)

_CONFIG_OPTION = typer.Option(
    None,
    "--config",
    help="Path to pollbot.toml (default: ./.pollbot/pollbot.toml, then ~/.pollbot/).",
)
_ENV_FILE_OPTION = typer.Option(
    None,
    "--env-file",
    help="Env file with TELEGRAM_BOT_TOKEN=... (default: ./dev.env when present).",
)


def _print_version_and_exit() -> None:
    typer.echo(__version__)
    raise typer.Exit()


def _version_callback(value: bool) -> None:
    if value:
        _print_version_and_exit()


def _exit_config_error(exc: ConfigError) -> typer.Exit:
    typer.echo(f"error: {exc}", err=True)
    return typer.Exit(code=1)


def _load_settings_or_exit(config: Path | None, env_file: Path | None) -> BotSettings:
    try:
        return load_settings(config, env_file)
    except ConfigError as exc:
        raise _exit_config_error(exc) from exc


async def _watch_signals(
    engine: PollingEngine, shutdown: anyio.Event, scope: anyio.CancelScope
) -> None:
    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        async for signum in signals:
            if shutdown.is_set():
                logger.info("shutdown.forced", signal=signal.Signals(signum).name)
                scope.cancel()
                return
            logger.info("shutdown.requested", signal=signal.Signals(signum).name)
            shutdown.set()
            engine.stop()


async def serve(settings: BotSettings) -> None:
    client = TelegramClient(settings.token, timeout_s=settings.poll_timeout_s + 10)
    try:
        bot = await Bot.connect(client)
        registry = register_builtin_commands(CommandRegistry())
        engine = PollingEngine(
            bot,
            registry,
            poll_timeout_s=settings.poll_timeout_s,
            poll_interval_s=settings.poll_interval_s,
            error_delay_s=settings.error_delay_s,
            drop_pending_updates=settings.drop_pending_updates,
            publish_commands=settings.publish_commands,
        )
        shutdown = anyio.Event()
        async with anyio.create_task_group() as tg:
            tg.start_soon(_watch_signals, engine, shutdown, tg.cancel_scope)
            await engine.run(shutdown)
            tg.cancel_scope.cancel()
    finally:
        await client.close()


async def fetch_bot_name(settings: BotSettings) -> str:
    client = TelegramClient(settings.token)
    try:
        bot = await Bot.connect(client)
        return bot.username
    finally:
        await client.close()


def run(
    config: Path | None = _CONFIG_OPTION,
    env_file: Path | None = _ENV_FILE_OPTION,
    debug: bool = typer.Option(
        False, "--debug/--no-debug", help="Log to the console with colors."
    ),
) -> None:
    """Long-poll Telegram and answer commands until interrupted."""
    settings = _load_settings_or_exit(config, env_file)
    setup_logging(debug=debug or settings.debug)
    try:
        anyio.run(partial(serve, settings))
    except ConfigError as exc:
        raise _exit_config_error(exc) from exc
    except KeyboardInterrupt:
        logger.info("shutdown.interrupted")


def whoami(
    config: Path | None = _CONFIG_OPTION,
    env_file: Path | None = _ENV_FILE_OPTION,
) -> None:
    """Print the bot's username."""
    settings = _load_settings_or_exit(config, env_file)
    try:
        name = anyio.run(partial(fetch_bot_name, settings))
    except ConfigError as exc:
        raise _exit_config_error(exc) from exc
    except TelegramTransportError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"@{name}")


def app_main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Long-polling Telegram command bot."""


def create_app() -> typer.Typer:
    app = typer.Typer(
        add_completion=False,
        no_args_is_help=True,
        help="Long-polling Telegram command bot.",
    )
    app.callback()(app_main)
    app.command(name="run")(run)
    app.command(name="whoami")(whoami)
    return app


def main() -> None:
    app = create_app()
    app()


if __name__ == "__main__":
    main()
