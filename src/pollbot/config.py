from __future__ import annotations

import os
import tomllib
from pathlib import Path

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError

# Environment variable names for secrets
ENV_BOT_TOKEN = "POLLBOT_BOT_TOKEN"
ENV_TELEGRAM_BOT_TOKEN = "TELEGRAM_BOT_TOKEN"

LOCAL_CONFIG_NAME = Path(".pollbot") / "pollbot.toml"
HOME_CONFIG_PATH = Path.home() / ".pollbot" / "pollbot.toml"
DEFAULT_ENV_FILE = Path("dev.env")


class ConfigError(RuntimeError):
    pass


class BotSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    bot_token: SecretStr
    poll_timeout_s: int = Field(default=30, ge=0, le=50)
    poll_interval_s: float = Field(default=0.5, ge=0)
    error_delay_s: float = Field(default=2.0, ge=0)
    drop_pending_updates: bool = False
    publish_commands: bool = True
    debug: bool = False

    @property
    def token(self) -> str:
        return self.bot_token.get_secret_value().strip()


def _config_candidates() -> list[Path]:
    candidates = [Path.cwd() / LOCAL_CONFIG_NAME, HOME_CONFIG_PATH]
    if candidates[0] == candidates[1]:
        return [candidates[0]]
    return candidates


def _read_config(cfg_path: Path) -> dict:
    try:
        raw = cfg_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Missing config file {cfg_path}.") from None
    except OSError as e:
        raise ConfigError(f"Failed to read config file {cfg_path}: {e}") from e
    try:
        return tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Malformed TOML in {cfg_path}: {e}") from None


def load_config(path: str | Path | None = None) -> tuple[dict, Path | None]:
    """Load the TOML config.

    An explicit path must exist. Without one, the local and home locations are
    tried in order and an empty config is returned when neither exists.
    """
    if path:
        cfg_path = Path(path).expanduser()
        return _read_config(cfg_path), cfg_path

    for candidate in _config_candidates():
        if candidate.is_file():
            return _read_config(candidate), candidate
    return {}, None


def read_env_file(path: str | Path) -> dict[str, str]:
    env_path = Path(path).expanduser()
    if not env_path.exists():
        raise ConfigError(f"Missing env file {env_path}.")
    try:
        values = dotenv_values(env_path, encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read env file {env_path}: {e}") from e
    return {key: value for key, value in values.items() if value is not None}


def get_bot_token(
    config: dict,
    config_path: Path | None,
    env_values: dict[str, str] | None = None,
) -> str:
    """Resolve the bot token.

    Precedence: POLLBOT_BOT_TOKEN, TELEGRAM_BOT_TOKEN, the env file entry,
    then `bot_token` in the config file.
    """
    for name in (ENV_BOT_TOKEN, ENV_TELEGRAM_BOT_TOKEN):
        env_token = os.environ.get(name)
        if env_token and env_token.strip():
            return env_token.strip()

    if env_values:
        file_token = env_values.get(ENV_TELEGRAM_BOT_TOKEN)
        if file_token and file_token.strip():
            return file_token.strip()

    where = str(config_path) if config_path is not None else "the config file"
    try:
        token = config["bot_token"]
    except KeyError:
        raise ConfigError(
            f"Missing bot token. Set {ENV_BOT_TOKEN} environment variable, "
            f"add {ENV_TELEGRAM_BOT_TOKEN}= to an env file, "
            f"or add `bot_token` to {where}."
        ) from None

    if not isinstance(token, str) or not token.strip():
        raise ConfigError(
            f"Invalid `bot_token` in {where}; expected a non-empty string."
        )
    return token.strip()


def load_settings(
    config_path: str | Path | None = None,
    env_file: str | Path | None = None,
) -> BotSettings:
    config, resolved_path = load_config(config_path)
    if env_file is not None:
        env_values = read_env_file(env_file)
    elif DEFAULT_ENV_FILE.is_file():
        env_values = read_env_file(DEFAULT_ENV_FILE)
    else:
        env_values = {}
    token = get_bot_token(config, resolved_path, env_values)
    data = {**config, "bot_token": token}
    try:
        return BotSettings.model_validate(data)
    except ValidationError as exc:
        where = resolved_path if resolved_path is not None else "settings"
        raise ConfigError(f"Invalid config in {where}: {exc}") from exc
