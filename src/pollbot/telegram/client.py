from __future__ import annotations

import re
from typing import Any, Protocol

import httpx

from ..logging import get_logger

logger = get_logger(__name__)

API_BASE = "https://api.telegram.org"


class TelegramTransportError(RuntimeError):
    """A Bot API call failed: network error, bad status, bad body or `ok: false`."""

    def __init__(self, method: str, message: str) -> None:
        super().__init__(f"{method}: {message}")
        self.method = method


class TelegramRetryAfter(TelegramTransportError):
    def __init__(self, method: str, retry_after: float) -> None:
        super().__init__(method, f"rate limited, retry after {retry_after:g}s")
        self.retry_after = retry_after


class BotClient(Protocol):
    async def close(self) -> None: ...

    async def get_updates(
        self,
        offset: int | None,
        timeout_s: int = 30,
        allowed_updates: list[str] | None = None,
    ) -> Any: ...

    async def send_message(self, chat_id: int, text: str) -> dict | None: ...

    async def set_my_commands(self, commands: list[dict[str, Any]]) -> bool: ...

    async def get_me(self) -> dict: ...


_RETRY_AFTER_RE = re.compile(r"retry after (\d+)", re.IGNORECASE)


def _retry_after_from_payload(payload: dict[str, Any]) -> float | None:
    params = payload.get("parameters")
    if isinstance(params, dict):
        retry_after = params.get("retry_after")
        if isinstance(retry_after, (int, float)) and not isinstance(
            retry_after, bool
        ):
            return float(retry_after)
    description = payload.get("description")
    if isinstance(description, str):
        return _retry_after_from_description(description)
    return None


def _retry_after_from_description(description: str) -> float | None:
    match = _RETRY_AFTER_RE.search(description)
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def _retry_after_from_response(resp: httpx.Response) -> float | None:
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        retry_after = _retry_after_from_payload(payload)
        if retry_after is not None:
            return retry_after
    return _retry_after_from_description(resp.text)


class TelegramClient:
    def __init__(
        self,
        token: str,
        timeout_s: float = 60,
        client: httpx.AsyncClient | None = None,
        base_url: str = API_BASE,
    ) -> None:
        if not token:
            raise ValueError("Telegram token is empty")
        self._base = f"{base_url.rstrip('/')}/bot{token}"
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_client = client is None

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(
        self,
        method: str,
        json_data: dict[str, Any],
        *,
        timeout_s: float | None = None,
    ) -> Any:
        logger.debug("telegram.request", method=method, payload=json_data)
        kwargs: dict[str, Any] = {"json": json_data}
        if timeout_s is not None:
            kwargs["timeout"] = timeout_s
        try:
            resp = await self._client.post(f"{self._base}/{method}", **kwargs)
        except httpx.HTTPError as e:
            logger.error(
                "telegram.network_error",
                method=method,
                error=str(e),
                error_type=e.__class__.__name__,
            )
            raise TelegramTransportError(method, f"network error: {e}") from e

        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            if resp.status_code == 429:
                retry_after = _retry_after_from_response(resp)
                if retry_after is not None:
                    logger.info(
                        "telegram.rate_limited",
                        method=method,
                        status=resp.status_code,
                        retry_after=retry_after,
                    )
                    raise TelegramRetryAfter(method, retry_after) from e
            logger.error(
                "telegram.http_error",
                method=method,
                status=resp.status_code,
                body=resp.text,
            )
            raise TelegramTransportError(
                method, f"HTTP {resp.status_code}"
            ) from e

        try:
            payload = resp.json()
        except ValueError as e:
            logger.error(
                "telegram.bad_response",
                method=method,
                status=resp.status_code,
                error=str(e),
                body=resp.text,
            )
            raise TelegramTransportError(method, "response is not JSON") from e

        if not isinstance(payload, dict):
            logger.error("telegram.invalid_payload", method=method, payload=payload)
            raise TelegramTransportError(method, "response is not an object")

        if not payload.get("ok"):
            retry_after = _retry_after_from_payload(payload)
            if retry_after is not None:
                logger.info(
                    "telegram.rate_limited",
                    method=method,
                    retry_after=retry_after,
                )
                raise TelegramRetryAfter(method, retry_after)
            logger.error("telegram.api_error", method=method, payload=payload)
            description = payload.get("description") or "request failed"
            raise TelegramTransportError(method, str(description))

        logger.debug("telegram.response", method=method, payload=payload)
        return payload.get("result")

    async def get_updates(
        self,
        offset: int | None,
        timeout_s: int = 30,
        allowed_updates: list[str] | None = None,
    ) -> Any:
        params: dict[str, Any] = {"timeout": timeout_s}
        if offset is not None:
            params["offset"] = offset
        if allowed_updates is not None:
            params["allowed_updates"] = allowed_updates
        # The HTTP read must outlive the server-side long-poll wait.
        return await self._post("getUpdates", params, timeout_s=timeout_s + 10)

    async def send_message(self, chat_id: int, text: str) -> dict | None:
        params: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
        }
        res = await self._post("sendMessage", params)
        return res if isinstance(res, dict) else None

    async def set_my_commands(self, commands: list[dict[str, Any]]) -> bool:
        res = await self._post("setMyCommands", {"commands": commands})
        return bool(res)

    async def get_me(self) -> dict:
        res = await self._post("getMe", {})
        if not isinstance(res, dict):
            raise TelegramTransportError("getMe", "result is not an object")
        return res
