from __future__ import annotations

from typing import Any, Protocol, TypeVar

import httpx
import msgspec

from ..constants import DEFAULT_API_BASE_URL
from ..errors import ApiError, DecodeError, TelegramRetryAfter, TransportError
from ..logging import get_logger
from .api_models import Message, Update, User

logger = get_logger(__name__)

T = TypeVar("T")


def retry_after_from_payload(payload: dict[str, Any]) -> float | None:
    params = payload.get("parameters")
    if isinstance(params, dict):
        retry_after = params.get("retry_after")
        if isinstance(retry_after, (int, float)):
            return float(retry_after)
    return None


class BotClient(Protocol):
    async def close(self) -> None: ...

    async def get_updates(
        self,
        offset: int | None,
        limit: int = 100,
        timeout_s: int = 30,
        allowed_updates: list[str] | None = None,
    ) -> list[Update]: ...

    async def call(self, method: str, params: dict[str, Any] | None = None) -> Any: ...

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_markup: dict[str, Any] | None = None,
        parse_mode: str | None = None,
        reply_to_message_id: int | None = None,
    ) -> Message: ...

    async def answer_callback_query(
        self,
        callback_query_id: str,
        text: str | None = None,
        show_alert: bool | None = None,
    ) -> bool: ...

    async def get_me(self) -> User: ...


class HttpBotClient:
    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout_s: float = 120,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not token:
            raise ValueError("Telegram token is empty")
        self._base = f"{base_url.rstrip('/')}/bot{token}"
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_http_client = http_client is None

    async def close(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()

    def _parse_envelope(self, *, method: str, payload: Any) -> Any:
        if not isinstance(payload, dict):
            logger.error("telegram.invalid_payload", method=method, payload=payload)
            raise DecodeError(method, "response is not a JSON object")
        if not payload.get("ok"):
            error_code = payload.get("error_code")
            description = payload.get("description")
            if error_code == 429:
                retry_after = retry_after_from_payload(payload)
                retry_after = 5.0 if retry_after is None else retry_after
                logger.warning(
                    "telegram.rate_limited", method=method, retry_after=retry_after
                )
                raise TelegramRetryAfter(method, retry_after, description)
            logger.error("telegram.api_error", method=method, payload=payload)
            raise ApiError(
                method,
                error_code=error_code if isinstance(error_code, int) else None,
                description=description if isinstance(description, str) else None,
            )
        logger.debug("telegram.response", method=method, payload=payload)
        return payload.get("result")

    async def _request(self, method: str, params: dict[str, Any]) -> Any:
        logger.debug("telegram.request", method=method, payload=params)
        try:
            resp = await self._http_client.post(f"{self._base}/{method}", json=params)
        except httpx.HTTPError as exc:
            logger.error(
                "telegram.network_error",
                method=method,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            raise TransportError(method, str(exc)) from exc

        try:
            payload = resp.json()
        except ValueError as exc:
            if resp.is_error:
                logger.error(
                    "telegram.http_error",
                    method=method,
                    status=resp.status_code,
                    body=resp.text,
                )
                raise TransportError(
                    method, f"HTTP {resp.status_code}"
                ) from exc
            logger.error(
                "telegram.bad_response",
                method=method,
                status=resp.status_code,
                error=str(exc),
                body=resp.text,
            )
            raise DecodeError(method, "response body is not JSON") from exc

        # Bot API error envelopes come with 4xx/5xx statuses and a JSON body
        return self._parse_envelope(method=method, payload=payload)

    def _decode_result(self, *, method: str, payload: Any, model: type[T]) -> T:
        try:
            return msgspec.convert(payload, type=model)
        except msgspec.ValidationError as exc:
            logger.error(
                "telegram.decode_error",
                method=method,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            raise DecodeError(method, str(exc)) from exc

    async def call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Invoke any Bot API method and return its raw ``result``."""
        return await self._request(method, dict(params or {}))

    async def get_updates(
        self,
        offset: int | None,
        limit: int = 100,
        timeout_s: int = 30,
        allowed_updates: list[str] | None = None,
    ) -> list[Update]:
        result = await self._request(
            "getUpdates",
            _params(
                timeout=timeout_s,
                limit=limit,
                offset=offset,
                allowed_updates=allowed_updates,
            ),
        )
        return self._decode_result(
            method="getUpdates", payload=result, model=list[Update]
        )

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_markup: dict[str, Any] | None = None,
        parse_mode: str | None = None,
        reply_to_message_id: int | None = None,
    ) -> Message:
        result = await self._request(
            "sendMessage",
            _params(
                chat_id=chat_id,
                text=text,
                reply_markup=reply_markup,
                parse_mode=parse_mode,
                reply_to_message_id=reply_to_message_id,
            ),
        )
        return self._decode_result(method="sendMessage", payload=result, model=Message)

    async def answer_callback_query(
        self,
        callback_query_id: str,
        text: str | None = None,
        show_alert: bool | None = None,
    ) -> bool:
        result = await self._request(
            "answerCallbackQuery",
            _params(
                callback_query_id=callback_query_id, text=text, show_alert=show_alert
            ),
        )
        return bool(result)

    async def get_me(self) -> User:
        result = await self._request("getMe", {})
        return self._decode_result(method="getMe", payload=result, model=User)


def _params(**values: Any) -> dict[str, Any]:
    # unset fields are omitted, never sent as null
    return {key: value for key, value in values.items() if value is not None}
