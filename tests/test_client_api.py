from __future__ import annotations

import json

import httpx
import pytest

from convoflow.errors import ApiError, DecodeError, TelegramRetryAfter, TransportError
from convoflow.telegram.client_api import HttpBotClient, retry_after_from_payload


def _client(handler) -> tuple[HttpBotClient, httpx.AsyncClient]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = HttpBotClient(
        "123:abc", base_url="https://api.example.test/", http_client=http_client
    )
    return client, http_client


@pytest.mark.anyio
async def test_get_updates_sends_params_and_decodes() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json={
                "ok": True,
                "result": [
                    {
                        "update_id": 5,
                        "message": {
                            "message_id": 1,
                            "date": 0,
                            "chat": {"id": 42, "type": "private"},
                            "from": {"id": 42, "is_bot": False, "first_name": "A"},
                            "text": "hi",
                        },
                    }
                ],
            },
        )

    client, http_client = _client(handler)
    try:
        updates = await client.get_updates(
            offset=5, limit=10, timeout_s=3, allowed_updates=["message"]
        )
    finally:
        await http_client.aclose()

    assert len(updates) == 1
    assert updates[0].update_id == 5
    assert updates[0].message is not None
    assert updates[0].message.text == "hi"
    assert str(requests[0].url) == "https://api.example.test/bot123:abc/getUpdates"
    assert json.loads(requests[0].content) == {
        "timeout": 3,
        "limit": 10,
        "offset": 5,
        "allowed_updates": ["message"],
    }


@pytest.mark.anyio
async def test_offset_omitted_until_known() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"ok": True, "result": []})

    client, http_client = _client(handler)
    try:
        assert await client.get_updates(offset=None) == []
    finally:
        await http_client.aclose()

    assert bodies == [{"timeout": 30, "limit": 100}]


@pytest.mark.anyio
async def test_api_error_envelope_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={"ok": False, "error_code": 400, "description": "Bad Request"},
        )

    client, http_client = _client(handler)
    try:
        with pytest.raises(ApiError) as excinfo:
            await client.send_message(1, "hi")
    finally:
        await http_client.aclose()

    assert excinfo.value.error_code == 400
    assert excinfo.value.description == "Bad Request"
    assert excinfo.value.method == "sendMessage"


@pytest.mark.anyio
async def test_rate_limit_raises_retry_after() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            429,
            json={
                "ok": False,
                "error_code": 429,
                "description": "Too Many Requests",
                "parameters": {"retry_after": 7},
            },
        )

    client, http_client = _client(handler)
    try:
        with pytest.raises(TelegramRetryAfter) as excinfo:
            await client.get_updates(offset=None)
    finally:
        await http_client.aclose()

    assert excinfo.value.retry_after == 7.0
    assert excinfo.value.error_code == 429


@pytest.mark.anyio
async def test_non_json_body_is_decode_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    client, http_client = _client(handler)
    try:
        with pytest.raises(DecodeError):
            await client.get_updates(offset=None)
    finally:
        await http_client.aclose()


@pytest.mark.anyio
async def test_non_json_error_status_is_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="Bad Gateway")

    client, http_client = _client(handler)
    try:
        with pytest.raises(TransportError, match="HTTP 502"):
            await client.get_updates(offset=None)
    finally:
        await http_client.aclose()


@pytest.mark.anyio
async def test_network_failure_is_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client, http_client = _client(handler)
    try:
        with pytest.raises(TransportError, match="connection refused"):
            await client.get_updates(offset=None)
    finally:
        await http_client.aclose()


@pytest.mark.anyio
async def test_malformed_result_is_decode_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": True, "result": [{"no_id": 1}]})

    client, http_client = _client(handler)
    try:
        with pytest.raises(DecodeError):
            await client.get_updates(offset=None)
    finally:
        await http_client.aclose()


@pytest.mark.anyio
async def test_call_returns_raw_result_and_get_me_decodes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit("/", 1)[-1]
        if method == "getMe":
            result = {"id": 1, "is_bot": True, "first_name": "B", "username": "b_bot"}
        else:
            result = True
        return httpx.Response(200, json={"ok": True, "result": result})

    client, http_client = _client(handler)
    try:
        assert await client.call("sendChatAction", {"chat_id": 1}) is True
        me = await client.get_me()
        assert await client.answer_callback_query("cb") is True
    finally:
        await http_client.aclose()

    assert me.username == "b_bot"
    assert me.is_bot


def test_empty_token_rejected() -> None:
    with pytest.raises(ValueError):
        HttpBotClient("")


def test_retry_after_from_payload() -> None:
    assert retry_after_from_payload({"parameters": {"retry_after": 3}}) == 3.0
    assert retry_after_from_payload({"parameters": {}}) is None
    assert retry_after_from_payload({}) is None
