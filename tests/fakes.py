from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterable
from typing import Any

from convoflow.telegram.api_models import (
    CallbackQuery,
    Chat,
    Message,
    Update,
    User,
)


def message_update(update_id: int, chat_id: int, text: str | None) -> Update:
    return Update(
        update_id=update_id,
        message=Message(
            message_id=update_id * 10,
            chat=Chat(id=chat_id, type="private"),
            text=text,
            from_=User(id=chat_id),
        ),
    )


def callback_update(update_id: int, chat_id: int, data: str) -> Update:
    return Update(
        update_id=update_id,
        callback_query=CallbackQuery(
            id=f"cb-{update_id}",
            from_=User(id=chat_id),
            message=Message(message_id=update_id * 10, chat=Chat(id=chat_id)),
            data=data,
        ),
    )


class FakeBot:
    """Scripted ``BotClient``: each ``get_updates`` pops the next batch.

    A batch may be an exception instance, which is raised instead. When the
    script runs out, ``on_exhausted`` is called and an empty batch returned.
    """

    def __init__(
        self,
        batches: Iterable[list[Update] | Exception] = (),
        *,
        on_exhausted: Callable[[], None] | None = None,
    ) -> None:
        self.batches: deque[list[Update] | Exception] = deque(batches)
        self.on_exhausted = on_exhausted
        self.offsets: list[int | None] = []
        self.get_updates_calls: list[dict[str, Any]] = []
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.sent: list[tuple[int, str]] = []
        self.closed = False

    async def close(self) -> None:
        self.closed = True

    async def get_updates(
        self,
        offset: int | None,
        limit: int = 100,
        timeout_s: int = 30,
        allowed_updates: list[str] | None = None,
    ) -> list[Update]:
        self.offsets.append(offset)
        self.get_updates_calls.append(
            {
                "offset": offset,
                "limit": limit,
                "timeout_s": timeout_s,
                "allowed_updates": allowed_updates,
            }
        )
        if not self.batches:
            if self.on_exhausted is not None:
                self.on_exhausted()
            return []
        batch = self.batches.popleft()
        if isinstance(batch, Exception):
            raise batch
        return batch

    async def call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        self.calls.append((method, dict(params or {})))
        return True

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_markup: dict[str, Any] | None = None,
        parse_mode: str | None = None,
        reply_to_message_id: int | None = None,
    ) -> Message:
        _ = reply_markup, parse_mode, reply_to_message_id
        self.sent.append((chat_id, text))
        return Message(message_id=len(self.sent), chat=Chat(id=chat_id), text=text)

    async def answer_callback_query(
        self,
        callback_query_id: str,
        text: str | None = None,
        show_alert: bool | None = None,
    ) -> bool:
        self.calls.append(
            (
                "answerCallbackQuery",
                {"callback_query_id": callback_query_id, "text": text},
            )
        )
        _ = show_alert
        return True

    async def get_me(self) -> User:
        return User(id=1, is_bot=True, username="fake_bot")

    def texts_for(self, chat_id: int) -> list[str]:
        return [text for sent_chat, text in self.sent if sent_chat == chat_id]
