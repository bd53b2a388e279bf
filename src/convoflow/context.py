from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from .graph import StateNode
from .telegram.api_models import Message
from .telegram.client_api import BotClient
from .telegram.events import Event

if TYPE_CHECKING:
    from .dispatcher import Dispatcher

T = TypeVar("T")


class Dependencies:
    """Services shared with actions, looked up by type."""

    def __init__(self, *services: object) -> None:
        self._services: dict[type, object] = {}
        for service in services:
            self.provide(service)

    def __contains__(self, kind: object) -> bool:
        return kind in self._services

    def provide(self, service: object, *, as_type: type | None = None) -> None:
        self._services[as_type or type(service)] = service

    def get(self, kind: type[T]) -> T:
        service = self._services.get(kind)
        if service is None:
            raise LookupError(f"No dependency provided for {kind.__name__}.")
        return service  # type: ignore[return-value]


@dataclass(slots=True)
class ActionContext:
    event: Event
    node: StateNode | None
    bot: BotClient
    deps: Dependencies
    data: dict[str, Any]
    dispatcher: Dispatcher

    @property
    def subject_id(self) -> int:
        return self.event.subject_id

    @property
    def text(self) -> str | None:
        return self.event.text

    def current_state(self) -> StateNode | None:
        return self.dispatcher.store.current(self.subject_id)

    def next_state(self) -> StateNode | None:
        """Advance the subject along the graph; returns the new node, if any."""
        return self.dispatcher.next_state(self.subject_id, self.event)

    async def invoke(self, method: str, **params: Any) -> Any:
        return await self.bot.call(method, params)

    async def reply(self, text: str, **params: Any) -> Message:
        return await self.bot.send_message(self.subject_id, text, **params)
