"""Command registry: trigger text mapped to a state or a plain handler.

Registration happens at startup; re-registering a trigger replaces the earlier
target. The registry is bound to the built graph before polling starts and is
read-only afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import GraphError
from .graph import Action, ConversationGraph, StateNode
from .logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CommandTarget:
    trigger: str
    node: StateNode | None = None
    handler: Action | None = None


def command_token(text: str) -> str | None:
    """Return ``/cmd`` from ``/cmd@bot_name args``, or None for non-commands."""
    stripped = text.strip()
    if not stripped.startswith("/"):
        return None
    token = stripped.split(maxsplit=1)[0]
    return token.split("@", 1)[0]


class CommandRegistry:
    def __init__(self) -> None:
        self._pending: dict[str, str | Action] = {}
        self._table: dict[str, CommandTarget] | None = None

    def __contains__(self, trigger: object) -> bool:
        return trigger in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def bound(self) -> bool:
        return self._table is not None

    def register(self, trigger: str, target: str | Action) -> None:
        if self._table is not None:
            raise GraphError("Commands cannot be registered once polling has started.")
        trigger = trigger.strip()
        if not trigger:
            raise GraphError("Command trigger must not be empty.")
        if trigger in self._pending:
            logger.debug("commands.overwrite", trigger=trigger)
        self._pending[trigger] = target

    def bind(self, graph: ConversationGraph) -> None:
        if self._table is not None:
            raise GraphError("Commands are already bound to a graph.")
        table: dict[str, CommandTarget] = {}
        for trigger, target in self._pending.items():
            if isinstance(target, str):
                table[trigger] = CommandTarget(trigger=trigger, node=graph.node(target))
            else:
                table[trigger] = CommandTarget(trigger=trigger, handler=target)
        self._table = table

    def lookup(self, text: str | None) -> CommandTarget | None:
        if self._table is None:
            raise GraphError("Commands are not bound to a graph yet.")
        if text is None:
            return None
        target = self._table.get(text)
        if target is not None:
            return target
        token = command_token(text)
        if token is None or token == text:
            return None
        return self._table.get(token)

    def targets(self) -> dict[str, str | Action]:
        return dict(self._pending)
