"""Conversation graph: an immutable tree of states.

A :class:`GraphBuilder` collects nodes and parent/child edges, validates the
tree and produces a frozen :class:`ConversationGraph`. Once built, the builder
refuses further changes, so the graph handed to the dispatcher never changes
while polling is active.

Transitions follow the number of children of the current node:

* no children: terminal, nothing happens;
* one child: always advance to it;
* several children: advance to the first child whose ``condition`` equals the
  event text, otherwise stay put. Children without a condition are never
  picked this way, so an event without text leaves the subject where it is.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from .errors import GraphError
from .logging import get_logger

if TYPE_CHECKING:
    from .context import ActionContext

logger = get_logger(__name__)

Action = Callable[["ActionContext"], Awaitable[None]]


@dataclass(frozen=True, slots=True, eq=False)
class StateNode:
    name: str
    condition: str | None = None
    children: tuple[StateNode, ...] = ()
    action: Action | None = field(default=None, repr=False)

    @property
    def is_terminal(self) -> bool:
        return not self.children

    def walk(self) -> Iterator[StateNode]:
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True, slots=True)
class ConversationGraph:
    start: StateNode
    reset: StateNode
    nodes: Mapping[str, StateNode] = field(repr=False)

    def __contains__(self, name: object) -> bool:
        return name in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def node(self, name: str) -> StateNode:
        try:
            return self.nodes[name]
        except KeyError:
            raise GraphError(f"Unknown state {name!r}.") from None

    def transition(self, current: StateNode, text: str | None) -> StateNode | None:
        children = current.children
        if not children:
            return None
        if len(children) == 1:
            return children[0]
        for child in children:
            if child.condition is not None and child.condition == text:
                return child
        return None


@dataclass(slots=True)
class _NodeSpec:
    name: str
    condition: str | None
    action: Action | None
    children: list[str] = field(default_factory=list)
    parent: str | None = None


class GraphBuilder:
    def __init__(self) -> None:
        self._specs: dict[str, _NodeSpec] = {}
        self._start: str | None = None
        self._reset: str | None = None
        self._built = False

    def _ensure_open(self) -> None:
        if self._built:
            raise GraphError("Conversation graph is already built.")

    def _spec(self, name: str) -> _NodeSpec:
        spec = self._specs.get(name)
        if spec is None:
            raise GraphError(f"Unknown state {name!r}.")
        return spec

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    @property
    def built(self) -> bool:
        return self._built

    def add_node(
        self,
        name: str,
        action: Action | None = None,
        *,
        condition: str | None = None,
    ) -> str:
        """Register a state; the first one added becomes the start state.

        ``condition`` is the text that selects this state among several
        siblings. Without one, the state is entered only as an only child or
        through a command.
        """
        self._ensure_open()
        if not name:
            raise GraphError("State name must not be empty.")
        if name in self._specs:
            raise GraphError(f"Duplicate state {name!r}.")
        self._specs[name] = _NodeSpec(name=name, condition=condition, action=action)
        if self._start is None:
            self._start = name
        return name

    def add_child(self, parent: str, child: str) -> None:
        self._ensure_open()
        parent_spec = self._spec(parent)
        child_spec = self._spec(child)
        if child == parent:
            raise GraphError(f"State {child!r} cannot be its own child.")
        if child_spec.parent is not None:
            raise GraphError(
                f"State {child!r} already has parent {child_spec.parent!r}."
            )
        child_spec.parent = parent
        parent_spec.children.append(child)

    def set_start(self, name: str) -> None:
        self._ensure_open()
        self._spec(name)
        self._start = name

    def set_reset(self, name: str) -> None:
        self._ensure_open()
        self._spec(name)
        self._reset = name

    def build(self) -> ConversationGraph:
        self._ensure_open()
        if self._start is None:
            raise GraphError("Conversation graph has no states.")
        start_parent = self._specs[self._start].parent
        if start_parent is not None:
            raise GraphError(
                f"Start state {self._start!r} cannot have a parent ({start_parent!r})."
            )

        nodes: dict[str, StateNode] = {}

        def freeze(name: str) -> StateNode:
            spec = self._specs[name]
            node = StateNode(
                name=spec.name,
                condition=spec.condition,
                children=tuple(freeze(child) for child in spec.children),
                action=spec.action,
            )
            nodes[name] = node
            return node

        start = freeze(self._start)
        unreachable = sorted(set(self._specs) - set(nodes))
        if unreachable:
            raise GraphError(
                f"States not reachable from {self._start!r}: {', '.join(unreachable)}."
            )
        reset_name = self._reset if self._reset is not None else self._start
        self._built = True
        logger.debug(
            "graph.built", start=start.name, reset=reset_name, states=len(nodes)
        )
        return ConversationGraph(
            start=start, reset=nodes[reset_name], nodes=MappingProxyType(nodes)
        )
