from __future__ import annotations

from collections.abc import Callable, Sequence

from .commands import CommandRegistry
from .context import ActionContext, Dependencies
from .errors import HandlerError
from .graph import Action, ConversationGraph, StateNode
from .logging import bound_subject, get_logger
from .scheduler import SubjectScheduler
from .settings import ResetPolicy
from .state import SubjectStateStore
from .telegram.api_models import Update
from .telegram.client_api import BotClient
from .telegram.events import Event, parse_event

logger = get_logger(__name__)

ErrorSink = Callable[[HandlerError], None]


class Dispatcher:
    """Routes events to commands or to the subject's current state."""

    def __init__(
        self,
        *,
        graph: ConversationGraph,
        commands: CommandRegistry,
        store: SubjectStateStore,
        bot: BotClient,
        reset_policy: ResetPolicy = "enter",
        deps: Dependencies | None = None,
        error_sink: ErrorSink | None = None,
    ) -> None:
        self.graph = graph
        self.commands = commands
        self.store = store
        self.bot = bot
        self.reset_policy = reset_policy
        self.deps = deps if deps is not None else Dependencies()
        self._error_sink = error_sink

    async def dispatch_batch(
        self, updates: Sequence[Update], scheduler: SubjectScheduler[Event]
    ) -> None:
        for update in updates:
            event = parse_event(update)
            if event is None:
                logger.info("dispatch.unresolved_subject", update_id=update.update_id)
                continue
            await scheduler.enqueue(event.subject_id, event)

    async def dispatch(self, update: Update) -> None:
        event = parse_event(update)
        if event is None:
            logger.info("dispatch.unresolved_subject", update_id=update.update_id)
            return
        await self.handle_event(event)

    async def handle_event(self, event: Event) -> None:
        with bound_subject(event.subject_id):
            logger.debug(
                "dispatch.event",
                update_id=event.update_id,
                kind=event.kind,
                text=event.text,
            )
            target = self.commands.lookup(event.text)
            if target is not None:
                logger.info("dispatch.command", trigger=target.trigger)
                if target.node is not None:
                    self.store.set(event.subject_id, target.node)
                    await self._run_node(event, target.node)
                elif target.handler is not None:
                    await self._run_action(event, None, target.handler)
                return

            entry = self.store.ensure(event.subject_id, self.graph.reset)
            await self._run_node(event, entry.node)

    def next_state(self, subject_id: int, event: Event) -> StateNode | None:
        entry = self.store.ensure(subject_id, self.graph.reset)
        if not entry.assigned and self.reset_policy == "hold":
            # first contact only pins the subject to the reset state
            self.store.set(subject_id, entry.node)
            logger.debug("state.hold", subject_id=subject_id, state=entry.node.name)
            return None
        source = entry.node
        target = self.graph.transition(source, event.text)
        if target is None:
            logger.debug("state.unchanged", subject_id=subject_id, state=source.name)
            return None
        self.store.set(subject_id, target)
        logger.info(
            "state.transition",
            subject_id=subject_id,
            source=source.name,
            target=target.name,
        )
        return target

    async def _run_node(self, event: Event, node: StateNode) -> None:
        if node.action is None:
            logger.debug("dispatch.no_action", state=node.name)
            return
        await self._run_action(event, node, node.action)

    async def _run_action(
        self, event: Event, node: StateNode | None, action: Action
    ) -> None:
        entry = self.store.ensure(event.subject_id, self.graph.reset)
        ctx = ActionContext(
            event=event,
            node=node,
            bot=self.bot,
            deps=self.deps,
            data=entry.data,
            dispatcher=self,
        )
        try:
            await action(ctx)
        except Exception as exc:  # noqa: BLE001
            error = HandlerError(event.subject_id, node, exc)
            logger.error(
                "dispatch.action_failed",
                state=node.name if node is not None else None,
                update_id=event.update_id,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            if self._error_sink is not None:
                self._error_sink(error)
