from __future__ import annotations

from collections.abc import Awaitable, Callable
from functools import partial

import anyio

from .commands import CommandRegistry
from .context import Dependencies
from .dispatcher import Dispatcher, ErrorSink
from .errors import GraphError
from .graph import Action, GraphBuilder
from .logging import get_logger
from .poller import Poller
from .scheduler import SubjectScheduler
from .settings import ConversationSettings, PollingSettings
from .state import SubjectStateStore
from .telegram.client_api import BotClient
from .telegram.events import Event

logger = get_logger(__name__)


class Bot:
    """Bootstrap surface: declare states and commands, then ``run()``.

    Everything declared through this object is fixed once :meth:`freeze`
    (called by :meth:`run`) has built the graph.
    """

    def __init__(
        self,
        client: BotClient,
        *,
        polling: PollingSettings | None = None,
        conversation: ConversationSettings | None = None,
        deps: Dependencies | None = None,
        error_sink: ErrorSink | None = None,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self.client = client
        self.polling = polling or PollingSettings()
        self.conversation = conversation or ConversationSettings()
        self.deps = deps if deps is not None else Dependencies()
        self.states = GraphBuilder()
        self.commands = CommandRegistry()
        self.store = SubjectStateStore()
        self._error_sink = error_sink
        self._sleep = sleep
        self._dispatcher: Dispatcher | None = None
        self._poller: Poller | None = None
        self._stop_requested = False

    @property
    def dispatcher(self) -> Dispatcher | None:
        return self._dispatcher

    @property
    def poller(self) -> Poller | None:
        return self._poller

    def add_node(
        self, name: str, action: Action | None = None, *, condition: str | None = None
    ) -> str:
        return self.states.add_node(name, action, condition=condition)

    def add_child(self, parent: str, child: str) -> None:
        self.states.add_child(parent, child)

    def state(
        self,
        name: str,
        *,
        parent: str | None = None,
        condition: str | None = None,
    ) -> Callable[[Action], Action]:
        """Decorator form of :meth:`add_node` (+ :meth:`add_child`)."""

        def register(action: Action) -> Action:
            self.states.add_node(name, action, condition=condition)
            if parent is not None:
                self.states.add_child(parent, name)
            return action

        return register

    def set_start(self, name: str) -> None:
        self.states.set_start(name)

    def set_reset(self, name: str) -> None:
        self.states.set_reset(name)

    def command(self, trigger: str, target: str | Action) -> None:
        self.commands.register(trigger, target)

    def freeze(self) -> Dispatcher:
        if self._dispatcher is not None:
            return self._dispatcher
        graph = self.states.build()
        self.commands.bind(graph)
        self._dispatcher = Dispatcher(
            graph=graph,
            commands=self.commands,
            store=self.store,
            bot=self.client,
            reset_policy=self.conversation.reset_policy,
            deps=self.deps,
            error_sink=self._error_sink,
        )
        logger.info(
            "bot.frozen",
            start=graph.start.name,
            reset=graph.reset.name,
            states=len(graph),
            commands=len(self.commands),
        )
        return self._dispatcher

    async def run(self) -> None:
        if self._poller is not None:
            raise GraphError("Bot.run() can only be called once.")
        dispatcher = self.freeze()
        polling = self.polling
        async with anyio.create_task_group() as tg:
            scheduler: SubjectScheduler[Event] = SubjectScheduler(
                task_group=tg, run_job=dispatcher.handle_event
            )
            self._poller = Poller(
                self.client,
                partial(dispatcher.dispatch_batch, scheduler=scheduler),
                limit=polling.limit,
                timeout_s=polling.timeout_s,
                backoff_s=polling.backoff_s,
                allowed_updates=polling.allowed_updates,
                drop_pending_updates=polling.drop_pending_updates,
                sleep=self._sleep,
            )
            if self._stop_requested:
                self._poller.stop()
            await self._poller.run()
            scheduler.close()
            logger.info("bot.draining")
        logger.info("bot.stopped", subjects=len(self.store))

    def stop(self) -> None:
        self._stop_requested = True
        if self._poller is not None:
            self._poller.stop()
