from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence

import anyio

from .errors import BotApiError, TelegramRetryAfter
from .logging import get_logger
from .telegram.api_models import Update
from .telegram.client_api import BotClient

logger = get_logger(__name__)

SubmitBatch = Callable[[Sequence[Update]], Awaitable[None]]


class Poller:
    """Long-polling loop that owns the update offset.

    Each successful fetch is handed to ``submit`` and the offset moves past the
    highest update id seen. ``submit`` is expected to queue work and return;
    the loop never waits for handlers. Failed fetches are retried with the same
    offset after ``backoff_s``.
    """

    def __init__(
        self,
        bot: BotClient,
        submit: SubmitBatch,
        *,
        offset: int | None = None,
        limit: int = 100,
        timeout_s: int = 30,
        backoff_s: float = 5.0,
        allowed_updates: list[str] | None = None,
        drop_pending_updates: bool = False,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self._bot = bot
        self._submit = submit
        self._offset = offset
        self._limit = limit
        self._timeout_s = timeout_s
        self._backoff_s = backoff_s
        self._allowed_updates = allowed_updates
        self._drop_pending_updates = drop_pending_updates
        self._sleep = sleep
        self._stopped = False
        self._scope: anyio.CancelScope | None = None

    @property
    def offset(self) -> int | None:
        return self._offset

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        """Stop before the next fetch; an in-flight long poll is abandoned."""
        self._stopped = True
        if self._scope is not None:
            self._scope.cancel()

    async def run(self) -> None:
        logger.info("poller.started", offset=self._offset)
        if self._drop_pending_updates:
            await self._interruptible(self._drain_backlog)
        while not self._stopped:
            batch = await self._interruptible(self._fetch)
            if batch is None:
                continue
            await self._deliver(batch)
        logger.info("poller.stopped", offset=self._offset)

    async def _interruptible(
        self, func: Callable[[], Awaitable[list[Update] | None]]
    ) -> list[Update] | None:
        result: list[Update] | None = None
        with anyio.CancelScope() as scope:
            self._scope = scope
            if self._stopped:
                scope.cancel()
            result = await func()
        self._scope = None
        return result

    async def _fetch(self) -> list[Update] | None:
        try:
            return await self._bot.get_updates(
                offset=self._offset,
                limit=self._limit,
                timeout_s=self._timeout_s,
                allowed_updates=self._allowed_updates,
            )
        except TelegramRetryAfter as exc:
            logger.warning("poller.rate_limited", retry_after=exc.retry_after)
            await self._sleep(exc.retry_after)
        except BotApiError as exc:
            logger.warning(
                "poller.fetch_failed",
                offset=self._offset,
                error=str(exc),
                error_type=exc.__class__.__name__,
                retry_in=self._backoff_s,
            )
            await self._sleep(self._backoff_s)
        return None

    async def _drain_backlog(self) -> None:
        drained = 0
        while not self._stopped:
            try:
                updates = await self._bot.get_updates(
                    offset=self._offset,
                    limit=self._limit,
                    timeout_s=0,
                    allowed_updates=self._allowed_updates,
                )
            except BotApiError as exc:
                logger.info("poller.backlog.failed", error=str(exc))
                return
            if not updates:
                if drained:
                    logger.info("poller.backlog.drained", count=drained)
                return
            self._advance(updates)
            drained += len(updates)

    def _fresh(self, batch: list[Update]) -> list[Update]:
        if self._offset is None:
            return batch
        offset = self._offset
        return [update for update in batch if update.update_id >= offset]

    def _advance(self, batch: Sequence[Update]) -> None:
        if not batch:
            return
        next_offset = max(update.update_id for update in batch) + 1
        if self._offset is not None and next_offset < self._offset:
            logger.warning(
                "poller.offset_regression", offset=self._offset, proposed=next_offset
            )
            return
        self._offset = next_offset

    async def _deliver(self, batch: list[Update]) -> None:
        fresh = self._fresh(batch)
        if len(fresh) != len(batch):
            logger.debug("poller.stale_updates", count=len(batch) - len(fresh))
        if fresh:
            logger.debug(
                "poller.batch",
                count=len(fresh),
                first=fresh[0].update_id,
                last=fresh[-1].update_id,
            )
            await self._submit(fresh)
        self._advance(fresh)
