from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .graph import StateNode


class ConvoflowError(Exception):
    pass


class BotApiError(ConvoflowError):
    """A Bot API call did not produce a usable result."""

    def __init__(self, method: str, message: str) -> None:
        super().__init__(f"{method}: {message}")
        self.method = method


class TransportError(BotApiError):
    pass


class DecodeError(BotApiError):
    pass


class ApiError(BotApiError):
    def __init__(
        self,
        method: str,
        *,
        error_code: int | None = None,
        description: str | None = None,
    ) -> None:
        super().__init__(method, description or f"error_code={error_code}")
        self.error_code = error_code
        self.description = description


class TelegramRetryAfter(ApiError):
    def __init__(
        self, method: str, retry_after: float, description: str | None = None
    ) -> None:
        super().__init__(
            method,
            error_code=429,
            description=description or f"retry after {retry_after}",
        )
        self.retry_after = float(retry_after)


class GraphError(ConvoflowError):
    pass


class HandlerError(ConvoflowError):
    """Raised (and reported) when a node action or command handler fails."""

    def __init__(
        self, subject_id: int, node: StateNode | None, cause: BaseException
    ) -> None:
        where = node.name if node is not None else "command handler"
        super().__init__(f"{where} failed for subject {subject_id}: {cause!r}")
        self.subject_id = subject_id
        self.node = node
        self.cause = cause
