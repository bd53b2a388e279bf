"""Long-polling Telegram bot engine with per-chat conversation state machines."""

from .bot import Bot
from .commands import CommandRegistry
from .context import ActionContext, Dependencies
from .dispatcher import Dispatcher
from .graph import ConversationGraph, GraphBuilder, StateNode
from .poller import Poller
from .scheduler import SubjectScheduler
from .state import SubjectStateStore

__version__ = "0.1.0"

__all__ = [
    "ActionContext",
    "Bot",
    "CommandRegistry",
    "ConversationGraph",
    "Dependencies",
    "Dispatcher",
    "GraphBuilder",
    "Poller",
    "StateNode",
    "SubjectScheduler",
    "SubjectStateStore",
    "__version__",
]
