"""Telegram Bot API models and clients."""

from .api_models import Update
from .client_api import BotClient, HttpBotClient
from .events import Event, parse_event, resolve_subject

__all__ = [
    "BotClient",
    "Event",
    "HttpBotClient",
    "Update",
    "parse_event",
    "resolve_subject",
]
