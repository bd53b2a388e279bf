from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import msgspec

from .api_models import Chat, Message, Update

__all__ = ["Event", "parse_event", "resolve_subject"]


@dataclass(frozen=True, slots=True)
class Event:
    update_id: int
    subject_id: int
    kind: str
    text: str | None
    update: Update


def _message_text(msg: Message) -> str | None:
    return msg.text if msg.text is not None else msg.caption


def _variant(update: Update) -> tuple[str, Chat, str | None] | None:
    # priority order matters: the first populated variant wins
    if update.message is not None:
        msg = update.message
        return "message", msg.chat, _message_text(msg)
    if update.edited_message is not None:
        msg = update.edited_message
        return "edited_message", msg.chat, _message_text(msg)
    if update.channel_post is not None:
        msg = update.channel_post
        return "channel_post", msg.chat, _message_text(msg)
    if update.edited_channel_post is not None:
        msg = update.edited_channel_post
        return "edited_channel_post", msg.chat, _message_text(msg)
    if update.business_message is not None:
        msg = update.business_message
        return "business_message", msg.chat, _message_text(msg)
    if update.edited_business_message is not None:
        msg = update.edited_business_message
        return "edited_business_message", msg.chat, _message_text(msg)
    if update.deleted_business_messages is not None:
        return (
            "deleted_business_messages",
            update.deleted_business_messages.chat,
            None,
        )
    query = update.callback_query
    if query is not None and query.message is not None:
        return "callback_query", query.message.chat, query.data
    if update.my_chat_member is not None:
        return "my_chat_member", update.my_chat_member.chat, None
    if update.chat_member is not None:
        return "chat_member", update.chat_member.chat, None
    if update.chat_join_request is not None:
        return "chat_join_request", update.chat_join_request.chat, None
    if update.message_reaction is not None:
        return "message_reaction", update.message_reaction.chat, None
    if update.message_reaction_count is not None:
        return "message_reaction_count", update.message_reaction_count.chat, None
    if update.chat_boost is not None:
        return "chat_boost", update.chat_boost.chat, None
    if update.removed_chat_boost is not None:
        return "removed_chat_boost", update.removed_chat_boost.chat, None
    return None


def resolve_subject(update: Update) -> tuple[str, int] | None:
    """Return ``(variant, chat_id)`` for the first populated variant."""
    variant = _variant(update)
    if variant is None:
        return None
    kind, chat, _ = variant
    return kind, chat.id


def parse_event(update: Update | dict[str, Any]) -> Event | None:
    if isinstance(update, dict):
        update = msgspec.convert(update, type=Update)
    variant = _variant(update)
    if variant is None:
        return None
    kind, chat, text = variant
    return Event(
        update_id=update.update_id,
        subject_id=chat.id,
        kind=kind,
        text=text,
        update=update,
    )
