"""Subset of Bot API objects needed to route updates.

Only the fields used for subject resolution and text matching are modelled;
unknown fields are ignored on decode.
"""

from __future__ import annotations

import msgspec


class User(msgspec.Struct, forbid_unknown_fields=False):
    id: int
    is_bot: bool = False
    first_name: str | None = None
    username: str | None = None


class Chat(msgspec.Struct, forbid_unknown_fields=False):
    id: int
    type: str | None = None
    title: str | None = None
    username: str | None = None


class Message(msgspec.Struct, forbid_unknown_fields=False):
    message_id: int
    chat: Chat
    date: int = 0
    text: str | None = None
    caption: str | None = None
    from_: User | None = msgspec.field(default=None, name="from")


class BusinessMessagesDeleted(msgspec.Struct, forbid_unknown_fields=False):
    business_connection_id: str
    chat: Chat
    message_ids: list[int] = msgspec.field(default_factory=list)


class CallbackQuery(msgspec.Struct, forbid_unknown_fields=False):
    id: str
    from_: User | None = msgspec.field(default=None, name="from")
    # inaccessible messages decode here too: they carry chat, message_id, date=0
    message: Message | None = None
    data: str | None = None


class ChatMemberUpdated(msgspec.Struct, forbid_unknown_fields=False):
    chat: Chat
    date: int = 0
    from_: User | None = msgspec.field(default=None, name="from")


class ChatJoinRequest(msgspec.Struct, forbid_unknown_fields=False):
    chat: Chat
    date: int = 0
    from_: User | None = msgspec.field(default=None, name="from")


class MessageReactionUpdated(msgspec.Struct, forbid_unknown_fields=False):
    chat: Chat
    message_id: int
    date: int = 0


class MessageReactionCountUpdated(msgspec.Struct, forbid_unknown_fields=False):
    chat: Chat
    message_id: int
    date: int = 0


class ChatBoostUpdated(msgspec.Struct, forbid_unknown_fields=False):
    chat: Chat


class ChatBoostRemoved(msgspec.Struct, forbid_unknown_fields=False):
    chat: Chat
    boost_id: str | None = None


class Update(msgspec.Struct, forbid_unknown_fields=False):
    update_id: int
    message: Message | None = None
    edited_message: Message | None = None
    channel_post: Message | None = None
    edited_channel_post: Message | None = None
    business_message: Message | None = None
    edited_business_message: Message | None = None
    deleted_business_messages: BusinessMessagesDeleted | None = None
    callback_query: CallbackQuery | None = None
    my_chat_member: ChatMemberUpdated | None = None
    chat_member: ChatMemberUpdated | None = None
    chat_join_request: ChatJoinRequest | None = None
    message_reaction: MessageReactionUpdated | None = None
    message_reaction_count: MessageReactionCountUpdated | None = None
    chat_boost: ChatBoostUpdated | None = None
    removed_chat_boost: ChatBoostRemoved | None = None
