from convoflow.telegram.api_models import (
    CallbackQuery,
    Chat,
    ChatJoinRequest,
    Message,
    Update,
)
from convoflow.telegram.events import parse_event, resolve_subject


def test_parse_message_update_from_wire_payload() -> None:
    update = {
        "update_id": 7,
        "message": {
            "message_id": 10,
            "text": "hello",
            "chat": {"id": 123, "type": "private"},
            "from": {"id": 99, "is_bot": False, "first_name": "Ann"},
            "unknown_field": {"nested": True},
        },
    }

    event = parse_event(update)

    assert event is not None
    assert event.update_id == 7
    assert event.subject_id == 123
    assert event.kind == "message"
    assert event.text == "hello"
    assert event.update.message is not None
    assert event.update.message.from_ is not None
    assert event.update.message.from_.id == 99


def test_caption_is_used_when_text_missing() -> None:
    event = parse_event(
        {
            "update_id": 1,
            "message": {"message_id": 1, "chat": {"id": 5}, "caption": "photo"},
        }
    )

    assert event is not None
    assert event.text == "photo"


def test_callback_query_uses_data_as_text() -> None:
    update = Update(
        update_id=3,
        callback_query=CallbackQuery(
            id="q",
            message=Message(message_id=1, chat=Chat(id=-100)),
            data="1",
        ),
    )

    event = parse_event(update)

    assert event is not None
    assert event.subject_id == -100
    assert event.kind == "callback_query"
    assert event.text == "1"


def test_inaccessible_callback_message_still_resolves() -> None:
    event = parse_event(
        {
            "update_id": 4,
            "callback_query": {
                "id": "q",
                "from": {"id": 1},
                "message": {"message_id": 9, "date": 0, "chat": {"id": 77}},
                "data": "x",
            },
        }
    )

    assert event is not None
    assert event.subject_id == 77


def test_callback_query_without_message_is_unresolved() -> None:
    update = Update(update_id=5, callback_query=CallbackQuery(id="inline", data="x"))

    assert resolve_subject(update) is None
    assert parse_event(update) is None


def test_priority_order_first_variant_wins() -> None:
    update = Update(
        update_id=6,
        edited_message=Message(message_id=1, chat=Chat(id=2), text="edited"),
        chat_join_request=ChatJoinRequest(chat=Chat(id=3)),
    )

    assert resolve_subject(update) == ("edited_message", 2)


def test_variants_without_text() -> None:
    event = parse_event(
        {"update_id": 8, "chat_join_request": {"chat": {"id": 42}, "date": 1}}
    )

    assert event is not None
    assert event.kind == "chat_join_request"
    assert event.text is None


def test_reaction_and_boost_variants_resolve() -> None:
    reaction = parse_event(
        {"update_id": 9, "message_reaction": {"chat": {"id": 11}, "message_id": 1}}
    )
    boost = parse_event(
        {"update_id": 10, "removed_chat_boost": {"chat": {"id": 12}, "boost_id": "b"}}
    )

    assert reaction is not None and reaction.subject_id == 11
    assert boost is not None and boost.subject_id == 12


def test_unknown_variant_has_no_subject() -> None:
    update = {
        "update_id": 11,
        "inline_query": {"id": "1", "from": {"id": 1}, "query": "q", "offset": ""},
    }

    assert parse_event(update) is None
