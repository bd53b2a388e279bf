import pytest

from convoflow.commands import CommandRegistry, command_token
from convoflow.errors import GraphError
from convoflow.graph import ConversationGraph, GraphBuilder


def _graph() -> ConversationGraph:
    builder = GraphBuilder()
    builder.add_node("start")
    builder.add_node("menu")
    builder.add_child("start", "menu")
    return builder.build()


async def _handler(ctx) -> None:
    _ = ctx


class TestCommandToken:
    def test_plain(self) -> None:
        assert command_token("/start") == "/start"

    def test_with_bot_suffix_and_args(self) -> None:
        assert command_token("/start@my_bot payload") == "/start"

    def test_leading_whitespace(self) -> None:
        assert command_token("  /menu") == "/menu"

    def test_not_a_command(self) -> None:
        assert command_token("hello") is None


def test_lookup_resolves_state_targets() -> None:
    graph = _graph()
    registry = CommandRegistry()
    registry.register("/start", "start")
    registry.bind(graph)

    target = registry.lookup("/start")

    assert target is not None
    assert target.node is graph.node("start")
    assert target.handler is None
    assert registry.lookup("start") is None
    assert registry.lookup(None) is None


def test_last_registration_wins() -> None:
    graph = _graph()
    registry = CommandRegistry()
    registry.register("/go", "start")
    registry.register("/go", "menu")
    registry.bind(graph)

    target = registry.lookup("/go")

    assert target is not None
    assert target.node is graph.node("menu")
    assert len(registry) == 1


def test_handler_targets() -> None:
    registry = CommandRegistry()
    registry.register("/help", _handler)
    registry.bind(_graph())

    target = registry.lookup("/help")

    assert target is not None
    assert target.node is None
    assert target.handler is _handler


def test_lookup_accepts_bot_suffix_and_arguments() -> None:
    registry = CommandRegistry()
    registry.register("/menu", "menu")
    registry.bind(_graph())

    assert registry.lookup("/menu@my_bot") is not None
    assert registry.lookup("/menu extra") is not None
    assert registry.lookup("/menus") is None


def test_exact_text_triggers_do_not_need_slash() -> None:
    registry = CommandRegistry()
    registry.register("Main menu", "menu")
    registry.bind(_graph())

    assert registry.lookup("Main menu") is not None
    assert registry.lookup("main menu") is None


def test_registration_closed_after_bind() -> None:
    registry = CommandRegistry()
    registry.bind(_graph())

    assert registry.bound
    with pytest.raises(GraphError):
        registry.register("/late", "start")
    with pytest.raises(GraphError):
        registry.bind(_graph())


def test_bind_rejects_unknown_state() -> None:
    registry = CommandRegistry()
    registry.register("/nope", "missing")

    with pytest.raises(GraphError, match="missing"):
        registry.bind(_graph())


def test_lookup_before_bind_is_an_error() -> None:
    with pytest.raises(GraphError):
        CommandRegistry().lookup("/start")


def test_empty_trigger_rejected() -> None:
    with pytest.raises(GraphError):
        CommandRegistry().register("   ", "start")
