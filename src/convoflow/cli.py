from __future__ import annotations

import importlib
import signal
from pathlib import Path
from typing import Callable, cast

import anyio
import typer
from rich.console import Console
from rich.tree import Tree

from . import __version__
from .bot import Bot
from .config import ConfigError
from .errors import BotApiError, GraphError
from .graph import StateNode
from .logging import get_logger, setup_logging
from .settings import ConvoflowSettings, load_settings
from .telegram.client_api import BotClient, HttpBotClient

logger = get_logger(__name__)

AppFactory = Callable[[ConvoflowSettings, BotClient], Bot]

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Long-polling Telegram bot with per-chat conversation states.",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def _main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    _ = version


def load_app_factory(spec: str) -> AppFactory:
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"Invalid app {spec!r}; expected `module:attribute`.")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"Cannot import app module {module_name!r}: {exc}") from exc
    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ConfigError(f"App {spec!r} is not callable.")
    return cast(AppFactory, factory)


def _load(
    config: Path | None, app_spec: str | None
) -> tuple[ConvoflowSettings, AppFactory]:
    settings, _ = load_settings(config)
    factory = load_app_factory(app_spec or settings.app)
    return settings, factory


async def _watch_signals(bot: Bot, scope: anyio.CancelScope) -> None:
    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        async for signum in signals:
            logger.info("cli.signal", signal=signal.Signals(signum).name)
            if bot.poller is not None and bot.poller.stopped:
                # second signal: abandon running handlers
                scope.cancel()
                return
            bot.stop()


async def _serve(settings: ConvoflowSettings, factory: AppFactory) -> None:
    client = HttpBotClient(
        settings.telegram.bot_token,
        base_url=settings.telegram.api_base_url,
        timeout_s=settings.client_timeout_s(),
    )
    try:
        bot = factory(settings, client)
        try:
            me = await client.get_me()
        except BotApiError as exc:
            logger.warning("cli.get_me_failed", error=str(exc))
        else:
            logger.info("cli.identity", bot_id=me.id, username=me.username)
        async with anyio.create_task_group() as tg:
            tg.start_soon(_watch_signals, bot, tg.cancel_scope)
            await bot.run()
            tg.cancel_scope.cancel()
    finally:
        await client.close()


@app.command()
def run(
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to convoflow.toml."
    ),
    app_spec: str | None = typer.Option(
        None, "--app", help="Bot factory as `module:attribute`."
    ),
    debug: bool = typer.Option(
        False, "--debug/--no-debug", help="Log Bot API requests and transitions."
    ),
) -> None:
    """Poll Telegram and dispatch updates until interrupted."""
    setup_logging(debug=debug)
    try:
        settings, factory = _load(config, app_spec)
        anyio.run(_serve, settings, factory)
    except (ConfigError, GraphError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from None


def _render_node(node: StateNode, tree: Tree) -> None:
    label = node.name
    if node.condition is not None:
        label = f"{label} [dim]= {node.condition!r}[/]"
    branch = tree.add(label)
    for child in node.children:
        _render_node(child, branch)


@app.command()
def graph(
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to convoflow.toml."
    ),
    app_spec: str | None = typer.Option(
        None, "--app", help="Bot factory as `module:attribute`."
    ),
) -> None:
    """Print the conversation tree and the command table."""
    console = Console()
    try:
        settings, factory = _load(config, app_spec)
    except ConfigError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from None
    client = HttpBotClient(settings.telegram.bot_token)
    try:
        bot = factory(settings, client)
        conversation = bot.freeze().graph
    except GraphError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from None
    finally:
        anyio.run(client.close)
    root = Tree(
        f"[bold]{conversation.start.name}[/] (reset: {conversation.reset.name})"
    )
    for child in conversation.start.children:
        _render_node(child, root)
    console.print(root)
    for trigger, target in sorted(bot.commands.targets().items()):
        if isinstance(target, str):
            shown = target
        else:
            shown = getattr(target, "__name__", "handler")
        console.print(f"{trigger} -> {shown}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
