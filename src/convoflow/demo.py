"""Sign-up wizard used by ``convoflow run`` when no app is configured.

/start asks for a name and an e-mail, one message at a time, then lands on a
small menu that branches on the reply ("1" or "2", typed or tapped).
"""

from __future__ import annotations

from .bot import Bot
from .context import ActionContext
from .settings import ConvoflowSettings
from .telegram.client_api import BotClient

MENU_MARKUP = {
    "inline_keyboard": [
        [
            {"text": "About", "callback_data": "1"},
            {"text": "My data", "callback_data": "2"},
        ]
    ]
}


async def _ack_callback(ctx: ActionContext) -> None:
    query = ctx.event.update.callback_query
    if ctx.event.kind == "callback_query" and query is not None:
        await ctx.bot.answer_callback_query(query.id)


async def start(ctx: ActionContext) -> None:
    ctx.data.clear()
    await ctx.reply("Hi! What's your name?")
    ctx.next_state()


async def ask_name(ctx: ActionContext) -> None:
    ctx.data["name"] = (ctx.text or "").strip()
    await ctx.reply(f"Nice to meet you, {ctx.data['name']}. What's your e-mail?")
    ctx.next_state()


async def ask_mail(ctx: ActionContext) -> None:
    ctx.data["mail"] = (ctx.text or "").strip()
    await ctx.reply("Thanks, you're signed up.")
    ctx.next_state()
    await ctx.reply("Pick an option:", reply_markup=MENU_MARKUP)


async def menu(ctx: ActionContext) -> None:
    await _ack_callback(ctx)
    choice = ctx.next_state()
    if choice is None:
        await ctx.reply("Pick an option:", reply_markup=MENU_MARKUP)
        return
    if choice.name == "about":
        await ctx.reply("convoflow demo bot. Send /menu to come back here.")
    elif choice.name == "profile":
        name = ctx.data.get("name", "?")
        mail = ctx.data.get("mail", "?")
        await ctx.reply(f"Name: {name}\nE-mail: {mail}\nSend /menu to come back here.")


async def idle(ctx: ActionContext) -> None:
    await _ack_callback(ctx)
    await ctx.reply("Send /menu for options or /start to sign up again.")


async def show_help(ctx: ActionContext) -> None:
    await ctx.reply("/start: sign up\n/menu: options\n/help: this message")


def build_bot(settings: ConvoflowSettings, client: BotClient) -> Bot:
    bot = Bot(
        client,
        polling=settings.polling,
        conversation=settings.conversation,
    )
    bot.add_node("start", start)
    bot.add_node("ask_name", ask_name)
    bot.add_node("ask_mail", ask_mail)
    bot.add_node("menu", menu)
    bot.add_node("about", idle, condition="1")
    bot.add_node("profile", idle, condition="2")

    bot.add_child("start", "ask_name")
    bot.add_child("ask_name", "ask_mail")
    bot.add_child("ask_mail", "menu")
    bot.add_child("menu", "about")
    bot.add_child("menu", "profile")

    bot.command("/start", "start")
    bot.command("/menu", "menu")
    bot.command("/help", show_help)
    return bot
