"""Developer CLI: inspect routes and chat with an application locally."""

from __future__ import annotations

import asyncio
import importlib

import typer
from rich.console import Console
from rich.table import Table

from turnkit.activity import Activity, ActivityTypes
from turnkit.adapter import BusAdapter
from turnkit.application import Application
from turnkit.config import load_settings
from turnkit.logging_utils import configure_logging
from turnkit.routing import RouteLane

app = typer.Typer(name="turnkit", help="Turn dispatch and AI plan execution toolkit.", add_completion=False)

EXIT_COMMANDS = frozenset({"/exit", "/quit"})


def load_application(target: str) -> Application:
    """Import ``module:attribute``; the attribute is an Application or a factory for one."""

    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise typer.BadParameter("expected module:attribute", param_hint="APP")
    module = importlib.import_module(module_name)
    candidate = getattr(module, attribute, None)
    if callable(candidate) and not isinstance(candidate, Application):
        candidate = candidate()
    if not isinstance(candidate, Application):
        raise typer.BadParameter(f"{target} is not a turnkit Application", param_hint="APP")
    return candidate


@app.command("routes")
def routes(target: str = typer.Argument(..., metavar="APP", help="Application as module:attribute")) -> None:
    """List registered routes in dispatch order."""

    application = load_application(target)
    table = Table("lane", "#", "handler")
    for lane in (RouteLane.PRIORITY, RouteLane.DEFAULT):
        for index, route in enumerate(application.routes.routes(lane)):
            table.add_row(str(lane), str(index), route.name)
    Console().print(table)
    if application.has_ai:
        typer.echo(f"ai=on actions={', '.join(application.ai.actions.names())}")
    else:
        typer.echo("ai=off")
    for hook_name, plugins in application.hook_report().items():
        typer.echo(f"hook {hook_name}: {', '.join(plugins)}")


@app.command("chat")
def chat(
    target: str = typer.Argument(..., metavar="APP", help="Application as module:attribute"),
    conversation: str = typer.Option("local", help="Conversation id"),
    user: str = typer.Option("user", help="Sender id"),
    log_level: str | None = typer.Option(None, help="Log level (default: TURNKIT_LOG_LEVEL)"),
) -> None:
    """Chat with an application whose adapter is a BusAdapter."""

    configure_logging(profile="chat", level=log_level or load_settings().log_level)
    application = load_application(target)
    adapter = application.options.adapter
    if not isinstance(adapter, BusAdapter):
        typer.echo("chat requires an application configured with a BusAdapter", err=True)
        raise typer.Exit(1)
    asyncio.run(_chat_loop(application, adapter, conversation=conversation, user=user))


async def _chat_loop(application: Application, adapter: BusAdapter, *, conversation: str, user: str) -> None:
    async def _print_outbound(activity: Activity) -> None:
        if activity.type == ActivityTypes.MESSAGE and activity.text:
            typer.echo(f"bot> {activity.text}")

    unsubscribe = adapter.bus.on_outbound(_print_outbound)
    try:
        while True:
            try:
                line = await asyncio.to_thread(input, "you> ")
            except EOFError:
                break
            text = line.strip()
            if text in EXIT_COMMANDS:
                break
            if not text:
                continue
            activity = Activity.message(
                text,
                channel_id="cli",
                conversation_id=conversation,
                sender_id=user,
                recipient_id="bot",
            )
            await application.process(activity)
    finally:
        unsubscribe()
