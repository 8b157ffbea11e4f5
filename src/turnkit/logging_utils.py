"""Runtime logging helpers."""

from __future__ import annotations

import sys
from contextvars import ContextVar
from logging import Handler
from typing import Literal

import loguru
from loguru import logger
from rich import get_console
from rich.logging import RichHandler

from turnkit.config import load_settings

LogProfile = Literal["default", "chat"]

_PROFILE_FORMATS: dict[LogProfile, str] = {
    "chat": "{level} | {extra[conversation]} |{message}",
    "default": (
        "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {name}:{function}:{line} | {extra[conversation]} | {message}"
    ),
}
_CONFIGURED_PROFILE: LogProfile | None = None
_conversation_context: ContextVar[str] = ContextVar("turnkit_conversation", default="-")


def current_conversation() -> str:
    """Get the conversation id of the turn running in this context."""
    return _conversation_context.get()


def bind_conversation(conversation_id: str | None) -> object:
    """Mark the current context as handling one conversation; returns a reset token."""
    return _conversation_context.set(conversation_id or "-")


def reset_conversation(token: object) -> None:
    _conversation_context.reset(token)  # type: ignore[arg-type]


def _build_chat_handler() -> Handler:
    return RichHandler(
        console=get_console(),
        show_level=True,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )


def configure_logging(*, profile: LogProfile = "default", level: str | None = None) -> None:
    """Configure process-level logging once."""

    def inject_context(record: loguru.Record) -> None:
        record["extra"]["conversation"] = current_conversation()

    global _CONFIGURED_PROFILE
    if profile == _CONFIGURED_PROFILE:
        return

    resolved_level = (level or load_settings().log_level).upper()
    logger.remove()
    if profile == "chat":
        logger.add(
            _build_chat_handler(),
            level=resolved_level,
            format="{message}",
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stderr,
            level=resolved_level,
            format=_PROFILE_FORMATS[profile],
            backtrace=False,
            diagnose=False,
        )
        logger.configure(patcher=inject_context)
    _CONFIGURED_PROFILE = profile
