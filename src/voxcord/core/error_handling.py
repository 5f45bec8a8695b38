"""Centralized exception logging and process-level hooks.

Every handled exception in voxcord is logged through :func:`log_exception`,
which renders structured ``key=value`` context next to the traceback. Provider
failures carry the ``provider/model`` that failed, so it is added to the
context automatically.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

LOGGER = logging.getLogger(__name__)
COMMON_HANDLER_EXCEPTIONS = (
    AssertionError,
    AttributeError,
    LookupError,
    OSError,
    RuntimeError,
    TimeoutError,
    TypeError,
    ValueError,
)

# Keys of an asyncio handler context that hold objects with noisy reprs.
_ASYNCIO_OBJECT_KEYS = frozenset({"exception", "future", "task", "handle", "transport"})


def _format_context(context: Mapping[str, object]) -> str:
    """Render structured context as a stable key-value string."""
    return ", ".join(f"{key}={context[key]!r}" for key in sorted(context))


def error_context(
    error: BaseException,
    context: Mapping[str, object] | None = None,
) -> dict[str, object]:
    """Merge caller context with what the error itself knows."""
    merged: dict[str, object] = {"error_type": type(error).__name__}
    provider = getattr(error, "provider", None)
    if provider:
        merged["provider"] = provider
    if context:
        merged.update(context)
    return merged


def log_exception(
    *,
    logger: logging.Logger,
    message: str,
    error: BaseException,
    context: Mapping[str, object] | None = None,
) -> None:
    """Write a structured exception log entry."""
    logger.error(
        "%s | %s",
        message,
        _format_context(error_context(error, context)),
        exc_info=error,
    )


def _asyncio_context(context: Mapping[str, Any]) -> dict[str, object]:
    rendered = {
        key: value for key, value in context.items() if key not in _ASYNCIO_OBJECT_KEYS
    }
    for key in ("task", "future"):
        value = context.get(key)
        if isinstance(value, asyncio.Task):
            rendered[key] = value.get_name()
        elif value is not None:
            rendered[key] = type(value).__name__
    return rendered


def register_asyncio_exception_handler(
    loop: asyncio.AbstractEventLoop,
    *,
    logger: logging.Logger | None = None,
) -> None:
    """Install a loop-level handler for exceptions nobody awaited.

    Background tasks (reminder checks, cache sweeps, typing indicators) are
    named, so the log names the task instead of dumping its repr.
    """
    target_logger = logger or LOGGER

    def _handle_exception(
        _loop: asyncio.AbstractEventLoop,
        context: dict[str, Any],
    ) -> None:
        error = context.get("exception")
        message = str(context.get("message") or "Unhandled asyncio exception")
        rendered = _asyncio_context(context)
        if isinstance(error, BaseException):
            log_exception(
                logger=target_logger,
                message=message,
                error=error,
                context=rendered,
            )
            return
        target_logger.error("%s | %s", message, _format_context(rendered))

    loop.set_exception_handler(_handle_exception)


def install_global_exception_hooks(*, logger: logging.Logger | None = None) -> None:
    """Install process-level exception hooks for uncaught exceptions."""
    target_logger = logger or LOGGER
    previous_excepthook = sys.excepthook
    previous_thread_hook = threading.excepthook

    def _sys_excepthook(
        exc_type: type[BaseException],
        exc_value: BaseException,
        exc_traceback: TracebackType | None,
    ) -> None:
        if issubclass(exc_type, KeyboardInterrupt):
            previous_excepthook(exc_type, exc_value, exc_traceback)
            return
        target_logger.critical(
            "voxcord stopped on an unhandled exception | %s",
            _format_context(error_context(exc_value)),
            exc_info=(exc_type, exc_value, exc_traceback),
        )

    def _thread_excepthook(args: threading.ExceptHookArgs) -> None:
        if issubclass(args.exc_type, KeyboardInterrupt):
            previous_thread_hook(args)
            return
        thread_name = args.thread.name if args.thread else "unknown"
        exc_value = args.exc_value
        if not isinstance(exc_value, BaseException):
            target_logger.error("Unhandled thread exception | thread=%r", thread_name)
            return
        log_exception(
            logger=target_logger,
            message="Unhandled thread exception",
            error=exc_value,
            context={"thread": thread_name},
        )

    sys.excepthook = _sys_excepthook
    threading.excepthook = _thread_excepthook


def _event_context(event_name: str, args: tuple[object, ...]) -> dict[str, object]:
    context: dict[str, object] = {"event": event_name}
    # on_message and friends receive the message first.
    first = args[0] if args else None
    message_id = getattr(first, "id", None)
    channel = getattr(first, "channel", None)
    if message_id is not None and channel is not None:
        context["message_id"] = message_id
        context["channel_id"] = getattr(channel, "id", None)
    return context


def log_discord_event_error(
    *,
    logger: logging.Logger,
    event_name: str,
    args: tuple[object, ...],
    kwargs: Mapping[str, object],
) -> None:
    """Log an uncaught Discord event exception with the event and its message."""
    context = _event_context(event_name, args)
    if kwargs:
        context["kwargs_keys"] = tuple(sorted(kwargs))
    exc_value = sys.exc_info()[1]
    if isinstance(exc_value, BaseException):
        log_exception(
            logger=logger,
            message="Unhandled Discord event error",
            error=exc_value,
            context=context,
        )
        return
    logger.error("Unhandled Discord event error | %s", _format_context(context))
