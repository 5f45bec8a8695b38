"""Discord event handlers for voxcord."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import discord

from voxcord.core.error_handling import log_discord_event_error
from voxcord.discord.adapter import DiscordConversation, to_platform_message
from voxcord.globals import discord_bot, httpx_client

if TYPE_CHECKING:
    from voxcord.logic.pipeline import MessagePipeline

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _EventState:
    pipeline: "MessagePipeline | None" = None


_STATE = _EventState()


def bind_pipeline(pipeline: "MessagePipeline") -> None:
    """Attach the pipeline the message handler dispatches to."""
    _STATE.pipeline = pipeline


# =============================================================================
# Event Handlers
# =============================================================================


@discord_bot.event
async def on_ready() -> None:
    """Log readiness and the invite URL."""
    if not discord_bot.user:
        return

    client_id = discord_bot.user.id
    invite_url = (
        "https://discord.com/oauth2/authorize?client_id="
        f"{client_id}&permissions=412317191168&scope=bot"
    )
    logger.info("\n\nBOT INVITE URL:\n%s\n", invite_url)


@discord_bot.event
async def on_message(new_msg: discord.Message) -> None:
    """Hand inbound Discord messages to the pipeline."""
    if _STATE.pipeline is None:
        logger.warning("Message %s arrived before services were bound", new_msg.id)
        return
    if new_msg.author.bot:
        return

    conversation = DiscordConversation(
        new_msg.channel,
        bot_user=discord_bot.user,
        http_client=httpx_client,
    )
    message = to_platform_message(
        new_msg,
        bot_user=discord_bot.user,
        http_client=httpx_client,
    )
    await _STATE.pipeline.handle(message, conversation)


@discord_bot.event
async def on_error(event_method: str, *args: object, **kwargs: object) -> None:
    """Handle uncaught Discord event exceptions in one place."""
    log_discord_event_error(
        logger=logger,
        event_name=event_method,
        args=args,
        kwargs=kwargs,
    )
