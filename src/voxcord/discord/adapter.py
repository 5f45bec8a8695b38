"""Discord implementation of the engine's messaging-platform interfaces."""

from __future__ import annotations

import asyncio
import contextlib
import io
import logging
from typing import TYPE_CHECKING

import discord
import httpx

from voxcord.core.models import MessageKind, PlatformMessage

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from discord.ext import commands

logger = logging.getLogger(__name__)

DISCORD_MESSAGE_LIMIT = 2000
DISCORD_SEND_EXCEPTIONS = (discord.DiscordException, httpx.HTTPError, OSError)


def split_message(text: str, limit: int = DISCORD_MESSAGE_LIMIT) -> list[str]:
    """Split ``text`` into chunks Discord accepts, preferring line breaks."""
    chunks: list[str] = []
    remaining = text
    while len(remaining) > limit:
        cut = remaining.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(remaining[:cut])
        remaining = remaining[cut:].lstrip("\n")
    if remaining or not chunks:
        chunks.append(remaining)
    return chunks


def _attachment_kind(
    message: discord.Message,
    attachment: discord.Attachment,
) -> MessageKind:
    content_type = (attachment.content_type or "").split(";", 1)[0].strip().lower()
    if content_type.startswith("audio/"):
        return MessageKind.VOICE if message.flags.voice else MessageKind.AUDIO
    if content_type.startswith("image/"):
        return MessageKind.IMAGE
    if content_type.startswith("video/"):
        return MessageKind.VIDEO
    return MessageKind.DOCUMENT


def message_kind(message: discord.Message) -> MessageKind:
    """Classify a Discord message into the engine's message kinds."""
    if message.type == discord.MessageType.call:
        return MessageKind.CALL
    if message.type not in (discord.MessageType.default, discord.MessageType.reply):
        return MessageKind.OTHER
    if message.attachments:
        return _attachment_kind(message, message.attachments[0])
    if message.stickers:
        return MessageKind.STICKER
    return MessageKind.TEXT


class DiscordMediaLoader:
    """Downloads an attachment or sticker through the shared httpx client."""

    def __init__(self, client: httpx.AsyncClient, url: str) -> None:
        self._client = client
        self.url = url

    async def __call__(self) -> bytes:
        response = await self._client.get(self.url)
        response.raise_for_status()
        return response.content


def to_platform_message(
    message: discord.Message,
    *,
    bot_user: discord.ClientUser | None,
    http_client: httpx.AsyncClient,
) -> PlatformMessage:
    """Map a Discord message onto a PlatformMessage."""
    kind = message_kind(message)
    mime_type: str | None = None
    filename: str | None = None
    loader: Callable[[], Awaitable[bytes]] | None = None

    if message.attachments and kind not in (MessageKind.CALL, MessageKind.OTHER):
        attachment = message.attachments[0]
        mime_type = attachment.content_type
        filename = attachment.filename
        loader = DiscordMediaLoader(http_client, attachment.url)
    elif kind == MessageKind.STICKER:
        sticker = message.stickers[0]
        # Lottie stickers are JSON animations, not images.
        if sticker.format == discord.StickerFormatType.lottie:
            kind = MessageKind.OTHER
        else:
            is_gif = sticker.format == discord.StickerFormatType.gif
            mime_type = "image/gif" if is_gif else "image/png"
            filename = f"{sticker.name}.{mime_type.rsplit('/', 1)[1]}"
            loader = DiscordMediaLoader(http_client, sticker.url)

    text = message.content
    if bot_user is not None:
        text = text.replace(bot_user.mention, "").replace(f"<@!{bot_user.id}>", "")

    return PlatformMessage(
        id=str(message.id),
        conversation_id=str(message.channel.id),
        kind=kind,
        text=text.strip(),
        author_id=str(message.author.id),
        author_name=message.author.display_name,
        from_bot=bot_user is not None and message.author.id == bot_user.id,
        mentions_bot=bot_user is not None and bot_user.mentioned_in(message),
        mime_type=mime_type,
        filename=filename,
        created_at=message.created_at,
        media_loader=loader,
    )


class TypingSignal:
    """Keeps ``channel.typing()`` active until stopped."""

    def __init__(self, channel: discord.abc.Messageable) -> None:
        self._channel = channel
        self._done = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> TypingSignal:
        self._task = asyncio.create_task(self._hold(), name="voxcord-typing")
        return self

    async def _hold(self) -> None:
        try:
            async with self._channel.typing():
                await self._done.wait()
        except DISCORD_SEND_EXCEPTIONS as exc:
            logger.warning("Typing indicator failed: %s", exc)

    async def stop(self) -> None:
        self._done.set()
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None


class DiscordConversation:
    """A Discord channel or DM seen through the ``Conversation`` protocol."""

    def __init__(
        self,
        channel: discord.abc.Messageable,
        *,
        bot_user: discord.ClientUser | None,
        http_client: httpx.AsyncClient,
    ) -> None:
        self._channel = channel
        self._bot_user = bot_user
        self._http_client = http_client

    @property
    def conversation_id(self) -> str:
        return str(self._channel.id)

    @property
    def is_group(self) -> bool:
        return not isinstance(self._channel, discord.DMChannel)

    @property
    def region(self) -> str | None:
        guild = getattr(self._channel, "guild", None)
        if guild is None:
            return None
        return str(guild.preferred_locale)

    async def fetch_history(self, limit: int) -> list[PlatformMessage]:
        """Return the latest ``limit`` messages, newest first."""
        return [
            to_platform_message(
                message,
                bot_user=self._bot_user,
                http_client=self._http_client,
            )
            async for message in self._channel.history(limit=limit)
        ]

    async def send_text(self, text: str) -> None:
        for chunk in split_message(text):
            await self._channel.send(
                chunk,
                allowed_mentions=discord.AllowedMentions.none(),
            )

    async def send_attachment(self, data: bytes, filename: str) -> None:
        await self._channel.send(file=discord.File(io.BytesIO(data), filename=filename))

    async def start_typing(self) -> TypingSignal:
        return await TypingSignal(self._channel).start()

    async def clear_history(self) -> bool:
        """Discord offers no way to wipe a channel for one user."""
        return False


class DiscordReminderSender:
    """Delivers due reminders to channels by id."""

    def __init__(self, bot: commands.Bot) -> None:
        self._bot = bot

    async def send_to_conversation(self, conversation_id: str, text: str) -> None:
        channel_id = int(conversation_id)
        channel = self._bot.get_channel(channel_id)
        if channel is None:
            channel = await self._bot.fetch_channel(channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            msg = f"Channel {conversation_id} cannot receive messages"
            raise TypeError(msg)
        for chunk in split_message(text):
            await channel.send(chunk)
