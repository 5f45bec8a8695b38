"""Messaging-platform interfaces consumed by the engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from voxcord.core.models import PlatformMessage


class PresenceSignal(Protocol):
    """A running "typing" indicator that can be stopped."""

    async def stop(self) -> None: ...


class Conversation(Protocol):
    """One chat (direct or group) on the messaging platform."""

    @property
    def conversation_id(self) -> str: ...

    @property
    def is_group(self) -> bool: ...

    @property
    def region(self) -> str | None: ...

    async def fetch_history(self, limit: int) -> list[PlatformMessage]:
        """Return up to ``limit`` recent messages, newest first."""
        ...

    async def send_text(self, text: str) -> None: ...

    async def send_attachment(self, data: bytes, filename: str) -> None: ...

    async def start_typing(self) -> PresenceSignal: ...

    async def clear_history(self) -> bool:
        """Delete platform-side history; return False when unsupported."""
        ...
