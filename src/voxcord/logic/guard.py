"""Per-conversation single-flight with a quiet period and typing pacing."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from voxcord.core.config.constants import (
    GUARD_PRUNE_THRESHOLD,
    QUIET_PERIOD_SECONDS,
    TYPING_DELAY_SECONDS,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from voxcord.core.platform import PresenceSignal

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ConversationGuardState:
    """Admission state of one conversation."""

    busy: bool = False
    last_reply_at: float | None = None


class ConversationAdmissionGuard:
    """Admits at most one reply at a time per conversation.

    Triggers are dropped, never queued, while a reply is in flight or within
    ``quiet_period_seconds`` of the previous reply. Admitted tasks run after
    the presence signal starts and the pacing delay passes. State is reset
    on every exit path and task exceptions propagate to the caller.
    """

    def __init__(
        self,
        *,
        quiet_period_seconds: float = QUIET_PERIOD_SECONDS,
        typing_delay_seconds: float = TYPING_DELAY_SECONDS,
        prune_threshold: int = GUARD_PRUNE_THRESHOLD,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.quiet_period_seconds = quiet_period_seconds
        self.typing_delay_seconds = typing_delay_seconds
        self.prune_threshold = prune_threshold
        self._clock = clock
        self._sleep = sleep
        self._states: dict[str, ConversationGuardState] = {}

    def state(self, conversation_id: str) -> ConversationGuardState:
        """Return (creating on first use) the state for a conversation."""
        return self._states.setdefault(conversation_id, ConversationGuardState())

    def is_busy(self, conversation_id: str) -> bool:
        state = self._states.get(conversation_id)
        return state is not None and state.busy

    def _in_quiet_period(self, state: ConversationGuardState) -> bool:
        if state.last_reply_at is None:
            return False
        return self._clock() - state.last_reply_at < self.quiet_period_seconds

    async def run_exclusive(
        self,
        conversation_id: str,
        task: Callable[[], Awaitable[object]],
        *,
        presence: Callable[[], Awaitable[PresenceSignal]] | None = None,
    ) -> bool:
        """Run ``task`` unless the conversation is busy or quiet.

        Returns:
            True when the task was admitted and ran.

        """
        state = self.state(conversation_id)
        if state.busy:
            logger.debug("Dropping trigger for busy conversation %s", conversation_id)
            return False
        if self._in_quiet_period(state):
            logger.debug("Dropping trigger within quiet period for %s", conversation_id)
            return False

        # Claimed before the first await so a concurrent trigger sees it.
        state.busy = True
        signal: PresenceSignal | None = None
        try:
            if presence is not None:
                signal = await presence()
            if self.typing_delay_seconds > 0:
                await self._sleep(self.typing_delay_seconds)
            await task()
        finally:
            try:
                if signal is not None:
                    await signal.stop()
            finally:
                state.last_reply_at = self._clock()
                state.busy = False
                self._prune()
        return True

    def _prune(self) -> None:
        if len(self._states) <= self.prune_threshold:
            return
        now = self._clock()
        stale = [
            conversation_id
            for conversation_id, state in self._states.items()
            if not state.busy
            and (
                state.last_reply_at is None
                or now - state.last_reply_at >= self.quiet_period_seconds
            )
        ]
        for conversation_id in stale:
            del self._states[conversation_id]
        if stale:
            logger.debug("Pruned %s idle conversation guard entries", len(stale))
