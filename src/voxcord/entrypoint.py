"""Entrypoint module for wiring services and running the bot."""

from __future__ import annotations

import asyncio
import contextlib
import functools
import importlib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import discord
import httpx

from voxcord.core.config import config_bool, config_float, config_int
from voxcord.core.config.constants import (
    DEFAULT_MEDIA_CACHE_PATH,
    DEFAULT_SEARCH_COUNTRY,
    FALLBACK_MAX_TOKENS,
    HISTORY_LIMIT,
    MAX_TOOL_ROUNDS,
    MEDIA_CACHE_TTL_SECONDS,
    PRIMARY_MAX_TOKENS,
    QUIET_PERIOD_SECONDS,
    SEARCH_STAGGER_SECONDS,
    TYPING_DELAY_SECONDS,
)
from voxcord.core.error_handling import COMMON_HANDLER_EXCEPTIONS
from voxcord.logic.fallbacks import build_fallback_selector, fallback_models_from_config
from voxcord.logic.guard import ConversationAdmissionGuard
from voxcord.logic.normalizer import HistoryNormalizer, ImageMode
from voxcord.logic.orchestrator import OrchestratorSettings, ToolCallOrchestrator
from voxcord.logic.pipeline import MessagePipeline, PipelineSettings
from voxcord.logic.prompts import build_system_prompt
from voxcord.logic.tools import ToolExecutor
from voxcord.services.cache import MediaAnalysisCache
from voxcord.services.database import AppDB
from voxcord.services.database.core import DATABASE_ERRORS
from voxcord.services.llm import LiteLLMInferenceClient
from voxcord.services.media import (
    LiteLLMTranscriber,
    MediaAnalyzer,
    ModelVisionDescriber,
    OcrSpaceReader,
)
from voxcord.services.media.transcription import DEFAULT_TRANSCRIPTION_MODEL
from voxcord.services.media.vision import DEFAULT_VISION_MODEL
from voxcord.services.reminders import ReminderScheduler
from voxcord.services.search import BraveSearchClient

if TYPE_CHECKING:
    from collections.abc import Mapping

    from aiohttp.web import AppRunner

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 60 * 60
SHUTDOWN_EXCEPTIONS = (
    *COMMON_HANDLER_EXCEPTIONS,
    *DATABASE_ERRORS,
    discord.DiscordException,
    httpx.HTTPError,
)


@dataclass(slots=True)
class _EntrypointState:
    server_runner: AppRunner | None = None
    db_instance: AppDB | None = None
    services: contextlib.AsyncExitStack = field(
        default_factory=contextlib.AsyncExitStack,
    )


_STATE = _EntrypointState()


def build_pipeline(
    config: Mapping[str, Any],
    *,
    db: AppDB,
    http_client: httpx.AsyncClient,
    cache: MediaAnalysisCache,
    reminders: ReminderScheduler | None,
) -> MessagePipeline:
    """Construct the message pipeline and everything it depends on."""
    inference = LiteLLMInferenceClient(config)

    ocr_key = config.get("ocr_space_api_key")
    analyzer = MediaAnalyzer(
        cache,
        LiteLLMTranscriber(
            config,
            model=config.get("transcription_model") or DEFAULT_TRANSCRIPTION_MODEL,
        ),
        ModelVisionDescriber(
            inference,
            model=config.get("vision_model") or DEFAULT_VISION_MODEL,
        ),
        OcrSpaceReader(http_client, ocr_key) if ocr_key else None,
    )
    normalizer = HistoryNormalizer(
        analyzer,
        image_mode=ImageMode(config.get("image_mode") or ImageMode.DESCRIBE),
    )

    brave_key = config.get("brave_api_key") or ""
    if not brave_key:
        logger.warning("brave_api_key is not set; web_search calls will fail")
    enable_table_tool = config_bool(config, "enable_table_tool", default=False)
    tools = ToolExecutor(
        BraveSearchClient(http_client, brave_key),
        reminders=reminders,
        enable_table_tool=enable_table_tool,
        stagger_seconds=config_float(
            config,
            "search_stagger_seconds",
            SEARCH_STAGGER_SECONDS,
        ),
        default_country=config.get("default_search_country") or DEFAULT_SEARCH_COUNTRY,
    )

    primary_model = config["model"]
    orchestrator = ToolCallOrchestrator(
        inference,
        tools,
        OrchestratorSettings(
            primary_model=primary_model,
            fallback_models=fallback_models_from_config(config, primary_model),
            max_tokens=config_int(config, "max_tokens", PRIMARY_MAX_TOKENS),
            fallback_max_tokens=config_int(
                config,
                "fallback_max_tokens",
                FALLBACK_MAX_TOKENS,
            ),
            max_tool_rounds=config_int(config, "max_tool_rounds", MAX_TOOL_ROUNDS),
        ),
        selector=build_fallback_selector(config.get("fallback_strategy")),
        system_prompt=functools.partial(
            build_system_prompt,
            enable_table_tool=enable_table_tool,
            enable_reminder_tool=reminders is not None,
        ),
    )

    guard = ConversationAdmissionGuard(
        quiet_period_seconds=config_float(
            config,
            "quiet_period_seconds",
            QUIET_PERIOD_SECONDS,
        ),
        typing_delay_seconds=config_float(
            config,
            "typing_delay_seconds",
            TYPING_DELAY_SECONDS,
        ),
    )

    return MessagePipeline(
        guard=guard,
        normalizer=normalizer,
        orchestrator=orchestrator,
        db=db,
        reminders=reminders,
        settings=PipelineSettings(
            history_limit=config_int(config, "history_limit", HISTORY_LIMIT),
            require_consent=config_bool(config, "require_consent", default=False),
        ),
        extra_exceptions=(discord.DiscordException,),
    )


async def shutdown() -> None:
    """Best-effort shutdown of long-lived resources.

    This is safe to call multiple times.
    """
    app_globals = importlib.import_module("voxcord.globals")
    discord_bot = app_globals.discord_bot
    if not discord_bot.is_closed():
        with contextlib.suppress(*SHUTDOWN_EXCEPTIONS):
            await discord_bot.close()
            # Wait for discord.py keep-alive threads to exit cleanly before the
            # event loop is closed to prevent "Event loop is closed" errors.
            await asyncio.sleep(0.25)

    # Flushes the media cache snapshot and stops the reminder loop.
    with contextlib.suppress(*SHUTDOWN_EXCEPTIONS):
        await _STATE.services.aclose()

    if app_globals.httpx_client is not None:
        with contextlib.suppress(*SHUTDOWN_EXCEPTIONS):
            await app_globals.httpx_client.aclose()

    if _STATE.db_instance is not None:
        with contextlib.suppress(*SHUTDOWN_EXCEPTIONS):
            _STATE.db_instance.close()
        _STATE.db_instance = None

    if _STATE.server_runner is not None:
        with contextlib.suppress(*SHUTDOWN_EXCEPTIONS):
            await _STATE.server_runner.cleanup()
        _STATE.server_runner = None


async def main() -> None:
    """Initialize dependencies and start background services."""
    app_globals = importlib.import_module("voxcord.globals")
    events = importlib.import_module("voxcord.discord.events")
    adapter = importlib.import_module("voxcord.discord.adapter")
    server = importlib.import_module("voxcord.server")
    config = app_globals.config

    _STATE.db_instance = AppDB(
        db_url=config.get("turso_database_url"),
        auth_token=config.get("turso_auth_token"),
        local_db_path=config.get("database_path") or "voxcord.db",
    )

    ttl_hours = config_float(
        config,
        "media_cache_ttl_hours",
        MEDIA_CACHE_TTL_SECONDS / SECONDS_PER_HOUR,
    )
    cache = await _STATE.services.enter_async_context(
        MediaAnalysisCache(
            config.get("media_cache_path") or DEFAULT_MEDIA_CACHE_PATH,
            ttl_seconds=ttl_hours * SECONDS_PER_HOUR,
        ),
    )

    reminders: ReminderScheduler | None = None
    if config_bool(config, "enable_reminder_tool", default=False):
        reminders = ReminderScheduler(
            _STATE.db_instance,
            delivery_errors=(*COMMON_HANDLER_EXCEPTIONS, discord.DiscordException),
        )
        reminders.set_sender(adapter.DiscordReminderSender(app_globals.discord_bot))
        await _STATE.services.enter_async_context(reminders)

    events.bind_pipeline(
        build_pipeline(
            config,
            db=_STATE.db_instance,
            http_client=app_globals.httpx_client,
            cache=cache,
            reminders=reminders,
        ),
    )

    _STATE.server_runner = await server.start_server(_STATE.db_instance)
    try:
        await app_globals.discord_bot.start(config["bot_token"])
    finally:
        # Ctrl+C typically cancels the main task; shield shutdown so Discord closes
        # before the event loop is closed.
        with contextlib.suppress(*SHUTDOWN_EXCEPTIONS):
            await asyncio.shield(shutdown())
