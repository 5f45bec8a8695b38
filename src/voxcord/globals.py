"""Global state and shared clients."""

import logging

import discord
import httpx
from discord.ext import commands

from voxcord.core.config import (
    get_config,
    get_or_create_httpx_client,
    httpx_options_from_config,
    validate_config,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.getLogger("LiteLLM").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

config = get_config()
validate_config(config)

# Initialize clients
intents = discord.Intents.default()
intents.message_content = True
status_message = (config.get("status_message") or "Send me a voice note")[:128]
activity = discord.CustomActivity(name=status_message)
discord_bot = commands.Bot(
    intents=intents,
    activity=activity,
    command_prefix=config.get("command_prefix") or "!",
    allowed_mentions=discord.AllowedMentions(replied_user=False),
)

_httpx_client_holder: list[httpx.AsyncClient | None] = []
httpx_client = get_or_create_httpx_client(
    _httpx_client_holder,
    options=httpx_options_from_config(config),
)
