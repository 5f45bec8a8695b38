"""Tool schemas offered to the model and their execution."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from voxcord.core.config.constants import (
    DEFAULT_SEARCH_COUNTRY,
    SEARCH_STAGGER_SECONDS,
    TABLE_CREATED_MESSAGE,
)
from voxcord.core.exceptions import (
    InvalidDurationError,
    MalformedToolRequestError,
    UnsupportedToolError,
)
from voxcord.core.models import ConversationTurn
from voxcord.services.tables import render_table_image

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from voxcord.core.models import ConversationContext, ToolCall
    from voxcord.services.llm.types import ToolSchema
    from voxcord.services.reminders import ReminderScheduler
    from voxcord.services.search import SearchClient

logger = logging.getLogger(__name__)

WEB_SEARCH = "web_search"
CREATE_TABLE = "create_table"
SET_REMINDER = "set_reminder"

WEB_SEARCH_SCHEMA: ToolSchema = {
    "type": "function",
    "function": {
        "name": WEB_SEARCH,
        "description": (
            "Search the web for information. You can provide multiple queries "
            "to get more comprehensive results. Always say which sources the "
            "information came from."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "A single exact and concise search query.",
                },
                "queries": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Several search queries to run.",
                },
                "country": {
                    "type": "string",
                    "description": "Two-letter country code to search in.",
                    "default": DEFAULT_SEARCH_COUNTRY,
                },
            },
        },
    },
}

CREATE_TABLE_SCHEMA: ToolSchema = {
    "type": "function",
    "function": {
        "name": CREATE_TABLE,
        "description": (
            "Create a table image from structured data. The image is attached "
            "to your text reply automatically."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "headers": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Column headers.",
                },
                "rows": {
                    "type": "array",
                    "items": {"type": "array", "items": {"type": "string"}},
                    "description": "Rows, each a list of cell values.",
                },
                "title": {"type": "string", "description": "Optional table title."},
            },
            "required": ["headers", "rows"],
        },
    },
}

SET_REMINDER_SCHEMA: ToolSchema = {
    "type": "function",
    "function": {
        "name": SET_REMINDER,
        "description": (
            "Set a reminder for the user. Only use when explicitly requested. "
            "Duration format: 1d (1 day), 2h (2 hours), 30m (30 minutes)."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "message": {"type": "string", "description": "The reminder text."},
                "duration": {
                    "type": "string",
                    "description": "Duration like 1d, 2h or 30m.",
                    "pattern": "^\\d+[dhm]$",
                },
            },
            "required": ["message", "duration"],
        },
    },
}


@dataclass(slots=True)
class ToolOutcome:
    """Results of one Execute phase, in the order the calls were made."""

    results: list[ConversationTurn] = field(default_factory=list)
    artifact: bytes | None = None


@dataclass(frozen=True, slots=True)
class _PreparedCall:
    call: ToolCall
    arguments: dict[str, Any]


def decode_arguments(call: ToolCall) -> dict[str, Any]:
    """Parse the model's raw JSON arguments into a dict."""
    raw = call.arguments.strip() or "{}"
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as exc:
        msg = f"Arguments for {call.name} are not valid JSON: {exc}"
        raise MalformedToolRequestError(msg) from exc
    if not isinstance(decoded, dict):
        msg = f"Arguments for {call.name} must be a JSON object"
        raise MalformedToolRequestError(msg)
    return decoded


def _search_queries(arguments: dict[str, Any]) -> list[str]:
    queries: list[str] = []
    raw_queries = arguments.get("queries")
    if isinstance(raw_queries, str):
        raw_queries = [raw_queries]
    if isinstance(raw_queries, list):
        queries.extend(str(q).strip() for q in raw_queries if str(q).strip())
    query = arguments.get("query")
    if isinstance(query, str) and query.strip():
        queries.insert(0, query.strip())
    if not queries:
        msg = "web_search needs a non-empty query or queries"
        raise MalformedToolRequestError(msg)
    return list(dict.fromkeys(queries))


def _table_arguments(
    arguments: dict[str, Any],
) -> tuple[list[str], list[list[str]], str | None]:
    headers = arguments.get("headers")
    rows = arguments.get("rows")
    if not isinstance(headers, list) or not headers:
        msg = "create_table needs a non-empty headers list"
        raise MalformedToolRequestError(msg)
    if not isinstance(rows, list) or not all(isinstance(row, list) for row in rows):
        msg = "create_table rows must be a list of lists"
        raise MalformedToolRequestError(msg)
    title = arguments.get("title")
    return (
        [str(h) for h in headers],
        [[str(cell) for cell in row] for row in rows],
        str(title) if title else None,
    )


class ToolExecutor:
    """Runs the fixed tool set requested by the model.

    ``web_search`` is always offered; ``create_table`` and ``set_reminder``
    only when enabled. Every call in a batch is validated before any runs,
    so an unknown tool or bad arguments fail the exchange without side
    effects.
    """

    def __init__(
        self,
        search: SearchClient,
        *,
        reminders: ReminderScheduler | None = None,
        enable_table_tool: bool = False,
        stagger_seconds: float = SEARCH_STAGGER_SECONDS,
        default_country: str = DEFAULT_SEARCH_COUNTRY,
        render_table: Callable[..., bytes] = render_table_image,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._search = search
        self._reminders = reminders
        self.enable_table_tool = enable_table_tool
        self.stagger_seconds = stagger_seconds
        self.default_country = default_country
        self._render_table = render_table
        self._sleep = sleep

    @property
    def enable_reminder_tool(self) -> bool:
        return self._reminders is not None

    def schemas(self) -> list[ToolSchema]:
        """Tool definitions to send with primary-model requests."""
        schemas = [WEB_SEARCH_SCHEMA]
        if self.enable_table_tool:
            schemas.append(CREATE_TABLE_SCHEMA)
        if self.enable_reminder_tool:
            schemas.append(SET_REMINDER_SCHEMA)
        return schemas

    def _offered(self) -> set[str]:
        return {schema["function"]["name"] for schema in self.schemas()}

    async def execute(
        self,
        calls: Sequence[ToolCall],
        context: ConversationContext | None = None,
    ) -> ToolOutcome:
        """Run every call concurrently and pair each with its result turn."""
        offered = self._offered()
        prepared: list[_PreparedCall] = []
        for call in calls:
            if call.name not in offered:
                raise UnsupportedToolError(call.name)
            arguments = decode_arguments(call)
            if call.name == WEB_SEARCH:
                _search_queries(arguments)
            elif call.name == CREATE_TABLE:
                _table_arguments(arguments)
            prepared.append(_PreparedCall(call=call, arguments=arguments))

        outcome = ToolOutcome()
        contents = await asyncio.gather(
            *(self._run(item, outcome, context) for item in prepared),
        )
        outcome.results = [
            ConversationTurn.tool_result(item.call.id, content)
            for item, content in zip(prepared, contents, strict=True)
        ]
        return outcome

    async def _run(
        self,
        item: _PreparedCall,
        outcome: ToolOutcome,
        context: ConversationContext | None,
    ) -> str:
        name = item.call.name
        logger.info("Running tool %s (call %s)", name, item.call.id)
        if name == WEB_SEARCH:
            return await self._web_search(item.arguments)
        if name == CREATE_TABLE:
            outcome.artifact = await self._create_table(item.arguments)
            return TABLE_CREATED_MESSAGE
        return self._set_reminder(item.arguments, context)

    async def _web_search(self, arguments: dict[str, Any]) -> str:
        queries = _search_queries(arguments)
        country = str(arguments.get("country") or self.default_country)

        async def _staggered(index: int, query: str) -> dict[str, Any]:
            # Invocation i starts i * stagger after the first.
            if index and self.stagger_seconds > 0:
                await self._sleep(index * self.stagger_seconds)
            results = await self._search.search(query, country)
            return {"query": query, "results": [r.to_dict() for r in results]}

        payload = await asyncio.gather(
            *(_staggered(index, query) for index, query in enumerate(queries)),
        )
        return json.dumps(payload, ensure_ascii=False)

    async def _create_table(self, arguments: dict[str, Any]) -> bytes:
        headers, rows, title = _table_arguments(arguments)
        return await asyncio.to_thread(self._render_table, headers, rows, title)

    def _set_reminder(
        self,
        arguments: dict[str, Any],
        context: ConversationContext | None,
    ) -> str:
        if self._reminders is None:
            raise UnsupportedToolError(SET_REMINDER)
        if context is None or not context.author_id:
            msg = "set_reminder needs a conversation and author"
            raise MalformedToolRequestError(msg)
        message = arguments.get("message")
        duration = arguments.get("duration")
        if not isinstance(message, str) or not message.strip():
            msg = "set_reminder needs a message"
            raise MalformedToolRequestError(msg)
        if not isinstance(duration, str):
            msg = "set_reminder needs a duration"
            raise MalformedToolRequestError(msg)
        try:
            return self._reminders.add(
                context.conversation_id,
                context.author_id,
                message.strip(),
                duration,
            )
        except InvalidDurationError as exc:
            raise MalformedToolRequestError(str(exc)) from exc
